from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Mapping, Protocol, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright

from .config_schema import BrowserConfig
from .errors import SessionError

CHROME_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
]

SCROLL_POSITION_SCRIPT = """
() => [
  Math.round(window.pageYOffset || 0),
  Math.round((document.scrollingElement || document.body || {}).scrollHeight || 0),
]
"""


class BrowserSession(Protocol):
    """Capabilities a crawl needs from a controlled browser tab."""

    async def navigate(
        self,
        url: str,
        *,
        wait_until: str = "networkidle",
        ready_selector: str | None = None,
        timeout_ms: int = 30000,
        ready_timeout_ms: int | None = None,
    ) -> None: ...

    async def content(self) -> str: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def set_cookies(self, cookies: Sequence[Mapping[str, Any]]) -> None: ...

    async def set_local_storage(self, origin: str, items: Mapping[str, str]) -> None: ...

    async def scroll_to(self, y: int) -> None: ...

    async def screenshot(self, path: str | Path) -> None: ...


class PlaywrightSession:
    """BrowserSession over one Playwright async Page."""

    def __init__(self, page: Page) -> None:
        self._page = page

    async def navigate(
        self,
        url: str,
        *,
        wait_until: str = "networkidle",
        ready_selector: str | None = None,
        timeout_ms: int = 30000,
        ready_timeout_ms: int | None = None,
    ) -> None:
        try:
            await self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)
            if ready_selector:
                await self._page.wait_for_selector(ready_selector, timeout=ready_timeout_ms or timeout_ms)
        except PlaywrightError as e:
            raise SessionError(f"Navigation to {url} failed: {e}") from e

    async def content(self) -> str:
        try:
            return await self._page.content()
        except PlaywrightError as e:
            raise SessionError(f"Reading page markup failed: {e}") from e

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            if arg is None:
                return await self._page.evaluate(script)
            return await self._page.evaluate(script, arg)
        except PlaywrightError as e:
            raise SessionError(f"Script evaluation failed: {e}") from e

    async def set_cookies(self, cookies: Sequence[Mapping[str, Any]]) -> None:
        try:
            await self._page.context.add_cookies([dict(c) for c in cookies])
        except PlaywrightError as e:
            raise SessionError(f"Setting cookies failed: {e}") from e

    async def set_local_storage(self, origin: str, items: Mapping[str, str]) -> None:
        # localStorage is per-origin, so the page has to be on that origin first.
        await self.navigate(origin, wait_until="domcontentloaded")
        await self.evaluate(
            "(items) => { for (const [k, v] of Object.entries(items)) localStorage.setItem(k, v); }",
            dict(items),
        )

    async def scroll_to(self, y: int) -> None:
        await self.evaluate("(y) => window.scrollTo(0, y)", int(y))

    async def screenshot(self, path: str | Path) -> None:
        p = Path(path)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            await self._page.screenshot(path=str(p), full_page=True)
        except (PlaywrightError, OSError) as e:
            raise SessionError(f"Screenshot failed: {e}") from e


@asynccontextmanager
async def open_playwright_session(
    browser_cfg: BrowserConfig,
    *,
    storage_state: str | Path | None = None,
) -> AsyncIterator[PlaywrightSession]:
    """
    Launch Chromium and yield a session on a fresh page.

    `storage_state` is a Playwright storage-state file with persisted cookies and
    localStorage; producing it (logging in) happens elsewhere.
    """
    pw = await async_playwright().start()
    try:
        launch_kwargs: dict[str, Any] = {"headless": browser_cfg.headless, "args": CHROME_ARGS}
        if browser_cfg.executable_path:
            launch_kwargs["executable_path"] = browser_cfg.executable_path

        try:
            browser = await pw.chromium.launch(**launch_kwargs)
        except PlaywrightError as e:
            raise SessionError(f"Browser launch failed: {e}") from e

        try:
            context = await browser.new_context(
                storage_state=str(storage_state) if storage_state else None,
                user_agent=browser_cfg.user_agent,
                viewport={"width": browser_cfg.viewport_width, "height": browser_cfg.viewport_height},
            )
            page = await context.new_page()
            page.set_default_timeout(browser_cfg.timeout_ms)
            try:
                yield PlaywrightSession(page)
            finally:
                await context.close()
        finally:
            await browser.close()
    finally:
        await pw.stop()
