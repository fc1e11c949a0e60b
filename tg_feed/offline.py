from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Sequence

from .crawler import APP_POSITION_SCRIPT, APP_SCROLL_SCRIPT
from .errors import SessionError
from .navigate import MESSAGE_COUNT_SCRIPT
from .session import SCROLL_POSITION_SCRIPT


def load_snapshots(paths: Sequence[str | Path]) -> list[str]:
    out: list[str] = []
    for raw in paths:
        p = Path(raw)
        try:
            out.append(p.read_text(encoding="utf-8"))
        except OSError as e:
            raise SessionError(f"Failed to read snapshot: {p}: {e}") from e
    return out


class SnapshotSession:
    """
    Network-free BrowserSession replaying saved page markup.

    Each scroll advances to the next snapshot; after the last one the markup and
    the reported scroll position stop changing, like a feed that has run dry.
    """

    def __init__(
        self,
        snapshots: Sequence[str],
        *,
        unreachable: bool = False,
    ) -> None:
        if not snapshots:
            raise ValueError("SnapshotSession needs at least one snapshot")
        self._snapshots = list(snapshots)
        self._index = 0
        self._unreachable = bool(unreachable)

        self.navigations: list[str] = []
        self.scrolls = 0
        self.cookies: list[dict[str, Any]] = []
        self.local_storage: dict[str, dict[str, str]] = {}
        self.screenshots: list[str] = []

    def _advance(self) -> None:
        self.scrolls += 1
        self._index = min(self._index + 1, len(self._snapshots) - 1)

    async def navigate(
        self,
        url: str,
        *,
        wait_until: str = "networkidle",
        ready_selector: str | None = None,
        timeout_ms: int = 30000,
        ready_timeout_ms: int | None = None,
    ) -> None:
        self.navigations.append(url)
        if self._unreachable:
            raise SessionError(f"Navigation to {url} failed: offline snapshot marked unreachable")

    async def content(self) -> str:
        return self._snapshots[self._index]

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script in (SCROLL_POSITION_SCRIPT, APP_POSITION_SCRIPT):
            return [0, self._index]
        if script == APP_SCROLL_SCRIPT:
            self._advance()
            return True
        if script == MESSAGE_COUNT_SCRIPT:
            return 1
        return None

    async def set_cookies(self, cookies: Sequence[Mapping[str, Any]]) -> None:
        self.cookies.extend(dict(c) for c in cookies)

    async def set_local_storage(self, origin: str, items: Mapping[str, str]) -> None:
        self.local_storage.setdefault(origin, {}).update(items)

    async def scroll_to(self, y: int) -> None:
        self._advance()

    async def screenshot(self, path: str | Path) -> None:
        self.screenshots.append(str(path))
