from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from .config_schema import BrowserConfig
from .errors import NavigationError, SessionError, TargetError
from .run_log import RunLogger
from .session import BrowserSession

_HANDLE_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]{2,63}$")
_HOSTS = frozenset({"t.me", "telegram.me", "www.t.me", "www.telegram.me"})

PUBLIC_READY_SELECTOR = ".tgme_page_title, .tgme_channel_info, .tgme_channel_history"
APP_READY_SELECTOR = ".bubbles, .messages-container, .bubble, .message"
WEB_CLIENT_VERSIONS = ("a", "z", "k")

MESSAGE_COUNT_SCRIPT = (
    "() => document.querySelectorAll('.tgme_widget_message, .message, .tgme_channel_history').length"
)


@dataclass(frozen=True)
class ChannelTarget:
    handle: str
    url: str


@dataclass(frozen=True)
class UrlFormat:
    name: str
    url: str
    ready_selector: str


def parse_target(target: str) -> ChannelTarget:
    """
    Accept a t.me / telegram.me link, "@handle" or a bare handle.

    Raises TargetError for anything else.
    """
    raw = (target or "").strip()
    if not raw:
        raise TargetError("Target must be a non-empty t.me link or channel handle")

    if raw.startswith("@"):
        handle = raw[1:]
    elif "/" in raw or "." in raw:
        candidate = raw if "://" in raw else f"https://{raw}"
        parts = urlsplit(candidate)
        if parts.scheme not in ("http", "https") or (parts.hostname or "").lower() not in _HOSTS:
            raise TargetError(f"Invalid Telegram URL (must be a t.me link): {raw}")
        segments = [s for s in (parts.path or "").split("/") if s]
        if segments and segments[0] == "s":
            segments = segments[1:]
        handle = segments[0] if segments else ""
    else:
        handle = raw

    if not _HANDLE_RE.fullmatch(handle):
        raise TargetError(f"Invalid channel handle: {handle or raw}")

    return ChannelTarget(handle=handle, url=f"https://t.me/{handle}")


def public_url_formats(handle: str) -> list[UrlFormat]:
    return [
        UrlFormat("embedded", f"https://t.me/s/{handle}", PUBLIC_READY_SELECTOR),
        UrlFormat("widget", f"https://t.me/{handle}?embed=1", ".tgme_page_title, .tgme_channel_info"),
        UrlFormat("preview", f"https://t.me/{handle}?preview=1", ".tgme_page_title, .tgme_channel_info"),
    ]


def app_urls(handle: str) -> list[str]:
    return [f"https://web.telegram.org/{v}/#@{handle}" for v in WEB_CLIENT_VERSIONS]


async def navigate_public(
    session: BrowserSession,
    target: ChannelTarget,
    *,
    browser_cfg: BrowserConfig,
    logger: RunLogger | None = None,
) -> str:
    """
    Open the public embed of a channel, trying each URL format in turn.

    Returns the name of the format that rendered messages. When none did, the
    embedded URL is loaded once more without waiting for messages; only a failure
    of that last load raises NavigationError.
    """
    log = logger or RunLogger.discard()
    for fmt in public_url_formats(target.handle):
        log.info("navigation_attempt", format=fmt.name, url=fmt.url)
        try:
            await session.navigate(
                fmt.url,
                wait_until="networkidle",
                ready_selector=fmt.ready_selector,
                timeout_ms=browser_cfg.timeout_ms,
                ready_timeout_ms=browser_cfg.wait_for_selector_ms,
            )
            found = await session.evaluate(MESSAGE_COUNT_SCRIPT)
        except SessionError as e:
            log.warning("navigation_failed", format=fmt.name, url=fmt.url, reason=str(e))
            continue

        if int(found or 0) > 0:
            log.info("navigation_succeeded", format=fmt.name, url=fmt.url)
            return fmt.name

        log.warning("navigation_no_messages", format=fmt.name, url=fmt.url)

    fallback = public_url_formats(target.handle)[0]
    log.warning("navigation_fallback", url=fallback.url)
    try:
        await session.navigate(fallback.url, wait_until="networkidle", timeout_ms=browser_cfg.timeout_ms)
    except SessionError as e:
        raise NavigationError(f"Channel {target.handle} is unreachable: {e}") from e
    return "fallback"


async def navigate_authenticated(
    session: BrowserSession,
    target: ChannelTarget,
    *,
    browser_cfg: BrowserConfig,
    logger: RunLogger | None = None,
) -> str:
    """
    Open the channel in the logged-in web client, trying the A, Z and K clients.

    The session must already carry the persisted login state.
    """
    log = logger or RunLogger.discard()
    for url in app_urls(target.handle):
        log.info("navigation_attempt", format="app", url=url)
        try:
            await session.navigate(
                url,
                wait_until="networkidle",
                ready_selector=APP_READY_SELECTOR,
                timeout_ms=browser_cfg.timeout_ms,
            )
        except SessionError as e:
            log.warning("navigation_failed", format="app", url=url, reason=str(e))
            continue

        log.info("navigation_succeeded", format="app", url=url)
        return "app"

    raise NavigationError(
        f"Authenticated web client did not open {target.handle}; refresh the stored login state"
    )
