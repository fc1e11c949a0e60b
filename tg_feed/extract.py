from __future__ import annotations

import random
import re
import string
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence

from bs4 import BeautifulSoup, Tag

from .content import extract_body
from .numeric import parse_count, parse_subscriber_count
from .post import MEDIA_KINDS, ChannelRecord, MediaKind, PostRecord, Reaction, Rendering
from .strategies import (
    APP_MARKERS,
    CHANNEL_AVATAR_SELECTORS,
    CHANNEL_COUNTER_SELECTORS,
    CHANNEL_DESCRIPTION_SELECTORS,
    CHANNEL_NAME_SELECTORS,
    CHANNEL_USERNAME_SELECTORS,
    CHANNEL_VERIFIED_SELECTOR,
    ExtractionStrategy,
    PostShape,
    strategies_for,
)
from .timestamps import parse_epoch, parse_iso, parse_title, utc_now

IdFactory = Callable[[datetime], str]

_PERMALINK_RE = re.compile(r"(?:/([A-Za-z0-9_]+))?/(\d+)/?(?:[?#].*)?$")
_REACTION_RE = re.compile(r"^\s*(?P<symbol>\D+?)\s*(?P<count>\d[\d.,\s]*[KM]?)\s*$")
_HANDLE_RE = re.compile(r"(?<![A-Za-z0-9.-])t(?:elegram)?\.me/(?:s/)?([A-Za-z0-9_]{3,})")
_SCRIPT_HANDLE_RE = re.compile(r"window\.location\.href.*?t\.me/(?:s/)?([A-Za-z0-9_]{3,})")
_RESERVED_PATHS = frozenset({"s", "share", "joinchat", "addstickers", "addemoji", "proxy", "iv", "login"})

_UI_PATTERNS = (
    re.compile(r"^Mark all as read$", re.IGNORECASE),
    re.compile(r"^New Channel.*New Group.*New Message$", re.IGNORECASE),
    re.compile(r"^All Chats.*Private Chats.*Group Chats.*Channels$", re.IGNORECASE),
    re.compile(r"Add Account.*Saved Messages.*Contacts", re.IGNORECASE),
    re.compile(r"Telegram Web.*Version", re.IGNORECASE),
    re.compile(r"^Popular.*Emoji.*Add\+", re.IGNORECASE),
    re.compile(r"Install App.*Switch to.*Version", re.IGNORECASE),
    re.compile(r"Night Mode.*animations.*Telegram Features", re.IGNORECASE),
)

_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class SoftFailure:
    strategy: str
    index: int
    error: str


@dataclass(frozen=True)
class PageExtraction:
    rendering: Rendering
    strategy: str | None
    posts: Sequence[PostRecord]
    soft_failures: Sequence[SoftFailure] = ()


def synthesize_post_id(now: datetime) -> str:
    """Time+random identifier for regions without one; not stable across passes."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"msg_{int(now.timestamp() * 1000)}_{suffix}"


def load_markup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def classify_rendering(soup: BeautifulSoup) -> Rendering:
    if soup.select_one(APP_MARKERS) is not None:
        return "app"
    return "embed"


def _attr(node: Tag | None, name: str) -> str:
    if node is None:
        return ""
    value = node.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return str(value or "").strip()


def _text(node: Tag | None) -> str:
    if node is None:
        return ""
    return " ".join(node.get_text(" ").replace("\u00a0", " ").split())


def _first_text(root: Tag, selectors: Sequence[str]) -> str:
    for selector in selectors:
        value = _text(root.select_one(selector))
        if value:
            return value
    return ""


def _extract_id(region: Tag, shape: PostShape) -> str | None:
    for name in shape.id_attributes:
        value = _attr(region, name)
        if value:
            return value

    for selector, name in shape.id_descendants:
        value = _attr(region.select_one(selector), name)
        if value:
            return value

    for selector in shape.permalink_selectors:
        href = _attr(region.select_one(selector), "href")
        if not href:
            continue
        match = _PERMALINK_RE.search(href)
        if match is None:
            continue
        channel, number = match.group(1), match.group(2)
        if shape.permalink_keeps_channel and channel and channel not in _RESERVED_PATHS:
            return f"{channel}/{number}"
        return number

    return None


def _extract_timestamp(region: Tag, shape: PostShape) -> datetime | None:
    for name in shape.epoch_attributes:
        value = _attr(region, name) or _attr(region.select_one(f"[{name}]"), name)
        parsed = parse_epoch(value)
        if parsed is not None:
            return parsed

    for selector in shape.time_selectors:
        for node in region.select(selector):
            parsed = parse_iso(_attr(node, "datetime"))
            if parsed is not None:
                return parsed

    for selector in shape.time_selectors:
        for node in region.select(selector):
            parsed = parse_title(_attr(node, "title"))
            if parsed is not None:
                return parsed

    return None


def _extract_views(region: Tag, shape: PostShape) -> int:
    for selector in shape.views_selectors:
        value = _text(region.select_one(selector))
        if value:
            return parse_count(value)
    return 0


def split_reaction(text: str) -> tuple[str, str] | None:
    """Split "🔥 1.2K" into ("🔥", "1.2K"); None when there is no trailing count."""
    match = _REACTION_RE.match(text or "")
    if match is None:
        return None
    symbol = match.group("symbol").strip()
    if not symbol:
        return None
    return symbol, match.group("count")


def _extract_reactions(region: Tag, shape: PostShape) -> tuple[Reaction, ...]:
    nodes: list[Tag] = []
    for selector in shape.reaction_selectors:
        nodes = region.select(selector)
        if nodes:
            break

    out: list[Reaction] = []
    for node in nodes:
        symbol = _first_text(node, shape.reaction_symbol_selectors)
        count_text = _first_text(node, shape.reaction_count_selectors)

        if not symbol or not count_text:
            parts = split_reaction(_text(node))
            if parts is None:
                continue
            symbol = symbol or parts[0]
            count_text = count_text or parts[1]

        count = parse_count(count_text)
        if symbol and count > 0:
            out.append(Reaction(symbol=symbol, count=count))
    return tuple(out)


def _detect_media(region: Tag, shape: PostShape) -> tuple[MediaKind, ...]:
    kinds: list[MediaKind] = []
    for kind in MEDIA_KINDS:
        selector = shape.media_markers.get(kind)
        if selector and region.select_one(selector) is not None:
            kinds.append(kind)
    return tuple(kinds)


def _anchor(region: Tag, shape: PostShape) -> Tag:
    if not shape.anchor_class:
        return region
    parent = region.find_parent(class_=shape.anchor_class)
    return parent if parent is not None else region


def _looks_like_ui(text: str) -> bool:
    return any(p.search(text) for p in _UI_PATTERNS)


def _build_post(
    region: Tag,
    strategy: ExtractionStrategy,
    *,
    default_label: str,
    include_reactions: bool,
    now: datetime,
    id_factory: IdFactory,
) -> PostRecord | None:
    shape = strategy.shape
    anchor = _anchor(region, shape)

    media_kinds = _detect_media(anchor, shape)
    has_media = bool(media_kinds) or any(anchor.select_one(s) is not None for s in shape.media_any)

    text = extract_body(region, shape, media_kinds=media_kinds, has_media=has_media)
    if text is None:
        return None
    if strategy.rendering == "app" and _looks_like_ui(text):
        return None

    post_id = _extract_id(anchor, shape)
    synthesized = post_id is None
    if post_id is None:
        post_id = id_factory(now)

    timestamp = _extract_timestamp(anchor, shape)
    estimated = timestamp is None

    return PostRecord(
        post_id=post_id,
        timestamp=timestamp or now,
        text=text,
        views=_extract_views(anchor, shape),
        reactions=_extract_reactions(anchor, shape) if include_reactions else (),
        has_media=has_media,
        media_kinds=media_kinds,
        channel_label=_first_text(anchor, shape.owner_selectors) or default_label,
        id_synthesized=synthesized,
        timestamp_estimated=estimated,
        rendering=strategy.rendering,
    )


def extract_page(
    html: str,
    *,
    default_label: str = "",
    include_reactions: bool = True,
    now: datetime | None = None,
    id_factory: IdFactory | None = None,
) -> PageExtraction:
    """
    Map rendered page markup to post records.

    The rendering is classified first, then its strategies are tried in priority
    order; the first strategy whose region query matches anything is used alone.
    A region that fails to build is reported as a SoftFailure and skipped.
    """
    soup = load_markup(html)
    rendering = classify_rendering(soup)
    when = now or utc_now()
    make_id = id_factory or synthesize_post_id

    for strategy in strategies_for(rendering):
        regions = soup.select(strategy.region_selector)
        if not regions:
            continue

        posts: list[PostRecord] = []
        failures: list[SoftFailure] = []
        for index, region in enumerate(regions):
            try:
                post = _build_post(
                    region,
                    strategy,
                    default_label=default_label,
                    include_reactions=include_reactions,
                    now=when,
                    id_factory=make_id,
                )
            except Exception as e:
                failures.append(SoftFailure(strategy=strategy.name, index=index, error=f"{type(e).__name__}: {e}"))
                continue
            if post is not None:
                posts.append(post)

        return PageExtraction(
            rendering=rendering,
            strategy=strategy.name,
            posts=tuple(posts),
            soft_failures=tuple(failures),
        )

    return PageExtraction(rendering=rendering, strategy=None, posts=())


def extract_posts(
    html: str,
    *,
    default_label: str = "",
    include_reactions: bool = True,
    now: datetime | None = None,
    id_factory: IdFactory | None = None,
) -> list[PostRecord]:
    page = extract_page(
        html,
        default_label=default_label,
        include_reactions=include_reactions,
        now=now,
        id_factory=id_factory,
    )
    return list(page.posts)


def _handle_from_text(value: str) -> str | None:
    for match in _HANDLE_RE.finditer(value or ""):
        handle = match.group(1)
        if handle.casefold() not in _RESERVED_PATHS:
            return handle
    return None


def _extract_handle(soup: BeautifulSoup) -> str | None:
    og = soup.select_one('meta[property="og:url"]')
    handle = _handle_from_text(_attr(og, "content"))
    if handle:
        return handle

    scripts = " ".join(s.get_text() for s in soup.find_all("script"))
    match = _SCRIPT_HANDLE_RE.search(scripts)
    if match and match.group(1).casefold() not in _RESERVED_PATHS:
        return match.group(1)

    for link in soup.select('a[href*="t.me"]'):
        handle = _handle_from_text(_attr(link, "href"))
        if handle:
            return handle

    header = _first_text(soup, CHANNEL_USERNAME_SELECTORS)
    if header.startswith("@") and len(header) > 1:
        return header[1:]

    return None


def extract_channel(html: str, *, fallback_handle: str | None = None) -> ChannelRecord:
    """Channel metadata; each field comes from the first selector that yields a value."""
    soup = load_markup(html)

    handle = _extract_handle(soup) or (fallback_handle or "").strip().lstrip("@") or "unknown"
    name = _first_text(soup, CHANNEL_NAME_SELECTORS)
    if not name:
        name = handle if handle != "unknown" else "Unknown Channel"

    subscribers: int | None = None
    for selector in CHANNEL_COUNTER_SELECTORS:
        subscribers = parse_subscriber_count(_text(soup.select_one(selector)))
        if subscribers is not None:
            break

    avatar = None
    for selector in CHANNEL_AVATAR_SELECTORS:
        avatar = _attr(soup.select_one(selector), "src") or None
        if avatar:
            break

    return ChannelRecord(
        name=name,
        handle=handle,
        description=_first_text(soup, CHANNEL_DESCRIPTION_SELECTORS),
        subscriber_count=subscribers,
        verified=soup.select_one(CHANNEL_VERIFIED_SELECTOR) is not None,
        avatar_url=avatar,
    )
