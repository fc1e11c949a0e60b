from __future__ import annotations

import copy
from typing import Sequence

from bs4 import Tag

from .post import MediaKind
from .strategies import PostShape

NO_TEXT = "[No text content]"
EMPTY_POST = "[Empty post]"
RESTRICTED_PREFIX = "[Restricted content:"

_RESTRICTED_NOTICE_MARKER = "Telegram"


def restricted_sentinel(media_kinds: Sequence[MediaKind]) -> str:
    if media_kinds:
        return f"[Restricted content: {', '.join(media_kinds)} - Please open Telegram to view]"
    return "[Restricted content: Please open Telegram to view this post]"


def sensitive_sentinel(notice: str) -> str:
    return f"[Sensitive content: {notice}]"


def forwarded_sentinel(source: str) -> str:
    return f"[Forwarded from {source}]"


def media_only_sentinel(media_kinds: Sequence[MediaKind]) -> str:
    if not media_kinds:
        return "[Media only]"
    return f"[Media only: {', '.join(media_kinds)}]"


def _clean_text(value: str) -> str:
    return (value or "").replace("\u00a0", " ").strip()


def render_text(container: Tag, *, chrome_selectors: Sequence[str] = ()) -> str:
    """
    Flatten a message text container into plain text with light markdown.

    <br> becomes a newline, <pre> a fenced block, <code> an inline span, and each
    anchor whose visible text survives flattening is rewritten as [text](href).
    The container itself is left untouched.
    """
    clone = copy.copy(container)

    for selector in chrome_selectors:
        for node in clone.select(selector):
            node.decompose()

    for br in clone.find_all("br"):
        br.replace_with("\n")

    for pre in clone.find_all("pre"):
        pre.replace_with(f"\n```\n{pre.get_text()}\n```\n")

    for code in clone.find_all("code"):
        code.replace_with(f"`{code.get_text()}`")

    text = _clean_text(clone.get_text())
    if not text:
        return ""

    for link in clone.find_all("a", href=True):
        href = str(link.get("href") or "").strip()
        label = _clean_text(link.get_text())
        if not href or not label or label not in text:
            continue
        markdown = f"[{label}]({href})"
        if markdown in text:
            continue
        text = text.replace(label, markdown, 1)

    return text


def _first_text(region: Tag, selectors: Sequence[str]) -> str:
    for selector in selectors:
        node = region.select_one(selector)
        if node is None:
            continue
        text = _clean_text(node.get_text(" "))
        if text:
            return " ".join(text.split())
    return ""


def extract_body(
    region: Tag,
    shape: PostShape,
    *,
    media_kinds: Sequence[MediaKind],
    has_media: bool,
) -> str | None:
    """
    Body text of one post region, or None when the region carries nothing at all.

    Content containers are tried in order; without one, notices are checked in a
    fixed order: restriction, sensitivity, forwarded-from, then media-only/empty.
    """
    matched_container = False
    if shape.text_from_region:
        matched_container = True
        text = render_text(region, chrome_selectors=shape.chrome_selectors)
        if text:
            return text

    for selector in shape.content_selectors:
        container = region.select_one(selector)
        if container is None:
            continue
        matched_container = True
        text = render_text(container, chrome_selectors=shape.chrome_selectors)
        if text:
            return text

    if matched_container and not shape.skip_contentless:
        return NO_TEXT

    restriction = _first_text(region, shape.restriction_selectors)
    if restriction and _RESTRICTED_NOTICE_MARKER in restriction:
        return restricted_sentinel(media_kinds)

    sensitive = _first_text(region, shape.sensitive_selectors)
    if sensitive:
        return sensitive_sentinel(sensitive)

    forwarded = _first_text(region, shape.forwarded_selectors)
    if forwarded:
        return forwarded_sentinel(forwarded)

    if media_kinds or has_media:
        return media_only_sentinel(media_kinds)

    if shape.skip_contentless:
        return None
    return EMPTY_POST
