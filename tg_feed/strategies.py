from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Mapping, Sequence

from .post import MediaKind, Rendering


@dataclass(frozen=True)
class PostShape:
    """
    Selector lists for every sub-extractor of one rendering.

    Each list is tried in order; the first selector yielding a usable value wins.
    """

    id_attributes: Sequence[str]
    id_descendants: Sequence[tuple[str, str]]
    permalink_selectors: Sequence[str]
    permalink_keeps_channel: bool

    epoch_attributes: Sequence[str]
    time_selectors: Sequence[str]

    content_selectors: Sequence[str]
    chrome_selectors: Sequence[str]
    restriction_selectors: Sequence[str]
    sensitive_selectors: Sequence[str]
    forwarded_selectors: Sequence[str]

    views_selectors: Sequence[str]

    reaction_selectors: Sequence[str]
    reaction_symbol_selectors: Sequence[str]
    reaction_count_selectors: Sequence[str]

    media_markers: Mapping[MediaKind, str]
    media_any: Sequence[str]

    owner_selectors: Sequence[str]
    skip_contentless: bool

    # The region is itself the text container.
    text_from_region: bool = False
    # Identifier, time, counters and media are read from the nearest ancestor with this class.
    anchor_class: str | None = None


@dataclass(frozen=True)
class ExtractionStrategy:
    name: str
    rendering: Rendering
    region_selector: str
    shape: PostShape


EMBED_SHAPE = PostShape(
    id_attributes=("data-post",),
    id_descendants=(),
    permalink_selectors=("a.tgme_widget_message_date", ".js-message_date"),
    permalink_keeps_channel=True,
    epoch_attributes=(),
    time_selectors=(".tgme_widget_message_date time", "time"),
    content_selectors=(
        ".tgme_widget_message_text",
        ".js-message_text",
        ".message_text",
        ".tgme_widget_message_photo_caption",
        ".tgme_widget_message_video_caption",
    ),
    chrome_selectors=(),
    restriction_selectors=(".tgme_widget_message_error",),
    sensitive_selectors=(".tgme_widget_message_sensitive",),
    forwarded_selectors=(".tgme_widget_message_forwarded_from",),
    views_selectors=(".tgme_widget_message_views", ".js-message_views"),
    reaction_selectors=(".tgme_widget_message_reaction", ".js-message_reaction"),
    reaction_symbol_selectors=(),
    reaction_count_selectors=(),
    media_markers={
        "photo": ".tgme_widget_message_photo, .tgme_widget_message_photo_wrap",
        "video": ".tgme_widget_message_video, .tgme_widget_message_video_player",
        "audio": ".tgme_widget_message_voice, .tgme_widget_message_audio",
        "document": ".tgme_widget_message_document",
        "poll": ".tgme_widget_message_poll",
        "location": ".tgme_widget_message_location",
    },
    media_any=(),
    owner_selectors=(".tgme_widget_message_owner_name",),
    skip_contentless=False,
)


APP_SHAPE = PostShape(
    id_attributes=("data-msg-id", "data-message-id", "data-mid"),
    id_descendants=((".message[data-mid]", "data-mid"), ("[data-mid]", "data-mid")),
    permalink_selectors=(".time[href]", ".message-time[href]", "a.time"),
    permalink_keeps_channel=False,
    epoch_attributes=("data-timestamp",),
    time_selectors=(".time", ".message-time", ".bubble-time", "time"),
    content_selectors=(
        ".message-content-wrapper .text-content",
        ".bubble-content .message",
        ".bubble-content-wrapper .text",
        ".message-content .text",
        ".spoilers-container .text-content",
        ".message-text",
        "[data-message-text]",
    ),
    chrome_selectors=(
        ".time",
        ".message-time",
        ".bubble-time",
        ".reactions",
        ".reaction",
        ".views",
        ".post-views",
        ".reply-markup",
    ),
    restriction_selectors=(),
    sensitive_selectors=(),
    forwarded_selectors=(".forwarded", ".forward-from"),
    views_selectors=(".views", ".message-views", ".post-views"),
    reaction_selectors=(".reaction", ".reactions-item", ".message-reaction"),
    reaction_symbol_selectors=(".reaction-emoji", ".emoji"),
    reaction_count_selectors=(".reaction-count", ".count"),
    media_markers={
        "photo": ".photo, .media-photo, img.media",
        "video": ".video, .media-video, video",
        "audio": ".audio, .voice",
        "document": ".document, .media-document, .file",
        "poll": ".poll",
        "location": ".location, .geo",
    },
    media_any=(".media", ".attachment"),
    owner_selectors=(".peer-title", ".name"),
    skip_contentless=True,
)


# Web K puts the text directly in `.message.spoilers-container`; the id and time sit on the enclosing bubble.
SPOILERS_SHAPE = replace(
    APP_SHAPE,
    content_selectors=(),
    text_from_region=True,
    anchor_class="bubble",
)


EMBED_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("widget_message", "embed", ".tgme_widget_message", EMBED_SHAPE),
    ExtractionStrategy("channel_history", "embed", ".tgme_channel_history .message", EMBED_SHAPE),
)

APP_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("bubble", "app", ".bubble:has(.bubble-content)", APP_SHAPE),
    ExtractionStrategy("content_wrapper", "app", ".message:has(.message-content-wrapper)", APP_SHAPE),
    ExtractionStrategy("spoilers_message", "app", ".message.spoilers-container", SPOILERS_SHAPE),
    ExtractionStrategy("data_mid", "app", "[data-mid]", APP_SHAPE),
)

APP_MARKERS = ".bubbles, .messages-container, .bubble"


def strategies_for(rendering: Rendering) -> tuple[ExtractionStrategy, ...]:
    if rendering == "app":
        return APP_STRATEGIES
    return EMBED_STRATEGIES


# First non-empty match wins, embed selectors before app selectors.
CHANNEL_NAME_SELECTORS = (
    ".tgme_page_title",
    ".tgme_channel_info_header_title",
    ".tgme_header_title",
    ".chat-info-name",
    ".peer-title",
    ".chatlist-chat-title",
)
CHANNEL_DESCRIPTION_SELECTORS = (
    ".tgme_page_description",
    ".tgme_channel_info_description",
    ".chat-info-description",
    ".peer-description",
)
CHANNEL_COUNTER_SELECTORS = (
    ".tgme_page_extra",
    ".tgme_channel_info_counters",
    ".tgme_header_counter",
    ".chat-info-subscribers",
    ".peer-subscribers",
)
CHANNEL_AVATAR_SELECTORS = (
    ".tgme_page_photo_image img",
    ".tgme_channel_info_header_photo img",
)
CHANNEL_VERIFIED_SELECTOR = ".verified-icon, .tgme_channel_info_header_verified, .verified"
CHANNEL_USERNAME_SELECTORS = (".tgme_channel_info_header_username",)
