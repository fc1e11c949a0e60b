from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Sequence

MediaKind = Literal["photo", "video", "audio", "document", "poll", "location"]
Rendering = Literal["embed", "app"]

MEDIA_KINDS: tuple[MediaKind, ...] = ("photo", "video", "audio", "document", "poll", "location")


@dataclass(frozen=True)
class Reaction:
    symbol: str
    count: int


@dataclass(frozen=True)
class PostRecord:
    """One extracted feed post. Identical regardless of which rendering produced it."""

    post_id: str
    timestamp: datetime
    text: str
    views: int = 0
    reactions: Sequence[Reaction] = ()
    has_media: bool = False
    media_kinds: Sequence[MediaKind] = ()
    channel_label: str = ""

    id_synthesized: bool = False
    timestamp_estimated: bool = False
    rendering: Rendering = "embed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.post_id,
            "date": self.timestamp.isoformat(),
            "content": self.text,
            "views": int(self.views),
            "reactions": [{"emoji": r.symbol, "count": int(r.count)} for r in self.reactions],
            "hasMedia": bool(self.has_media),
            "mediaTypes": list(self.media_kinds),
            "channelName": self.channel_label,
            "idSynthesized": bool(self.id_synthesized),
        }


@dataclass(frozen=True)
class ChannelRecord:
    name: str
    handle: str
    description: str = ""
    subscriber_count: int | None = None
    verified: bool = False
    avatar_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "username": self.handle,
            "description": self.description,
            "verified": bool(self.verified),
        }
        if self.subscriber_count is not None:
            out["subscriberCount"] = int(self.subscriber_count)
        if self.avatar_url:
            out["photoUrl"] = self.avatar_url
        return out


UNKNOWN_CHANNEL = ChannelRecord(name="Unknown", handle="unknown", description="")


@dataclass(frozen=True)
class ScrapeResult:
    channel: ChannelRecord
    posts: Sequence[PostRecord]
    scraped_at: datetime
    total_posts: int
    error: str | None = None

    partial: bool = False
    stop_reason: str | None = None
    iterations: int = 0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "channel": self.channel.to_dict(),
            "posts": [p.to_dict() for p in self.posts],
            "scrapedAt": self.scraped_at.isoformat(),
            "totalPosts": int(self.total_posts),
            "partial": bool(self.partial),
            "iterations": int(self.iterations),
        }
        if self.stop_reason:
            out["stopReason"] = self.stop_reason
        if self.error:
            out["error"] = self.error
        return out
