from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .post import PostRecord


def dedupe_key(post: PostRecord) -> str:
    return post.post_id


@dataclass
class DeduplicationStore:
    """
    Posts accumulated by one crawl, keyed by identifier.

    First-seen wins: a later record with an already stored identifier is ignored,
    even when its fields differ.
    """

    _records: dict[str, PostRecord] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, post_id: object) -> bool:
        return post_id in self._records

    def __iter__(self) -> Iterator[PostRecord]:
        return iter(self._records.values())

    def get(self, post_id: str) -> PostRecord | None:
        return self._records.get(post_id)

    def add(self, post: PostRecord) -> bool:
        key = dedupe_key(post)
        if key in self._records:
            return False
        self._records[key] = post
        return True

    def update(self, posts: Iterable[PostRecord]) -> int:
        added = 0
        for post in posts:
            if self.add(post):
                added += 1
        return added

    def records(self) -> list[PostRecord]:
        return list(self._records.values())

    def sorted_records(self, limit: int | None = None) -> list[PostRecord]:
        """Newest first; identifiers break timestamp ties so the order is deterministic."""
        out = sorted(
            self._records.values(),
            key=lambda p: (p.timestamp, p.post_id),
            reverse=True,
        )
        if limit is not None and limit >= 0:
            return out[:limit]
        return out
