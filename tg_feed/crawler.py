from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Hashable, Sequence

from .config_schema import CrawlConfig
from .content import RESTRICTED_PREFIX
from .dedupe import DeduplicationStore
from .errors import SessionError
from .extract import extract_page
from .post import PostRecord, Rendering
from .resources import ResourceGuard
from .run_log import RunLogger
from .session import SCROLL_POSITION_SCRIPT, BrowserSession
from .termination import StopReason, TerminationPolicy
from .timestamps import ensure_utc

SleepFn = Callable[[float], Awaitable[None]]

APP_SCROLL_SCRIPT = """
() => {
  const box = document.querySelector('.bubbles-inner, .messages-container, .bubbles');
  if (box) { box.scrollTop = 0; return true; }
  window.scrollTo(0, 0);
  return false;
}
"""

APP_POSITION_SCRIPT = """
() => {
  const box = document.querySelector('.bubbles-inner, .messages-container, .bubbles');
  if (!box) return [Math.round(window.pageYOffset || 0), document.body ? document.body.scrollHeight : 0];
  return [Math.round(box.scrollTop), box.scrollHeight];
}
"""


@dataclass(frozen=True)
class CrawlOptions:
    date_from: datetime | None = None
    date_to: datetime | None = None
    max_posts: int | None = None
    include_reactions: bool = True
    default_label: str = ""


@dataclass
class CrawlState:
    """Mutable state of one crawl; never shared between crawls."""

    store: DeduplicationStore = field(default_factory=DeduplicationStore)
    stall_count: int = 0
    last_position: Hashable | None = None
    iterations: int = 0
    restricted_count: int = 0
    synthesized_count: int = 0
    filtered_count: int = 0


@dataclass(frozen=True)
class CrawlOutcome:
    posts: Sequence[PostRecord]
    stop_reason: str
    iterations: int
    partial: bool = False
    restricted_count: int = 0
    synthesized_count: int = 0
    filtered_count: int = 0


def effective_cap(max_posts: int | None, *, unbounded_threshold: int) -> int | None:
    """A cap of None, 0 or an unrealistically large value means "no cap"."""
    if max_posts is None:
        return None
    cap = int(max_posts)
    if cap <= 0 or cap >= unbounded_threshold:
        return None
    return cap


def _position_marker(value: object) -> Hashable | None:
    if isinstance(value, (list, tuple)):
        return tuple(int(v or 0) for v in value)
    if isinstance(value, (int, float)):
        return int(value)
    return None


class ScrollCrawler:
    """
    Drives one session through Extracting -> Evaluating -> Advancing until stopped.

    The session is owned exclusively for the duration of `run`. Stopping is decided
    only by the post cap, the TerminationPolicy and the ResourceGuard; date bounds
    filter which posts are kept but never end the crawl.
    """

    def __init__(
        self,
        session: BrowserSession,
        *,
        crawl_cfg: CrawlConfig | None = None,
        resource_guard: ResourceGuard | None = None,
        logger: RunLogger | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        self._session = session
        self._cfg = crawl_cfg or CrawlConfig()
        self._guard = resource_guard or ResourceGuard()
        self._log = logger or RunLogger.discard()
        self._sleep = sleep_fn or asyncio.sleep

    async def run(self, options: CrawlOptions) -> CrawlOutcome:
        cfg = self._cfg
        state = CrawlState()
        policy = TerminationPolicy(
            max_iterations=cfg.max_iterations,
            stall_limit=cfg.stall_limit,
            position_warmup=cfg.position_warmup,
        )
        cap = effective_cap(options.max_posts, unbounded_threshold=cfg.unbounded_cap_threshold)
        date_from = ensure_utc(options.date_from) if options.date_from else None
        date_to = ensure_utc(options.date_to) if options.date_to else None

        self._log.info(
            "crawl_started",
            max_posts=cap,
            date_from=date_from,
            date_to=date_to,
            max_iterations=cfg.max_iterations,
        )

        stop_reason: StopReason = "max_iterations"
        partial = False
        iteration = 0

        while True:
            try:
                html = await self._session.content()
                page = extract_page(
                    html,
                    default_label=options.default_label,
                    include_reactions=options.include_reactions,
                )
            except SessionError as e:
                self._log.exception("crawl_session_lost", exc=e, iteration=iteration)
                stop_reason, partial = "session_error", True
                break

            for failure in page.soft_failures:
                self._log.warning(
                    "record_skipped",
                    strategy=failure.strategy,
                    index=failure.index,
                    error=failure.error,
                )

            net_new = self._merge(state, page.posts, date_from=date_from, date_to=date_to)
            state.iterations = iteration + 1
            self._log.debug(
                "crawl_iteration",
                iteration=iteration,
                rendering=page.rendering,
                strategy=page.strategy,
                extracted=len(page.posts),
                net_new=net_new,
                stored=len(state.store),
            )

            if cap is not None and len(state.store) >= cap:
                stop_reason = "max_posts"
                break

            try:
                position = _position_marker(await self._read_position(page.rendering))
            except SessionError as e:
                self._log.exception("crawl_session_lost", exc=e, iteration=iteration)
                stop_reason, partial = "session_error", True
                break

            reason = policy.observe(iteration, net_new, position)
            state.stall_count = policy.stall_count
            state.last_position = position
            if reason is not None:
                stop_reason = reason
                break

            if self._guard.check(state.iterations):
                self._log.warning(
                    "memory_limit_reached",
                    memory_mb=self._guard.last_sample_mb,
                    limit_mb=self._guard.limit_mb,
                    stored=len(state.store),
                )
                stop_reason, partial = "memory_limit", True
                break

            try:
                await self._advance(page.rendering)
            except SessionError as e:
                self._log.exception("crawl_session_lost", exc=e, iteration=iteration)
                stop_reason, partial = "session_error", True
                break

            await self._sleep(float(cfg.settle_seconds))
            iteration += 1

        posts = state.store.sorted_records(limit=cap)

        self._log.info(
            "crawl_stopped",
            reason=stop_reason,
            iterations=state.iterations,
            stored=len(state.store),
            returned=len(posts),
            partial=partial,
        )
        if state.restricted_count:
            self._log.warning("restricted_posts_found", count=state.restricted_count)

        return CrawlOutcome(
            posts=posts,
            stop_reason=str(stop_reason),
            iterations=state.iterations,
            partial=partial,
            restricted_count=state.restricted_count,
            synthesized_count=state.synthesized_count,
            filtered_count=state.filtered_count,
        )

    def _merge(
        self,
        state: CrawlState,
        posts: Sequence[PostRecord],
        *,
        date_from: datetime | None,
        date_to: datetime | None,
    ) -> int:
        """
        Insert unseen, in-range posts; return how many stably identified ones were new.

        Posts with synthesized identifiers are stored but not counted, since every
        pass re-synthesizes them and they would otherwise mask a stalled feed.
        """
        net_new = 0
        for post in posts:
            if post.post_id in state.store:
                continue

            if date_from is not None and post.timestamp < date_from:
                state.filtered_count += 1
                continue
            if date_to is not None and post.timestamp > date_to:
                state.filtered_count += 1
                continue

            if not state.store.add(post):
                continue

            if post.text.startswith(RESTRICTED_PREFIX):
                state.restricted_count += 1
                self._log.warning("restricted_post", post_id=post.post_id, content=post.text)

            if post.id_synthesized:
                state.synthesized_count += 1
            else:
                net_new += 1

            if len(state.store) % self._cfg.progress_every == 0:
                self._log.info(
                    "crawl_progress",
                    stored=len(state.store),
                    latest=post.timestamp.isoformat(),
                )
        return net_new

    async def _read_position(self, rendering: Rendering) -> object:
        if rendering == "app":
            return await self._session.evaluate(APP_POSITION_SCRIPT)
        return await self._session.evaluate(SCROLL_POSITION_SCRIPT)

    async def _advance(self, rendering: Rendering) -> None:
        # Older posts load above the current view in both renderings.
        if rendering == "app":
            await self._session.evaluate(APP_SCROLL_SCRIPT)
            return
        await self._session.scroll_to(0)
