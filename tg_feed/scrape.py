from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .config_schema import AppConfig
from .crawler import CrawlOptions, ScrollCrawler, SleepFn
from .errors import SessionError
from .extract import extract_channel
from .navigate import navigate_authenticated, navigate_public, parse_target
from .post import UNKNOWN_CHANNEL, ScrapeResult
from .resources import ResourceGuard
from .run_log import RunLogger
from .session import BrowserSession
from .timestamps import utc_now


@dataclass(frozen=True)
class ScrapeRequest:
    target: str
    date_from: datetime | None = None
    date_to: datetime | None = None
    max_posts: int | None = None
    include_reactions: bool = True
    authenticated: bool = False


async def scrape_channel(
    session: BrowserSession,
    request: ScrapeRequest,
    *,
    config: AppConfig,
    logger: RunLogger | None = None,
    resource_guard: ResourceGuard | None = None,
    sleep_fn: SleepFn | None = None,
) -> ScrapeResult:
    """
    Navigate to a channel, read its metadata and crawl its feed.

    Never raises for crawl failures: an invalid target, an unreachable channel or a
    broken session comes back as a result with UNKNOWN_CHANNEL, no posts and the
    error message.
    """
    base_log = logger or RunLogger.discard()
    log = base_log.bind(target=request.target, mode="app" if request.authenticated else "embed")
    sleep = sleep_fn or asyncio.sleep

    try:
        target = parse_target(request.target)
        log = log.bind(channel=target.handle)

        if request.authenticated:
            await navigate_authenticated(session, target, browser_cfg=config.browser, logger=log)
        else:
            await navigate_public(session, target, browser_cfg=config.browser, logger=log)

        await sleep(float(config.crawl.initial_settle_seconds))

        channel = extract_channel(await session.content(), fallback_handle=target.handle)
        log.info(
            "channel_identified",
            name=channel.name,
            handle=channel.handle,
            subscribers=channel.subscriber_count,
        )

        max_posts = request.max_posts
        if max_posts is None:
            max_posts = config.crawl.default_max_posts

        guard = resource_guard or ResourceGuard(
            limit_mb=config.resources.memory_limit_mb,
            sample_every=config.resources.sample_every,
        )
        crawler = ScrollCrawler(
            session,
            crawl_cfg=config.crawl,
            resource_guard=guard,
            logger=log,
            sleep_fn=sleep,
        )
        outcome = await crawler.run(
            CrawlOptions(
                date_from=request.date_from,
                date_to=request.date_to,
                max_posts=max_posts,
                include_reactions=request.include_reactions,
                default_label=channel.name,
            )
        )
    except Exception as e:
        log.exception("scrape_failed", exc=e)
        await _debug_screenshot(session, config, log)
        return ScrapeResult(
            channel=UNKNOWN_CHANNEL,
            posts=(),
            scraped_at=utc_now(),
            total_posts=0,
            error=str(e) or type(e).__name__,
        )

    return ScrapeResult(
        channel=channel,
        posts=tuple(outcome.posts),
        scraped_at=utc_now(),
        total_posts=len(outcome.posts),
        partial=outcome.partial,
        stop_reason=outcome.stop_reason,
        iterations=outcome.iterations,
    )


async def _debug_screenshot(session: BrowserSession, config: AppConfig, log: RunLogger) -> None:
    if not config.debug.save_screenshots:
        return
    path = Path(config.debug.screenshot_dir) / f"error-{utc_now().strftime('%Y%m%dT%H%M%S')}.png"
    try:
        await session.screenshot(path)
    except (SessionError, OSError) as e:
        log.warning("screenshot_failed", path=str(path), reason=str(e))
        return
    log.info("screenshot_saved", path=str(path))
