from __future__ import annotations

from typing import Any, Mapping

from .config_schema import AppConfig
from .post import ScrapeResult


def build_stop_report(result: ScrapeResult, *, config: AppConfig) -> dict[str, Any]:
    """Explain why a crawl ended, with config knobs worth turning next time."""
    reason = (result.stop_reason or "").strip() or ("error" if result.error else "unknown")
    crawl = config.crawl

    details: dict[str, Any] = {
        "channel": result.channel.handle,
        "iterations": int(result.iterations),
        "posts": int(result.total_posts),
        "partial": bool(result.partial),
    }

    recommendations: list[str] = []
    summary = f"Crawl stopped with reason={reason}."

    if result.error:
        details["error"] = result.error
        summary = f"Crawl failed before collecting posts: {result.error}"
        recommendations = [
            "Check the target is a public t.me link or handle.",
            "Raise browser.timeout_ms or browser.wait_for_selector_ms on slow networks.",
            "Enable debug.save_screenshots to capture the page at the point of failure.",
        ]

    elif reason == "max_posts":
        summary = f"Collected the requested number of posts ({result.total_posts})."

    elif reason == "max_iterations":
        details["max_iterations"] = int(crawl.max_iterations)
        summary = (
            "Reached the scroll iteration cap "
            f"({result.iterations}/{int(crawl.max_iterations)} iterations, {result.total_posts} posts)."
        )
        recommendations = [
            "Increase crawl.max_iterations to scroll further back.",
            "Increase crawl.settle_seconds if pages load slowly between scrolls.",
        ]

    elif reason == "stalled":
        details["stall_limit"] = int(crawl.stall_limit)
        summary = (
            f"No new posts appeared for {int(crawl.stall_limit)} consecutive scrolls "
            f"({result.total_posts} posts)."
        )
        recommendations = [
            "Increase crawl.settle_seconds so older posts have time to load.",
            "Increase crawl.stall_limit to tolerate slow batches.",
            "Try the authenticated web client (--auth) when the public embed stops early.",
        ]

    elif reason == "boundary":
        summary = f"The scroll position stopped moving; the start of the feed was likely reached ({result.total_posts} posts)."

    elif reason == "memory_limit":
        details["memory_limit_mb"] = float(config.resources.memory_limit_mb)
        summary = (
            f"Stopped at the memory limit of {config.resources.memory_limit_mb:g} MB; "
            f"results are partial ({result.total_posts} posts)."
        )
        recommendations = [
            "Lower --max-posts or narrow the date range.",
            "Raise resources.memory_limit_mb if the host has headroom.",
        ]

    elif reason == "session_error":
        summary = f"The browser session failed mid-crawl; results are partial ({result.total_posts} posts)."
        recommendations = [
            "Re-run the crawl; the browser may have crashed or lost its connection.",
            "Refresh the stored login state if using --auth.",
        ]

    return {
        "reason": reason,
        "summary": summary,
        "details": details,
        "recommendations": recommendations,
    }


def format_stop_report(report: Mapping[str, Any]) -> str:
    reason = str(report.get("reason") or "").strip() or "unknown"
    summary = str(report.get("summary") or "").strip() or f"Crawl stopped ({reason})."

    lines: list[str] = [summary]
    recs = report.get("recommendations")
    if isinstance(recs, list) and recs:
        lines.append("Recommendations:")
        for r in recs:
            t = str(r or "").strip()
            if t:
                lines.append(f"- {t}")

    return "\n".join(lines)
