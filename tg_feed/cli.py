from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Sequence

from .config import config_sha256, load_config, resolve_storage_state
from .config_schema import AppConfig
from .errors import ConfigError, ExportError, SessionError, TargetError
from .export_json import write_result_json
from .navigate import parse_target
from .offline import SnapshotSession, load_snapshots
from .post import ScrapeResult
from .run_log import RunLogger
from .scrape import ScrapeRequest, scrape_channel
from .session import open_playwright_session
from .stop_report import build_stop_report, format_stop_report
from .timestamps import parse_iso


def _iso_datetime(value: str) -> datetime:
    parsed = parse_iso(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 date/time: {value!r}")
    return parsed


def _non_negative_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if n < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return n


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tg_feed")

    subparsers = parser.add_subparsers(dest="command", required=True)

    scrape = subparsers.add_parser(
        "scrape",
        help="Scroll a Telegram channel feed in a browser and collect its posts.",
    )
    scrape.add_argument(
        "--config",
        required=True,
        help="Path to YAML config file.",
    )
    scrape.add_argument(
        "--target",
        required=True,
        help="Channel t.me link, @handle or bare handle.",
    )
    scrape.add_argument(
        "--out",
        required=True,
        help="Output directory for result.json and run.log.",
    )
    scrape.add_argument(
        "--auth",
        action="store_true",
        help="Use the logged-in web client (needs a stored browser login state).",
    )
    scrape.add_argument("--date-from", type=_iso_datetime, default=None, help="Keep posts at or after this time.")
    scrape.add_argument("--date-to", type=_iso_datetime, default=None, help="Keep posts at or before this time.")
    scrape.add_argument(
        "--max-posts",
        type=_non_negative_int,
        default=None,
        help="Stop after this many posts (0 means no cap).",
    )
    scrape.add_argument(
        "--no-reactions",
        action="store_true",
        help="Skip reaction extraction.",
    )
    scrape.set_defaults(_handler=_cmd_scrape)

    replay = subparsers.add_parser(
        "replay",
        help="Crawl saved page snapshots without a browser or network.",
    )
    replay.add_argument(
        "--snapshot",
        action="append",
        required=True,
        help="Saved page markup; repeat once per scroll step.",
    )
    replay.add_argument(
        "--config",
        default=None,
        help="Optional YAML config file.",
    )
    replay.add_argument(
        "--target",
        default="offline",
        help="Handle used when the snapshot carries none.",
    )
    replay.add_argument("--max-posts", type=_non_negative_int, default=None)
    replay.add_argument(
        "--out",
        default=None,
        help="Optional output directory for result.json.",
    )
    replay.set_defaults(_handler=_cmd_replay)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _print_result(result: ScrapeResult) -> None:
    print(f"channel={result.channel.handle}")
    print(f"channel_name={result.channel.name}")
    print(f"posts={result.total_posts}")
    print(f"stop_reason={result.stop_reason or ''}")
    print(f"iterations={result.iterations}")
    print(f"partial={str(bool(result.partial)).lower()}")
    if result.error:
        print(f"error={result.error}")


async def _no_sleep(_seconds: float) -> None:
    return None


def _cmd_scrape(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    log_path = out_dir / "run.log"
    with RunLogger.open(log_path, overwrite=True) as log:
        log.info(
            "run_command_started",
            command="scrape",
            config_path=str(args.config),
            target=str(args.target),
            out_dir=str(out_dir),
        )

        try:
            cfg = load_config(args.config)
            # Reject a bad target before a browser is launched.
            channel = parse_target(str(args.target))
            storage_state = resolve_storage_state(cfg, required=bool(args.auth))

            log.info(
                "config_loaded",
                config_path=str(args.config),
                config_sha256=config_sha256(cfg),
                handle=channel.handle,
                authenticated=bool(args.auth),
            )

            request = ScrapeRequest(
                target=str(args.target),
                date_from=args.date_from,
                date_to=args.date_to,
                max_posts=args.max_posts,
                include_reactions=not bool(args.no_reactions),
                authenticated=bool(args.auth),
            )
            result = asyncio.run(_scrape_in_browser(cfg, request, storage_state=storage_state, logger=log))

            result_path = out_dir / "result.json"
            write_result_json(result, result_path)
            log.info("export_json_completed", path=str(result_path), posts=result.total_posts)

            _print_result(result)
            print(f"result_json={result_path}")
            print(f"run_log={log_path}")
            print(format_stop_report(build_stop_report(result, config=cfg)))

            return 4 if result.error else 0
        except Exception as e:
            log.exception("run_command_failed", exc=e)
            raise


async def _scrape_in_browser(
    cfg: AppConfig,
    request: ScrapeRequest,
    *,
    storage_state: Path | None,
    logger: RunLogger,
) -> ScrapeResult:
    async with open_playwright_session(cfg.browser, storage_state=storage_state) as session:
        return await scrape_channel(session, request, config=cfg, logger=logger)


def _cmd_replay(args: argparse.Namespace) -> int:
    cfg = load_config(args.config) if args.config else AppConfig()
    session = SnapshotSession(load_snapshots(args.snapshot))

    request = ScrapeRequest(target=str(args.target), max_posts=args.max_posts)
    result = asyncio.run(scrape_channel(session, request, config=cfg, sleep_fn=_no_sleep))

    _print_result(result)
    print(f"scrolls={session.scrolls}")

    if args.out:
        result_path = write_result_json(result, Path(args.out) / "result.json")
        print(f"result_json={result_path}")

    return 4 if result.error else 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except (ConfigError, TargetError) as e:
        _eprint(str(e))
        return 2
    except (ExportError, SessionError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
