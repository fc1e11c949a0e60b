from __future__ import annotations

from datetime import datetime, timezone

# Title attributes seen on public embeds and the Web A/K/Z clients.
_TITLE_FORMATS = (
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y, %H:%M:%S",
    "%d %B %Y, %H:%M:%S",
    "%d %B %Y at %H:%M:%S",
    "%A, %d %B %Y at %H:%M:%S",
    "%A, %B %d, %Y at %I:%M:%S %p",
    "%b %d, %Y at %I:%M %p",
    "%B %d, %Y %H:%M",
    "%Y-%m-%d %H:%M:%S",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso(value: str | None) -> datetime | None:
    s = (value or "").strip()
    if not s:
        return None
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(s))
    except ValueError:
        return None


def parse_epoch(value: str | None) -> datetime | None:
    s = (value or "").strip()
    if not s:
        return None
    try:
        seconds = int(float(s))
    except (ValueError, OverflowError):
        return None
    if seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_title(value: str | None) -> datetime | None:
    """Best-effort parse of a human-readable date title; None when nothing fits."""
    s = " ".join((value or "").split())
    if not s:
        return None

    parsed = parse_iso(s)
    if parsed is not None:
        return parsed

    for fmt in _TITLE_FORMATS:
        try:
            return ensure_utc(datetime.strptime(s, fmt))
        except ValueError:
            continue
    return None
