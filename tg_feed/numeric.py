from __future__ import annotations

import math
import re

_COUNT_NOISE_RE = re.compile(r"[^0-9.KM]")

_MULTIPLIERS = (
    ("M", 1_000_000),
    ("K", 1_000),
)

_SUBSCRIBERS_RE = re.compile(
    r"(\d[\d\s.,]*?)\s*([KM])?\s*(?:subscribers?|members?|участник)",
    re.IGNORECASE,
)


def parse_count(text: str | None) -> int:
    """
    Parse abbreviated count text such as "1.2K", "3M" or "12 345 views" into an int.

    Grammar, after dropping every character other than digits, ".", "K" and "M":
    - "<decimal>M" => decimal * 1_000_000, "<decimal>K" => decimal * 1_000,
      rounded half-up.
    - a single "." followed by one or two digits is a decimal point and the
      fraction is dropped ("1.5" => 1, "12.75" => 12).
    - otherwise "." is a thousands separator and the digits are read as an
      integer ("1.234" => 1234, "1.234.567" => 1234567).

    Never raises; anything unparseable is 0. Lowercase letters are noise, so
    "5 members" is 5 and not five million.
    """
    if not text:
        return 0

    cleaned = _COUNT_NOISE_RE.sub("", str(text))
    if not cleaned:
        return 0

    for suffix, factor in _MULTIPLIERS:
        if suffix in cleaned:
            number = cleaned.replace("M", "").replace("K", "")
            try:
                value = float(number)
            except ValueError:
                return 0
            if not math.isfinite(value) or value < 0:
                return 0
            return int(math.floor(value * factor + 0.5))

    whole, dot, fraction = cleaned.partition(".")
    if dot and "." not in fraction and len(fraction) < 3:
        digits = whole
    else:
        digits = cleaned.replace(".", "")
    if not digits:
        return 0
    try:
        return int(digits)
    except ValueError:
        return 0


def parse_subscriber_count(text: str | None) -> int | None:
    """Find a "<n> subscribers"/"<n> members" phrase and parse its number."""
    if not text:
        return None

    match = _SUBSCRIBERS_RE.search(str(text))
    if match is None:
        return None

    number = match.group(1) or ""
    suffix = (match.group(2) or "").upper()
    # A comma inside a suffixed value ("1,2K") is a decimal separator.
    if suffix and "," in number and "." not in number:
        number = number.replace(",", ".")
    return parse_count(number + suffix)
