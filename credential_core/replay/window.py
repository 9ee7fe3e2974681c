"""
Timestamp Window
================
Parsing of request timestamps and the symmetric skew check.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

# Fractional seconds of any length; fromisoformat before 3.11 only takes 3 or 6 digits
_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d|$)")


def _normalise_fraction(match: re.Match) -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_timestamp(value: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 request timestamp into an aware UTC datetime.

    Accepts a trailing ``Z`` or an explicit offset; naive values are taken as UTC.
    Fractional seconds beyond microseconds (``.1234567Z``) are truncated.

    Returns:
        The instant, or None if the value is not a timestamp
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(_normalise_fraction, text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def within_window(request_time: datetime, now: datetime, window: timedelta) -> bool:
    """True if the request time is no further than ``window`` from now, in either direction."""
    return abs(now - request_time) <= window
