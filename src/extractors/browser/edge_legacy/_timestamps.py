"""
Timestamps as rendered by ESEDatabaseView.

The decoder prints date columns in the local time of the machine it runs on
using a US 12-hour layout, e.g. ``01/02/2020 03:04:05 PM``. Values are
therefore interpreted as local time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

WEBCACHE_TIME_FORMAT = "%m/%d/%Y %I:%M:%S %p"


def parse_webcache_time(value: Optional[str]) -> Optional[int]:
    """
    Convert a decoder date string to epoch seconds.

    Returns:
        Epoch seconds, or None when the value does not match the pattern

    Example:
        >>> parse_webcache_time("01/02/2020 03:04:05 PM")  # doctest: +SKIP
        1577977445  # for a UTC host
    """
    if not value:
        return None
    try:
        parsed = datetime.strptime(value.strip(), WEBCACHE_TIME_FORMAT)
        return int(parsed.timestamp())
    except (ValueError, OverflowError, OSError):
        return None


def format_webcache_time(epoch_seconds: int) -> str:
    """Render epoch seconds back into the decoder's layout (local time)."""
    return datetime.fromtimestamp(epoch_seconds).strftime(WEBCACHE_TIME_FORMAT)
