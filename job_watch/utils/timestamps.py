"""Timestamp utilities for UTC handling and datetime parsing.

This module provides utilities for working with timestamps in UTC:
- Getting current UTC time
- Parsing ISO 8601 datetime strings and epoch-millisecond numbers
- Converting timezone-naive to timezone-aware UTC
- Formatting timestamps for storage and display
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional

STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# Seconds fraction of any length; fromisoformat on 3.10 only takes 3 or 6 digits
_FRACTION = re.compile(r"(?<=:\d\d)\.(\d+)")


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC time with timezone info

    Example:
        >>> now = utc_now()
        >>> now.tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    If the datetime is timezone-naive, it's treated as UTC.
    If the datetime has a different timezone, it's converted to UTC.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_iso_datetime(iso_string: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string to UTC datetime.

    Supports various ISO 8601 formats:
    - 2025-11-04T12:00:00Z
    - 2025-11-04T12:00:00.123Z (any fraction length, cut to microseconds)
    - 2025-11-04T12:00:00+00:00
    - 2025-11-04T12:00:00
    - 2025-11-04

    Args:
        iso_string: ISO 8601 formatted datetime string

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z") or cleaned.endswith("z"):
        cleaned = cleaned[:-1] + "+00:00"
    cleaned = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), cleaned, count=1)

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        pass

    for fmt in ("%Y-%m-%dT%H:%M:%S", "%Y-%m-%d"):
        try:
            return ensure_utc(datetime.strptime(iso_string.strip(), fmt))
        except ValueError:
            continue

    return None


def parse_epoch_millis(value: Any) -> Optional[datetime]:
    """Convert a Unix timestamp in milliseconds to a UTC datetime.

    Returns None for booleans, non-numbers and out-of-range values.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None

    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def coerce_datetime(value: Any) -> Optional[datetime]:
    """Best-effort conversion of a provider timestamp field.

    Strings are parsed as ISO 8601, numbers as epoch milliseconds.
    Anything else, or anything that fails to parse, becomes None.

    Example:
        >>> coerce_datetime("not a date") is None
        True
        >>> coerce_datetime(0).year
        1970
    """
    if isinstance(value, str):
        return parse_iso_datetime(value)
    return parse_epoch_millis(value)


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as an ISO 8601 string with microseconds and 'Z' suffix.

    This is the storage representation used by the persistence layer.

    Args:
        dt: Datetime to format (naive values are treated as UTC)

    Returns:
        Formatted string, or None if dt is None
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return None
    return dt_utc.strftime(STORAGE_FORMAT)
