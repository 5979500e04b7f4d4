"""Datetime conversion at the storage boundary.

Records hold timestamps as ISO-8601 strings; typed schemas hold
timezone-aware datetimes.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    """Serialize a datetime, treating naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO string, date, or datetime into an aware datetime.

    Raises:
        ValueError: If a string is not valid ISO-8601.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported datetime value: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def window_end(value: Any) -> datetime | None:
    """Exclusive upper limit for an inclusive end bound.

    A bound with no time of day (a bare date, or midnight) covers the
    whole of that day.
    """
    end = parse_datetime(value)
    if end is None:
        return None
    if end.time() == time.min:
        return end + timedelta(days=1)
    return end + timedelta(microseconds=1)
