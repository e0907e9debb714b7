"""Datetime utilities with consistent timezone handling.

This module provides centralized datetime functions so that every instant the
analytics engine works with is timezone-aware. Naive values coming from the
storage layer are assumed to be UTC.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Union


def now_utc() -> datetime:
    """Return current datetime in UTC timezone.

    Returns:
        Current datetime with timezone=UTC
    """
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware, assuming UTC if naive.

    Args:
        dt: Datetime to check/convert, or None

    Returns:
        Timezone-aware datetime, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt


def parse_datetime(value: Union[datetime, str, int, float, None]) -> Optional[datetime]:
    """Parse a timestamp as supplied by the storage layer.

    Accepts datetime objects, ISO-8601 strings (a trailing ``Z`` is allowed)
    and epoch milliseconds.

    Args:
        value: Raw timestamp value, or None

    Returns:
        Timezone-aware datetime, or None if input was None or empty

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return ensure_aware(value)

    if isinstance(value, bool):
        raise ValueError(f"Cannot interpret boolean {value!r} as a timestamp")

    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return ensure_aware(datetime.fromisoformat(text))

    raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")


def to_iso_string(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO string with timezone info.

    Args:
        dt: Datetime to convert, or None

    Returns:
        ISO format string with timezone, or None if input was None
    """
    if dt is None:
        return None

    aware_dt = ensure_aware(dt)
    return aware_dt.isoformat()


def from_iso_string(value: Any) -> Optional[datetime]:
    """Inverse of to_iso_string, tolerating None."""
    if value is None:
        return None
    return ensure_aware(datetime.fromisoformat(value))
