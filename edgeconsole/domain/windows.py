"""
Effective-window normalization.

Date-time pickers emit local values without seconds or an offset
("2025-10-21T21:42"). Those 16-character values are pinned to UTC by appending
":00Z" before they reach the store. Omitted bounds default to "now" and
"now + window_days".
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple, Union

LOCAL_MINUTE_LENGTH = len("2025-10-21T21:42")
DEFAULT_WINDOW_DAYS = 365

Timestamp = Union[str, datetime, None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_timestamp(value: Optional[str]) -> str:
    """Append seconds and a UTC designator to minute-precision local values."""
    if not value:
        return ""
    value = value.strip()
    if len(value) == LOCAL_MINUTE_LENGTH:
        return value + ":00Z"
    return value


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """
    Parse an RFC3339 / ISO-8601 value into an aware datetime.

    Naive values are taken as UTC. Raises ValueError for unparseable text.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(normalize_timestamp(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def resolve_window(
    effective_from: Timestamp,
    effective_until: Timestamp,
    now: Optional[datetime] = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> Tuple[datetime, datetime]:
    """
    Normalize both bounds, filling omitted ones with the default window.
    """
    now = now or utcnow()
    start = parse_timestamp(effective_from) or now
    end = parse_timestamp(effective_until) or now + timedelta(days=window_days)
    return start, end


__all__ = [
    "DEFAULT_WINDOW_DAYS",
    "normalize_timestamp",
    "parse_timestamp",
    "resolve_window",
    "utcnow",
]
