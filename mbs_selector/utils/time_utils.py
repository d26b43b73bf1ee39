"""
Time helpers for history and preset timestamps.

All timestamps in this package are timezone-aware UTC datetimes; they are
serialized to ISO-8601 strings (``2026-02-24T15:00:00Z``) by pydantic when
stores persist their lists.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Union


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime, or convert an aware one to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def range_bounds(
    start: Union[date, datetime],
    end: Union[date, datetime],
) -> tuple[datetime, datetime]:
    """Normalise an inclusive date/datetime range to UTC datetime bounds.

    A plain ``date`` as ``start`` means the start of that day; as ``end`` it
    means the last instant of that day, so ``(d, d)`` covers the whole day.

    Args:
        start: Inclusive lower bound.
        end: Inclusive upper bound.

    Returns:
        ``(start_dt, end_dt)`` as timezone-aware UTC datetimes.
    """
    if not isinstance(start, datetime):
        start = datetime.combine(start, time.min)
    if not isinstance(end, datetime):
        end = datetime.combine(end, time.max)
    return ensure_utc(start), ensure_utc(end)
