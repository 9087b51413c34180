# backend/inspection_booking/services/clock.py
"""
Timezone helpers.

Instants are stored as naive UTC datetimes. Working-hour rules are applied
in the center's local time, so every comparison goes through these helpers.
"""

from datetime import date, datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@lru_cache(maxsize=64)
def get_zone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name. Raises ValueError for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime, tz: ZoneInfo) -> datetime:
    """Attach ``tz`` to naive datetimes (interpreted as center-local)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt


def to_storage(dt: datetime) -> datetime:
    """Aware datetime -> naive UTC for the database."""
    if dt.tzinfo is None:
        raise ValueError("Naive datetime cannot be stored without a timezone")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(dt: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Naive UTC from the database -> aware datetime (UTC or ``tz``)."""
    aware = dt.replace(tzinfo=timezone.utc)
    return aware.astimezone(tz) if tz else aware


def local_day_bounds(target_date: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC storage bounds [start, end) of a center-local calendar day."""
    start = datetime.combine(target_date, datetime.min.time(), tzinfo=tz)
    next_day = date.fromordinal(target_date.toordinal() + 1)
    end = datetime.combine(next_day, datetime.min.time(), tzinfo=tz)
    return to_storage(start), to_storage(end)
