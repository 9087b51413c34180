# backend/inspection_booking/services/booking_guard.py
"""
Booking conflict guard.

Validates a candidate appointment {center, service type, start} before it is
written:

1. end = start + center.slot_duration_minutes
2. start strictly in the future
3. service type offered by the center
4. center open on the local weekday of start
5. local date of start not a blackout day
6. local start inside an open interval [start, end); local end no later than
   interval end + grace (one hour), compared as time-of-day; no ledger slot
   in the range blocked by staff
7. fewer than capacity_per_slot active appointments overlapping [start, end)

Steps 1-6 raise ValidationError, step 7 raises ConflictError. Step 7 is a
pre-check only: the partial unique index on (center_id, start_at, seat)
settles races between concurrent inserts (see services.appointments).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..errors import ConflictError, ValidationError
from ..models import ACTIVE_STATUSES, Appointments, Centers, ServiceTypes
from .clock import ensure_aware, from_storage, get_zone, to_storage, utcnow
from .slots.config import BookingConfig, get_booking_config, time_str_to_minutes
from .slots.ledger import is_blackout_day, is_blocked
from .working_hours import center_schedule, day_intervals

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingCandidate:
    """A validated booking request. Instants are naive UTC, as stored."""
    center_id: int
    service_type_id: int
    start_at: datetime
    end_at: datetime
    local_start: datetime
    local_end: datetime


def parse_start(value, tz: ZoneInfo) -> datetime:
    """
    Parse an ISO start time into an aware datetime.

    Values without an offset are read as center-local time.
    """
    if isinstance(value, datetime):
        return ensure_aware(value, tz)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("Invalid start time format") from None
    return ensure_aware(parsed, tz)


def within_working_hours(
    intervals: list[tuple[str, str]],
    local_start: datetime,
    local_end: datetime,
    grace_minutes: int,
) -> bool:
    """
    Working-hours rule.

    Start time-of-day must fall in [interval.start, interval.end); end
    time-of-day must be <= interval.end + grace. Time-of-day only, so an end
    that crosses midnight compares by its clock time.
    """
    start_min = local_start.hour * 60 + local_start.minute
    end_min = local_end.hour * 60 + local_end.minute

    for interval_start, interval_end in intervals:
        open_min = time_str_to_minutes(interval_start)
        close_min = time_str_to_minutes(interval_end)
        if open_min <= start_min < close_min and end_min <= close_min + grace_minutes:
            return True
    return False


def validate_booking(
    db: Session,
    center: Centers,
    service_type: ServiceTypes,
    start,
    now: Optional[datetime] = None,
    config: Optional[BookingConfig] = None,
) -> BookingCandidate:
    """
    Run checks 1-6 for a candidate appointment.

    Raises:
        ValidationError: with a human-readable reason.
    """
    config = config or get_booking_config()
    now = now or utcnow()
    tz = get_zone(center.timezone)

    if not center.is_active:
        raise ValidationError("Center is not accepting bookings")
    if not service_type.is_active:
        raise ValidationError("Service is not available")

    # Step 1: end from the center's slot length
    start_dt = parse_start(start, tz)
    end_dt = start_dt + timedelta(minutes=center.slot_duration_minutes)
    local_start = start_dt.astimezone(tz)
    local_end = end_dt.astimezone(tz)

    # Step 2: strictly in the future
    if start_dt <= ensure_aware(now, tz):
        raise ValidationError("Start time must be in the future")

    # Step 3: offered service
    if service_type.id not in {s.id for s in center.services}:
        raise ValidationError("Service not available at this center")

    # Step 4: open weekday
    intervals = day_intervals(center_schedule(center), local_start.date())
    if not intervals:
        raise ValidationError("Center is closed on this day")

    # Step 5: blackout date
    if is_blackout_day(db, center.id, local_start.date()):
        raise ValidationError("Center is closed on this date (blackout day)")

    # Step 6: working hours with closing grace
    if not within_working_hours(intervals, local_start, local_end, config.grace_minutes):
        available = ", ".join(f"{s}-{e}" for s, e in intervals)
        raise ValidationError(
            f"Appointment time is outside working hours. "
            f"Requested: {local_start:%H:%M}-{local_end:%H:%M}, Available: {available}"
        )

    start_at, end_at = to_storage(start_dt), to_storage(end_dt)
    if is_blocked(db, center.id, start_at, end_at):
        raise ValidationError("This time slot has been closed by the center")

    return BookingCandidate(
        center_id=center.id,
        service_type_id=service_type.id,
        start_at=start_at,
        end_at=end_at,
        local_start=local_start,
        local_end=local_end,
    )


# ── Overlap queries ──────────────────────────────────────────────────────


def _overlap_filter(center_id: int, start_at: datetime, end_at: datetime, exclude_id: Optional[int]):
    clauses = [
        Appointments.center_id == center_id,
        Appointments.start_at < end_at,
        Appointments.end_at > start_at,
        Appointments.status.in_(ACTIVE_STATUSES),
    ]
    if exclude_id is not None:
        clauses.append(Appointments.id != exclude_id)
    return clauses


def count_active_overlaps(
    db: Session,
    center_id: int,
    start_at: datetime,
    end_at: datetime,
    exclude_id: Optional[int] = None,
) -> int:
    """Active appointments overlapping [start_at, end_at) (naive UTC)."""
    return db.scalar(
        select(func.count(Appointments.id)).where(
            *_overlap_filter(center_id, start_at, end_at, exclude_id)
        )
    ) or 0


def ensure_capacity(
    db: Session,
    center: Centers,
    start_at: datetime,
    end_at: datetime,
    exclude_id: Optional[int] = None,
) -> None:
    """
    Step 7: reject when the overlapping active bookings fill the capacity.

    Raises:
        ConflictError
    """
    overlapping = list(
        db.scalars(
            select(Appointments)
            .where(*_overlap_filter(center.id, start_at, end_at, exclude_id))
            .order_by(Appointments.start_at)
        )
    )
    if len(overlapping) < center.capacity_per_slot:
        return

    tz = get_zone(center.timezone)
    first = overlapping[0]
    logger.warning(
        f"Booking conflict: center_id={center.id}, start={start_at.isoformat()}, "
        f"active={len(overlapping)}, capacity={center.capacity_per_slot}"
    )
    raise ConflictError(
        existing_start=from_storage(first.start_at, tz).isoformat(),
        existing_end=from_storage(first.end_at, tz).isoformat(),
    )


def free_seat(
    db: Session,
    center: Centers,
    start_at: datetime,
    exclude_id: Optional[int] = None,
) -> Optional[int]:
    """Lowest seat number not held by an active booking starting at ``start_at``."""
    query = select(Appointments.seat).where(
        Appointments.center_id == center.id,
        Appointments.start_at == start_at,
        Appointments.status.in_(ACTIVE_STATUSES),
    )
    if exclude_id is not None:
        query = query.where(Appointments.id != exclude_id)
    taken = set(db.scalars(query))

    for seat in range(center.capacity_per_slot):
        if seat not in taken:
            return seat
    return None
