# backend/inspection_booking/services/slots/availability.py
"""
Availability query: what can be booked for (center, service, date).

1. Validate center/service/date
2. Reconcile the ledger for (center, date) (first read materializes it)
3. Read ledger rows in start order, drop staff-blocked ones and derive the
   presentation status:
     free     taken == 0
     partial  0 < taken < capacity
     full     taken >= capacity (or blocked)

Reads are not transactional with concurrent bookings; a booking that loses
the race gets a ConflictError and the client re-reads availability.
"""

from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import ValidationError
from ...models import Centers, ServiceTypes, Slots
from ..clock import from_storage, get_zone, utcnow
from .config import BookingConfig, get_booking_config
from .ledger import list_slots, reconcile_slots


def slot_display_status(slot: Slots) -> str:
    if slot.status == "blocked" or slot.taken_count >= slot.capacity:
        return "full"
    if slot.taken_count == 0:
        return "free"
    return "partial"


def slot_to_dict(slot: Slots, tz) -> dict:
    return {
        "start": from_storage(slot.start_at, tz).isoformat(),
        "end": from_storage(slot.end_at, tz).isoformat(),
        "time": slot.start_time,
        "end_time": slot.end_time,
        "available": bool(slot.available),
        "taken_count": slot.taken_count,
        "capacity": slot.capacity,
        "status": slot.status,
        "display_status": slot_display_status(slot),
    }


def get_availability(
    db: Session,
    center: Centers,
    service_type: ServiceTypes,
    target_date: date,
    config: Optional[BookingConfig] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Ordered slots for a center, service and local date.

    Returns:
        Dict for AvailabilityResponse. ``slots`` is empty with a ``message``
        when the center is closed that day.

    Raises:
        ValidationError: inactive center, service not offered, date outside
        [today, today + horizon_days] in the center's timezone.
    """
    config = config or get_booking_config()
    tz = get_zone(center.timezone)
    today = (now or utcnow()).astimezone(tz).date()

    if not center.is_active:
        raise ValidationError("Center is not accepting bookings")
    if service_type.id not in {s.id for s in center.services}:
        raise ValidationError("Service not available at this center")
    if target_date < today:
        raise ValidationError("Date cannot be in the past")
    if target_date > today + timedelta(days=config.horizon_days):
        raise ValidationError(f"Date cannot be more than {config.horizon_days} days ahead")

    reconcile_slots(db, center, target_date)
    slots = list_slots(db, center.id, target_date)
    bookable = [slot for slot in slots if slot.status != "blocked"]

    result = {
        "center_id": center.id,
        "service_id": service_type.id,
        "date": target_date.isoformat(),
        "timezone": center.timezone,
        "slot_duration_minutes": center.slot_duration_minutes,
        "capacity_per_slot": center.capacity_per_slot,
        "slots": [slot_to_dict(slot, tz) for slot in bookable],
        "total_slots": len(bookable),
        "available_slots": sum(1 for slot in bookable if slot.available),
        "message": None,
    }
    if not slots:
        result["message"] = "Center is closed on this day"
    return result


def get_calendar(
    db: Session,
    center: Centers,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    config: Optional[BookingConfig] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Per-day summary (slot count, open slot count) clamped to the horizon."""
    config = config or get_booking_config()
    tz = get_zone(center.timezone)
    today = (now or utcnow()).astimezone(tz).date()
    horizon_end = today + timedelta(days=config.horizon_days)

    start_date = max(start_date or today, today)
    end_date = min(end_date or horizon_end, horizon_end)
    if end_date < start_date:
        end_date = start_date

    days = []
    current = start_date
    while current <= end_date:
        reconcile_slots(db, center, current)
        slots = list_slots(db, center.id, current)
        open_count = sum(1 for slot in slots if slot.available)
        days.append({
            "date": current.isoformat(),
            "total_slots": len(slots),
            "open_slots_count": open_count,
            "has_slots": open_count > 0,
        })
        current += timedelta(days=1)

    return {
        "center_id": center.id,
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "horizon_days": config.horizon_days,
        "slot_duration_minutes": center.slot_duration_minutes,
        "days": days,
    }
