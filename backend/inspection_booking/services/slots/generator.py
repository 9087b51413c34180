# backend/inspection_booking/services/slots/generator.py
"""
Slot generation.

Turns one weekday's open intervals into fixed-length slots:

    08:00-09:00, 20 min → 08:00, 08:20, 08:40
    08:00-08:50, 20 min → 08:00, 08:20          (remainder dropped)

Pure function of (intervals, duration, date): identical input always gives
the identical ordered sequence. The ledger relies on this to tell slots that
are still needed from slots that disappeared with a schedule change.

Does NOT consider:
✗ Blackout days (ledger / booking guard)
✗ Bookings (ledger occupancy)
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo

from .config import minutes_to_time_str, time_str_to_minutes


@dataclass(frozen=True)
class GeneratedSlot:
    start_time: str  # "HH:MM", center-local
    end_time: str
    start_at: datetime  # aware, center-local
    end_at: datetime


def generate_slots(
    intervals: list[tuple[str, str]],
    slot_minutes: int,
    target_date: date,
    tz: tzinfo | None = None,
) -> list[GeneratedSlot]:
    """
    Tile every open interval with ``slot_minutes`` slots from its start.

    A slot is emitted only if it fits entirely before the interval's end.
    """
    if slot_minutes <= 0:
        raise ValueError(f"slot_minutes must be positive, got {slot_minutes}")

    day_start = datetime.combine(target_date, datetime.min.time(), tzinfo=tz)
    slots: list[GeneratedSlot] = []

    for start_str, end_str in intervals:
        start_min = time_str_to_minutes(start_str)
        end_min = time_str_to_minutes(end_str)

        t = start_min
        while t + slot_minutes <= end_min:
            slots.append(GeneratedSlot(
                start_time=minutes_to_time_str(t),
                end_time=minutes_to_time_str(t + slot_minutes),
                start_at=day_start + timedelta(minutes=t),
                end_at=day_start + timedelta(minutes=t + slot_minutes),
            ))
            t += slot_minutes

    return slots
