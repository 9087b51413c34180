# backend/inspection_booking/services/slots/invalidator.py
"""
Ledger refresh after configuration changes.

Triggers:
✓ Center working_hours / slot_duration_minutes / capacity / timezone changed
  → reconcile every materialized date from today on
✓ Blackout day added/removed → reconcile that date
✓ Staff bulk generation for a date range

Does NOT trigger:
✗ Booking created/canceled (adjust_occupancy handles the counts)
✗ Dates never read yet (materialized lazily on first query)
"""

from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Centers
from ..clock import get_zone, utcnow
from .ledger import ReconcileResult, materialized_dates, reconcile_slots

# Center fields that change the generated slot set or its capacity
SLOT_AFFECTING_FIELDS = frozenset({
    "working_hours",
    "slot_duration_minutes",
    "capacity_per_slot",
    "timezone",
})


def center_today(center: Centers) -> date:
    return utcnow().astimezone(get_zone(center.timezone)).date()


def reconcile_center(
    db: Session,
    center: Centers,
    from_date: Optional[date] = None,
) -> list[ReconcileResult]:
    """Reconcile all already-materialized dates of a center from ``from_date``."""
    from_date = from_date or center_today(center)
    return [
        reconcile_slots(db, center, target_date)
        for target_date in materialized_dates(db, center.id, from_date)
    ]


def get_affected_dates(date_start: date, date_end: date) -> list[date]:
    """Dates in [date_start, date_end] (swapped if reversed)."""
    if date_start > date_end:
        date_start, date_end = date_end, date_start

    dates = []
    current = date_start
    while current <= date_end:
        dates.append(current)
        current += timedelta(days=1)
    return dates


def reconcile_date_range(
    db: Session,
    center: Centers,
    date_start: date,
    date_end: date,
) -> list[ReconcileResult]:
    """Materialize/reconcile every date in the range."""
    return [
        reconcile_slots(db, center, target_date)
        for target_date in get_affected_dates(date_start, date_end)
    ]
