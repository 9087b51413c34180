# backend/inspection_booking/services/slots/__init__.py
"""
Slots module.

Generator: working hours → fixed-length slots (pure)
Ledger: persisted per-slot occupancy, reconciled against the generator
Availability: ledger read path for the public booking flow
"""

from .config import BookingConfig, get_booking_config
from .generator import GeneratedSlot, generate_slots
from .ledger import (
    ReconcileResult,
    adjust_occupancy,
    reserve_occupancy,
    list_slots,
    reconcile_slots,
    set_slot_blocked,
)
from .invalidator import reconcile_center, reconcile_date_range
from .availability import get_availability, get_calendar

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "GeneratedSlot",
    "generate_slots",
    "ReconcileResult",
    "adjust_occupancy",
    "reserve_occupancy",
    "list_slots",
    "reconcile_slots",
    "set_slot_blocked",
    "reconcile_center",
    "reconcile_date_range",
    "get_availability",
    "get_calendar",
]
