# backend/inspection_booking/services/slots/config.py
"""
Booking configuration for slot generation and appointment validation.
"""

import string
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the booking/slots engine.

    Attributes:
        grace_minutes: How far past an interval's close an appointment may end
        horizon_days: How many days ahead public endpoints answer
        reference_length: Length of customer-facing reference codes
        reference_max_attempts: Regenerations allowed before giving up
        default_slot_minutes: Slot length for centers created without one
        min_slot_minutes / max_slot_minutes: Allowed slot length range
        max_capacity_per_slot: Upper bound for center capacity
    """
    grace_minutes: int = 60
    horizon_days: int = 60
    reference_length: int = 6
    reference_alphabet: str = string.ascii_uppercase + string.digits
    reference_max_attempts: int = 10
    default_slot_minutes: int = 20
    min_slot_minutes: int = 15
    max_slot_minutes: int = 1440
    max_capacity_per_slot: int = 100

    def __post_init__(self):
        """Validate configuration."""
        if self.grace_minutes < 0:
            raise ValueError(f"grace_minutes must be >= 0, got {self.grace_minutes}")
        if self.reference_max_attempts < 1:
            raise ValueError(
                f"reference_max_attempts must be >= 1, got {self.reference_max_attempts}"
            )


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton)."""
    return BookingConfig()


# ── Time helpers ─────────────────────────────────────────────────────────


def time_str_to_minutes(time_str: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hours, minutes = time_str.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM" (24:00 and beyond allowed)."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"
