"""
Typed booking errors.

Every error raised by the scheduling engine carries a ``kind`` so callers
can branch on it: a ``conflict`` means "refresh availability", a
``validation`` error means "fix the request".
"""

from typing import Any, Optional


class BookingError(Exception):
    """Base exception for scheduling operations."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind, **self.extra}


class ValidationError(BookingError):
    """Malformed input, closed center, past time, outside working hours."""

    kind = "validation"
    status_code = 400


class ConflictError(BookingError):
    """Requested slot is already at capacity."""

    kind = "conflict"
    status_code = 409

    def __init__(
        self,
        message: str = "This time slot is already booked. Please select a different time.",
        *,
        existing_start: Optional[str] = None,
        existing_end: Optional[str] = None,
    ):
        extra = {}
        if existing_start:
            extra["conflict"] = {
                "existing_start": existing_start,
                "existing_end": existing_end,
            }
        super().__init__(message, **extra)


class NotFoundError(BookingError):
    """Unknown center, service type, appointment id or reference code."""

    kind = "not_found"
    status_code = 404


class ReferenceExhaustedError(BookingError):
    """No unused reference code found within the retry budget."""

    kind = "internal"
    status_code = 500
