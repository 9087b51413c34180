# backend/inspection_booking/services/reference.py
"""
Customer-facing reference codes: 6 characters from A-Z0-9.

Codes are random, so uniqueness comes from checking the store and
regenerating on collision within a bounded number of attempts.
"""

import logging
import re
import secrets
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import ReferenceExhaustedError
from ..models import Appointments
from .slots.config import BookingConfig, get_booking_config

logger = logging.getLogger(__name__)


def generate_reference_code(config: Optional[BookingConfig] = None) -> str:
    config = config or get_booking_config()
    return "".join(
        secrets.choice(config.reference_alphabet) for _ in range(config.reference_length)
    )


def is_valid_reference(code: str, config: Optional[BookingConfig] = None) -> bool:
    config = config or get_booking_config()
    pattern = rf"^[{re.escape(config.reference_alphabet)}]{{{config.reference_length}}}$"
    return bool(re.match(pattern, code or ""))


def allocate_reference(
    is_taken: Callable[[str], bool],
    config: Optional[BookingConfig] = None,
    generator: Callable[[], str] | None = None,
) -> str:
    """
    Draw codes until one is not taken.

    Raises:
        ReferenceExhaustedError: after reference_max_attempts collisions.
    """
    config = config or get_booking_config()
    generator = generator or (lambda: generate_reference_code(config))

    for attempt in range(1, config.reference_max_attempts + 1):
        code = generator()
        if not is_taken(code):
            return code
        logger.warning(f"Reference collision on attempt {attempt}: {code}")

    logger.error(f"No free reference code after {config.reference_max_attempts} attempts")
    raise ReferenceExhaustedError("Failed to generate unique reference code")


def reference_exists(db: Session, code: str) -> bool:
    return db.scalar(
        select(Appointments.id).where(Appointments.reference == code)
    ) is not None
