# backend/inspection_booking/security.py
"""
Staff access check.

Staff endpoints require the X-Staff-Key header to match the configured
STAFF_API_KEY. Session/cookie handling lives in the admin frontend.
"""

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from .config import settings

logger = logging.getLogger(__name__)


def require_staff(x_staff_key: Optional[str] = Header(None)) -> None:
    if not settings.staff_api_key:
        logger.error("Staff endpoint called but STAFF_API_KEY is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Staff access is not configured",
        )

    if not x_staff_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing staff key")

    if not hmac.compare_digest(x_staff_key.encode(), settings.staff_api_key.encode()):
        logger.warning("Rejected staff request with invalid key")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
