# backend/inspection_booking/schemas/appointments.py

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..services.clock import from_storage, get_zone


class CustomerIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    phone: str = Field(description="Customer phone number")
    vehicle_plate: str = Field(min_length=1, max_length=20)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, v: str) -> str:
        """Strip separators; keep an optional leading +."""
        v = v.strip()
        prefix = "+" if v.startswith("+") else ""
        digits = re.sub(r"\D", "", v)
        if not 8 <= len(digits) <= 15:
            raise ValueError("Please enter a valid phone number")
        return prefix + digits

    @field_validator("vehicle_plate")
    @classmethod
    def normalize_plate(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Vehicle plate is required")
        return v


class CustomerRead(BaseModel):
    name: str
    phone: str
    vehicle_plate: str
    notes: Optional[str] = None


class AppointmentCreate(BaseModel):
    center_id: int
    service_id: int
    start: str = Field(description="ISO 8601 start; no offset = center-local time")
    customer: CustomerIn


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class AppointmentRead(BaseModel):
    id: int
    reference: str
    customer: CustomerRead

    center_id: int
    service_id: int
    start: datetime
    end: datetime
    status: str
    cancel_reason: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, appointment) -> "AppointmentRead":
        tz = get_zone(appointment.center.timezone)
        return cls(
            id=appointment.id,
            reference=appointment.reference,
            customer=CustomerRead(
                name=appointment.customer_name,
                phone=appointment.customer_phone,
                vehicle_plate=appointment.vehicle_plate,
                notes=appointment.customer_notes,
            ),
            center_id=appointment.center_id,
            service_id=appointment.service_type_id,
            start=from_storage(appointment.start_at, tz),
            end=from_storage(appointment.end_at, tz),
            status=appointment.status,
            cancel_reason=appointment.cancel_reason,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
        )


class AppointmentCreated(BaseModel):
    """Response to the public booking form."""
    id: int
    reference: str
    status: str
    start: datetime
    end: datetime
    center_name: str
    service_name: str


class AppointmentPage(BaseModel):
    items: list[AppointmentRead]
    total: int
    page: int
    limit: int
    total_pages: int
