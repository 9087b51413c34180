# backend/inspection_booking/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..services.working_hours import normalize_time


class SlotRead(BaseModel):
    """One ledger slot as shown to customers."""
    start: str  # ISO, center-local
    end: str
    time: str  # "HH:MM"
    end_time: str
    available: bool
    taken_count: int
    capacity: int
    status: Literal["available", "booked", "blocked"]
    display_status: Literal["free", "partial", "full"]


class AvailabilityResponse(BaseModel):
    center_id: int
    service_id: int
    date: date
    timezone: str
    slot_duration_minutes: int
    capacity_per_slot: int
    slots: list[SlotRead]
    total_slots: int
    available_slots: int
    message: Optional[str] = None


class CalendarDay(BaseModel):
    """Status of a single day in calendar."""
    date: date
    total_slots: int
    open_slots_count: int = 0
    has_slots: bool


class CalendarResponse(BaseModel):
    center_id: int
    start_date: date
    end_date: date
    horizon_days: int
    slot_duration_minutes: int
    days: list[CalendarDay]


class ReconcileResponse(BaseModel):
    center_id: int
    date: date
    created: int
    updated: int
    removed: int


class GenerateResponse(BaseModel):
    center_id: int
    start_date: date
    end_date: date
    days: int
    created: int
    updated: int
    removed: int


class SlotBlockRequest(BaseModel):
    center_id: int
    date: date
    start_time: str = Field(description="Slot start in HH:MM")

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, v: str) -> str:
        return normalize_time(v)


class SlotStateResponse(BaseModel):
    center_id: int
    date: date
    start_time: str
    available: bool
    taken_count: int
    capacity: int
    status: str

    model_config = {"from_attributes": True}
