# backend/inspection_booking/schemas/centers.py

from datetime import date as date_type
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..config import settings
from ..services.clock import get_zone
from ..services.slots.config import get_booking_config
from ..services.working_hours import parse_working_hours
from .service_types import ServiceTypeRead

_config = get_booking_config()


def _schedule_document(value) -> dict:
    """Validate working hours and return the normalized JSON-ready form."""
    schedule = parse_working_hours(value)
    return {
        code: [{"start": s, "end": e} for s, e in intervals]
        for code, intervals in schedule.items()
    }


class BlackoutDayCreate(BaseModel):
    date: date_type
    reason: Optional[str] = Field(None, max_length=200)


class BlackoutDayRead(BaseModel):
    date: str
    reason: Optional[str] = None

    model_config = {"from_attributes": True}


class CenterCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    city: str = Field(min_length=1, max_length=50)
    address: str = Field(min_length=1, max_length=200)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)

    service_ids: list[int] = Field(min_length=1)
    capacity_per_slot: int = Field(1, ge=1, le=_config.max_capacity_per_slot)
    slot_duration_minutes: int = Field(
        _config.default_slot_minutes,
        ge=_config.min_slot_minutes,
        le=_config.max_slot_minutes,
    )
    working_hours: dict = Field(default_factory=dict)
    timezone: str = Field(default_factory=lambda: settings.default_timezone)
    blackout_days: list[date_type] = Field(default_factory=list)

    @field_validator("working_hours", mode="before")
    @classmethod
    def validate_working_hours(cls, v):
        return _schedule_document(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        get_zone(v)
        return v

    model_config = {"from_attributes": True}


class CenterUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    city: Optional[str] = Field(None, min_length=1, max_length=50)
    address: Optional[str] = Field(None, min_length=1, max_length=200)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)

    service_ids: Optional[list[int]] = Field(None, min_length=1)
    capacity_per_slot: Optional[int] = Field(None, ge=1, le=_config.max_capacity_per_slot)
    slot_duration_minutes: Optional[int] = Field(
        None,
        ge=_config.min_slot_minutes,
        le=_config.max_slot_minutes,
    )
    working_hours: Optional[dict] = None
    timezone: Optional[str] = None
    is_active: Optional[bool] = None

    # Fields may be omitted but not set to null: every column is NOT NULL
    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator("working_hours", mode="before")
    @classmethod
    def validate_working_hours(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return _schedule_document(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        get_zone(v)
        return v

    model_config = {"from_attributes": True}


class CenterRead(BaseModel):
    id: int
    name: str
    city: str
    address: str
    lat: float
    lng: float

    capacity_per_slot: int
    slot_duration_minutes: int
    working_hours: dict
    timezone: str
    is_active: bool

    services: list[ServiceTypeRead] = []
    blackout_days: list[BlackoutDayRead] = []

    created_at: Optional[datetime] = None

    @field_validator("working_hours", mode="before")
    @classmethod
    def parse_stored_working_hours(cls, v):
        return _schedule_document(v)

    model_config = {"from_attributes": True}
