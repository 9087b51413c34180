# backend/inspection_booking/schemas/service_types.py

from typing import Optional
from pydantic import BaseModel, Field


class ServiceTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    duration_minutes: Optional[int] = Field(None, gt=0)

    model_config = {"from_attributes": True}


class ServiceTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    duration_minutes: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None

    model_config = {"from_attributes": True}


class ServiceTypeRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    duration_minutes: Optional[int] = None
    is_active: bool

    model_config = {"from_attributes": True}
