# backend/inspection_booking/routers/appointments.py
# Public: create + lookup by reference. Staff: list, confirm, cancel, reactivate.

import math
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from redis import Redis
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..redis_client import get_redis
from ..schemas.appointments import (
    AppointmentCreate,
    AppointmentCreated,
    AppointmentPage,
    AppointmentRead,
    CancelRequest,
)
from ..security import require_staff
from ..services.appointments import (
    CustomerSnapshot,
    cancel_appointment,
    confirm_appointment,
    create_appointment,
    get_appointment_by_reference,
    list_appointments,
    reactivate_appointment,
)
from ..services.clock import from_storage, get_zone

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("/", response_model=AppointmentCreated, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: AppointmentCreate,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    """
    Book a slot.

    400 = invalid request (past, closed, outside hours, service not offered)
    409 = slot full, pick another time
    """
    customer = CustomerSnapshot(
        name=data.customer.name,
        phone=data.customer.phone,
        vehicle_plate=data.customer.vehicle_plate,
        notes=data.customer.notes,
    )
    appointment = create_appointment(
        db, data.center_id, data.service_id, data.start, customer, redis=redis,
    )

    tz = get_zone(appointment.center.timezone)
    return AppointmentCreated(
        id=appointment.id,
        reference=appointment.reference,
        status=appointment.status,
        start=from_storage(appointment.start_at, tz),
        end=from_storage(appointment.end_at, tz),
        center_name=appointment.center.name,
        service_name=appointment.service_type.name,
    )


@router.get("/by-reference/{code}", response_model=AppointmentRead)
def get_by_reference(code: str, db: Session = Depends(get_db)):
    return AppointmentRead.from_model(get_appointment_by_reference(db, code))


@router.get("/", response_model=AppointmentPage, dependencies=[Depends(require_staff)])
def list_all(
    status_filter: Optional[Literal["pending", "confirmed", "canceled"]] = Query(None, alias="status"),
    target_date: Optional[date] = Query(None, alias="date"),
    center_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    items, total = list_appointments(
        db,
        status=status_filter,
        target_date=target_date,
        center_id=center_id,
        timezone_name=settings.default_timezone,
        page=page,
        limit=limit,
    )
    return AppointmentPage(
        items=[AppointmentRead.from_model(a) for a in items],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.post("/{id}/confirm", response_model=AppointmentRead, dependencies=[Depends(require_staff)])
def confirm(id: int, db: Session = Depends(get_db), redis: Redis = Depends(get_redis)):
    return AppointmentRead.from_model(confirm_appointment(db, id, redis=redis))


@router.post("/{id}/cancel", response_model=AppointmentRead, dependencies=[Depends(require_staff)])
def cancel(
    id: int,
    data: Optional[CancelRequest] = None,
    db: Session = Depends(get_db),
    redis: Redis = Depends(get_redis),
):
    reason = data.reason if data else None
    return AppointmentRead.from_model(cancel_appointment(db, id, reason=reason, redis=redis))


@router.post("/{id}/reactivate", response_model=AppointmentRead, dependencies=[Depends(require_staff)])
def reactivate(id: int, db: Session = Depends(get_db), redis: Redis = Depends(get_redis)):
    return AppointmentRead.from_model(reactivate_appointment(db, id, redis=redis))
