# backend/inspection_booking/routers/centers.py
# PATCH = staff, DELETE = soft-delete (is_active), refused with active bookings

import json
import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import NotFoundError
from ..models import ACTIVE_STATUSES
from ..models import Appointments as DBAppointments
from ..models import BlackoutDays as DBBlackoutDays
from ..models import Centers as DBCenters
from ..models import ServiceTypes as DBServiceTypes
from ..schemas.centers import BlackoutDayCreate, CenterCreate, CenterRead, CenterUpdate
from ..schemas.slots import AvailabilityResponse
from ..security import require_staff
from ..services.appointments import get_center, get_service_type
from ..services.slots import get_availability, reconcile_slots
from ..services.slots.invalidator import SLOT_AFFECTING_FIELDS, reconcile_center

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/centers", tags=["centers"])


def _resolve_services(db: Session, service_ids: list[int]) -> list[DBServiceTypes]:
    services = db.scalars(
        select(DBServiceTypes).where(DBServiceTypes.id.in_(service_ids))
    ).all()
    if len(services) != len(set(service_ids)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"One or more services not found. Requested: {len(set(service_ids))}, Found: {len(services)}",
        )
    return list(services)


@router.get("/", response_model=list[CenterRead])
def list_centers(city: str | None = None, db: Session = Depends(get_db)):
    query = select(DBCenters).where(DBCenters.is_active.is_(True))
    if city:
        query = query.where(func.lower(DBCenters.city) == city.lower())
    return db.scalars(query.order_by(DBCenters.name)).all()


@router.get("/admin", response_model=list[CenterRead], dependencies=[Depends(require_staff)])
def list_all_centers(db: Session = Depends(get_db)):
    return db.scalars(select(DBCenters).order_by(DBCenters.name)).all()


@router.get("/{id}", response_model=CenterRead)
def get_center_detail(id: int, db: Session = Depends(get_db)):
    return get_center(db, id)


@router.get("/{id}/availability", response_model=AvailabilityResponse)
def get_center_availability(
    id: int,
    service_id: int,
    target_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
):
    """Bookable slots for a service on a center-local date."""
    center = get_center(db, id)
    service_type = get_service_type(db, service_id)
    return get_availability(db, center, service_type, target_date)


@router.post(
    "/",
    response_model=CenterRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_staff)],
)
def create_center(data: CenterCreate, db: Session = Depends(get_db)):
    services = _resolve_services(db, data.service_ids)

    obj = DBCenters(
        **data.model_dump(exclude={"service_ids", "working_hours", "blackout_days"}),
        working_hours=json.dumps(data.working_hours),
    )
    obj.services = services
    obj.blackout_days = [DBBlackoutDays(date=d.isoformat()) for d in sorted(set(data.blackout_days))]
    db.add(obj)
    db.commit()
    db.refresh(obj)

    logger.info(f"Center created: id={obj.id}, name={obj.name}")
    return obj


@router.patch("/{id}", response_model=CenterRead, dependencies=[Depends(require_staff)])
def update_center(id: int, data: CenterUpdate, db: Session = Depends(get_db)):
    obj = get_center(db, id)

    changes = data.model_dump(exclude_unset=True)
    if "service_ids" in changes:
        obj.services = _resolve_services(db, changes.pop("service_ids"))
    if "working_hours" in changes:
        changes["working_hours"] = json.dumps(changes["working_hours"])

    for field, value in changes.items():
        setattr(obj, field, value)

    db.commit()
    db.refresh(obj)

    # Reconcile ledger when the slot set or capacity changes
    if SLOT_AFFECTING_FIELDS & changes.keys():
        results = reconcile_center(db, obj)
        logger.info(f"Center {id} configuration changed, reconciled {len(results)} dates")
        db.refresh(obj)

    return obj


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_staff)])
def delete_center(id: int, db: Session = Depends(get_db)):
    obj = get_center(db, id)

    active = db.scalar(
        select(func.count(DBAppointments.id)).where(
            DBAppointments.center_id == id,
            DBAppointments.status.in_(ACTIVE_STATUSES),
        )
    )
    if active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete center with {active} active appointments",
        )

    obj.is_active = False
    db.commit()
    logger.info(f"Center deactivated: id={id}")


# ── Blackout days ────────────────────────────────────────────────────────


@router.post(
    "/{id}/blackout-days",
    response_model=CenterRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_staff)],
)
def add_blackout_day(id: int, data: BlackoutDayCreate, db: Session = Depends(get_db)):
    obj = get_center(db, id)
    date_str = data.date.isoformat()

    existing = db.scalar(
        select(DBBlackoutDays).where(DBBlackoutDays.center_id == id, DBBlackoutDays.date == date_str)
    )
    if existing:
        existing.reason = data.reason
    else:
        db.add(DBBlackoutDays(center_id=id, date=date_str, reason=data.reason))
    db.commit()

    reconcile_slots(db, obj, data.date)
    db.refresh(obj)
    return obj


@router.delete(
    "/{id}/blackout-days/{blackout_date}",
    response_model=CenterRead,
    dependencies=[Depends(require_staff)],
)
def remove_blackout_day(id: int, blackout_date: date, db: Session = Depends(get_db)):
    obj = get_center(db, id)
    existing = db.scalar(
        select(DBBlackoutDays).where(
            DBBlackoutDays.center_id == id,
            DBBlackoutDays.date == blackout_date.isoformat(),
        )
    )
    if not existing:
        raise NotFoundError("Blackout day not found")

    db.delete(existing)
    db.commit()

    reconcile_slots(db, obj, blackout_date)
    db.refresh(obj)
    return obj
