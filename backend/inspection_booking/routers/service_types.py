# backend/inspection_booking/routers/service_types.py
# DELETE refused while appointments reference the service

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Appointments as DBAppointments
from ..models import ServiceTypes as DBServiceTypes
from ..schemas.service_types import ServiceTypeCreate, ServiceTypeRead, ServiceTypeUpdate
from ..security import require_staff
from ..services.appointments import get_service_type

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/service-types", tags=["service-types"])


def _commit_unique_name(db: Session, name: str | None) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Service type '{name}' already exists",
        ) from None


@router.get("/", response_model=list[ServiceTypeRead])
def list_service_types(db: Session = Depends(get_db)):
    return db.scalars(
        select(DBServiceTypes).where(DBServiceTypes.is_active.is_(True)).order_by(DBServiceTypes.name)
    ).all()


@router.get("/{id}", response_model=ServiceTypeRead)
def get_service_type_detail(id: int, db: Session = Depends(get_db)):
    return get_service_type(db, id)


@router.post(
    "/",
    response_model=ServiceTypeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_staff)],
)
def create_service_type(data: ServiceTypeCreate, db: Session = Depends(get_db)):
    obj = DBServiceTypes(**data.model_dump())
    db.add(obj)
    _commit_unique_name(db, data.name)
    db.refresh(obj)
    logger.info(f"Service type created: id={obj.id}, name={obj.name}")
    return obj


@router.patch("/{id}", response_model=ServiceTypeRead, dependencies=[Depends(require_staff)])
def update_service_type(id: int, data: ServiceTypeUpdate, db: Session = Depends(get_db)):
    obj = get_service_type(db, id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(obj, field, value)
    _commit_unique_name(db, data.name)
    db.refresh(obj)
    return obj


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_staff)])
def delete_service_type(id: int, db: Session = Depends(get_db)):
    obj = get_service_type(db, id)

    used = db.scalar(
        select(func.count(DBAppointments.id)).where(DBAppointments.service_type_id == id)
    )
    if used:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete service type used by {used} appointments, deactivate it instead",
        )

    db.delete(obj)
    db.commit()
    logger.info(f"Service type deleted: id={id}")
