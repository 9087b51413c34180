# backend/inspection_booking/routers/slots.py
"""
Slots API endpoints.

GET  /slots/calendar   - per-day open slot counts for a center (public)
POST /slots/reconcile  - rebuild one ledger date (staff)
POST /slots/generate   - materialize a date range (staff)
POST /slots/block      - take one slot out of booking (staff)
POST /slots/unblock    - put it back (staff)
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.slots import (
    CalendarResponse,
    GenerateResponse,
    ReconcileResponse,
    SlotBlockRequest,
    SlotStateResponse,
)
from ..security import require_staff
from ..services.appointments import get_center
from ..services.slots import (
    get_calendar,
    get_booking_config,
    reconcile_date_range,
    reconcile_slots,
    set_slot_blocked,
)

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/calendar", response_model=CalendarResponse)
def get_slots_calendar(
    center_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
):
    """Calendar of bookable days, clamped to [today, today + horizon]."""
    center = get_center(db, center_id)
    return get_calendar(db, center, start_date, end_date)


@router.post("/reconcile", response_model=ReconcileResponse, dependencies=[Depends(require_staff)])
def reconcile_day(
    center_id: int,
    target_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
):
    center = get_center(db, center_id)
    result = reconcile_slots(db, center, target_date)
    return ReconcileResponse(
        center_id=center.id,
        date=target_date,
        created=result.created,
        updated=result.updated,
        removed=result.removed,
    )


@router.post("/generate", response_model=GenerateResponse, dependencies=[Depends(require_staff)])
def generate_range(
    center_id: int,
    start_date: date,
    end_date: date,
    db: Session = Depends(get_db),
):
    config = get_booking_config()
    if abs((end_date - start_date).days) > config.horizon_days:
        raise HTTPException(
            status_code=400,
            detail=f"Range cannot exceed {config.horizon_days} days",
        )

    center = get_center(db, center_id)
    results = reconcile_date_range(db, center, start_date, end_date)
    return GenerateResponse(
        center_id=center.id,
        start_date=min(start_date, end_date),
        end_date=max(start_date, end_date),
        days=len(results),
        created=sum(r.created for r in results),
        updated=sum(r.updated for r in results),
        removed=sum(r.removed for r in results),
    )


def _set_blocked(db: Session, data: SlotBlockRequest, blocked: bool):
    center = get_center(db, data.center_id)
    reconcile_slots(db, center, data.date)

    row = set_slot_blocked(db, center.id, data.date, data.start_time, blocked)
    if row is None:
        raise HTTPException(status_code=404, detail="Slot not found")
    return row


@router.post("/block", response_model=SlotStateResponse, dependencies=[Depends(require_staff)])
def block_slot(data: SlotBlockRequest, db: Session = Depends(get_db)):
    return _set_blocked(db, data, True)


@router.post("/unblock", response_model=SlotStateResponse, dependencies=[Depends(require_staff)])
def unblock_slot(data: SlotBlockRequest, db: Session = Depends(get_db)):
    return _set_blocked(db, data, False)
