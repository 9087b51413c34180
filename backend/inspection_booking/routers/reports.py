# backend/inspection_booking/routers/reports.py

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..security import require_staff
from ..services.reports import daily_report

router = APIRouter(prefix="/reports", tags=["reports"], dependencies=[Depends(require_staff)])


@router.get("/daily")
def get_daily_report(
    target_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
):
    """Confirmed appointments per active center for one local date."""
    return daily_report(db, target_date)
