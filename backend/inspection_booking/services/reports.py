# backend/inspection_booking/services/reports.py
"""
Daily report: confirmed appointments per active center for one local date.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Appointments, Centers
from .clock import from_storage, get_zone, local_day_bounds


def daily_report(db: Session, target_date: date) -> dict:
    centers = db.scalars(
        select(Centers).where(Centers.is_active.is_(True)).order_by(Centers.name)
    ).all()

    report = []
    total = 0
    for center in centers:
        tz = get_zone(center.timezone)
        day_start, day_end = local_day_bounds(target_date, tz)
        appointments = db.scalars(
            select(Appointments)
            .where(
                Appointments.center_id == center.id,
                Appointments.status == "confirmed",
                Appointments.start_at >= day_start,
                Appointments.start_at < day_end,
            )
            .order_by(Appointments.start_at)
        ).all()

        total += len(appointments)
        report.append({
            "center": {
                "id": center.id,
                "name": center.name,
                "city": center.city,
                "address": center.address,
            },
            "appointments": [
                {
                    "id": a.id,
                    "reference": a.reference,
                    "customer_name": a.customer_name,
                    "vehicle_plate": a.vehicle_plate,
                    "service": a.service_type.name if a.service_type else None,
                    "start": from_storage(a.start_at, tz).isoformat(),
                    "end": from_storage(a.end_at, tz).isoformat(),
                }
                for a in appointments
            ],
            "total_appointments": len(appointments),
            "total_minutes": sum(
                int((a.end_at - a.start_at).total_seconds() // 60) for a in appointments
            ),
        })

    return {
        "date": target_date.isoformat(),
        "summary": {
            "total_centers": len(centers),
            "total_appointments": total,
        },
        "centers": report,
    }
