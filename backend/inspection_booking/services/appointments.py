# backend/inspection_booking/services/appointments.py
"""
Appointment lifecycle.

    pending ──confirm──▶ confirmed
       │                    │
       └──cancel──▶ canceled ◀──cancel──┘
                       │
                       └──reactivate──▶ confirmed

pending/confirmed are active and occupy capacity. Appointments are never
deleted. There is no automatic expiry of pending bookings.

Occupancy bookkeeping (same transaction as the status change):
  create      → ledger +1, refused when an intersecting slot is full
  cancel      → ledger -1
  reactivate  → capacity re-checked, ledger +1 (same refusal)
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from redis import Redis
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import BookingError, ConflictError, NotFoundError, ValidationError
from ..models import ACTIVE_STATUSES, Appointments, Centers, ServiceTypes
from .booking_guard import BookingCandidate, ensure_capacity, free_seat, validate_booking
from .clock import from_storage, get_zone, local_day_bounds
from .events import appointment_payload, emit_event
from .reference import allocate_reference, is_valid_reference, reference_exists
from .slots.config import BookingConfig, get_booking_config
from .slots.ledger import adjust_occupancy, reconcile_slots, reserve_occupancy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerSnapshot:
    name: str
    phone: str
    vehicle_plate: str
    notes: Optional[str] = None


# ── Lookups ──────────────────────────────────────────────────────────────


def get_center(db: Session, center_id: int) -> Centers:
    center = db.get(Centers, center_id)
    if not center:
        raise NotFoundError("Center not found")
    return center


def get_service_type(db: Session, service_type_id: int) -> ServiceTypes:
    service_type = db.get(ServiceTypes, service_type_id)
    if not service_type:
        raise NotFoundError("Service not found")
    return service_type


def get_appointment(db: Session, appointment_id: int) -> Appointments:
    appointment = db.get(Appointments, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def get_appointment_by_reference(db: Session, code: str) -> Appointments:
    code = (code or "").strip().upper()
    if not is_valid_reference(code):
        raise ValidationError("Invalid reference format")

    appointment = db.scalar(select(Appointments).where(Appointments.reference == code))
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


# ── Create ───────────────────────────────────────────────────────────────


def create_appointment(
    db: Session,
    center_id: int,
    service_type_id: int,
    start,
    customer: CustomerSnapshot,
    now: Optional[datetime] = None,
    config: Optional[BookingConfig] = None,
    redis: Optional[Redis] = None,
) -> Appointments:
    """
    Book a slot in ``pending`` state.

    Flow:
    1. Conflict guard checks 1-6 (ValidationError)
    2. Capacity pre-check (ConflictError)
    3. Pick a free seat, allocate a reference code
    4. Insert appointment + ledger +1 in one transaction

    A concurrent booking that wins the same seat makes step 4 fail on the
    active-seat unique index; the transaction is rolled back and the
    attempt repeated against fresh data, ending in success or
    ConflictError.

    Bookings that overlap without sharing a start time never meet on that
    index. They are serialized by the conditional ledger increment in step
    4, which refuses once any intersecting slot is full.

    Raises:
        NotFoundError, ValidationError, ConflictError, ReferenceExhaustedError
    """
    config = config or get_booking_config()
    center = get_center(db, center_id)
    service_type = get_service_type(db, service_type_id)

    candidate = validate_booking(db, center, service_type, start, now=now, config=config)

    # every lost race means another booking took a seat
    attempts = center.capacity_per_slot + 1
    for attempt in range(1, attempts + 1):
        reference = None
        try:
            ensure_capacity(db, center, candidate.start_at, candidate.end_at)
            seat = free_seat(db, center, candidate.start_at)
            if seat is None:
                raise ConflictError()

            reference = allocate_reference(lambda code: reference_exists(db, code), config)
            appointment = _insert_appointment(db, center, candidate, customer, seat, reference)
        except IntegrityError:
            db.rollback()
            if reference and reference_exists(db, reference):
                logger.warning(f"Reference {reference} taken concurrently, retrying")
            else:
                logger.warning(
                    f"Lost booking race: center_id={center.id}, "
                    f"start={candidate.start_at.isoformat()}, attempt={attempt}"
                )
            continue
        except BookingError:
            db.rollback()
            raise

        logger.info(
            f"Appointment created: id={appointment.id}, reference={appointment.reference}, "
            f"center_id={center.id}, start={candidate.local_start.isoformat()}, seat={seat}"
        )
        emit_event("appointment_created", appointment_payload(appointment), redis=redis)
        return appointment

    logger.warning(f"Booking rejected after {attempts} attempts: center_id={center.id}")
    raise ConflictError()


def _insert_appointment(
    db: Session,
    center: Centers,
    candidate: BookingCandidate,
    customer: CustomerSnapshot,
    seat: int,
    reference: str,
) -> Appointments:
    # ledger rows must exist before the increment
    reconcile_slots(db, center, candidate.local_start.date(), commit=False)

    appointment = Appointments(
        reference=reference,
        customer_name=customer.name.strip(),
        customer_phone=customer.phone.strip(),
        vehicle_plate=customer.vehicle_plate.strip().upper(),
        customer_notes=customer.notes.strip() if customer.notes else None,
        center_id=center.id,
        service_type_id=candidate.service_type_id,
        start_at=candidate.start_at,
        end_at=candidate.end_at,
        seat=seat,
        status="pending",
    )
    db.add(appointment)
    db.flush()

    if not reserve_occupancy(db, center.id, candidate.start_at, candidate.end_at):
        raise ConflictError()
    db.commit()
    db.refresh(appointment)
    return appointment


# ── Staff transitions ────────────────────────────────────────────────────


def _compare_and_set(
    db: Session,
    appointment_id: int,
    allowed_from: tuple[str, ...],
    values: dict,
) -> bool:
    """Atomically change status only if the row is still in ``allowed_from``."""
    res = db.execute(
        update(Appointments)
        .where(Appointments.id == appointment_id, Appointments.status.in_(allowed_from))
        .values(updated_at=func.current_timestamp(), **values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def confirm_appointment(
    db: Session,
    appointment_id: int,
    redis: Optional[Redis] = None,
) -> Appointments:
    """pending → confirmed. Confirming a confirmed appointment is a no-op."""
    appointment = get_appointment(db, appointment_id)
    if appointment.status == "confirmed":
        return appointment
    if appointment.status == "canceled":
        raise ValidationError("Canceled appointments must be reactivated, not confirmed")

    if not _compare_and_set(db, appointment.id, ("pending",), {"status": "confirmed"}):
        db.rollback()
        raise ValidationError("Appointment status changed concurrently, reload and retry")
    db.commit()
    db.refresh(appointment)

    logger.info(f"Appointment confirmed: id={appointment.id}, reference={appointment.reference}")
    emit_event("appointment_confirmed", appointment_payload(appointment), redis=redis)
    return appointment


def cancel_appointment(
    db: Session,
    appointment_id: int,
    reason: Optional[str] = None,
    redis: Optional[Redis] = None,
) -> Appointments:
    """pending/confirmed → canceled, releasing ledger capacity."""
    appointment = get_appointment(db, appointment_id)
    if appointment.status == "canceled":
        return appointment

    if not _compare_and_set(
        db, appointment.id, ACTIVE_STATUSES,
        {"status": "canceled", "cancel_reason": reason},
    ):
        db.rollback()
        db.refresh(appointment)
        return appointment

    adjust_occupancy(db, appointment.center_id, appointment.start_at, appointment.end_at, -1)
    db.commit()
    db.refresh(appointment)

    logger.info(f"Appointment canceled: id={appointment.id}, reference={appointment.reference}")
    emit_event("appointment_canceled", appointment_payload(appointment), redis=redis)
    return appointment


def reactivate_appointment(
    db: Session,
    appointment_id: int,
    redis: Optional[Redis] = None,
) -> Appointments:
    """
    canceled → confirmed.

    The slot may have been re-booked since the cancellation, so capacity is
    checked again and a free seat claimed.

    Raises:
        ValidationError: appointment is not canceled
        ConflictError: the slot is full now
    """
    appointment = get_appointment(db, appointment_id)
    if appointment.status != "canceled":
        raise ValidationError(f"Only canceled appointments can be reactivated (status: {appointment.status})")

    center = get_center(db, appointment.center_id)
    try:
        ensure_capacity(db, center, appointment.start_at, appointment.end_at, exclude_id=appointment.id)
        seat = free_seat(db, center, appointment.start_at, exclude_id=appointment.id)
        if seat is None:
            raise ConflictError()

        local_date = from_storage(appointment.start_at, get_zone(center.timezone)).date()
        reconcile_slots(db, center, local_date, commit=False)

        if not _compare_and_set(
            db, appointment.id, ("canceled",),
            {"status": "confirmed", "seat": seat, "cancel_reason": None},
        ):
            raise ValidationError("Appointment status changed concurrently, reload and retry")

        if not reserve_occupancy(db, center.id, appointment.start_at, appointment.end_at):
            raise ConflictError()
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Reactivation lost seat race: id={appointment.id}")
        raise ConflictError() from None
    except BookingError:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info(f"Appointment reactivated: id={appointment.id}, reference={appointment.reference}")
    emit_event("appointment_reactivated", appointment_payload(appointment), redis=redis)
    return appointment


# ── Staff listing ────────────────────────────────────────────────────────


def list_appointments(
    db: Session,
    status: Optional[str] = None,
    target_date: Optional[date] = None,
    center_id: Optional[int] = None,
    timezone_name: str = "UTC",
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Appointments], int]:
    """
    Filtered, newest-first page of appointments.

    ``target_date`` is a local calendar day in the center's timezone when
    ``center_id`` is given, otherwise in ``timezone_name``.
    """
    query = select(Appointments)
    if status:
        query = query.where(Appointments.status == status)
    if center_id is not None:
        center = get_center(db, center_id)
        timezone_name = center.timezone
        query = query.where(Appointments.center_id == center_id)
    if target_date:
        day_start, day_end = local_day_bounds(target_date, get_zone(timezone_name))
        query = query.where(Appointments.start_at >= day_start, Appointments.start_at < day_end)

    total = db.scalar(select(func.count()).select_from(query.subquery())) or 0
    items = list(
        db.scalars(
            query.order_by(Appointments.start_at.desc(), Appointments.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    )
    return items, total
