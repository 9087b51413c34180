# backend/inspection_booking/services/slots/ledger.py
"""
Slot ledger: persisted per-(center, date, start_time) occupancy rows.

Row: center_id, date "YYYY-MM-DD", start_time "HH:MM", start_at/end_at
(UTC), capacity, taken_count, available, status.

The appointments table is the source of truth for capacity. The ledger is a
rebuildable cache, and its conditional increment is the write-time gate for
bookings that overlap without sharing a start time. Rows are kept in step by:
  - reconcile_slots(): schedule/capacity changes, first read of a date
  - reserve_occupancy(): +1 per booking, refused when a row is full
  - adjust_occupancy(): -1 per cancellation

Duplicates are impossible: (center_id, date, start_time) is unique and rows
are inserted with ON CONFLICT DO NOTHING, so concurrent reconciles of the
same date converge on one row set.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import case, false, func, select, update
from sqlalchemy.orm import Session

from ...models import BlackoutDays, Centers, Slots
from ..clock import get_zone, to_storage
from ..working_hours import center_schedule, day_intervals
from .generator import GeneratedSlot, generate_slots

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    center_id: int
    date: str
    created: int = 0
    updated: int = 0
    removed: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.created or self.updated or self.removed)


# ── Slot set for a date ──────────────────────────────────────────────────


def is_blackout_day(db: Session, center_id: int, target_date: date) -> bool:
    return db.scalar(
        select(BlackoutDays.id).where(
            BlackoutDays.center_id == center_id,
            BlackoutDays.date == target_date.isoformat(),
        )
    ) is not None


def is_blocked(db: Session, center_id: int, start_at: datetime, end_at: datetime) -> bool:
    """Whether staff blocked any ledger slot intersecting [start_at, end_at)."""
    return db.scalar(
        select(Slots.id).where(
            Slots.center_id == center_id,
            Slots.start_at < end_at,
            Slots.end_at > start_at,
            Slots.status == "blocked",
        )
    ) is not None


def expected_slots(db: Session, center: Centers, target_date: date) -> list[GeneratedSlot]:
    """Slots the center's current configuration produces for ``target_date``."""
    if is_blackout_day(db, center.id, target_date):
        return []
    intervals = day_intervals(center_schedule(center), target_date)
    return generate_slots(
        intervals,
        center.slot_duration_minutes,
        target_date,
        get_zone(center.timezone),
    )


def _derive_state(taken: int, capacity: int, status: str) -> tuple[bool, str]:
    if status == "blocked":
        return False, "blocked"
    if taken < capacity:
        return True, "available"
    return False, "booked"


# ── Reconcile ────────────────────────────────────────────────────────────


def reconcile_slots(
    db: Session,
    center: Centers,
    target_date: date,
    commit: bool = True,
) -> ReconcileResult:
    """
    Bring the ledger rows of (center, date) in line with the configuration.

    - missing slots are inserted (occupancy seeded from live appointments)
    - kept slots get the current capacity and end time; taken_count is kept
    - slots no longer produced by the working hours are deleted

    Idempotent: a second call with unchanged configuration changes nothing.
    """
    from ..booking_guard import count_active_overlaps

    date_str = target_date.isoformat()
    result = ReconcileResult(center_id=center.id, date=date_str)

    generated = expected_slots(db, center, target_date)
    wanted = {gs.start_time: gs for gs in generated}

    existing = {
        row.start_time: row
        for row in db.scalars(
            select(Slots).where(Slots.center_id == center.id, Slots.date == date_str)
        )
    }

    # Step 1: update kept rows in place
    for start_time, row in existing.items():
        gs = wanted.get(start_time)
        if gs is None:
            continue
        start_at, end_at = to_storage(gs.start_at), to_storage(gs.end_at)
        if (
            row.capacity == center.capacity_per_slot
            and row.end_time == gs.end_time
            and row.start_at == start_at
            and row.end_at == end_at
        ):
            continue
        row.capacity = center.capacity_per_slot
        row.end_time = gs.end_time
        row.start_at = start_at
        row.end_at = end_at
        row.available, row.status = _derive_state(row.taken_count, row.capacity, row.status)
        result.updated += 1

    # Step 2: delete rows outside the working hours
    for start_time, row in existing.items():
        if start_time not in wanted:
            db.delete(row)
            result.removed += 1

    db.flush()

    # Step 3: insert missing rows
    rows = []
    for start_time, gs in wanted.items():
        if start_time in existing:
            continue
        start_at, end_at = to_storage(gs.start_at), to_storage(gs.end_at)
        taken = count_active_overlaps(db, center.id, start_at, end_at)
        available, status = _derive_state(taken, center.capacity_per_slot, "available")
        rows.append({
            "center_id": center.id,
            "date": date_str,
            "start_time": gs.start_time,
            "end_time": gs.end_time,
            "start_at": start_at,
            "end_at": end_at,
            "capacity": center.capacity_per_slot,
            "taken_count": taken,
            "available": available,
            "status": status,
        })
    if rows:
        result.created = _insert_ignore(db, rows)

    if commit:
        db.commit()

    if result.changed:
        logger.info(
            f"Slots reconciled: center_id={center.id}, date={date_str}, "
            f"created={result.created}, updated={result.updated}, removed={result.removed}"
        )
    return result


def _insert_ignore(db: Session, rows: list[dict]) -> int:
    """Insert ledger rows, skipping any that a concurrent caller already created."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Unsupported database dialect for slot ledger: {dialect}")

    stmt = insert(Slots).values(rows).on_conflict_do_nothing(
        index_elements=["center_id", "date", "start_time"]
    )
    res = db.execute(stmt)
    return max(res.rowcount or 0, 0)


# ── Occupancy ────────────────────────────────────────────────────────────


def _intersecting(center_id: int, start_at: datetime, end_at: datetime):
    return (
        Slots.center_id == center_id,
        Slots.start_at < end_at,
        Slots.end_at > start_at,
    )


def _occupancy_values(new_taken) -> dict:
    """taken_count plus the available/status derived from it; blocked stays blocked."""
    return {
        "taken_count": new_taken,
        "available": case(
            (Slots.status == "blocked", false()),
            else_=new_taken < Slots.capacity,
        ),
        "status": case(
            (Slots.status == "blocked", "blocked"),
            (new_taken < Slots.capacity, "available"),
            else_="booked",
        ),
    }


def adjust_occupancy(
    db: Session,
    center_id: int,
    start_at: datetime,
    end_at: datetime,
    delta: int,
) -> int:
    """
    Add ``delta`` to taken_count of every row intersecting [start_at, end_at).

    Single UPDATE evaluated by the database, so concurrent callers never
    lose increments. Decrements clamp at zero.

    Args:
        start_at / end_at: naive UTC

    Returns:
        Number of ledger rows touched.
    """
    new_taken = case(
        (Slots.taken_count + delta < 0, 0),
        else_=Slots.taken_count + delta,
    )
    res = db.execute(
        update(Slots)
        .where(*_intersecting(center_id, start_at, end_at))
        .values(**_occupancy_values(new_taken))
        .execution_options(synchronize_session=False)
    )
    return res.rowcount or 0


def reserve_occupancy(
    db: Session,
    center_id: int,
    start_at: datetime,
    end_at: datetime,
) -> bool:
    """
    Take one unit of capacity on every row intersecting [start_at, end_at).

    Only rows with taken_count < capacity are incremented. Returns False
    when any intersecting row was already full; the caller must roll back
    the partial increment. The UPDATE holds the write lock, so the row count
    read after it is consistent with the increment.
    """
    res = db.execute(
        update(Slots)
        .where(
            *_intersecting(center_id, start_at, end_at),
            Slots.taken_count < Slots.capacity,
        )
        .values(**_occupancy_values(Slots.taken_count + 1))
        .execution_options(synchronize_session=False)
    )
    total = db.scalar(
        select(func.count(Slots.id)).where(*_intersecting(center_id, start_at, end_at))
    ) or 0
    return (res.rowcount or 0) == total


# ── Read ─────────────────────────────────────────────────────────────────


def list_slots(db: Session, center_id: int, target_date: date) -> list[Slots]:
    """Ledger rows for (center, date) ordered by start time."""
    return list(
        db.scalars(
            select(Slots)
            .where(Slots.center_id == center_id, Slots.date == target_date.isoformat())
            .order_by(Slots.start_time)
        )
    )


def materialized_dates(db: Session, center_id: int, from_date: date) -> list[date]:
    """Dates from ``from_date`` on that already have ledger rows."""
    rows = db.scalars(
        select(Slots.date)
        .where(Slots.center_id == center_id, Slots.date >= from_date.isoformat())
        .distinct()
        .order_by(Slots.date)
    )
    return [date.fromisoformat(d) for d in rows]


# ── Staff blocking ───────────────────────────────────────────────────────


def set_slot_blocked(
    db: Session,
    center_id: int,
    target_date: date,
    start_time: str,
    blocked: bool,
) -> Slots | None:
    """Block or unblock one ledger row. Returns None if the row does not exist."""
    row = db.scalar(
        select(Slots).where(
            Slots.center_id == center_id,
            Slots.date == target_date.isoformat(),
            Slots.start_time == start_time,
        )
    )
    if row is None:
        return None

    status = "blocked" if blocked else "available"
    row.available, row.status = _derive_state(row.taken_count, row.capacity, status)
    db.commit()
    db.refresh(row)

    logger.info(
        f"Slot {'blocked' if blocked else 'unblocked'}: center_id={center_id}, "
        f"date={target_date.isoformat()}, start_time={start_time}"
    )
    return row
