"""Slot ledger: materialization, reconciliation and occupancy."""
import json
from datetime import datetime, timedelta

from inspection_booking.models import Appointments, BlackoutDays
from inspection_booking.services.slots import (
    adjust_occupancy,
    list_slots,
    reconcile_center,
    reconcile_slots,
    reserve_occupancy,
    set_slot_blocked,
)

from .conftest import MONDAY


def _slot_range(slot):
    return slot.start_at, slot.end_at


class TestReconcile:

    def test_first_reconcile_materializes_day(self, db, center):
        result = reconcile_slots(db, center, MONDAY)
        slots = list_slots(db, center.id, MONDAY)

        assert result.created == 12
        assert len(slots) == 12
        assert [s.start_time for s in slots][:3] == ["08:00", "08:20", "08:40"]
        assert all(s.capacity == 2 and s.taken_count == 0 and s.available for s in slots)

    def test_reconcile_is_idempotent(self, db, center):
        reconcile_slots(db, center, MONDAY)
        again = reconcile_slots(db, center, MONDAY)

        assert not again.changed
        assert len(list_slots(db, center.id, MONDAY)) == 12

    def test_closed_day_has_no_rows(self, db, center):
        tuesday = MONDAY.replace(day=8)
        result = reconcile_slots(db, center, tuesday)
        assert result.created == 0
        assert list_slots(db, center.id, tuesday) == []

    def test_blackout_day_removes_rows(self, db, center):
        reconcile_slots(db, center, MONDAY)
        db.add(BlackoutDays(center_id=center.id, date=MONDAY.isoformat(), reason="Holiday"))
        db.commit()

        result = reconcile_slots(db, center, MONDAY)
        assert result.removed == 12
        assert list_slots(db, center.id, MONDAY) == []

    def test_shorter_hours_remove_slots_and_keep_counts(self, db, center):
        reconcile_slots(db, center, MONDAY)
        first = list_slots(db, center.id, MONDAY)[0]
        adjust_occupancy(db, center.id, *_slot_range(first), +1)
        db.commit()

        center.working_hours = json.dumps({"mon": [{"start": "08:00", "end": "10:00"}]})
        db.commit()
        results = reconcile_center(db, center, from_date=MONDAY)

        slots = list_slots(db, center.id, MONDAY)
        assert results[0].removed == 6
        assert len(slots) == 6
        assert slots[0].taken_count == 1

    def test_capacity_change_updates_rows(self, db, center):
        reconcile_slots(db, center, MONDAY)
        first = list_slots(db, center.id, MONDAY)[0]
        adjust_occupancy(db, center.id, *_slot_range(first), +1)
        db.commit()

        center.capacity_per_slot = 1
        db.commit()
        result = reconcile_slots(db, center, MONDAY)

        slots = list_slots(db, center.id, MONDAY)
        assert result.updated == 12
        assert slots[0].capacity == 1
        assert slots[0].status == "booked"
        assert not slots[0].available
        assert slots[1].available

    def test_new_rows_are_seeded_from_appointments(self, db, center, service):
        start = datetime(2030, 1, 7, 8, 20)
        for seat, ref in enumerate(["AAAAAA", "BBBBBB"]):
            db.add(Appointments(
                reference=ref,
                customer_name="Amal",
                customer_phone="+212600000000",
                vehicle_plate="12345-A-6",
                center_id=center.id,
                service_type_id=service.id,
                start_at=start,
                end_at=datetime(2030, 1, 7, 8, 40),
                seat=seat,
                status="pending",
            ))
        db.commit()

        reconcile_slots(db, center, MONDAY)
        slot = next(s for s in list_slots(db, center.id, MONDAY) if s.start_time == "08:20")
        assert slot.taken_count == 2
        assert slot.status == "booked"
        assert not slot.available


class TestOccupancy:

    def test_increment_to_capacity_and_back(self, db, center):
        reconcile_slots(db, center, MONDAY)
        slot = list_slots(db, center.id, MONDAY)[0]
        bounds = _slot_range(slot)

        assert adjust_occupancy(db, center.id, *bounds, +1) == 1
        adjust_occupancy(db, center.id, *bounds, +1)
        db.commit()
        db.refresh(slot)
        assert (slot.taken_count, slot.available, slot.status) == (2, False, "booked")

        adjust_occupancy(db, center.id, *bounds, -1)
        db.commit()
        db.refresh(slot)
        assert (slot.taken_count, slot.available, slot.status) == (1, True, "available")

    def test_reserve_refuses_when_any_intersecting_row_is_full(self, db, center):
        center.capacity_per_slot = 1
        db.commit()
        reconcile_slots(db, center, MONDAY)
        first, second = list_slots(db, center.id, MONDAY)[:2]

        assert reserve_occupancy(db, center.id, *_slot_range(first))
        db.commit()

        # 08:10-08:30 spans the full 08:00 row and the free 08:20 row
        assert not reserve_occupancy(db, center.id, first.start_at + timedelta(minutes=10), second.end_at - timedelta(minutes=10))
        db.rollback()

        db.refresh(second)
        assert second.taken_count == 0
        assert reserve_occupancy(db, center.id, *_slot_range(second))
        db.commit()

    def test_decrement_clamps_at_zero(self, db, center):
        reconcile_slots(db, center, MONDAY)
        slot = list_slots(db, center.id, MONDAY)[0]

        adjust_occupancy(db, center.id, *_slot_range(slot), -1)
        db.commit()
        db.refresh(slot)
        assert slot.taken_count == 0

    def test_blocked_slot_stays_blocked(self, db, center):
        reconcile_slots(db, center, MONDAY)
        blocked = set_slot_blocked(db, center.id, MONDAY, "08:00", True)
        assert (blocked.available, blocked.status) == (False, "blocked")

        adjust_occupancy(db, center.id, blocked.start_at, blocked.end_at, +1)
        db.commit()
        db.refresh(blocked)
        assert blocked.status == "blocked"
        assert blocked.taken_count == 1

        unblocked = set_slot_blocked(db, center.id, MONDAY, "08:00", False)
        assert (unblocked.available, unblocked.status) == (True, "available")

        # reconcile keeps the block
        set_slot_blocked(db, center.id, MONDAY, "08:00", True)
        reconcile_slots(db, center, MONDAY)
        assert list_slots(db, center.id, MONDAY)[0].status == "blocked"

    def test_blocking_unknown_slot_returns_none(self, db, center):
        assert set_slot_blocked(db, center.id, MONDAY, "07:00", True) is None
