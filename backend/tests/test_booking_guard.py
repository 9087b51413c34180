"""Conflict guard: validation order, working hours with grace, capacity."""
from datetime import datetime, timedelta, timezone

import pytest

from inspection_booking.errors import ConflictError, ValidationError
from inspection_booking.models import BlackoutDays, ServiceTypes
from inspection_booking.services.booking_guard import (
    count_active_overlaps,
    ensure_capacity,
    parse_start,
    validate_booking,
    within_working_hours,
)
from inspection_booking.services.clock import get_zone
from inspection_booking.services.slots import reconcile_slots, set_slot_blocked

from .conftest import MONDAY, NOW

UTC = get_zone("UTC")


def _local(hour, minute=0, day=MONDAY):
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)


class TestWorkingHoursRule:
    INTERVALS = [("08:00", "12:00")]

    def test_start_at_interval_open(self):
        assert within_working_hours(self.INTERVALS, _local(8), _local(8, 20), 60)

    def test_start_at_interval_close_is_rejected(self):
        assert not within_working_hours(self.INTERVALS, _local(12), _local(12, 20), 60)

    def test_end_inside_grace(self):
        assert within_working_hours(self.INTERVALS, _local(11, 50), _local(13, 0), 60)

    def test_end_beyond_grace(self):
        assert not within_working_hours(self.INTERVALS, _local(11, 50), _local(13, 10), 60)

    def test_end_after_midnight_compares_clock_time(self):
        intervals = [("22:00", "23:59")]
        start = _local(23, 50)
        end = start + timedelta(minutes=20)
        assert within_working_hours(intervals, start, end, 60)

    def test_second_interval(self):
        intervals = [("08:00", "12:00"), ("14:00", "18:00")]
        assert not within_working_hours(intervals, _local(13), _local(13, 20), 60)
        assert within_working_hours(intervals, _local(14), _local(14, 20), 60)


class TestParseStart:

    def test_naive_is_center_local(self):
        tz = get_zone("Europe/Paris")
        parsed = parse_start("2030-01-07T08:00:00", tz)
        assert parsed.astimezone(timezone.utc).hour == 7

    def test_z_suffix_is_utc(self):
        parsed = parse_start("2030-01-07T08:00:00Z", UTC)
        assert parsed.utcoffset() == timedelta(0)

    def test_garbage_is_validation_error(self):
        with pytest.raises(ValidationError):
            parse_start("next monday", UTC)


class TestValidateBooking:

    def test_valid_candidate(self, db, center, service):
        candidate = validate_booking(db, center, service, "2030-01-07T08:00:00Z", now=NOW)
        assert candidate.start_at == datetime(2030, 1, 7, 8, 0)
        assert candidate.end_at == datetime(2030, 1, 7, 8, 20)

    def test_past_start(self, db, center, service):
        with pytest.raises(ValidationError, match="future"):
            validate_booking(db, center, service, "2030-01-07T08:00:00Z",
                             now=datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc))

    def test_service_not_offered(self, db, center):
        other = ServiceTypes(name="Gas installation check", is_active=True)
        db.add(other)
        db.commit()
        with pytest.raises(ValidationError, match="Service not available"):
            validate_booking(db, center, other, "2030-01-07T08:00:00Z", now=NOW)

    def test_closed_weekday(self, db, center, service):
        with pytest.raises(ValidationError, match="closed on this day"):
            validate_booking(db, center, service, "2030-01-08T08:00:00Z", now=NOW)

    def test_blackout_day(self, db, center, service):
        db.add(BlackoutDays(center_id=center.id, date=MONDAY.isoformat()))
        db.commit()
        with pytest.raises(ValidationError, match="blackout"):
            validate_booking(db, center, service, "2030-01-07T08:00:00Z", now=NOW)

    def test_outside_hours_message(self, db, center, service):
        with pytest.raises(ValidationError) as exc:
            validate_booking(db, center, service, "2030-01-07T07:40:00Z", now=NOW)
        assert "Requested: 07:40-08:00" in exc.value.message
        assert "Available: 08:00-12:00" in exc.value.message

    def test_blocked_slot(self, db, center, service):
        reconcile_slots(db, center, MONDAY)
        set_slot_blocked(db, center.id, MONDAY, "08:00", True)
        with pytest.raises(ValidationError, match="closed by the center"):
            validate_booking(db, center, service, "2030-01-07T08:00:00Z", now=NOW)
        validate_booking(db, center, service, "2030-01-07T08:20:00Z", now=NOW)

    def test_inactive_center(self, db, center, service):
        center.is_active = False
        db.commit()
        with pytest.raises(ValidationError):
            validate_booking(db, center, service, "2030-01-07T08:00:00Z", now=NOW)

    def test_working_hours_use_center_timezone(self, db, make_center, service):
        paris = make_center(tz="Europe/Paris", name="Paris Est")
        # 07:00 UTC is 08:00 in Paris
        candidate = validate_booking(db, paris, service, "2030-01-07T07:00:00Z", now=NOW)
        assert candidate.local_start.hour == 8
        with pytest.raises(ValidationError):
            validate_booking(db, paris, service, "2030-01-07T06:40:00Z", now=NOW)


class TestCapacity:

    def _book(self, db, center, service, ref, seat=0, status="pending"):
        from inspection_booking.models import Appointments

        db.add(Appointments(
            reference=ref,
            customer_name="Youssef",
            customer_phone="0612345678",
            vehicle_plate="9876-B-1",
            center_id=center.id,
            service_type_id=service.id,
            start_at=datetime(2030, 1, 7, 8, 0),
            end_at=datetime(2030, 1, 7, 8, 20),
            seat=seat,
            status=status,
        ))
        db.commit()

    def test_below_capacity_passes(self, db, center, service):
        self._book(db, center, service, "AAAAA1")
        ensure_capacity(db, center, datetime(2030, 1, 7, 8, 0), datetime(2030, 1, 7, 8, 20))

    def test_full_slot_raises_conflict_with_existing_times(self, db, center, service):
        self._book(db, center, service, "AAAAA1", seat=0)
        self._book(db, center, service, "AAAAA2", seat=1)
        with pytest.raises(ConflictError) as exc:
            ensure_capacity(db, center, datetime(2030, 1, 7, 8, 0), datetime(2030, 1, 7, 8, 20))
        body = exc.value.to_dict()
        assert body["kind"] == "conflict"
        assert body["conflict"]["existing_start"].startswith("2030-01-07T08:00")
        assert "reference" not in body["conflict"]

    def test_canceled_do_not_count(self, db, center, service):
        self._book(db, center, service, "AAAAA1", status="canceled")
        self._book(db, center, service, "AAAAA2", status="canceled")
        assert count_active_overlaps(db, center.id, datetime(2030, 1, 7, 8, 0), datetime(2030, 1, 7, 8, 20)) == 0

    def test_adjacent_slots_do_not_overlap(self, db, center, service):
        self._book(db, center, service, "AAAAA1")
        assert count_active_overlaps(db, center.id, datetime(2030, 1, 7, 8, 20), datetime(2030, 1, 7, 8, 40)) == 0
