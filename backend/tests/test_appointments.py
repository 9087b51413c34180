"""Appointment lifecycle, ledger bookkeeping and reference codes."""
import json
from itertools import cycle

import pytest

from inspection_booking.errors import (
    ConflictError,
    NotFoundError,
    ReferenceExhaustedError,
    ValidationError,
)
from inspection_booking.services.appointments import (
    CustomerSnapshot,
    cancel_appointment,
    confirm_appointment,
    create_appointment,
    get_appointment_by_reference,
    list_appointments,
    reactivate_appointment,
)
from inspection_booking.services.events import EVENTS_QUEUE
from inspection_booking.services.reference import (
    allocate_reference,
    generate_reference_code,
    is_valid_reference,
)
from inspection_booking.services.reports import daily_report
from inspection_booking.services.slots import BookingConfig, list_slots

from .conftest import MONDAY, NOW

CUSTOMER = CustomerSnapshot(name="Salma B.", phone="+212612345678", vehicle_plate="12345-a-6")
START = "2030-01-07T08:00:00Z"


def _book(db, center, service, start=START, **kwargs):
    return create_appointment(db, center.id, service.id, start, CUSTOMER, now=NOW, **kwargs)


def _slot(db, center, start_time="08:00"):
    return next(s for s in list_slots(db, center.id, MONDAY) if s.start_time == start_time)


class TestCreate:

    def test_creates_pending_and_takes_capacity(self, db, center, service, fake_redis):
        appointment = _book(db, center, service)

        assert appointment.status == "pending"
        assert is_valid_reference(appointment.reference)
        assert appointment.vehicle_plate == "12345-A-6"
        assert appointment.seat == 0
        assert _slot(db, center).taken_count == 1

        event = json.loads(fake_redis.lpop(EVENTS_QUEUE))
        assert event["type"] == "appointment_created"
        assert event["reference"] == appointment.reference

    def test_fills_capacity_then_conflicts(self, db, center, service, fake_redis):
        first = _book(db, center, service)
        second = _book(db, center, service)
        assert {first.seat, second.seat} == {0, 1}

        slot = _slot(db, center)
        assert (slot.taken_count, slot.available, slot.status) == (2, False, "booked")

        with pytest.raises(ConflictError):
            _book(db, center, service)

    def test_validation_errors_are_not_conflicts(self, db, center, service, fake_redis):
        with pytest.raises(ValidationError):
            _book(db, center, service, start="2030-01-07T12:00:00Z")

    def test_unknown_center(self, db, service, fake_redis):
        with pytest.raises(NotFoundError):
            create_appointment(db, 999, service.id, START, CUSTOMER, now=NOW)

    def test_event_failure_does_not_fail_booking(self, db, center, service):
        from redis import Redis

        broken = Redis(host="127.0.0.1", port=1, socket_connect_timeout=0.1)
        appointment = _book(db, center, service, redis=broken)
        assert appointment.id is not None


class TestTransitions:

    def test_confirm_keeps_occupancy(self, db, center, service, fake_redis):
        appointment = _book(db, center, service)
        confirmed = confirm_appointment(db, appointment.id)

        assert confirmed.status == "confirmed"
        assert _slot(db, center).taken_count == 1
        # second confirm is a no-op
        assert confirm_appointment(db, appointment.id).status == "confirmed"

    def test_cancel_releases_capacity(self, db, center, service, fake_redis):
        first = _book(db, center, service)
        _book(db, center, service)

        canceled = cancel_appointment(db, first.id, reason="Customer called")
        assert canceled.status == "canceled"
        assert canceled.cancel_reason == "Customer called"

        slot = _slot(db, center)
        assert (slot.taken_count, slot.available) == (1, True)

        # canceling twice does not release twice
        cancel_appointment(db, first.id)
        assert _slot(db, center).taken_count == 1

        # the freed seat can be booked again
        third = _book(db, center, service)
        assert third.seat == first.seat

    def test_confirm_canceled_is_rejected(self, db, center, service, fake_redis):
        appointment = _book(db, center, service)
        cancel_appointment(db, appointment.id)
        with pytest.raises(ValidationError):
            confirm_appointment(db, appointment.id)

    def test_reactivate_when_room(self, db, center, service, fake_redis):
        appointment = _book(db, center, service)
        cancel_appointment(db, appointment.id)

        reactivated = reactivate_appointment(db, appointment.id)
        assert reactivated.status == "confirmed"
        assert reactivated.cancel_reason is None
        assert _slot(db, center).taken_count == 1

    def test_reactivate_into_full_slot_conflicts(self, db, center, service, fake_redis):
        appointment = _book(db, center, service)
        cancel_appointment(db, appointment.id)
        _book(db, center, service)
        _book(db, center, service)

        with pytest.raises(ConflictError):
            reactivate_appointment(db, appointment.id)

        db.refresh(appointment)
        assert appointment.status == "canceled"
        assert _slot(db, center).taken_count == 2

    def test_reactivate_active_is_rejected(self, db, center, service, fake_redis):
        appointment = _book(db, center, service)
        with pytest.raises(ValidationError):
            reactivate_appointment(db, appointment.id)

    def test_events_for_each_transition(self, db, center, service, fake_redis):
        appointment = _book(db, center, service)
        confirm_appointment(db, appointment.id)
        cancel_appointment(db, appointment.id)
        reactivate_appointment(db, appointment.id)

        types = [json.loads(raw)["type"] for raw in fake_redis.lrange(EVENTS_QUEUE, 0, -1)]
        assert types == [
            "appointment_created",
            "appointment_confirmed",
            "appointment_canceled",
            "appointment_reactivated",
        ]


class TestLookupAndListing:

    def test_lookup_by_reference_is_case_insensitive(self, db, center, service, fake_redis):
        appointment = _book(db, center, service)
        found = get_appointment_by_reference(db, appointment.reference.lower())
        assert found.id == appointment.id

    def test_lookup_bad_format(self, db):
        with pytest.raises(ValidationError):
            get_appointment_by_reference(db, "abc")

    def test_lookup_unknown(self, db):
        with pytest.raises(NotFoundError):
            get_appointment_by_reference(db, "ZZZZZZ")

    def test_list_filters_and_pages(self, db, center, service, fake_redis):
        a = _book(db, center, service)
        _book(db, center, service, start="2030-01-07T08:20:00Z")
        _book(db, center, service, start="2030-01-07T08:40:00Z")
        confirm_appointment(db, a.id)

        items, total = list_appointments(db, status="pending", center_id=center.id)
        assert total == 2

        items, total = list_appointments(db, target_date=MONDAY, page=2, limit=2)
        assert total == 3
        assert len(items) == 1
        assert items[0].start_at.minute == 0

    def test_daily_report_lists_confirmed_only(self, db, center, service, fake_redis):
        a = _book(db, center, service)
        _book(db, center, service, start="2030-01-07T09:00:00Z")
        confirm_appointment(db, a.id)

        report = daily_report(db, MONDAY)
        assert report["summary"]["total_appointments"] == 1
        assert report["centers"][0]["appointments"][0]["reference"] == a.reference
        assert report["centers"][0]["total_minutes"] == 20


class TestReferences:

    def test_format(self):
        for _ in range(100):
            code = generate_reference_code()
            assert len(code) == 6
            assert is_valid_reference(code)

    def test_retries_on_collision(self):
        codes = iter(["AAAAAA", "AAAAAA", "BBBBBB"])
        taken = {"AAAAAA"}
        assert allocate_reference(taken.__contains__, generator=lambda: next(codes)) == "BBBBBB"

    def test_gives_up_after_max_attempts(self):
        config = BookingConfig(reference_max_attempts=3)
        with pytest.raises(ReferenceExhaustedError):
            allocate_reference(lambda code: True, config, generator=cycle(["AAAAAA"]).__next__)

    def test_ten_thousand_allocations_are_unique(self):
        taken: set[str] = set()
        for _ in range(10_000):
            taken.add(allocate_reference(taken.__contains__))
        assert len(taken) == 10_000
