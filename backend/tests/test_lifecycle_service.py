"""
Booking lifecycle tests.

Covers the confirm-time capacity re-check, the Pending -> Confirmed -> Active
-> Completed state machine, late fees, and the inspection/refund gate.
"""

from datetime import datetime

import pytest

from rentals.errors import (
    AlreadyRefundedError,
    InvalidTransitionError,
    NotFoundError,
    OversoldError,
    ValidationError,
)
from rentals.extensions import db
from rentals.models import Booking
from rentals.services import lifecycle_service
from rentals.services.lifecycle_service import calculate_late_fee_cents, can_transition
from rentals.services.overlap_service import DateRange, booked_quantity


def _range(start, end):
    return DateRange.from_values(start, end)


class TestStateMachine:
    @pytest.mark.parametrize("from_status, to_status, allowed", [
        ("Pending", "Confirmed", True),
        ("Confirmed", "Active", True),
        ("Active", "Completed", True),
        ("Confirmed", "Confirmed", True),
        ("Pending", "Active", False),
        ("Pending", "Completed", False),
        ("Completed", "Active", False),
        ("Cancelled", "Confirmed", False),
    ])
    def test_can_transition(self, from_status, to_status, allowed):
        assert can_transition(from_status, to_status) is allowed

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            can_transition("Pending", "Shipped")


class TestConfirm:
    def test_confirm_holds_inventory(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Pending")

        confirmed = lifecycle_service.confirm_booking(booking.id, confirmed_by="ops@sonic.test")

        assert confirmed.status == "Confirmed"
        assert confirmed.confirmed_by == "ops@sonic.test"
        assert confirmed.confirmed_at is not None
        assert booked_quantity(speaker.id, _range("2026-07-04", "2026-07-04")) == 1

    def test_confirm_twice_is_noop(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Pending")

        lifecycle_service.confirm_booking(booking.id)
        again = lifecycle_service.confirm_booking(booking.id)

        assert again.status == "Confirmed"
        assert booked_quantity(speaker.id, _range("2026-07-03", "2026-07-05")) == 1

    def test_oversold_leaves_booking_pending(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        make_booking("2026-07-02", "2026-07-05", equipment=[speaker])
        booking = make_booking("2026-07-05", "2026-07-08", equipment=[speaker], status="Pending")

        with pytest.raises(OversoldError) as exc_info:
            lifecycle_service.confirm_booking(booking.id)

        items = exc_info.value.details["items"]
        assert items == [{
            "equipment_id": speaker.id,
            "name": speaker.name,
            "status": "Active",
            "total": 1,
            "booked": 1,
            "requested": 1,
        }]
        assert db.session.get(Booking, booking.id).status == "Pending"

    def test_non_touching_booking_confirms(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        make_booking("2026-07-02", "2026-07-05", equipment=[speaker])
        booking = make_booking("2026-07-06", "2026-07-09", equipment=[speaker], status="Pending")

        assert lifecycle_service.confirm_booking(booking.id).status == "Confirmed"

    def test_package_demand_checked(self, make_equipment, make_package, make_booking):
        speaker = make_equipment(quantity=3)
        mic = make_equipment(name="Shure SM58 Microphone", quantity=8, category="Microphone")
        package = make_package([speaker, speaker, mic])
        make_booking("2026-07-03", "2026-07-05", package=package)
        booking = make_booking("2026-07-04", "2026-07-04", package=package, status="Pending")

        with pytest.raises(OversoldError) as exc_info:
            lifecycle_service.confirm_booking(booking.id)

        short = {item["equipment_id"]: item for item in exc_info.value.details["items"]}
        assert set(short) == {speaker.id}
        assert short[speaker.id]["booked"] == 2
        assert short[speaker.id]["requested"] == 2

    def test_completed_booking_frees_units(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Completed")
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Pending")

        assert lifecycle_service.confirm_booking(booking.id).status == "Confirmed"

    def test_equipment_in_repair_offers_no_units(self, db_session, make_equipment, make_booking):
        speaker = make_equipment(quantity=2)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Pending")
        speaker.status = "InRepair"
        db_session.commit()

        with pytest.raises(OversoldError) as exc_info:
            lifecycle_service.confirm_booking(booking.id)
        assert exc_info.value.details["items"][0]["total"] == 0

    def test_sequential_confirms_stop_at_quantity(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=2)
        bookings = [
            make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Pending")
            for _ in range(4)
        ]

        outcomes = []
        for booking in bookings:
            try:
                lifecycle_service.confirm_booking(booking.id)
                outcomes.append("ok")
            except OversoldError:
                outcomes.append("oversold")

        assert outcomes == ["ok", "ok", "oversold", "oversold"]
        statuses = [db.session.get(Booking, b.id).status for b in bookings]
        assert statuses == ["Confirmed", "Confirmed", "Pending", "Pending"]

    def test_confirm_missing_booking(self, db_session):
        with pytest.raises(NotFoundError):
            lifecycle_service.confirm_booking(98765)

    def test_confirm_active_booking_is_invalid(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Active")

        with pytest.raises(InvalidTransitionError):
            lifecycle_service.confirm_booking(booking.id)


class TestStartAndComplete:
    def test_full_rental_flow(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Pending")

        lifecycle_service.confirm_booking(booking.id)
        assert lifecycle_service.start_rental(booking.id).status == "Active"
        assert booked_quantity(speaker.id, _range("2026-07-04", "2026-07-04")) == 1

        done = lifecycle_service.complete_rental(booking.id)
        assert done.status == "Completed"
        assert done.late_fee_cents == 0
        assert booked_quantity(speaker.id, _range("2026-07-04", "2026-07-04")) == 0

    def test_start_is_idempotent(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Active")
        assert lifecycle_service.start_rental(booking.id).status == "Active"

    def test_start_pending_is_invalid(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Pending")

        with pytest.raises(InvalidTransitionError):
            lifecycle_service.start_rental(booking.id)
        assert db.session.get(Booking, booking.id).status == "Pending"

    def test_complete_confirmed_is_invalid(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker])

        with pytest.raises(InvalidTransitionError):
            lifecycle_service.complete_rental(booking.id)

    def test_late_return_records_fee(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking(
            datetime(2026, 7, 3, 10, 0),
            datetime(2026, 7, 5, 18, 0),
            equipment=[speaker],
            status="Active",
        )

        done = lifecycle_service.complete_rental(booking.id, returned_at="2026-07-05T21:00:00Z")

        assert done.returned_at == datetime(2026, 7, 5, 21, 0)
        assert done.late_fee_cents == 4500

    def test_early_return_no_fee(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking(
            datetime(2026, 7, 3, 10, 0),
            datetime(2026, 7, 5, 18, 0),
            equipment=[speaker],
            status="Active",
        )

        done = lifecycle_service.complete_rental(booking.id, returned_at="2026-07-05T12:00:00Z")
        assert done.late_fee_cents == 0


class TestLateFee:
    @pytest.mark.parametrize("minutes, cents", [
        (0, 0),
        (25, 0),
        (30, 0),
        (31, 2500),
        (60, 2500),
        (90, 2500),
        (120, 3500),
        (180, 4500),
        (600, 11500),
        (1500, 20000),
        (100_000, 20000),
    ])
    def test_fee_schedule(self, minutes, cents):
        assert calculate_late_fee_cents(minutes) == cents

    def test_negative_minutes_rejected(self):
        with pytest.raises(ValidationError):
            calculate_late_fee_cents(-5)


class TestInspectionAndRefund:
    def _completed(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        return make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Completed")

    def _inspect(self, booking_id, **overrides):
        kwargs = {
            "physical_condition": "Good",
            "audio_test": True,
            "accessory_count": 4,
            "notes": "All cables returned",
        }
        kwargs.update(overrides)
        return lifecycle_service.submit_inspection(booking_id, **kwargs)

    def test_refund_requires_inspection(self, make_equipment, make_booking):
        booking = self._completed(make_equipment, make_booking)

        with pytest.raises(InvalidTransitionError):
            lifecycle_service.refund_deposit(booking.id)

    def test_refund_exactly_once(self, make_equipment, make_booking):
        booking = self._completed(make_equipment, make_booking)
        self._inspect(booking.id)

        refunded = lifecycle_service.refund_deposit(booking.id, refunded_by="ops")
        assert refunded.deposit_refunded is True

        with pytest.raises(AlreadyRefundedError):
            lifecycle_service.refund_deposit(booking.id)

    def test_inspection_marks_booking(self, make_equipment, make_booking):
        booking = self._completed(make_equipment, make_booking)

        checklist = self._inspect(booking.id, completed_by="sam")

        assert checklist.physical_condition == "Good"
        assert checklist.completed_by == "sam"
        assert db.session.get(Booking, booking.id).inspection_completed is True

    def test_resubmitting_updates_checklist(self, make_equipment, make_booking):
        booking = self._completed(make_equipment, make_booking)

        first = self._inspect(booking.id)
        second = self._inspect(booking.id, physical_condition="Damaged", accessory_count=3)

        assert first.id == second.id
        assert second.physical_condition == "Damaged"
        assert second.accessory_count == 3

    def test_inspection_before_return_is_invalid(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Active")

        with pytest.raises(InvalidTransitionError):
            self._inspect(booking.id)

    @pytest.mark.parametrize("overrides", [
        {"physical_condition": "Shiny"},
        {"audio_test": "yes"},
        {"accessory_count": -1},
        {"accessory_count": None},
    ])
    def test_inspection_validation(self, make_equipment, make_booking, overrides):
        booking = self._completed(make_equipment, make_booking)

        with pytest.raises(ValidationError):
            self._inspect(booking.id, **overrides)
        assert db.session.get(Booking, booking.id).inspection_completed is False


class TestRejectAndDelete:
    def test_reject_requires_actor(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Pending")

        with pytest.raises(ValidationError):
            lifecycle_service.reject_booking(booking.id, actor="  ")

    @pytest.mark.parametrize("status", ["Completed", "Cancelled"])
    def test_reject_finished_booking_is_invalid(self, make_equipment, make_booking, status):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status=status)

        with pytest.raises(InvalidTransitionError):
            lifecycle_service.reject_booking(booking.id, actor="ops")
        assert db.session.get(Booking, booking.id) is not None

    def test_reject_releases_inventory(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        held = make_booking("2026-07-03", "2026-07-05", equipment=[speaker])
        waiting = make_booking("2026-07-04", "2026-07-06", equipment=[speaker], status="Pending")

        with pytest.raises(OversoldError):
            lifecycle_service.confirm_booking(waiting.id)

        lifecycle_service.reject_booking(held.id, actor="ops", reason="customer cancelled")
        assert lifecycle_service.confirm_booking(waiting.id).status == "Confirmed"

    def test_delete_completed_booking(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Completed")

        past = lifecycle_service.delete_booking(booking.id, actor="ops")

        assert past.action == "deleted"
        assert past.original_status == "Completed"
        assert db.session.get(Booking, booking.id) is None
