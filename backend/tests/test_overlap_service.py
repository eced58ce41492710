"""
Overlap calculation tests.

Committed units are derived from holding bookings (Confirmed, Active) whose
closed, day-granular interval intersects the query range.
"""

from datetime import datetime

import pytest

from rentals.errors import ValidationError
from rentals.services.overlap_service import (
    DateRange,
    booked_quantities,
    booked_quantity,
    booking_demand,
)


def _range(start, end):
    return DateRange.from_values(start, end)


class TestDateRange:
    def test_same_day_range_is_valid(self):
        r = _range("2026-07-04", "2026-07-04")
        assert r.start == r.end == datetime(2026, 7, 4)
        assert r.window_start == datetime(2026, 7, 4)
        assert r.window_end == datetime(2026, 7, 5)

    def test_start_after_end_rejected(self):
        with pytest.raises(ValidationError):
            _range("2026-07-05", "2026-07-04")

    def test_missing_dates_rejected(self):
        with pytest.raises(ValidationError):
            DateRange.from_values(None, "2026-07-04")
        with pytest.raises(ValidationError):
            DateRange.from_values("2026-07-04", "")

    def test_garbage_date_rejected(self):
        with pytest.raises(ValidationError):
            _range("next tuesday", "2026-07-04")

    def test_offsets_normalized_to_utc(self):
        r = _range("2026-07-04T01:00:00+02:00", "2026-07-04T12:00:00Z")
        assert r.start == datetime(2026, 7, 3, 23, 0)

    def test_single_day_truncates_time(self):
        r = DateRange.single_day("2026-07-04T15:30:00Z")
        assert r.start == r.end == datetime(2026, 7, 4)


class TestIntervalOverlap:
    def test_touching_on_return_day_conflicts(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        make_booking("2026-07-03", "2026-07-05", equipment=[speaker])

        assert booked_quantity(speaker.id, _range("2026-07-05", "2026-07-06")) == 1

    def test_touching_on_pickup_day_conflicts(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        make_booking("2026-07-03", "2026-07-05", equipment=[speaker])

        assert booked_quantity(speaker.id, _range("2026-07-01", "2026-07-03")) == 1

    def test_disjoint_ranges_do_not_conflict(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        make_booking("2026-07-03", "2026-07-05", equipment=[speaker])

        assert booked_quantity(speaker.id, _range("2026-07-06", "2026-07-08")) == 0
        assert booked_quantity(speaker.id, _range("2026-06-28", "2026-07-02")) == 0

    def test_enclosing_and_enclosed_ranges_conflict(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=2)
        make_booking("2026-07-03", "2026-07-05", equipment=[speaker])

        assert booked_quantity(speaker.id, _range("2026-07-01", "2026-07-10")) == 1
        assert booked_quantity(speaker.id, _range("2026-07-04", "2026-07-04")) == 1

    def test_comparison_is_by_calendar_day(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        make_booking(
            datetime(2026, 7, 3, 18, 0),
            datetime(2026, 7, 5, 10, 0),
            equipment=[speaker],
        )

        # Evening of the return day still collides with a morning return
        assert booked_quantity(speaker.id, _range("2026-07-05T20:00:00Z", "2026-07-06")) == 1
        # Midnight-start query on the pickup day collides with an evening pickup
        assert booked_quantity(speaker.id, _range("2026-07-01", "2026-07-03T00:00:00Z")) == 1


class TestHoldingStatuses:
    @pytest.mark.parametrize("status, expected", [
        ("Pending", 0),
        ("Confirmed", 1),
        ("Active", 1),
        ("Completed", 0),
        ("Cancelled", 0),
    ])
    def test_only_confirmed_and_active_hold(self, make_equipment, make_booking, status, expected):
        speaker = make_equipment(quantity=3)
        make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status=status)

        assert booked_quantity(speaker.id, _range("2026-07-04", "2026-07-04")) == expected

    def test_quantities_sum_across_bookings(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=10)
        make_booking("2026-07-03", "2026-07-05", equipment=[(speaker, 2)])
        make_booking("2026-07-04", "2026-07-06", equipment=[(speaker, 3)], status="Active")
        make_booking("2026-07-04", "2026-07-04", equipment=[(speaker, 4)], status="Pending")

        assert booked_quantity(speaker.id, _range("2026-07-04", "2026-07-04")) == 5

    def test_exclude_booking(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=3)
        first = make_booking("2026-07-03", "2026-07-05", equipment=[speaker])
        make_booking("2026-07-03", "2026-07-05", equipment=[speaker])

        r = _range("2026-07-03", "2026-07-05")
        assert booked_quantity(speaker.id, r) == 2
        assert booked_quantity(speaker.id, r, exclude_booking_id=first.id) == 1


class TestPackageExpansion:
    def test_each_occurrence_counts_one_unit(self, make_equipment, make_package, make_booking):
        speaker = make_equipment(name="JBL 15\" EON Speaker", quantity=4)
        mic = make_equipment(name="Shure SM58 Microphone", quantity=8, category="Microphone")
        package = make_package([speaker, speaker, mic])
        make_booking("2026-07-03", "2026-07-05", package=package)

        booked = booked_quantities([speaker.id, mic.id], _range("2026-07-04", "2026-07-04"))
        assert booked == {speaker.id: 2, mic.id: 1}

    def test_package_and_explicit_items_add_up(self, make_equipment, make_package, make_booking):
        speaker = make_equipment(quantity=4)
        package = make_package([speaker])
        make_booking("2026-07-03", "2026-07-05", package=package, equipment=[(speaker, 2)])

        assert booked_quantity(speaker.id, _range("2026-07-04", "2026-07-04")) == 3

    def test_pending_package_holds_nothing(self, make_equipment, make_package, make_booking):
        speaker = make_equipment(quantity=4)
        package = make_package([speaker, speaker])
        make_booking("2026-07-03", "2026-07-05", package=package, status="Pending")

        assert booked_quantity(speaker.id, _range("2026-07-04", "2026-07-04")) == 0

    def test_unrequested_ids_are_ignored(self, make_equipment, make_package, make_booking):
        speaker = make_equipment(quantity=4)
        mixer = make_equipment(name="Yamaha MG10XU Mixer", quantity=2, category="Mixer")
        package = make_package([speaker, mixer])
        make_booking("2026-07-03", "2026-07-05", package=package)

        assert booked_quantities([mixer.id], _range("2026-07-04", "2026-07-04")) == {mixer.id: 1}


class TestBookingDemand:
    def test_items_plus_package_excluding_add_ons(
        self, make_equipment, make_package, make_add_on, make_booking
    ):
        speaker = make_equipment(quantity=4)
        mic = make_equipment(name="Shure SM58 Microphone", quantity=8, category="Microphone")
        stands = make_add_on()
        package = make_package([speaker, mic, mic])
        booking = make_booking(
            "2026-07-03", "2026-07-05",
            equipment=[(speaker, 2)],
            package=package,
            add_ons=[stands],
            status="Pending",
        )

        assert booking_demand(booking) == {speaker.id: 3, mic.id: 2}

    def test_empty_ids_short_circuit(self):
        assert booked_quantities([], _range("2026-07-04", "2026-07-04")) == {}
