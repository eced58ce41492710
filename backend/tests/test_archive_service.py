"""
Archival tests: rejected/deleted bookings move to PastBooking atomically and
keep their names after catalog changes.
"""

import pytest
from sqlalchemy.exc import SQLAlchemyError

from rentals.errors import ArchivalFailureError, NotFoundError, ValidationError
from rentals.extensions import db
from rentals.models import Booking, BookingItem, Equipment, PastBooking, PastBookingItem
from rentals.services import archive_service, booking_service, lifecycle_service


class TestRejectArchives:
    def test_reject_moves_booking_to_archive(self, db_session, make_equipment, make_package, make_add_on, make_booking):
        speaker = make_equipment(name='JBL 10" EON Speaker', quantity=2)
        stands = make_add_on(name="Speaker Stands")
        package = make_package([speaker], name="Backyard Bash")
        booking = make_booking(
            "2026-07-03", "2026-07-05",
            equipment=[(speaker, 2)],
            package=package,
            add_ons=[stands],
            status="Confirmed",
        )
        booking_id = booking.id

        past = lifecycle_service.reject_booking(booking_id, actor="ops", reason="damaged")

        with pytest.raises(NotFoundError):
            booking_service.get_booking(booking_id)
        assert db_session.query(BookingItem).filter_by(booking_id=booking_id).count() == 0

        assert past.original_booking_id == booking_id
        assert past.action == "rejected"
        assert past.action_reason == "damaged"
        assert past.action_by == "ops"
        assert past.original_status == "Confirmed"
        assert past.package_name == "Backyard Bash"
        assert past.customer_email == "dana@example.com"
        names = sorted((i.equipment_name or i.add_on_name, i.quantity) for i in past.items)
        assert names == [('JBL 10" EON Speaker', 2), ("Speaker Stands", 1)]

    def test_names_survive_catalog_deletion(self, db_session, make_equipment, make_booking):
        speaker = make_equipment(name="Shure SM58 Microphone", quantity=2)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Pending")

        past = lifecycle_service.reject_booking(booking.id, actor="ops", reason="damaged")
        past_id = past.id

        db_session.delete(db_session.get(Equipment, speaker.id))
        db_session.commit()
        db_session.expire_all()

        stored = archive_service.get_past_booking(past_id)
        assert stored.items[0].equipment_name == "Shure SM58 Microphone"
        assert stored.items[0].equipment_id == speaker.id

    def test_repeat_reject_returns_existing_record(self, db_session, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Pending")

        first = lifecycle_service.reject_booking(booking.id, actor="ops")
        second = lifecycle_service.reject_booking(booking.id, actor="ops")

        assert first.id == second.id
        assert db_session.query(PastBooking).count() == 1

    def test_delete_after_reject_is_not_found(self, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Pending")
        lifecycle_service.reject_booking(booking.id, actor="ops")

        with pytest.raises(NotFoundError):
            lifecycle_service.delete_booking(booking.id, actor="ops")

    def test_unknown_action_rejected(self, db_session):
        with pytest.raises(ValidationError):
            archive_service.archive_booking(1, "shredded")


class TestArchiveAtomicity:
    def test_failed_delete_leaves_booking_intact(self, db_session, monkeypatch, make_equipment, make_booking):
        speaker = make_equipment(quantity=1)
        booking = make_booking("2026-07-03", "2026-07-05", equipment=[speaker], status="Confirmed")
        booking_id = booking.id

        def _boom(_booking):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(archive_service, "_delete_booking_row", _boom)

        with pytest.raises(ArchivalFailureError) as exc_info:
            lifecycle_service.reject_booking(booking_id, actor="ops", reason="damaged")

        assert exc_info.value.details["booking_id"] == booking_id
        db_session.expire_all()
        assert db_session.get(Booking, booking_id).status == "Confirmed"
        assert db_session.query(BookingItem).filter_by(booking_id=booking_id).count() == 1
        assert db_session.query(PastBooking).count() == 0
        assert db_session.query(PastBookingItem).count() == 0


class TestPastBookingListing:
    def _archive_three(self, make_equipment, make_package, make_booking):
        mixer = make_equipment(name="Yamaha MG10XU Mixer", quantity=3, category="Mixer")
        package = make_package([mixer], name="Grand Event")
        a = make_booking("2026-07-01", "2026-07-02", equipment=[mixer], status="Pending")
        b = make_booking("2026-07-03", "2026-07-04", package=package, status="Confirmed")
        c = make_booking("2026-07-05", "2026-07-06", equipment=[mixer], status="Completed")
        lifecycle_service.reject_booking(a.id, actor="ops", reason="no stock")
        lifecycle_service.reject_booking(b.id, actor="ops")
        lifecycle_service.delete_booking(c.id, actor="ops")
        return a, b, c

    def test_newest_first_with_pagination(self, make_equipment, make_package, make_booking):
        a, b, c = self._archive_three(make_equipment, make_package, make_booking)

        result = archive_service.list_past_bookings(limit=2)

        assert [p.original_booking_id for p in result["past_bookings"]] == [c.id, b.id]
        assert result["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}

    def test_filter_by_action_and_status(self, make_equipment, make_package, make_booking):
        a, b, c = self._archive_three(make_equipment, make_package, make_booking)

        rejected = archive_service.list_past_bookings(action="rejected")
        assert {p.original_booking_id for p in rejected["past_bookings"]} == {a.id, b.id}

        confirmed = archive_service.list_past_bookings(original_status="Confirmed")
        assert [p.original_booking_id for p in confirmed["past_bookings"]] == [b.id]

    def test_search_by_item_and_package_name(self, make_equipment, make_package, make_booking):
        a, b, c = self._archive_three(make_equipment, make_package, make_booking)

        by_item = archive_service.list_past_bookings(q="mg10xu")
        assert {p.original_booking_id for p in by_item["past_bookings"]} == {a.id, c.id}

        by_package = archive_service.list_past_bookings(q="grand")
        assert [p.original_booking_id for p in by_package["past_bookings"]] == [b.id]

    def test_bad_paging_rejected(self, db_session):
        with pytest.raises(ValidationError):
            archive_service.list_past_bookings(page=0)
