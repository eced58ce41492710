# Overview: Service-layer operations for archiving terminated bookings.

"""
Booking Archival

WHY: Rejected and deleted bookings leave the active store but must stay
auditable. The archive copies names (customer, package, equipment, add-on)
at archive time instead of joining live catalog rows, so the record survives
later catalog deletions.

ATOMICITY (NON-NEGOTIABLE):
    Writing the PastBooking and deleting the Booking happen in ONE transaction.
    Either both commit or neither does; a failure surfaces ArchivalFailureError
    with the original booking left intact.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import String, cast, or_
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Booking, PastBooking, PastBookingItem
from ..models.archive import ARCHIVE_ACTIONS
from ..models.bookings import BOOKING_STATUSES
from rentals.errors import (
    ArchivalFailureError,
    InvalidTransitionError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from rentals.time_utils import utcnow
from rentals.validation import coerce_choice, coerce_int
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry


_ACTION_VERBS = {"deleted": "delete", "rejected": "reject"}


@dataclass(frozen=True)
class ItemSnapshot:
    equipment_id: int | None
    equipment_name: str | None
    add_on_id: int | None
    add_on_name: str | None
    quantity: int


@dataclass(frozen=True)
class BookingSnapshot:
    """Denormalized copy of a booking, taken inside the archive transaction."""
    booking_id: int
    status: str
    customer_id: int | None
    customer_name: str | None
    customer_email: str | None
    package_id: int | None
    package_name: str | None
    pickup_date: datetime
    return_date: datetime
    total_price_cents: int
    deposit_cents: int
    late_fee_cents: int
    delivery_option: str | None
    inspection_completed: bool
    deposit_refunded: bool
    created_at: datetime | None
    updated_at: datetime | None
    items: tuple[ItemSnapshot, ...]


def snapshot_booking(booking: Booking) -> BookingSnapshot:
    items = tuple(
        ItemSnapshot(
            equipment_id=item.equipment_id,
            equipment_name=item.equipment.name if item.equipment else None,
            add_on_id=item.add_on_id,
            add_on_name=item.add_on.name if item.add_on else None,
            quantity=item.quantity,
        )
        for item in booking.items
    )
    return BookingSnapshot(
        booking_id=booking.id,
        status=booking.status,
        customer_id=booking.customer_id,
        customer_name=booking.customer.name if booking.customer else None,
        customer_email=booking.customer.email if booking.customer else None,
        package_id=booking.package_id,
        package_name=booking.package.name if booking.package else None,
        pickup_date=booking.pickup_date,
        return_date=booking.return_date,
        total_price_cents=booking.total_price_cents,
        deposit_cents=booking.deposit_cents,
        late_fee_cents=booking.late_fee_cents,
        delivery_option=booking.delivery_option,
        inspection_completed=booking.inspection_completed,
        deposit_refunded=booking.deposit_refunded,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        items=items,
    )


def _past_booking_from_snapshot(
    snapshot: BookingSnapshot,
    *,
    action: str,
    actor: str | None,
    reason: str | None,
) -> PastBooking:
    past = PastBooking(
        original_booking_id=snapshot.booking_id,
        customer_id=snapshot.customer_id,
        customer_name=snapshot.customer_name,
        customer_email=snapshot.customer_email,
        package_id=snapshot.package_id,
        package_name=snapshot.package_name,
        pickup_date=snapshot.pickup_date,
        return_date=snapshot.return_date,
        total_price_cents=snapshot.total_price_cents,
        deposit_cents=snapshot.deposit_cents,
        late_fee_cents=snapshot.late_fee_cents,
        delivery_option=snapshot.delivery_option,
        inspection_completed=snapshot.inspection_completed,
        deposit_refunded=snapshot.deposit_refunded,
        original_status=snapshot.status,
        action=action,
        action_by=actor,
        action_reason=reason,
        created_at=snapshot.created_at,
        updated_at=snapshot.updated_at,
        archived_at=utcnow(),
    )
    past.items = [
        PastBookingItem(
            equipment_id=item.equipment_id,
            equipment_name=item.equipment_name,
            add_on_id=item.add_on_id,
            add_on_name=item.add_on_name,
            quantity=item.quantity,
        )
        for item in snapshot.items
    ]
    return past


def _delete_booking_row(booking: Booking) -> None:
    # ORM cascade removes booking items and the inspection checklist
    db.session.delete(booking)
    db.session.flush()


def archive_booking(
    booking_id: int,
    action: str,
    *,
    actor: str | None = None,
    reason: str | None = None,
    allowed_statuses: set[str] | frozenset[str] | None = None,
) -> PastBooking:
    """
    Move a booking into the archive and remove it from the active store.

    Args:
        booking_id: Booking to archive
        action: "deleted" or "rejected"
        actor: Who performed the action (audit)
        reason: Optional free-text reason
        allowed_statuses: If given, the booking's status must be one of these,
            checked under the same lock as the archive write

    Returns:
        The PastBooking. Repeating the same action on an already archived
        booking returns the existing archive record.

    Raises:
        NotFoundError: Booking does not exist and was never archived with this action
        InvalidTransitionError: Status not in allowed_statuses
        ArchivalFailureError: The archive+delete transaction could not commit
    """
    action = coerce_choice(action, "action", ARCHIVE_ACTIONS)

    def _op():
        begin_write_transaction()
        booking = lock_for_update(db.session.query(Booking).filter_by(id=booking_id)).first()

        if booking is None:
            existing = (
                PastBooking.query.filter_by(original_booking_id=booking_id, action=action)
                .order_by(PastBooking.id.desc())
                .first()
            )
            db.session.commit()
            if existing is None:
                raise NotFoundError(f"Booking {booking_id} not found")
            return existing

        if allowed_statuses is not None and booking.status not in allowed_statuses:
            raise InvalidTransitionError(
                f"Cannot {_ACTION_VERBS[action]} booking {booking_id}: "
                f"current status is '{booking.status}'",
                details={"booking_id": booking_id, "status": booking.status},
            )

        past = _past_booking_from_snapshot(
            snapshot_booking(booking),
            action=action,
            actor=actor,
            reason=reason,
        )
        db.session.add(past)
        db.session.flush()

        _delete_booking_row(booking)

        db.session.commit()
        return past

    try:
        past = run_with_retry(_op)
    except (StoreUnavailableError, SQLAlchemyError) as exc:
        current_app.logger.exception("Archival of booking %s failed", booking_id)
        raise ArchivalFailureError(
            f"Could not archive booking {booking_id}; the booking was left unchanged",
            details={"booking_id": booking_id, "action": action},
        ) from exc

    current_app.logger.info(
        "Booking %s archived as %s by %s (past_booking=%s)", booking_id, action, actor, past.id
    )
    return past


def get_past_booking(past_booking_id: int) -> PastBooking:
    past = db.session.get(PastBooking, past_booking_id)
    if past is None:
        raise NotFoundError(f"Past booking {past_booking_id} not found")
    return past


def list_past_bookings(
    *,
    q: str | None = None,
    action: str | None = None,
    original_status: str | None = None,
    page=1,
    limit=50,
) -> dict:
    """
    Archive listing, newest first.

    q matches (case-insensitive) the original booking id, package name, or any
    archived equipment/add-on name.
    """
    page = coerce_int(page, "page", minimum=1)
    limit = coerce_int(limit, "limit", minimum=1, maximum=200)
    if action:
        action = coerce_choice(action, "action", ARCHIVE_ACTIONS)
    if original_status:
        original_status = coerce_choice(original_status, "status", BOOKING_STATUSES)

    query = PastBooking.query
    if action:
        query = query.filter(PastBooking.action == action)
    if original_status:
        query = query.filter(PastBooking.original_status == original_status)

    if q is not None and q.strip():
        if len(q) > 255:
            raise ValidationError("q exceeds max length 255")
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(
            cast(PastBooking.original_booking_id, String).ilike(pattern),
            PastBooking.package_name.ilike(pattern),
            PastBooking.customer_name.ilike(pattern),
            PastBooking.items.any(or_(
                PastBookingItem.equipment_name.ilike(pattern),
                PastBookingItem.add_on_name.ilike(pattern),
            )),
        ))

    total = query.count()
    rows = (
        query.order_by(PastBooking.archived_at.desc(), PastBooking.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "past_bookings": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }
