# Overview: Service-layer operations for the booking lifecycle; state machine, inspection, refund, late fees.

"""
Booking Lifecycle Service

================================================================================
PURPOSE: Enforce Pending -> Confirmed -> Active -> Completed for rentals
================================================================================

STATE MACHINE:
    Pending -> Confirmed -> Active -> Completed

    Pending:   Requested, does NOT hold inventory
    Confirmed: Approved by an admin, holds inventory for its interval
    Active:    Equipment is out with the customer, still holds inventory
    Completed: Returned; no longer blocks availability, eligible for
               inspection and deposit refund
    Cancelled: Terminal status reserved for future use; no transition here
               produces it

SIDE EXITS (archival actions, not statuses):
    Reject: Pending | Confirmed | Active -> archived + removed
    Delete: any status -> archived + removed

RULES (NON-NEGOTIABLE):
1. Confirm re-checks capacity inside the same transaction that writes the
   status; if any implicated equipment would be oversubscribed the booking
   stays Pending and OversoldError is raised.
2. Repeating a transition into the state a booking is already in is a no-op
   success, so admin actions can be retried safely.
3. Deposit refund requires a completed inspection and happens at most once.

================================================================================
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Booking, Equipment, InspectionChecklist, PastBooking
from ..models.archive import ARCHIVE_ACTION_DELETED, ARCHIVE_ACTION_REJECTED
from ..models.bookings import (
    BOOKING_STATUS_ACTIVE,
    BOOKING_STATUS_COMPLETED,
    BOOKING_STATUS_CONFIRMED,
    BOOKING_STATUS_PENDING,
    BOOKING_STATUSES,
    PHYSICAL_CONDITIONS,
)
from rentals.errors import (
    AlreadyRefundedError,
    InvalidTransitionError,
    NotFoundError,
    OversoldError,
    ValidationError,
)
from rentals.time_utils import utcnow
from rentals.validation import coerce_choice, coerce_datetime, coerce_int, optional_text, require_text
from .archive_service import archive_booking
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .overlap_service import DateRange, booked_quantities, booking_demand


# Valid lifecycle states (must match models/bookings.py)
VALID_STATUSES = BOOKING_STATUSES

# Statuses a booking may be rejected from
REJECTABLE_STATUSES = frozenset({BOOKING_STATUS_PENDING, BOOKING_STATUS_CONFIRMED, BOOKING_STATUS_ACTIVE})

# Late fee policy, in cents
LATE_FEE_GRACE_MINUTES = 30
LATE_FEE_FIRST_HOUR_CENTS = 2_500
LATE_FEE_PER_EXTRA_HOUR_CENTS = 1_000
LATE_FEE_CAP_CENTS = 20_000


def validate_status(status: str) -> None:
    """
    Validate that a status value is one of the allowed states.

    Raises:
        ValidationError: If status is not in VALID_STATUSES
    """
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check if a stored-status transition is valid.

    Valid transitions:
    - Pending -> Confirmed
    - Confirmed -> Active
    - Active -> Completed
    - Any status -> itself (retried action, handled as a no-op)

    Rejection and deletion are not status transitions; see REJECTABLE_STATUSES
    and delete_booking.
    """
    validate_status(from_status)
    validate_status(to_status)

    if from_status == to_status:
        return True

    valid_transitions = {
        (BOOKING_STATUS_PENDING, BOOKING_STATUS_CONFIRMED),
        (BOOKING_STATUS_CONFIRMED, BOOKING_STATUS_ACTIVE),
        (BOOKING_STATUS_ACTIVE, BOOKING_STATUS_COMPLETED),
    }

    return (from_status, to_status) in valid_transitions


def _lock_booking(booking_id: int) -> Booking:
    booking = lock_for_update(db.session.query(Booking).filter_by(id=booking_id)).first()
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


def _require_transition(booking: Booking, to_status: str) -> None:
    if not can_transition(booking.status, to_status):
        raise InvalidTransitionError(
            f"Cannot move booking {booking.id} to '{to_status}': current status is '{booking.status}'",
            details={"booking_id": booking.id, "status": booking.status, "requested": to_status},
        )


def _ensure_capacity(booking: Booking) -> None:
    """
    Re-check every implicated equipment id under lock before confirming.

    Equipment rows are locked in id order so concurrent confirmations of
    bookings sharing equipment serialize instead of deadlocking. Non-Active
    equipment offers zero units.
    """
    demand = booking_demand(booking)
    if not demand:
        return

    ids = sorted(demand)
    equipment = {
        e.id: e
        for e in lock_for_update(
            db.session.query(Equipment).filter(Equipment.id.in_(ids)).order_by(Equipment.id)
        ).all()
    }
    booked = booked_quantities(
        ids,
        DateRange(booking.pickup_date, booking.return_date),
        exclude_booking_id=booking.id,
    )

    shortfalls = []
    for equipment_id in ids:
        item = equipment.get(equipment_id)
        if item is None:
            raise NotFoundError(f"Equipment {equipment_id} not found")
        total = item.quantity if item.is_active else 0
        if booked[equipment_id] + demand[equipment_id] > total:
            shortfalls.append({
                "equipment_id": equipment_id,
                "name": item.name,
                "status": item.status,
                "total": total,
                "booked": booked[equipment_id],
                "requested": demand[equipment_id],
            })

    if shortfalls:
        raise OversoldError(
            f"Cannot confirm booking {booking.id}: not enough units for the requested dates",
            details={"booking_id": booking.id, "items": shortfalls},
        )


def confirm_booking(booking_id: int, *, confirmed_by: str | None = None) -> Booking:
    """
    Confirm a Pending booking (Pending -> Confirmed).

    From this point the booking counts against inventory. Capacity is
    recomputed in the same transaction as the status write, so two racing
    confirmations cannot both take the last unit.

    Raises:
        NotFoundError: Booking not found
        InvalidTransitionError: Booking is past Confirmed (Active, Completed, Cancelled)
        OversoldError: Not enough units; booking stays Pending
    """
    def _op():
        begin_write_transaction()
        booking = _lock_booking(booking_id)

        if booking.status == BOOKING_STATUS_CONFIRMED:
            db.session.commit()
            return booking

        _require_transition(booking, BOOKING_STATUS_CONFIRMED)
        _ensure_capacity(booking)

        booking.status = BOOKING_STATUS_CONFIRMED
        booking.confirmed_at = utcnow()
        booking.confirmed_by = confirmed_by
        db.session.commit()
        return booking

    try:
        booking = run_with_retry(_op)
    except OversoldError as exc:
        current_app.logger.warning("Booking %s not confirmed: %s", booking_id, exc.details.get("items"))
        raise

    current_app.logger.info("Booking %s confirmed by %s", booking_id, confirmed_by)
    return booking


def start_rental(booking_id: int) -> Booking:
    """Hand equipment to the customer (Confirmed -> Active)."""
    def _op():
        begin_write_transaction()
        booking = _lock_booking(booking_id)
        if booking.status != BOOKING_STATUS_ACTIVE:
            _require_transition(booking, BOOKING_STATUS_ACTIVE)
            booking.status = BOOKING_STATUS_ACTIVE
        db.session.commit()
        return booking

    return run_with_retry(_op)


def minutes_late(scheduled_return: datetime, returned_at: datetime) -> int:
    """Whole minutes past the scheduled return time; early returns are 0."""
    seconds = (returned_at - scheduled_return).total_seconds()
    return max(0, int(seconds // 60))


def calculate_late_fee_cents(minutes: int) -> int:
    """
    Late fee for a return `minutes` past the scheduled time.

    - Up to 30 minutes: grace period, no fee
    - Up to the first hour: flat $25
    - Beyond that: $10 for every additional full hour
    - Capped at $200; anything beyond is billed at daily rates out of band
    """
    minutes = coerce_int(minutes, "minutes_late", minimum=0)
    if minutes <= LATE_FEE_GRACE_MINUTES:
        return 0
    fee = LATE_FEE_FIRST_HOUR_CENTS
    if minutes > 60:
        fee += LATE_FEE_PER_EXTRA_HOUR_CENTS * ((minutes - 60) // 60)
    return min(fee, LATE_FEE_CAP_CENTS)


def complete_rental(booking_id: int, *, returned_at=None) -> Booking:
    """
    Close out a rental (Active -> Completed).

    When returned_at is given the late fee is computed against the scheduled
    return time and stored on the booking.
    """
    returned = coerce_datetime(returned_at, "returned_at") if returned_at is not None else None

    def _op():
        begin_write_transaction()
        booking = _lock_booking(booking_id)
        if booking.status == BOOKING_STATUS_COMPLETED:
            db.session.commit()
            return booking

        _require_transition(booking, BOOKING_STATUS_COMPLETED)
        booking.status = BOOKING_STATUS_COMPLETED
        if returned is not None:
            booking.returned_at = returned
            booking.late_fee_cents = calculate_late_fee_cents(minutes_late(booking.return_date, returned))
        db.session.commit()
        return booking

    booking = run_with_retry(_op)
    if booking.late_fee_cents:
        current_app.logger.info("Booking %s completed with late fee %d cents", booking_id, booking.late_fee_cents)
    return booking


def reject_booking(booking_id: int, *, actor: str, reason: str | None = None) -> PastBooking:
    """
    Reject a booking that has not finished (Pending/Confirmed/Active).

    Archives and removes the booking, releasing any inventory it held.

    Raises:
        ValidationError: No actor given
        InvalidTransitionError: Booking is Completed or Cancelled
    """
    actor = require_text(actor, "actor", max_length=128)
    reason = optional_text(reason, "reason")
    return archive_booking(
        booking_id,
        ARCHIVE_ACTION_REJECTED,
        actor=actor,
        reason=reason,
        allowed_statuses=REJECTABLE_STATUSES,
    )


def delete_booking(booking_id: int, *, actor: str | None = None, reason: str | None = None) -> PastBooking:
    """Delete a booking in any status, archiving it first."""
    actor = optional_text(actor, "actor", max_length=128)
    reason = optional_text(reason, "reason")
    return archive_booking(booking_id, ARCHIVE_ACTION_DELETED, actor=actor, reason=reason)


def submit_inspection(
    booking_id: int,
    *,
    physical_condition: str,
    audio_test,
    accessory_count,
    notes: str | None = None,
    completed_by: str | None = None,
) -> InspectionChecklist:
    """
    Record the post-return inspection for a Completed booking.

    One checklist per booking: resubmitting updates it in place. Marks the
    booking inspection_completed, which unlocks the deposit refund.
    """
    physical_condition = coerce_choice(physical_condition, "physical_condition", PHYSICAL_CONDITIONS)
    if not isinstance(audio_test, bool):
        raise ValidationError("audio_test must be true or false")
    accessory_count = coerce_int(accessory_count, "accessory_count", minimum=0)
    notes = optional_text(notes, "notes", max_length=5000)
    completed_by = optional_text(completed_by, "completed_by", max_length=128)

    def _op():
        begin_write_transaction()
        booking = _lock_booking(booking_id)
        if booking.status != BOOKING_STATUS_COMPLETED:
            raise InvalidTransitionError(
                f"Cannot inspect booking {booking_id}: current status is '{booking.status}', must be 'Completed'",
                details={"booking_id": booking_id, "status": booking.status},
            )

        checklist = booking.inspection
        if checklist is None:
            checklist = InspectionChecklist(booking_id=booking.id)
            booking.inspection = checklist
        checklist.physical_condition = physical_condition
        checklist.audio_test = audio_test
        checklist.accessory_count = accessory_count
        checklist.notes = notes
        checklist.completed_by = completed_by
        checklist.completed_at = utcnow()

        booking.inspection_completed = True
        db.session.commit()
        return checklist

    return run_with_retry(_op)


def refund_deposit(booking_id: int, *, refunded_by: str | None = None) -> Booking:
    """
    Mark the deposit refunded once inspection is done.

    Payment processing is not integrated; this records the refund decision only.

    Raises:
        InvalidTransitionError: Inspection not completed yet
        AlreadyRefundedError: Deposit was already refunded
    """
    def _op():
        begin_write_transaction()
        booking = _lock_booking(booking_id)
        if not booking.inspection_completed:
            raise InvalidTransitionError(
                f"Inspection must be completed before refunding booking {booking_id}",
                details={"booking_id": booking_id, "status": booking.status},
            )
        if booking.deposit_refunded:
            raise AlreadyRefundedError(
                f"Deposit for booking {booking_id} was already refunded",
                details={"booking_id": booking_id},
            )
        booking.deposit_refunded = True
        db.session.commit()
        return booking

    booking = run_with_retry(_op)
    current_app.logger.info(
        "Deposit of %d cents refunded for booking %s by %s", booking.deposit_cents, booking_id, refunded_by
    )
    return booking
