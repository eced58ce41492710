# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/rentals/routes/admin.py
"""
Admin routes for running the rental business.

Provides endpoints for:
- Booking lifecycle (confirm, start, complete, reject, delete)
- Post-return inspection and deposit refund
- Inventory availability snapshot and unit counts
- Calendar feed
- Archived (past) bookings
- Maintenance log

All endpoints require an identified actor (X-Actor-Id).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import RentalError
from ..services import (
    archive_service,
    availability_service,
    booking_service,
    inventory_service,
    lifecycle_service,
)
from ..services.overlap_service import DateRange
from ..decorators import require_actor
from rentals.time_utils import utcnow, to_utc_z
from rentals.validation import coerce_int, json_object

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _error(e: RentalError):
    return jsonify(e.to_dict()), e.http_status


# =============================================================================
# BOOKING LIFECYCLE
# =============================================================================

@admin_bp.get("/bookings")
@require_actor
def list_bookings():
    """
    List bookings, newest first.

    Query params:
    - status: Pending | Confirmed | Active | Completed | Cancelled (optional)
    - limit: max rows (default 200)
    """
    try:
        limit = coerce_int(request.args.get("limit", 200), "limit", minimum=1, maximum=500)
        bookings = booking_service.list_bookings(request.args.get("status"), limit=limit)
        return jsonify({"bookings": [b.to_dict() for b in bookings]}), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list bookings")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/bookings/<int:booking_id>/confirm")
@require_actor
def confirm_booking(booking_id: int):
    """
    Confirm a Pending booking.

    Returns:
        200: Booking confirmed (or was already confirmed)
        404: Booking not found
        409: OVERSOLD (details.items lists each short equipment) or INVALID_TRANSITION
        503: Store unavailable after retry
    """
    try:
        booking = lifecycle_service.confirm_booking(booking_id, confirmed_by=g.actor)
        return jsonify({"booking": booking.to_dict()}), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to confirm booking")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/bookings/<int:booking_id>/start")
@require_actor
def start_rental(booking_id: int):
    """Hand over equipment: Confirmed -> Active."""
    try:
        booking = lifecycle_service.start_rental(booking_id)
        return jsonify({"booking": booking.to_dict()}), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to start rental")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/bookings/<int:booking_id>/complete")
@require_actor
def complete_rental(booking_id: int):
    """
    Close out a rental: Active -> Completed.

    Request body (optional):
    {
        "returned_at": "2026-07-05T19:35:00Z"   (late fee computed from this)
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        booking = lifecycle_service.complete_rental(booking_id, returned_at=data.get("returned_at"))
        return jsonify({"booking": booking.to_dict()}), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to complete rental")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/bookings/<int:booking_id>/reject")
@require_actor
def reject_booking(booking_id: int):
    """
    Reject a booking; it is archived and removed, releasing held inventory.

    Request body (optional):
    {
        "reason": "Equipment unavailable for these dates"
    }

    Returns:
        200: {"past_booking": {...}}
        409: Booking already Completed/Cancelled
        500: ARCHIVAL_FAILURE (booking left intact)
    """
    try:
        data = json_object(request.get_json(silent=True))
        past = lifecycle_service.reject_booking(booking_id, actor=g.actor, reason=data.get("reason"))
        return jsonify({"past_booking": past.to_dict()}), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to reject booking")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.delete("/bookings/<int:booking_id>")
@require_actor
def delete_booking(booking_id: int):
    """
    Delete a booking in any status; it is archived first.

    Query params:
    - reason: optional free text
    """
    try:
        past = lifecycle_service.delete_booking(
            booking_id,
            actor=g.actor,
            reason=request.args.get("reason"),
        )
        return jsonify({"past_booking": past.to_dict()}), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to delete booking")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# INSPECTION & REFUNDS
# =============================================================================

@admin_bp.post("/inspections")
@require_actor
def submit_inspection():
    """
    Record the post-return inspection.

    Request body:
    {
        "booking_id": 12,
        "physical_condition": "Good",     (Excellent | Good | Fair | Damaged)
        "audio_test": true,
        "accessory_count": 6,
        "notes": "Scuff on left cabinet"  (optional)
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        booking_id = coerce_int(data.get("booking_id"), "booking_id", minimum=1)

        checklist = lifecycle_service.submit_inspection(
            booking_id,
            physical_condition=data.get("physical_condition"),
            audio_test=data.get("audio_test"),
            accessory_count=data.get("accessory_count"),
            notes=data.get("notes"),
            completed_by=g.actor,
        )
        return jsonify({"inspection": checklist.to_dict()}), 201

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to submit inspection")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/refunds/<int:booking_id>")
@require_actor
def refund_deposit(booking_id: int):
    """
    Refund the security deposit.

    Returns:
        200: Deposit marked refunded
        409: Inspection not completed, or ALREADY_REFUNDED
    """
    try:
        booking = lifecycle_service.refund_deposit(booking_id, refunded_by=g.actor)
        return jsonify({
            "booking": booking.to_dict(),
            "refunded_cents": booking.deposit_cents,
        }), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to refund deposit")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# INVENTORY
# =============================================================================

@admin_bp.get("/inventory")
@require_actor
def list_inventory():
    """List Active equipment, optionally filtered by ?category=."""
    try:
        equipment = inventory_service.list_active_equipment(request.args.get("category"))
        return jsonify({"equipment": [e.to_dict() for e in equipment]}), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/inventory/<int:equipment_id>/quantity")
@require_actor
def set_equipment_quantity(equipment_id: int):
    """
    Set the number of physical units owned.

    Request body:
    {
        "quantity": 3
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        equipment = inventory_service.set_equipment_quantity(equipment_id, data.get("quantity"))
        current_app.logger.info(
            "Equipment %s quantity set to %s by %s", equipment_id, equipment.quantity, g.actor
        )
        return jsonify({"equipment": equipment.to_dict()}), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to set equipment quantity")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/inventory/availability")
@require_actor
def inventory_availability():
    """
    Per-equipment total/booked/available for one day.

    Query params:
    - date: ISO date (default: today, UTC)
    """
    try:
        day = request.args.get("date") or utcnow()
        snapshot = availability_service.inventory_snapshot(day)
        return jsonify({
            "date": to_utc_z(DateRange.single_day(day).start),
            "availability": {str(k): v for k, v in snapshot.items()},
        }), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to build inventory availability")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CALENDAR
# =============================================================================

@admin_bp.get("/calendar")
@require_actor
def calendar():
    """
    Bookings that hold inventory, for the calendar and Gantt views.

    Query params:
    - start, end: optional ISO dates; both required to filter by interval
    - include_completed: "true" to also show returned rentals
    """
    try:
        include_completed = request.args.get("include_completed", "false").lower() == "true"
        start = request.args.get("start")
        end = request.args.get("end")
        date_range = None
        if start or end:
            date_range = DateRange.from_values(start, end, start_field="start", end_field="end")

        bookings = availability_service.list_calendar_bookings(
            date_range,
            include_completed=include_completed,
        )
        return jsonify({
            "bookings": [availability_service.to_calendar_entry(b) for b in bookings],
        }), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to load calendar")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAST BOOKINGS
# =============================================================================

@admin_bp.get("/past-bookings")
@require_actor
def list_past_bookings():
    """
    Archived bookings, newest first.

    Query params:
    - q: search original booking id, customer, package or item names
    - action: deleted | rejected
    - status: original status at archive time
    - page, limit: pagination (default 1, 50)
    """
    try:
        result = archive_service.list_past_bookings(
            q=request.args.get("q"),
            action=request.args.get("action"),
            original_status=request.args.get("status"),
            page=request.args.get("page", 1),
            limit=request.args.get("limit", 50),
        )
        return jsonify({
            "past_bookings": [p.to_dict() for p in result["past_bookings"]],
            "pagination": result["pagination"],
        }), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list past bookings")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/past-bookings/<int:past_booking_id>")
@require_actor
def get_past_booking(past_booking_id: int):
    try:
        past = archive_service.get_past_booking(past_booking_id)
        return jsonify({"past_booking": past.to_dict()}), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to get past booking")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# MAINTENANCE
# =============================================================================

@admin_bp.get("/maintenance")
@require_actor
def list_maintenance():
    """Maintenance history, newest first; ?equipment_id= filters to one item."""
    try:
        equipment_id = request.args.get("equipment_id")
        if equipment_id is not None:
            equipment_id = coerce_int(equipment_id, "equipment_id", minimum=1)
        logs = inventory_service.list_maintenance_logs(equipment_id)
        return jsonify({"logs": [log.to_dict() for log in logs]}), 200

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to list maintenance logs")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/maintenance")
@require_actor
def create_maintenance_log():
    """
    Log maintenance; setting a status other than Active pulls the equipment
    out of availability.

    Request body:
    {
        "equipment_id": 3,
        "status": "InRepair",          (optional: Active | InRepair | Retired)
        "notes": "Blown tweeter",      (optional)
        "repaired_by": "Sam"           (optional, defaults to the actor)
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        equipment_id = coerce_int(data.get("equipment_id"), "equipment_id", minimum=1)

        log = inventory_service.record_maintenance(
            equipment_id,
            status=data.get("status"),
            notes=data.get("notes"),
            repaired_by=data.get("repaired_by") or g.actor,
        )
        return jsonify({"log": log.to_dict()}), 201

    except RentalError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create maintenance log")
        return jsonify({"error": "Internal server error"}), 500
