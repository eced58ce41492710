# Overview: Flask API routes for public booking intake; parses input and returns JSON responses.

# backend/rentals/routes/bookings.py
"""
Booking API Routes

WHY: Accept rental requests from the storefront.

DESIGN:
- A new booking is always Pending and does NOT hold inventory
- An admin confirms it later (see routes/admin.py), which is where capacity
  is enforced
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import RentalError
from ..services import booking_service
from rentals.validation import json_object


bookings_bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")


@bookings_bp.post("")
def create_booking_route():
    """
    Create a booking request (status: Pending).

    Request body:
    {
        "pickup_date": "2026-07-03",
        "return_date": "2026-07-05",
        "customer_name": "Dana Reyes",
        "customer_email": "dana@example.com",
        "customer_phone": "555-0100",       (optional)
        "package_id": 2,                    (optional)
        "equipment_ids": [1, 1, 3],         (repeat an id to reserve more units)
        "add_on_ids": [4],                  (optional)
        "total_price_cents": 25000,
        "deposit_cents": 10000,
        "delivery_option": "WarehousePickup" (optional)
    }

    Returns:
        201: Booking created
        400: Invalid input
        404: Unknown package, equipment or add-on
    """
    try:
        data = json_object(request.get_json(silent=True))

        booking = booking_service.create_booking(
            pickup_date=data.get("pickup_date"),
            return_date=data.get("return_date"),
            customer={
                "name": data.get("customer_name"),
                "email": data.get("customer_email"),
                "phone": data.get("customer_phone"),
            },
            equipment_ids=data.get("equipment_ids") or [],
            add_on_ids=data.get("add_on_ids") or [],
            package_id=data.get("package_id"),
            total_price_cents=data.get("total_price_cents", 0),
            deposit_cents=data.get("deposit_cents", 0),
            delivery_option=data.get("delivery_option"),
        )

        return jsonify({"booking": booking.to_dict()}), 201

    except RentalError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create booking")
        return jsonify({"error": "Internal server error"}), 500


@bookings_bp.get("/<int:booking_id>")
def get_booking_route(booking_id: int):
    """
    Get a booking with its items.

    Returns:
        200: Booking details
        404: Booking not found (or already archived)
    """
    try:
        booking = booking_service.get_booking(booking_id)
        return jsonify({"booking": booking.to_dict()}), 200

    except RentalError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get booking")
        return jsonify({"error": "Internal server error"}), 500
