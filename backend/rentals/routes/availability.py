# Overview: Flask API routes for public availability checks; parses input and returns JSON responses.

# backend/rentals/routes/availability.py
"""
Availability API Routes

WHY: Let the storefront tell a customer which equipment is free for their
dates before they submit a booking request.

The answer is advisory: nothing is reserved, and a later admin confirmation
re-checks capacity.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import RentalError
from ..services import availability_service
from ..services.overlap_service import DateRange
from rentals.validation import json_object


availability_bp = Blueprint("availability", __name__, url_prefix="/api/availability")


@availability_bp.post("")
def check_availability_route():
    """
    Check equipment availability for a date range.

    Request body:
    {
        "pickup_date": "2026-07-03",
        "return_date": "2026-07-05",
        "equipment_ids": [1, 2, 5]
    }

    Returns:
        200: {"availability": {"1": true, "2": false, ...}}
        400: Missing/invalid dates or ids
    """
    try:
        data = json_object(request.get_json(silent=True))

        date_range = DateRange.from_values(data.get("pickup_date"), data.get("return_date"))
        equipment_ids = data.get("equipment_ids") or []

        if not equipment_ids:
            return jsonify({"availability": {}, "message": "No equipment specified"}), 200

        availability = availability_service.check_availability(date_range, equipment_ids)

        return jsonify({
            "availability": {str(k): v for k, v in availability.items()},
        }), 200

    except RentalError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to check availability")
        return jsonify({"error": "Internal server error"}), 500
