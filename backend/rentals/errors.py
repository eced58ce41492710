# Overview: Typed domain failures returned to the booking, admin and inventory surfaces.

"""
Rental error taxonomy.

Every failure a caller can act on has its own class so the admin and public
surfaces can render a specific message (pick other dates, stop retrying,
block the action) instead of a generic "something went wrong".

Routes translate these into JSON bodies using to_dict() and http_status.
"""

from __future__ import annotations


class RentalError(Exception):
    """Base class for all rental domain failures."""

    code = "RENTAL_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(RentalError, ValueError):
    """Missing/malformed dates, quantities or item references (400)."""

    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(RentalError):
    """Referenced booking, equipment, add-on or package does not exist (404)."""

    code = "NOT_FOUND"
    http_status = 404


class OversoldError(RentalError):
    """
    Confirming would commit more units than physically owned.

    details["items"] lists each offending equipment id with total, booked and
    requested quantities. The booking stays Pending.
    """

    code = "OVERSOLD"
    http_status = 409


class InvalidTransitionError(RentalError):
    """Requested lifecycle move is not allowed from the current state (409)."""

    code = "INVALID_TRANSITION"
    http_status = 409


class AlreadyRefundedError(RentalError):
    code = "ALREADY_REFUNDED"
    http_status = 409


class ArchivalFailureError(RentalError):
    """Archive+delete could not complete; the original booking is untouched."""

    code = "ARCHIVAL_FAILURE"
    http_status = 500


class StoreUnavailableError(RentalError):
    """Backing store failed after the transparent retry."""

    code = "STORE_UNAVAILABLE"
    http_status = 503
