# Overview: Availability queries combining inventory totals with committed units.

from __future__ import annotations

from typing import Iterable

from ..extensions import db
from ..models import Booking, Equipment
from ..models.bookings import BOOKING_STATUS_COMPLETED
from rentals.time_utils import to_utc_z
from rentals.validation import coerce_id_list
from .inventory_service import list_active_equipment
from .overlap_service import (
    DateRange,
    HOLDING_STATUSES,
    booked_quantities,
    booking_demand,
    interval_overlap_filter,
)


def check_availability(date_range: DateRange, equipment_ids: Iterable[int]) -> dict[int, bool]:
    """
    Whether at least one unit of each equipment id is free over date_range.

    Advisory only: it does not reserve anything. Unknown and non-Active
    equipment is reported unavailable.
    """
    ids = coerce_id_list(list(equipment_ids), "equipment_ids")
    if not ids:
        return {}

    equipment = {
        e.id: e for e in db.session.query(Equipment).filter(Equipment.id.in_(ids)).all()
    }
    booked = booked_quantities(ids, date_range)

    availability: dict[int, bool] = {}
    for equipment_id in ids:
        item = equipment.get(equipment_id)
        if item is None or not item.is_active:
            availability[equipment_id] = False
            continue
        availability[equipment_id] = item.quantity - booked[equipment_id] > 0
    return availability


def inventory_snapshot(day) -> dict[int, dict]:
    """
    Per-equipment {total, booked, available} for a single day across all
    Active equipment.

    booked is reported as computed, even when a race left it above total;
    only available is floored at zero.
    """
    date_range = day if isinstance(day, DateRange) else DateRange.single_day(day)
    equipment = list_active_equipment()
    booked = booked_quantities([e.id for e in equipment], date_range)

    snapshot: dict[int, dict] = {}
    for item in equipment:
        committed = booked[item.id]
        snapshot[item.id] = {
            "name": item.name,
            "category": item.category,
            "total": item.quantity,
            "booked": committed,
            "available": max(0, item.quantity - committed),
            "oversubscribed": committed > item.quantity,
        }
    return snapshot


def list_calendar_bookings(
    date_range: DateRange | None = None,
    *,
    include_completed: bool = False,
) -> list[Booking]:
    """Holding bookings (optionally Completed too) ordered by pickup date."""
    statuses = list(HOLDING_STATUSES)
    if include_completed:
        statuses.append(BOOKING_STATUS_COMPLETED)

    q = Booking.query.filter(Booking.status.in_(statuses))
    if date_range is not None:
        q = q.filter(*interval_overlap_filter(date_range))
    return q.order_by(Booking.pickup_date.asc(), Booking.id.asc()).all()


def to_calendar_entry(booking: Booking) -> dict:
    """Gantt/calendar projection: interval plus the equipment units it blocks."""
    demand = booking_demand(booking)
    names = {}
    if demand:
        names = dict(
            db.session.query(Equipment.id, Equipment.name).filter(Equipment.id.in_(list(demand))).all()
        )
    return {
        "booking_id": booking.id,
        "status": booking.status,
        "pickup_date": to_utc_z(booking.pickup_date),
        "return_date": to_utc_z(booking.return_date),
        "package_name": booking.package.name if booking.package else None,
        "customer_name": booking.customer.name if booking.customer else None,
        "equipment": [
            {"equipment_id": equipment_id, "name": names.get(equipment_id), "quantity": quantity}
            for equipment_id, quantity in sorted(demand.items())
        ],
    }
