# Overview: Overlap calculation; how many units of equipment are committed over a date range.

"""
Rental Overlap Calculator

================================================================================
PURPOSE: Derive committed equipment units from bookings at query time
================================================================================

Availability is never stored as a counter. Every query re-scans the bookings
that hold inventory and sums what they reserve:

- HOLDING statuses are Confirmed and Active. Pending has not been approved
  yet; Completed is treated as returned even if the row lingers.
- Intervals are closed and day-granular: a booking [bStart, bEnd] overlaps a
  query [qStart, qEnd] when bStart <= qEnd AND bEnd >= qStart, comparing
  calendar days. Same-day turnover is a conflict.
- Package expansion: a holding booking with a package reserves one unit per
  occurrence of each equipment id in the package's key_equipment, whether
  or not BookingItem rows were materialised for it.

================================================================================
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..models import Booking, BookingItem, Package, EquipmentLine
from ..models.bookings import BOOKING_STATUS_CONFIRMED, BOOKING_STATUS_ACTIVE
from ..models.catalog import decode_id_list
from rentals.errors import ValidationError
from rentals.time_utils import start_of_day, start_of_next_day
from rentals.validation import coerce_datetime


HOLDING_STATUSES = (BOOKING_STATUS_CONFIRMED, BOOKING_STATUS_ACTIVE)


@dataclass(frozen=True)
class DateRange:
    """Closed rental interval; both boundary days are included."""
    start: datetime
    end: datetime

    @classmethod
    def from_values(cls, start, end, *, start_field: str = "pickup_date", end_field: str = "return_date") -> "DateRange":
        start_dt = coerce_datetime(start, start_field)
        end_dt = coerce_datetime(end, end_field)
        if start_dt > end_dt:
            raise ValidationError(f"{start_field} must be on or before {end_field}")
        return cls(start_dt, end_dt)

    @classmethod
    def single_day(cls, value, *, field: str = "date") -> "DateRange":
        day = start_of_day(coerce_datetime(value, field))
        return cls(day, day)

    @property
    def window_start(self) -> datetime:
        return start_of_day(self.start)

    @property
    def window_end(self) -> datetime:
        """Exclusive upper bound: midnight after the last day."""
        return start_of_next_day(self.end)


def interval_overlap_filter(date_range: DateRange) -> list:
    """bStart <= qEnd AND bEnd >= qStart, compared by calendar day."""
    return [
        Booking.pickup_date < date_range.window_end,
        Booking.return_date >= date_range.window_start,
    ]


def holding_overlap_filter(date_range: DateRange, *, exclude_booking_id: int | None = None) -> list:
    """SQL criteria for bookings that hold inventory somewhere inside date_range."""
    criteria = [Booking.status.in_(HOLDING_STATUSES), *interval_overlap_filter(date_range)]
    if exclude_booking_id is not None:
        criteria.append(Booking.id != exclude_booking_id)
    return criteria


def booked_quantities(
    equipment_ids: Iterable[int],
    date_range: DateRange,
    *,
    exclude_booking_id: int | None = None,
) -> dict[int, int]:
    """
    Units of each equipment id committed by holding bookings overlapping date_range.

    Returns a dict with an entry (possibly 0) for every requested id.
    """
    ids = sorted(set(equipment_ids))
    totals = {equipment_id: 0 for equipment_id in ids}
    if not ids:
        return totals

    criteria = holding_overlap_filter(date_range, exclude_booking_id=exclude_booking_id)

    item_rows = (
        db.session.query(
            BookingItem.equipment_id,
            func.coalesce(func.sum(BookingItem.quantity), 0),
        )
        .join(Booking, Booking.id == BookingItem.booking_id)
        .filter(*criteria)
        .filter(BookingItem.equipment_id.in_(ids))
        .group_by(BookingItem.equipment_id)
        .all()
    )
    for equipment_id, quantity in item_rows:
        totals[equipment_id] += int(quantity or 0)

    # One row per holding package booking
    package_rows = (
        db.session.query(Package.key_equipment)
        .join(Booking, Booking.package_id == Package.id)
        .filter(*criteria)
        .all()
    )
    for (key_equipment,) in package_rows:
        occurrences = Counter(decode_id_list(key_equipment))
        for equipment_id in ids:
            totals[equipment_id] += occurrences.get(equipment_id, 0)

    return totals


def booked_quantity(equipment_id: int, date_range: DateRange, *, exclude_booking_id: int | None = None) -> int:
    return booked_quantities([equipment_id], date_range, exclude_booking_id=exclude_booking_id)[equipment_id]


def booking_demand(booking: Booking) -> dict[int, int]:
    """
    Units of each equipment id a booking reserves once it holds inventory.

    Explicit equipment lines plus the package expansion, the same accounting
    booked_quantities() applies to other bookings.
    """
    demand: Counter = Counter()
    for item in booking.items:
        ref = item.ref
        if isinstance(ref, EquipmentLine):
            demand[ref.equipment_id] += ref.quantity
    if booking.package is not None:
        demand.update(booking.package.key_equipment_ids)
    return dict(demand)
