# Overview: Booking intake and reads over the reservation store.

"""
Booking Service - reservation intake

WHY: A booking request from the storefront becomes a Pending booking that
does NOT hold inventory yet. The caller's availability pre-check is advisory;
the authoritative capacity check happens when an admin confirms
(lifecycle_service.confirm_booking).
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Booking, BookingItem, Customer, EquipmentLine, AddOnLine
from ..models.bookings import (
    BOOKING_STATUS_PENDING,
    BOOKING_STATUSES,
    DELIVERY_OPTIONS,
    DELIVERY_WAREHOUSE_PICKUP,
)
from rentals.errors import NotFoundError, ValidationError
from rentals.validation import (
    coerce_cents,
    coerce_choice,
    coerce_id_list,
    coerce_int,
    optional_text,
    require_text,
)
from . import inventory_service
from .concurrency import begin_write_transaction, run_with_retry
from .overlap_service import DateRange


def _item_refs(equipment_ids: list[int], add_on_ids: list[int]) -> list:
    """Collapse repeated ids into one line per id carrying the repeat count."""
    refs = [
        EquipmentLine(equipment_id=equipment_id, quantity=quantity)
        for equipment_id, quantity in Counter(equipment_ids).items()
    ]
    refs.extend(
        AddOnLine(add_on_id=add_on_id, quantity=quantity)
        for add_on_id, quantity in Counter(add_on_ids).items()
    )
    return refs


def _find_or_create_customer(name: str | None, email: str, phone: str | None) -> Customer:
    """
    Customer rows are unique by email. A concurrent first booking from the same
    address may win the insert; the savepoint keeps our transaction usable so
    the winner's row can be read back.
    """
    customer = Customer.query.filter_by(email=email).first()
    if customer is not None:
        return customer

    nested = db.session.begin_nested()
    try:
        customer = Customer(name=name, email=email, phone=phone)
        db.session.add(customer)
        db.session.flush()
        nested.commit()
    except IntegrityError:
        nested.rollback()
        customer = Customer.query.filter_by(email=email).one()
    return customer


def create_booking(
    *,
    pickup_date,
    return_date,
    customer: dict,
    equipment_ids: Iterable[int] = (),
    add_on_ids: Iterable[int] = (),
    package_id: int | None = None,
    total_price_cents=0,
    deposit_cents=0,
    delivery_option: str | None = None,
) -> Booking:
    """
    Create a Pending booking with its line items.

    Args:
        pickup_date / return_date: Rental interval, both days inclusive
        customer: {"name", "email", "phone"}; matched or created by email
        equipment_ids: Equipment to reserve; a repeated id reserves more units
        add_on_ids: Flat-fee add-ons
        package_id: Optional package; its key equipment is held on confirmation
        total_price_cents / deposit_cents: Quoted amounts
        delivery_option: WarehousePickup (default) or ProfessionalDelivery

    Raises:
        ValidationError: Bad input (checked before any store access)
        NotFoundError: Unknown package, equipment or add-on
    """
    date_range = DateRange.from_values(pickup_date, return_date)
    equipment_ids = coerce_id_list(list(equipment_ids or []), "equipment_ids")
    add_on_ids = coerce_id_list(list(add_on_ids or []), "add_on_ids")
    if package_id is not None:
        package_id = coerce_int(package_id, "package_id", minimum=1)
    if package_id is None and not equipment_ids:
        raise ValidationError("A booking must reference a package or at least one piece of equipment")

    total_price_cents = coerce_cents(total_price_cents, "total_price_cents")
    deposit_cents = coerce_cents(deposit_cents, "deposit_cents")
    delivery_option = coerce_choice(
        delivery_option or DELIVERY_WAREHOUSE_PICKUP, "delivery_option", DELIVERY_OPTIONS
    )

    if not isinstance(customer, dict):
        raise ValidationError("customer must be an object with name, email and phone")
    email = require_text(customer.get("email"), "customer.email").lower()
    if "@" not in email:
        raise ValidationError("customer.email must be a valid email address")
    name = optional_text(customer.get("name"), "customer.name", max_length=255)
    phone = optional_text(customer.get("phone"), "customer.phone", max_length=64)

    refs = _item_refs(equipment_ids, add_on_ids)

    def _op():
        begin_write_transaction()

        if package_id is not None:
            inventory_service.get_package(package_id)

        for ref in refs:
            if isinstance(ref, EquipmentLine):
                equipment = inventory_service.get_equipment(ref.equipment_id)
                if not equipment.is_active:
                    raise ValidationError(
                        f"Equipment {ref.equipment_id} is not available for rent (status {equipment.status})"
                    )
            else:
                inventory_service.get_add_on(ref.add_on_id)

        booking = Booking(
            customer=_find_or_create_customer(name, email, phone),
            package_id=package_id,
            pickup_date=date_range.start,
            return_date=date_range.end,
            total_price_cents=total_price_cents,
            deposit_cents=deposit_cents,
            delivery_option=delivery_option,
            status=BOOKING_STATUS_PENDING,
        )
        booking.items = [BookingItem.from_ref(ref) for ref in refs]

        db.session.add(booking)
        db.session.commit()
        return booking

    booking = run_with_retry(_op)
    current_app.logger.info("Booking %s created (Pending) for %s", booking.id, email)
    return booking


def get_booking(booking_id: int) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


def list_bookings(status: str | None = None, *, limit: int = 200) -> list[Booking]:
    """Newest first, optionally filtered by lifecycle status."""
    q = Booking.query
    if status:
        q = q.filter_by(status=coerce_choice(status, "status", BOOKING_STATUSES))
    return q.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).all()
