from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..extensions import db
from rentals.time_utils import to_utc_z


# Booking lifecycle statuses. Rejected/Deleted are archival actions, not statuses.
BOOKING_STATUS_PENDING = "Pending"
BOOKING_STATUS_CONFIRMED = "Confirmed"
BOOKING_STATUS_ACTIVE = "Active"
BOOKING_STATUS_COMPLETED = "Completed"
BOOKING_STATUS_CANCELLED = "Cancelled"
BOOKING_STATUSES = {
    BOOKING_STATUS_PENDING,
    BOOKING_STATUS_CONFIRMED,
    BOOKING_STATUS_ACTIVE,
    BOOKING_STATUS_COMPLETED,
    BOOKING_STATUS_CANCELLED,
}

DELIVERY_WAREHOUSE_PICKUP = "WarehousePickup"
DELIVERY_PROFESSIONAL = "ProfessionalDelivery"
DELIVERY_OPTIONS = {DELIVERY_WAREHOUSE_PICKUP, DELIVERY_PROFESSIONAL}

PHYSICAL_CONDITIONS = {"Excellent", "Good", "Fair", "Damaged"}


@dataclass(frozen=True)
class EquipmentLine:
    """Booking line that reserves units of a piece of equipment."""
    equipment_id: int
    quantity: int = 1


@dataclass(frozen=True)
class AddOnLine:
    """Booking line for a flat-fee add-on."""
    add_on_id: int
    quantity: int = 1


ItemRef = Union[EquipmentLine, AddOnLine]


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    phone = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
        }


class Booking(db.Model):
    """
    Rental booking document.

    Only bookings in a holding status (Confirmed, Active) count against
    equipment availability. The rental interval is inclusive of both the
    pickup and the return day.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        db.CheckConstraint("pickup_date <= return_date", name="ck_bookings_interval_ordered"),
        # Overlap scans filter on status and interval bounds
        db.Index("ix_bookings_status_pickup_return", "status", "pickup_date", "return_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    package_id = db.Column(db.Integer, db.ForeignKey("packages.id"), nullable=True, index=True)

    pickup_date = db.Column(db.DateTime, nullable=False)
    return_date = db.Column(db.DateTime, nullable=False)

    # Money in cents
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)
    deposit_cents = db.Column(db.Integer, nullable=False, default=0)
    late_fee_cents = db.Column(db.Integer, nullable=False, default=0)

    delivery_option = db.Column(db.String(32), nullable=False, default=DELIVERY_WAREHOUSE_PICKUP)
    status = db.Column(db.String(16), nullable=False, default=BOOKING_STATUS_PENDING, index=True)

    inspection_completed = db.Column(db.Boolean, nullable=False, default=False)
    deposit_refunded = db.Column(db.Boolean, nullable=False, default=False)

    confirmed_at = db.Column(db.DateTime, nullable=True)
    confirmed_by = db.Column(db.String(128), nullable=True)
    returned_at = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer", backref=db.backref("bookings", lazy=True))
    package = db.relationship("Package")
    items = db.relationship(
        "BookingItem",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingItem.id",
    )
    inspection = db.relationship(
        "InspectionChecklist",
        back_populates="booking",
        uselist=False,
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Booking id={self.id} status={self.status} pickup={self.pickup_date} return={self.return_date}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer": self.customer.to_dict() if self.customer else None,
            "package_id": self.package_id,
            "package": self.package.to_dict() if self.package else None,
            "pickup_date": to_utc_z(self.pickup_date),
            "return_date": to_utc_z(self.return_date),
            "total_price_cents": self.total_price_cents,
            "deposit_cents": self.deposit_cents,
            "late_fee_cents": self.late_fee_cents,
            "delivery_option": self.delivery_option,
            "status": self.status,
            "inspection_completed": self.inspection_completed,
            "deposit_refunded": self.deposit_refunded,
            "confirmed_at": to_utc_z(self.confirmed_at),
            "confirmed_by": self.confirmed_by,
            "returned_at": to_utc_z(self.returned_at),
            "items": [item.to_dict() for item in self.items],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class BookingItem(db.Model):
    """
    Line item referencing exactly one of equipment or add-on.

    Business code reads lines through .ref (EquipmentLine | AddOnLine); the
    two nullable columns exist only for storage and are guarded by a CHECK.
    """
    __tablename__ = "booking_items"
    __table_args__ = (
        db.CheckConstraint(
            "(equipment_id IS NOT NULL AND add_on_id IS NULL) OR "
            "(equipment_id IS NULL AND add_on_id IS NOT NULL)",
            name="ck_booking_items_equipment_xor_addon",
        ),
        db.CheckConstraint("quantity >= 1", name="ck_booking_items_quantity_positive"),
        db.Index("ix_booking_items_equipment_booking", "equipment_id", "booking_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(
        db.Integer,
        db.ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    equipment_id = db.Column(db.Integer, db.ForeignKey("equipment.id"), nullable=True)
    add_on_id = db.Column(db.Integer, db.ForeignKey("add_ons.id"), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    booking = db.relationship("Booking", back_populates="items")
    equipment = db.relationship("Equipment")
    add_on = db.relationship("AddOn")

    @classmethod
    def from_ref(cls, ref: ItemRef) -> "BookingItem":
        if isinstance(ref, EquipmentLine):
            return cls(equipment_id=ref.equipment_id, quantity=ref.quantity)
        return cls(add_on_id=ref.add_on_id, quantity=ref.quantity)

    @property
    def ref(self) -> ItemRef:
        if self.equipment_id is not None:
            return EquipmentLine(equipment_id=self.equipment_id, quantity=self.quantity)
        return AddOnLine(add_on_id=self.add_on_id, quantity=self.quantity)

    def to_dict(self) -> dict:
        ref = self.ref
        if isinstance(ref, EquipmentLine):
            return {
                "id": self.id,
                "kind": "equipment",
                "equipment_id": ref.equipment_id,
                "name": self.equipment.name if self.equipment else None,
                "quantity": ref.quantity,
            }
        return {
            "id": self.id,
            "kind": "add_on",
            "add_on_id": ref.add_on_id,
            "name": self.add_on.name if self.add_on else None,
            "quantity": ref.quantity,
        }


class InspectionChecklist(db.Model):
    """Post-return inspection; one per booking, gates the deposit refund."""
    __tablename__ = "inspection_checklists"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(
        db.Integer,
        db.ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    physical_condition = db.Column(db.String(16), nullable=False)
    audio_test = db.Column(db.Boolean, nullable=False, default=False)
    accessory_count = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    completed_by = db.Column(db.String(128), nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    booking = db.relationship("Booking", back_populates="inspection")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "physical_condition": self.physical_condition,
            "audio_test": self.audio_test,
            "accessory_count": self.accessory_count,
            "notes": self.notes,
            "completed_by": self.completed_by,
            "completed_at": to_utc_z(self.completed_at),
        }
