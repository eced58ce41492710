from __future__ import annotations

import json

from sqlalchemy.orm import validates

from ..extensions import db
from rentals.errors import ValidationError
from rentals.time_utils import to_utc_z


EQUIPMENT_STATUS_ACTIVE = "Active"
EQUIPMENT_STATUS_IN_REPAIR = "InRepair"
EQUIPMENT_STATUS_RETIRED = "Retired"
EQUIPMENT_STATUSES = {EQUIPMENT_STATUS_ACTIVE, EQUIPMENT_STATUS_IN_REPAIR, EQUIPMENT_STATUS_RETIRED}


def decode_id_list(value) -> list[int]:
    """
    Decode a JSON-encoded list of ids.

    Accepts an already-decoded list or its JSON text. Order and repetition are
    kept; anything that is not a list of positive integers is rejected.
    """
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value or "[]")
        except ValueError:
            raise ValidationError("key_equipment must be a JSON list of equipment ids")
    if not isinstance(value, list):
        raise ValidationError("key_equipment must be a list of equipment ids")
    ids = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, int) or item < 1:
            raise ValidationError(f"key_equipment contains an invalid id: {item!r}")
        ids.append(item)
    return ids


class Equipment(db.Model):
    """
    Rentable equipment model with a physical unit count.

    quantity is the number of units owned. It is changed only by explicit
    inventory edits, never by bookings; availability is always derived from
    bookings at query time.
    """
    __tablename__ = "equipment"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_equipment_quantity_non_negative"),
        db.Index("ix_equipment_status_category", "status", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(16), nullable=False, default=EQUIPMENT_STATUS_ACTIVE)

    # Authoritative storage in cents
    day_rate_cents = db.Column(db.Integer, nullable=False, default=0)

    # Structured spec sheet (wattage, channels, ...), decoded by the JSON type
    specs = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def is_active(self) -> bool:
        return self.status == EQUIPMENT_STATUS_ACTIVE

    def __repr__(self) -> str:
        return f"<Equipment id={self.id} name={self.name!r} quantity={self.quantity} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "quantity": self.quantity,
            "status": self.status,
            "day_rate_cents": self.day_rate_cents,
            "specs": self.specs or {},
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class AddOn(db.Model):
    """Flat-fee extra (cables, delivery, setup). Never counted against inventory."""
    __tablename__ = "add_ons"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
        }


class Package(db.Model):
    """
    Bundle of equipment rented together at a per-day base price.

    key_equipment is an ordered list of equipment ids with repetition: an id
    listed twice means the package holds two units of that model.
    """
    __tablename__ = "packages"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    ideal_for = db.Column(db.String(255), nullable=True)
    base_price_cents = db.Column(db.Integer, nullable=False, default=0)
    key_equipment = db.Column(db.JSON, nullable=False, default=list)

    @validates("key_equipment")
    def _validate_key_equipment(self, key, value):
        return decode_id_list(value)

    @property
    def key_equipment_ids(self) -> list[int]:
        return decode_id_list(self.key_equipment)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "ideal_for": self.ideal_for,
            "base_price_cents": self.base_price_cents,
            "key_equipment": self.key_equipment_ids,
        }


class MaintenanceLog(db.Model):
    """Append-only repair/maintenance history for a piece of equipment."""
    __tablename__ = "maintenance_logs"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    equipment_id = db.Column(db.Integer, db.ForeignKey("equipment.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    repaired_by = db.Column(db.String(128), nullable=True)
    logged_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    equipment = db.relationship("Equipment", backref=db.backref("maintenance_logs", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "equipment_id": self.equipment_id,
            "equipment_name": self.equipment.name if self.equipment else None,
            "status": self.status,
            "notes": self.notes,
            "repaired_by": self.repaired_by,
            "logged_at": to_utc_z(self.logged_at),
        }
