from __future__ import annotations

from ..extensions import db
from rentals.time_utils import to_utc_z


ARCHIVE_ACTION_DELETED = "deleted"
ARCHIVE_ACTION_REJECTED = "rejected"
ARCHIVE_ACTIONS = {ARCHIVE_ACTION_DELETED, ARCHIVE_ACTION_REJECTED}


class PastBooking(db.Model):
    """
    Immutable snapshot of a booking that was deleted or rejected.

    Ids of the original booking, customer, package and catalog items are kept
    as plain values, not foreign keys, and every name is copied at archive
    time so the record survives later catalog deletions.
    """
    __tablename__ = "past_bookings"
    __table_args__ = (
        db.Index("ix_past_bookings_action_archived", "action", "archived_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    original_booking_id = db.Column(db.Integer, nullable=False, index=True)

    customer_id = db.Column(db.Integer, nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)

    package_id = db.Column(db.Integer, nullable=True)
    package_name = db.Column(db.String(255), nullable=True)

    pickup_date = db.Column(db.DateTime, nullable=False)
    return_date = db.Column(db.DateTime, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)
    deposit_cents = db.Column(db.Integer, nullable=False, default=0)
    late_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    delivery_option = db.Column(db.String(32), nullable=True)
    inspection_completed = db.Column(db.Boolean, nullable=False, default=False)
    deposit_refunded = db.Column(db.Boolean, nullable=False, default=False)

    original_status = db.Column(db.String(16), nullable=False)
    action = db.Column(db.String(16), nullable=False)
    action_by = db.Column(db.String(128), nullable=True)
    action_reason = db.Column(db.Text, nullable=True)

    # Timestamps of the original booking row
    created_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    archived_at = db.Column(db.DateTime, nullable=False)

    items = db.relationship(
        "PastBookingItem",
        back_populates="past_booking",
        cascade="all, delete-orphan",
        order_by="PastBookingItem.id",
    )

    def __repr__(self) -> str:
        return f"<PastBooking id={self.id} original={self.original_booking_id} action={self.action}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "original_booking_id": self.original_booking_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "package_id": self.package_id,
            "package_name": self.package_name,
            "pickup_date": to_utc_z(self.pickup_date),
            "return_date": to_utc_z(self.return_date),
            "total_price_cents": self.total_price_cents,
            "deposit_cents": self.deposit_cents,
            "late_fee_cents": self.late_fee_cents,
            "delivery_option": self.delivery_option,
            "inspection_completed": self.inspection_completed,
            "deposit_refunded": self.deposit_refunded,
            "original_status": self.original_status,
            "action": self.action,
            "action_by": self.action_by,
            "action_reason": self.action_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "archived_at": to_utc_z(self.archived_at),
            "items": [item.to_dict() for item in self.items],
        }


class PastBookingItem(db.Model):
    __tablename__ = "past_booking_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    past_booking_id = db.Column(
        db.Integer,
        db.ForeignKey("past_bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    equipment_id = db.Column(db.Integer, nullable=True)
    equipment_name = db.Column(db.String(255), nullable=True)
    add_on_id = db.Column(db.Integer, nullable=True)
    add_on_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    past_booking = db.relationship("PastBooking", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "equipment_id": self.equipment_id,
            "equipment_name": self.equipment_name,
            "add_on_id": self.add_on_id,
            "add_on_name": self.add_on_name,
            "quantity": self.quantity,
        }
