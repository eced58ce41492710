# Overview: Service-layer operations for the equipment inventory ledger.

# backend/rentals/services/inventory_service.py
"""
Inventory ledger invariants (authoritative)

- Equipment.quantity is the number of physical units owned. Bookings never
  change it; only explicit inventory edits do, and it may never go negative.
- Only Active equipment is offerable. InRepair/Retired equipment keeps its
  quantity but contributes no availability.
- This module holds no availability logic; see availability_service.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Equipment, AddOn, Package, MaintenanceLog
from ..models.catalog import EQUIPMENT_STATUS_ACTIVE, EQUIPMENT_STATUSES
from rentals.errors import NotFoundError
from rentals.validation import coerce_choice, coerce_int, optional_text
from .concurrency import lock_for_update, run_with_retry, begin_write_transaction


def get_equipment(equipment_id: int) -> Equipment:
    equipment = db.session.get(Equipment, equipment_id)
    if equipment is None:
        raise NotFoundError(f"Equipment {equipment_id} not found")
    return equipment


def list_active_equipment(category: str | None = None) -> list[Equipment]:
    q = Equipment.query.filter_by(status=EQUIPMENT_STATUS_ACTIVE)
    if category:
        q = q.filter_by(category=category)
    return q.order_by(Equipment.category, Equipment.name, Equipment.id).all()


def get_package(package_id: int) -> Package:
    package = db.session.get(Package, package_id)
    if package is None:
        raise NotFoundError(f"Package {package_id} not found")
    return package


def get_add_on(add_on_id: int) -> AddOn:
    add_on = db.session.get(AddOn, add_on_id)
    if add_on is None:
        raise NotFoundError(f"Add-on {add_on_id} not found")
    return add_on


def set_equipment_quantity(equipment_id: int, quantity) -> Equipment:
    """
    Explicit inventory edit of the owned unit count.

    Lowering quantity below what is already committed is allowed (units may be
    lost or sold); availability reports will show zero until bookings end.
    """
    quantity = coerce_int(quantity, "quantity", minimum=0)

    def _op():
        begin_write_transaction()
        equipment = lock_for_update(db.session.query(Equipment).filter_by(id=equipment_id)).first()
        if equipment is None:
            raise NotFoundError(f"Equipment {equipment_id} not found")
        equipment.quantity = quantity
        db.session.commit()
        return equipment

    return run_with_retry(_op)


def record_maintenance(
    equipment_id: int,
    *,
    status: str | None = None,
    notes: str | None = None,
    repaired_by: str | None = None,
) -> MaintenanceLog:
    """
    Append a maintenance log entry and optionally move the equipment status.

    Setting InRepair or Retired removes the equipment from availability
    without touching its quantity.
    """
    if status is not None:
        status = coerce_choice(status, "status", EQUIPMENT_STATUSES)
    notes = optional_text(notes, "notes")
    repaired_by = optional_text(repaired_by, "repaired_by", max_length=128)

    def _op():
        begin_write_transaction()
        equipment = lock_for_update(db.session.query(Equipment).filter_by(id=equipment_id)).first()
        if equipment is None:
            raise NotFoundError(f"Equipment {equipment_id} not found")

        log = MaintenanceLog(
            equipment_id=equipment.id,
            status=status,
            notes=notes,
            repaired_by=repaired_by,
        )
        db.session.add(log)
        if status is not None:
            equipment.status = status
        db.session.commit()
        return log

    log = run_with_retry(_op)
    current_app.logger.info("Maintenance logged for equipment %s (status=%s)", equipment_id, status)
    return log


def list_maintenance_logs(equipment_id: int | None = None, *, limit: int = 200) -> list[MaintenanceLog]:
    q = MaintenanceLog.query
    if equipment_id is not None:
        q = q.filter_by(equipment_id=equipment_id)
    return q.order_by(MaintenanceLog.logged_at.desc(), MaintenanceLog.id.desc()).limit(limit).all()
