from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from studio_scheduling.models.enums import EquipmentStatus
from studio_scheduling.models.equipment import Equipment
from studio_scheduling.models.equipment_assignment import EquipmentAssignment
from studio_scheduling.models.maintenance_log import MaintenanceLog


def get_equipment(db: Session, equipment_id: int) -> Optional[Equipment]:
    return db.query(Equipment).filter(Equipment.id == equipment_id).first()


def update_equipment_status(
    db: Session,
    equipment: Equipment,
    new_status: EquipmentStatus,
) -> Equipment:
    equipment.status = new_status
    db.flush()
    return equipment


def get_equipment_assignment(db: Session, assignment_id: int) -> Optional[EquipmentAssignment]:
    return (
        db.query(EquipmentAssignment)
        .options(joinedload(EquipmentAssignment.equipment))
        .filter(EquipmentAssignment.id == assignment_id)
        .first()
    )


def get_open_assignment(db: Session, equipment_id: int) -> Optional[EquipmentAssignment]:
    return (
        db.query(EquipmentAssignment)
        .filter(EquipmentAssignment.equipment_id == equipment_id)
        .filter(EquipmentAssignment.checked_in_at.is_(None))
        .first()
    )


def list_assignments(
    db: Session,
    equipment_id: int,
    *,
    open_only: bool = False,
) -> list[EquipmentAssignment]:
    query = db.query(EquipmentAssignment).filter(
        EquipmentAssignment.equipment_id == equipment_id
    )
    if open_only:
        query = query.filter(EquipmentAssignment.checked_in_at.is_(None))
    return query.order_by(EquipmentAssignment.checked_out_at.desc()).all()


def list_overdue_assignments(
    db: Session,
    *,
    now: datetime,
    studio_id: Optional[int] = None,
) -> list[EquipmentAssignment]:
    query = (
        db.query(EquipmentAssignment)
        .join(Equipment, Equipment.id == EquipmentAssignment.equipment_id)
        .options(joinedload(EquipmentAssignment.equipment))
        .filter(EquipmentAssignment.checked_in_at.is_(None))
        .filter(EquipmentAssignment.expected_return_at < now)
    )
    if studio_id is not None:
        query = query.filter(Equipment.studio_id == studio_id)
    return query.order_by(EquipmentAssignment.expected_return_at).all()


def create_equipment_assignment(
    db: Session,
    assignment: EquipmentAssignment,
) -> EquipmentAssignment:
    db.add(assignment)
    db.flush()
    return assignment


def create_maintenance_log(db: Session, log: MaintenanceLog) -> MaintenanceLog:
    db.add(log)
    db.flush()
    return log


def list_open_maintenance_logs(db: Session, equipment_id: int) -> list[MaintenanceLog]:
    return (
        db.query(MaintenanceLog)
        .filter(MaintenanceLog.equipment_id == equipment_id)
        .filter(MaintenanceLog.completed_at.is_(None))
        .order_by(MaintenanceLog.opened_at)
        .all()
    )


def list_maintenance_candidates(
    db: Session,
    *,
    studio_id: int,
    due_before: datetime,
) -> list[Equipment]:
    """Return in-service equipment that is due before ``due_before`` or has no due date."""

    return (
        db.query(Equipment)
        .filter(Equipment.studio_id == studio_id)
        .filter(Equipment.status != EquipmentStatus.RETIRED)
        .filter(
            or_(
                Equipment.next_maintenance_at.is_(None),
                Equipment.next_maintenance_at <= due_before,
            )
        )
        .order_by(Equipment.id)
        .all()
    )


__all__ = [
    "create_equipment_assignment",
    "create_maintenance_log",
    "get_equipment",
    "get_equipment_assignment",
    "get_open_assignment",
    "list_assignments",
    "list_maintenance_candidates",
    "list_open_maintenance_logs",
    "list_overdue_assignments",
    "update_equipment_status",
]
