from __future__ import annotations

from typing import Optional, Union

from sqlalchemy.orm import Session

from studio_scheduling.core.resources import ResourceKind
from studio_scheduling.models.equipment import Equipment
from studio_scheduling.models.enums import EquipmentStatus
from studio_scheduling.models.room import Room
from studio_scheduling.models.staff_member import StaffMember

Resource = Union[StaffMember, Equipment, Room]

_MODELS = {
    ResourceKind.STAFF: StaffMember,
    ResourceKind.EQUIPMENT: Equipment,
    ResourceKind.ROOM: Room,
}


def get_resource(
    db: Session,
    kind: ResourceKind,
    resource_id: int,
    *,
    studio_id: Optional[int] = None,
) -> Optional[Resource]:
    model = _MODELS[ResourceKind(kind)]
    query = db.query(model).filter(model.id == resource_id)
    if studio_id is not None:
        query = query.filter(model.studio_id == studio_id)
    return query.first()


def list_staff(db: Session, *, studio_id: Optional[int] = None) -> list[StaffMember]:
    query = db.query(StaffMember)
    if studio_id is not None:
        query = query.filter(StaffMember.studio_id == studio_id)
    return query.order_by(StaffMember.name).all()


def list_rooms(db: Session, *, studio_id: Optional[int] = None) -> list[Room]:
    query = db.query(Room)
    if studio_id is not None:
        query = query.filter(Room.studio_id == studio_id)
    return query.order_by(Room.name).all()


def list_equipment(
    db: Session,
    *,
    studio_id: Optional[int] = None,
    status_filter: Optional[EquipmentStatus] = None,
    category: Optional[str] = None,
) -> list[Equipment]:
    query = db.query(Equipment)
    if studio_id is not None:
        query = query.filter(Equipment.studio_id == studio_id)
    if status_filter is not None:
        query = query.filter(Equipment.status == status_filter)
    if category is not None:
        query = query.filter(Equipment.category == category)
    return query.order_by(Equipment.name).all()


def create_resource(db: Session, resource: Resource) -> Resource:
    db.add(resource)
    db.flush()
    return resource


__all__ = [
    "Resource",
    "create_resource",
    "get_resource",
    "list_equipment",
    "list_rooms",
    "list_staff",
]
