from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studio_scheduling.core.exceptions import NotFoundError
from studio_scheduling.core.resources import ResourceKind
from studio_scheduling.models.enums import EquipmentStatus
from studio_scheduling.models.equipment import Equipment
from studio_scheduling.models.room import Room
from studio_scheduling.models.staff_member import StaffMember
from studio_scheduling.repository import resource_repository
from studio_scheduling.repository.resource_repository import Resource
from studio_scheduling.schemas.equipment import EquipmentCreate
from studio_scheduling.schemas.resource import RoomCreate, StaffCreate


class ResourceService:
    """Registry of the staff, rooms and equipment a studio can book."""

    def __init__(self, db: Session):
        self.db = db

    def _get(self, kind: ResourceKind, resource_id: int) -> Resource:
        resource = resource_repository.get_resource(self.db, kind, resource_id)
        if resource is None:
            raise NotFoundError(f"{kind.value.title()} {resource_id} not found")
        return resource

    def _create(self, resource: Resource) -> Resource:
        try:
            resource_repository.create_resource(self.db, resource)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(resource)
        return resource

    def list_staff(self, *, studio_id: Optional[int] = None) -> List[StaffMember]:
        return resource_repository.list_staff(self.db, studio_id=studio_id)

    def get_staff(self, staff_id: int) -> StaffMember:
        return self._get(ResourceKind.STAFF, staff_id)

    def create_staff(self, payload: StaffCreate) -> StaffMember:
        return self._create(StaffMember(**payload.model_dump()))

    def list_rooms(self, *, studio_id: Optional[int] = None) -> List[Room]:
        return resource_repository.list_rooms(self.db, studio_id=studio_id)

    def get_room(self, room_id: int) -> Room:
        return self._get(ResourceKind.ROOM, room_id)

    def create_room(self, payload: RoomCreate) -> Room:
        return self._create(Room(**payload.model_dump()))

    def list_equipment(
        self,
        *,
        studio_id: Optional[int] = None,
        status_filter: Optional[EquipmentStatus] = None,
        category: Optional[str] = None,
    ) -> List[Equipment]:
        return resource_repository.list_equipment(
            self.db,
            studio_id=studio_id,
            status_filter=status_filter,
            category=category,
        )

    def get_equipment(self, equipment_id: int) -> Equipment:
        return self._get(ResourceKind.EQUIPMENT, equipment_id)

    def create_equipment(self, payload: EquipmentCreate) -> Equipment:
        return self._create(
            Equipment(status=EquipmentStatus.AVAILABLE, **payload.model_dump())
        )


__all__ = ["ResourceService"]
