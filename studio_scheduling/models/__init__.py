"""SQLAlchemy models for the scheduling service."""
from studio_scheduling.models.booking import Booking, RecurrencePattern
from studio_scheduling.models.enums import (
    AssignmentStatus,
    BookingStatus,
    EquipmentStatus,
    LocationType,
    RecurrenceFrequency,
)
from studio_scheduling.models.equipment import Equipment
from studio_scheduling.models.equipment_assignment import EquipmentAssignment
from studio_scheduling.models.maintenance_log import MaintenanceLog
from studio_scheduling.models.resource_assignment import ResourceAssignment
from studio_scheduling.models.room import Room
from studio_scheduling.models.staff_member import StaffMember

__all__ = [
    "AssignmentStatus",
    "Booking",
    "BookingStatus",
    "Equipment",
    "EquipmentAssignment",
    "EquipmentStatus",
    "LocationType",
    "MaintenanceLog",
    "RecurrenceFrequency",
    "RecurrencePattern",
    "ResourceAssignment",
    "Room",
    "StaffMember",
]
