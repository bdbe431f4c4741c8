"""Pydantic schemas for the scheduling service."""

from .availability import (
    AvailabilityQuery,
    ConflictResponse,
    ResourceAvailabilityResponse,
    WindowResponse,
)
from .booking import (
    AssignmentReply,
    AssignmentResponse,
    BookingCancel,
    BookingCreate,
    BookingReschedule,
    BookingResponse,
    RecurrenceRequest,
    RecurrenceResponse,
    StaffAssignmentRequest,
    TransitionRequest,
)
from .equipment import (
    CheckInRequest,
    CheckOutRequest,
    EquipmentAssignmentResponse,
    EquipmentCreate,
    EquipmentResponse,
    MaintenanceComplete,
    MaintenanceDueResponse,
    MaintenanceLogResponse,
    MaintenanceRequest,
)
from .resource import RoomCreate, RoomResponse, StaffCreate, StaffResponse

__all__ = [
    "AssignmentReply",
    "AssignmentResponse",
    "AvailabilityQuery",
    "BookingCancel",
    "BookingCreate",
    "BookingReschedule",
    "BookingResponse",
    "CheckInRequest",
    "CheckOutRequest",
    "ConflictResponse",
    "EquipmentAssignmentResponse",
    "EquipmentCreate",
    "EquipmentResponse",
    "MaintenanceComplete",
    "MaintenanceDueResponse",
    "MaintenanceLogResponse",
    "MaintenanceRequest",
    "RecurrenceRequest",
    "RecurrenceResponse",
    "ResourceAvailabilityResponse",
    "RoomCreate",
    "RoomResponse",
    "StaffAssignmentRequest",
    "StaffCreate",
    "StaffResponse",
    "TransitionRequest",
    "WindowResponse",
]
