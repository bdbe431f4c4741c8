"""Service layer for the scheduling engine."""

from studio_scheduling.services.availability_service import (
    AvailabilityReport,
    AvailabilityService,
    ResourceRequest,
    SeriesAvailability,
    SeriesPolicy,
)
from studio_scheduling.services.booking_service import (
    BookingCandidate,
    BookingService,
    StaffSlot,
)
from studio_scheduling.services.conflict_detector import Conflict, ConflictDetector
from studio_scheduling.services.equipment_ledger import EquipmentLedger
from studio_scheduling.services.notification_client import NotificationClient
from studio_scheduling.services.recurrence import Recurrence, expand, materialize

__all__ = [
    "AvailabilityReport",
    "AvailabilityService",
    "BookingCandidate",
    "BookingService",
    "Conflict",
    "ConflictDetector",
    "EquipmentLedger",
    "NotificationClient",
    "Recurrence",
    "ResourceRequest",
    "SeriesAvailability",
    "SeriesPolicy",
    "StaffSlot",
    "expand",
    "materialize",
]
