"""Status enumerations shared by the ORM models and the API schemas."""

import enum


class BookingStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_BOOKING_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})


class LocationType(str, enum.Enum):
    STUDIO = "STUDIO"
    OUTDOOR = "OUTDOOR"
    CLIENT_LOCATION = "CLIENT_LOCATION"
    EVENT_VENUE = "EVENT_VENUE"
    VIRTUAL = "VIRTUAL"


class AssignmentStatus(str, enum.Enum):
    # staff
    PROPOSED = "PROPOSED"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    # equipment
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class EquipmentStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    IN_USE = "IN_USE"
    MAINTENANCE = "MAINTENANCE"
    RETIRED = "RETIRED"


class RecurrenceFrequency(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


__all__ = [
    "AssignmentStatus",
    "BookingStatus",
    "EquipmentStatus",
    "LocationType",
    "RecurrenceFrequency",
    "TERMINAL_BOOKING_STATUSES",
]
