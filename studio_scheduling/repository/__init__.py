"""Persistence helpers for the scheduling service."""

from studio_scheduling.repository import (
    assignment_repository,
    booking_repository,
    equipment_repository,
    resource_repository,
)

__all__ = [
    "assignment_repository",
    "booking_repository",
    "equipment_repository",
    "resource_repository",
]
