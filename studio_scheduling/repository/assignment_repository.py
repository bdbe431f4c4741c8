from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from studio_scheduling.core.interval import TimeWindow
from studio_scheduling.core.resources import ResourceKind
from studio_scheduling.models.booking import Booking
from studio_scheduling.models.enums import AssignmentStatus, BookingStatus
from studio_scheduling.models.equipment_assignment import EquipmentAssignment
from studio_scheduling.models.resource_assignment import ResourceAssignment


def fetch_active_assignments(
    db: Session,
    studio_id: int,
    resource_kind: ResourceKind,
    resource_id: int,
    *,
    within: Optional[TimeWindow] = None,
    exclude_booking_id: Optional[int] = None,
) -> List[ResourceAssignment]:
    """Return the assignments still holding a resource.

    Assignments of cancelled bookings, released assignments and declined staff
    proposals do not hold anything.
    """

    query = (
        db.query(ResourceAssignment)
        .join(Booking, Booking.id == ResourceAssignment.booking_id)
        .filter(ResourceAssignment.studio_id == studio_id)
        .filter(ResourceAssignment.resource_kind == ResourceKind(resource_kind))
        .filter(ResourceAssignment.resource_id == resource_id)
        .filter(ResourceAssignment.released_at.is_(None))
        .filter(Booking.status != BookingStatus.CANCELLED)
        .filter(
            or_(
                ResourceAssignment.status.is_(None),
                ResourceAssignment.status != AssignmentStatus.DECLINED,
            )
        )
    )

    if within is not None:
        query = query.filter(ResourceAssignment.effective_start < within.end).filter(
            ResourceAssignment.effective_end > within.start
        )

    if exclude_booking_id is not None:
        query = query.filter(ResourceAssignment.booking_id != exclude_booking_id)

    return query.order_by(ResourceAssignment.effective_start).all()


def fetch_custody_records(
    db: Session,
    equipment_id: int,
    *,
    within: Optional[TimeWindow] = None,
) -> List[EquipmentAssignment]:
    """Return custody records that may overlap ``within``.

    Open records are always returned because their end is not known yet.
    """

    query = db.query(EquipmentAssignment).filter(
        EquipmentAssignment.equipment_id == equipment_id
    )

    if within is not None:
        query = query.filter(EquipmentAssignment.checked_out_at < within.end).filter(
            or_(
                EquipmentAssignment.checked_in_at.is_(None),
                EquipmentAssignment.checked_in_at > within.start,
            )
        )

    return query.order_by(EquipmentAssignment.checked_out_at).all()


def get_assignment(db: Session, assignment_id: int) -> Optional[ResourceAssignment]:
    return (
        db.query(ResourceAssignment)
        .options(joinedload(ResourceAssignment.booking))
        .filter(ResourceAssignment.id == assignment_id)
        .first()
    )


def insert_assignment(db: Session, assignment: ResourceAssignment) -> ResourceAssignment:
    db.add(assignment)
    db.flush()
    return assignment


def insert_assignments_atomic(
    db: Session,
    assignments: Iterable[ResourceAssignment],
) -> List[ResourceAssignment]:
    """Stage every assignment in the caller's transaction.

    Nothing is committed here; the caller commits (or rolls back) while it
    still holds the resource guard.
    """

    staged = list(assignments)
    db.add_all(staged)
    db.flush()
    return staged


def release_assignments(
    db: Session,
    booking: Booking,
    *,
    released_at: datetime,
) -> List[ResourceAssignment]:
    released = []
    for assignment in booking.assignments:
        if assignment.released_at is not None:
            continue
        assignment.released_at = released_at
        if assignment.resource_kind == ResourceKind.EQUIPMENT:
            assignment.status = AssignmentStatus.CLOSED
        released.append(assignment)
    db.flush()
    return released


__all__ = [
    "fetch_active_assignments",
    "fetch_custody_records",
    "get_assignment",
    "insert_assignment",
    "insert_assignments_atomic",
    "release_assignments",
]
