from __future__ import annotations

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from studio_scheduling.core.interval import Buffers, TimeWindow
from studio_scheduling.models.booking import Booking
from studio_scheduling.models.enums import BookingStatus


def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
    return (
        db.query(Booking)
        .options(selectinload(Booking.assignments), selectinload(Booking.recurrence))
        .filter(Booking.id == booking_id)
        .first()
    )


def list_bookings(
    db: Session,
    *,
    studio_id: Optional[int] = None,
    status_filter: Optional[BookingStatus] = None,
    within: Optional[TimeWindow] = None,
) -> list[Booking]:
    query = db.query(Booking).options(selectinload(Booking.assignments))

    if studio_id is not None:
        query = query.filter(Booking.studio_id == studio_id)
    if status_filter is not None:
        query = query.filter(Booking.status == status_filter)
    if within is not None:
        query = query.filter(Booking.start_time < within.end).filter(
            Booking.end_time > within.start
        )

    return query.order_by(Booking.start_time).all()


def list_series(db: Session, root_booking_id: int) -> list[Booking]:
    return (
        db.query(Booking)
        .options(selectinload(Booking.assignments))
        .filter(
            or_(
                Booking.id == root_booking_id,
                Booking.parent_booking_id == root_booking_id,
            )
        )
        .order_by(Booking.start_time)
        .all()
    )


def create_booking(db: Session, booking: Booking) -> Booking:
    db.add(booking)
    db.flush()
    return booking


def update_booking_window(
    db: Session,
    booking: Booking,
    window: TimeWindow,
    buffers: Optional[Buffers] = None,
) -> Booking:
    """Move a booking and re-derive the effective window of its assignments."""

    if buffers is not None:
        booking.buffer_before_minutes = int(buffers.before.total_seconds() // 60)
        booking.buffer_after_minutes = int(buffers.after.total_seconds() // 60)

    booking.start_time = window.start
    booking.end_time = window.end

    effective = booking.effective_window
    for assignment in booking.assignments:
        if assignment.released_at is not None:
            continue
        assignment.effective_start = effective.start
        assignment.effective_end = effective.end

    db.flush()
    return booking


__all__ = [
    "create_booking",
    "get_booking",
    "list_bookings",
    "list_series",
    "update_booking_window",
]
