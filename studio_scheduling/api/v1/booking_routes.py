"""API routes for bookings, availability checks and staff responses."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from studio_scheduling.core.interval import TimeWindow
from studio_scheduling.core.security import get_optional_user, is_admin, user_id_from
from studio_scheduling.dependencies import get_availability_service, get_booking_service
from studio_scheduling.models.enums import BookingStatus
from studio_scheduling.schemas.availability import AvailabilityQuery, ResourceAvailabilityResponse
from studio_scheduling.schemas.booking import (
    AssignmentReply,
    AssignmentResponse,
    BookingCancel,
    BookingCreate,
    BookingReschedule,
    BookingResponse,
    TransitionRequest,
)
from studio_scheduling.services.availability_service import AvailabilityService
from studio_scheduling.services.booking_service import BookingService

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _override_allowed(payload: Optional[TransitionRequest], user: Optional[dict]) -> bool:
    if payload is None or not payload.override:
        return False
    if not is_admin(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required to override",
        )
    return True


@router.post("/check-availability", response_model=List[ResourceAvailabilityResponse])
def check_availability(
    payload: AvailabilityQuery,
    service: AvailabilityService = Depends(get_availability_service),
) -> List[ResourceAvailabilityResponse]:
    """Report per-resource availability for a candidate window."""

    report = service.check_availability(
        payload.studio_id,
        payload.window(),
        payload.buffers(),
        payload.resources(),
        exclude_booking_id=payload.exclude_booking_id,
    )
    return [result.as_dict() for result in report.resources.values()]


@router.get("/", response_model=List[BookingResponse])
def list_bookings(
    *,
    service: BookingService = Depends(get_booking_service),
    studio_id: Optional[int] = Query(None, alias="studioId", description="Filter by studio"),
    status_filter: Optional[BookingStatus] = Query(
        None, alias="status", description="Filter by booking status"
    ),
    start: Optional[datetime] = Query(None, description="Window start"),
    end: Optional[datetime] = Query(None, description="Window end"),
) -> List[BookingResponse]:
    """Retrieve bookings optionally filtered by studio, status or time window."""

    within = None
    if start is not None and end is not None:
        within = TimeWindow(start, end)
    return service.list_bookings(studio_id=studio_id, status_filter=status_filter, within=within)


@router.post("/", response_model=List[BookingResponse], status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    user: Optional[dict] = Depends(get_optional_user),
) -> List[BookingResponse]:
    """Create a booking, or every accepted occurrence of a recurring one."""

    bookings = service.submit(payload.to_candidate(created_by=user_id_from(user)))
    return [service.get_booking(booking.id) for booking in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Retrieve a booking by its identifier."""

    return service.get_booking(booking_id)


@router.get("/{booking_id}/series", response_model=List[BookingResponse])
def list_series(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    """Retrieve every occurrence of the series the booking belongs to."""

    return service.list_series(booking_id)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
def confirm_booking(
    booking_id: int,
    payload: Optional[TransitionRequest] = None,
    service: BookingService = Depends(get_booking_service),
    user: Optional[dict] = Depends(get_optional_user),
) -> BookingResponse:
    booking = service.confirm(booking_id, override=_override_allowed(payload, user))
    return service.get_booking(booking.id)


@router.post("/{booking_id}/start", response_model=BookingResponse)
def start_booking(
    booking_id: int,
    payload: Optional[TransitionRequest] = None,
    service: BookingService = Depends(get_booking_service),
    user: Optional[dict] = Depends(get_optional_user),
) -> BookingResponse:
    booking = service.start(booking_id, override=_override_allowed(payload, user))
    return service.get_booking(booking.id)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
def complete_booking(
    booking_id: int,
    payload: Optional[TransitionRequest] = None,
    service: BookingService = Depends(get_booking_service),
    user: Optional[dict] = Depends(get_optional_user),
) -> BookingResponse:
    booking = service.complete(booking_id, override=_override_allowed(payload, user))
    return service.get_booking(booking.id)


@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
def reschedule_booking(
    booking_id: int,
    payload: BookingReschedule,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Move a booking to a new window, keeping its resources."""

    booking = service.reschedule(booking_id, payload.window(), payload.buffers())
    return service.get_booking(booking.id)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    payload: Optional[BookingCancel] = None,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a booking and release its resources."""

    booking = service.cancel(booking_id, payload.reason if payload else None)
    return service.get_booking(booking.id)


@router.post("/assignments/{assignment_id}/respond", response_model=AssignmentResponse)
def respond_to_assignment(
    assignment_id: int,
    payload: AssignmentReply,
    service: BookingService = Depends(get_booking_service),
) -> AssignmentResponse:
    """Accept or decline a proposed staff assignment."""

    return service.respond_to_assignment(assignment_id, payload.accept)
