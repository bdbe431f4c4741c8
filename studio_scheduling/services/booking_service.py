"""Booking lifecycle: submission, staff responses and state transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from studio_scheduling.core.exceptions import (
    ConcurrencyError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from studio_scheduling.core.interval import Buffers, TimeWindow, utcnow
from studio_scheduling.core.locks import ResourceLockManager, resource_locks
from studio_scheduling.core.resources import ResourceKey, ResourceKind
from studio_scheduling.models.booking import Booking, RecurrencePattern
from studio_scheduling.models.enums import (
    AssignmentStatus,
    BookingStatus,
    LocationType,
)
from studio_scheduling.models.resource_assignment import ResourceAssignment
from studio_scheduling.repository import assignment_repository, booking_repository
from studio_scheduling.services.availability_service import (
    AvailabilityService,
    ResourceRequest,
    SeriesPolicy,
    effective_for,
)
from studio_scheduling.services.conflict_detector import ConflictDetector
from studio_scheduling.services.notification_client import NotificationClient
from studio_scheduling.services.recurrence import Recurrence, materialize

logger = logging.getLogger(__name__)

_TRANSITIONS: Dict[BookingStatus, frozenset] = {
    BookingStatus.DRAFT: frozenset({BookingStatus.PENDING, BookingStatus.CANCELLED}),
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, BookingStatus.CANCELLED}
    ),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

_RESCHEDULABLE = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


@dataclass(frozen=True)
class StaffSlot:
    staff_id: int
    role: Optional[str] = None
    is_mandatory: bool = True


@dataclass
class BookingCandidate:
    """A booking that has not been persisted yet (the DRAFT state)."""

    studio_id: int
    title: str
    window: TimeWindow
    buffers: Buffers = field(default_factory=Buffers)
    staff: Sequence[StaffSlot] = ()
    equipment_ids: Sequence[int] = ()
    room_ids: Sequence[int] = ()
    location_type: LocationType = LocationType.STUDIO
    client_id: Optional[int] = None
    created_by: Optional[int] = None
    notes: Optional[str] = None
    recurrence: Optional[Recurrence] = None
    series_policy: SeriesPolicy = SeriesPolicy.ALL_OR_NOTHING

    def staff_slots(self) -> List[StaffSlot]:
        slots: Dict[int, StaffSlot] = {}
        for slot in self.staff:
            slots.setdefault(int(slot.staff_id), slot)
        return list(slots.values())

    def resource_request(self) -> ResourceRequest:
        return ResourceRequest.of(
            staff_ids=[slot.staff_id for slot in self.staff_slots()],
            equipment_ids=self.equipment_ids,
            room_ids=self.room_ids,
        )


class BookingService:
    def __init__(
        self,
        db: Session,
        *,
        availability: Optional[AvailabilityService] = None,
        notifier: Optional[NotificationClient] = None,
        locks: Optional[ResourceLockManager] = None,
        clock: Callable[[], datetime] = utcnow,
        custody_horizon: Optional[timedelta] = None,
    ) -> None:
        self.db = db
        self._clock = clock
        self._custody_horizon = custody_horizon
        self.availability = availability or AvailabilityService(
            sessionmaker(bind=db.get_bind(), autoflush=False),
            clock=clock,
            custody_horizon=custody_horizon,
        )
        self.notifier = notifier or NotificationClient()
        self.locks = locks or resource_locks

    # -- helpers ---------------------------------------------------------

    def _get_booking(self, booking_id: int) -> Booking:
        booking = booking_repository.get_booking(self.db, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    @staticmethod
    def _ensure_transition(booking: Booking, target: BookingStatus) -> None:
        current = BookingStatus(booking.status)
        if target not in _TRANSITIONS[current]:
            raise StateError(
                f"Booking {booking.id} cannot move from {current.value} to {target.value}",
                current_state=current.value,
            )

    @staticmethod
    def _held_keys(booking: Booking) -> List[ResourceKey]:
        keys = []
        for assignment in booking.assignments:
            if assignment.released_at is not None:
                continue
            if assignment.status == AssignmentStatus.DECLINED:
                continue
            if assignment.key not in keys:
                keys.append(assignment.key)
        return keys

    def _recheck(
        self,
        studio_id: int,
        keys: Sequence[ResourceKey],
        windows: Sequence[TimeWindow],
        buffers: Optional[Buffers],
        *,
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        """Re-run conflict detection on the writing session inside the guard."""

        detector = ConflictDetector(
            self.db, clock=self._clock, custody_horizon=self._custody_horizon
        )
        for key in keys:
            assessment = detector.assess(
                studio_id,
                key.kind,
                key.resource_id,
                [effective_for(key, window, buffers) for window in windows],
                exclude_booking_id=exclude_booking_id,
            )
            if assessment.lookup.blocked_reason is not None or any(assessment.conflicts):
                self.db.rollback()
                logger.warning(
                    "Resource %s was taken while the booking was being committed",
                    key.lock_name,
                )
                raise ConcurrencyError(
                    f"Resource {key.lock_name} was booked by a concurrent request"
                )

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConcurrencyError(f"Concurrent modification while trying to {action}") from exc
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _build_assignments(
        self,
        booking: Booking,
        candidate: BookingCandidate,
    ) -> List[ResourceAssignment]:
        def assignment(kind: ResourceKind, resource_id: int, **extra) -> ResourceAssignment:
            key = ResourceKey(kind, int(resource_id))
            effective = effective_for(key, booking.window, booking.buffers)
            return ResourceAssignment(
                booking=booking,
                studio_id=booking.studio_id,
                resource_kind=kind,
                resource_id=key.resource_id,
                effective_start=effective.start,
                effective_end=effective.end,
                **extra,
            )

        rows = [
            assignment(
                ResourceKind.STAFF,
                slot.staff_id,
                role=slot.role,
                is_mandatory=slot.is_mandatory,
                status=AssignmentStatus.PROPOSED,
            )
            for slot in candidate.staff_slots()
        ]
        rows.extend(
            assignment(ResourceKind.EQUIPMENT, equipment_id, status=AssignmentStatus.OPEN)
            for equipment_id in dict.fromkeys(candidate.equipment_ids)
        )
        rows.extend(
            assignment(ResourceKind.ROOM, room_id, status=None)
            for room_id in dict.fromkeys(candidate.room_ids)
        )
        return rows

    # -- submission ------------------------------------------------------

    def submit(self, candidate: BookingCandidate) -> List[Booking]:
        """Validate, check and persist a single or recurring booking.

        Returns the created bookings in chronological order; the first one
        carries the recurrence pattern and every other occurrence points to
        it through ``parent_booking_id``. Raises :class:`ConflictError` when
        the series policy rejects the request, in which case nothing is
        written.
        """

        if not candidate.title or not candidate.title.strip():
            raise ValidationError("title is required")

        occurrences = materialize(candidate.recurrence, candidate.window)
        resources = candidate.resource_request()

        series = self.availability.check_series(
            candidate.studio_id, occurrences, candidate.buffers, resources
        )
        accepted = series.accepted(candidate.series_policy)
        if not accepted:
            if candidate.recurrence is None:
                details = series.occurrences[0].conflict_details()
            else:
                details = series.conflict_details()
            raise ConflictError(
                "Requested resources are not available for the requested time",
                details=details,
                report=series,
            )

        skipped = len(occurrences) - len(accepted)
        if skipped:
            logger.info(
                "Skipping %s conflicting occurrence(s) of booking '%s'",
                skipped,
                candidate.title,
            )

        windows = [report.window for report in accepted]
        keys = resources.keys()

        with self.locks.guard(keys, db=self.db):
            self._recheck(candidate.studio_id, keys, windows, candidate.buffers)
            try:
                bookings = self._insert_series(candidate, windows)
            except SQLAlchemyError:
                self.db.rollback()
                raise
            self._commit("submit booking")

        logger.info(
            "Booking '%s' created with %s occurrence(s) starting at %s",
            candidate.title,
            len(bookings),
            bookings[0].start_time,
        )

        # One proposal per staff member for the whole series.
        root = bookings[0]
        for slot in candidate.staff_slots():
            self.notifier.notify_assignment_proposed(slot.staff_id, root.id, slot.role)

        return bookings

    def _insert_series(
        self,
        candidate: BookingCandidate,
        windows: Sequence[TimeWindow],
    ) -> List[Booking]:
        bookings: List[Booking] = []
        parent: Optional[Booking] = None

        for window in windows:
            booking = booking_repository.create_booking(
                self.db,
                Booking(
                    studio_id=candidate.studio_id,
                    title=candidate.title.strip(),
                    client_id=candidate.client_id,
                    created_by=candidate.created_by,
                    start_time=window.start,
                    end_time=window.end,
                    location_type=candidate.location_type,
                    status=BookingStatus.PENDING,
                    buffer_before_minutes=int(candidate.buffers.before.total_seconds() // 60),
                    buffer_after_minutes=int(candidate.buffers.after.total_seconds() // 60),
                    parent_booking_id=parent.id if parent is not None else None,
                    notes=candidate.notes,
                ),
            )

            if parent is None:
                parent = booking
                if candidate.recurrence is not None:
                    pattern = candidate.recurrence
                    booking.recurrence = RecurrencePattern(
                        frequency=pattern.frequency,
                        interval=pattern.interval,
                        end_date=pattern.end_date,
                        days_of_week=",".join(str(day) for day in pattern.days_of_week) or None,
                    )

            assignment_repository.insert_assignments_atomic(
                self.db, self._build_assignments(booking, candidate)
            )
            bookings.append(booking)

        return bookings

    # -- staff responses -------------------------------------------------

    def respond_to_assignment(self, assignment_id: int, accept: bool) -> ResourceAssignment:
        assignment = assignment_repository.get_assignment(self.db, assignment_id)
        if assignment is None:
            raise NotFoundError(f"Assignment {assignment_id} not found")
        if assignment.resource_kind != ResourceKind.STAFF:
            raise ValidationError("Only staff assignments can be accepted or declined")
        if assignment.booking.is_terminal:
            raise StateError(
                f"Booking {assignment.booking_id} is {assignment.booking.status.value}",
                current_state=assignment.booking.status.value,
            )
        if assignment.status != AssignmentStatus.PROPOSED:
            current = assignment.status.value if assignment.status else None
            raise StateError(
                f"Assignment {assignment_id} has already been answered",
                current_state=current,
            )

        assignment.status = AssignmentStatus.ACCEPTED if accept else AssignmentStatus.DECLINED
        assignment.responded_at = self._clock()
        self._commit("respond to assignment")

        logger.info(
            "Staff %s %s assignment %s on booking %s",
            assignment.resource_id,
            "accepted" if accept else "declined",
            assignment.id,
            assignment.booking_id,
        )
        return assignment

    # -- transitions -----------------------------------------------------

    def confirm(self, booking_id: int, *, override: bool = False) -> Booking:
        booking = self._get_booking(booking_id)
        self._ensure_transition(booking, BookingStatus.CONFIRMED)

        waiting = [
            assignment.resource_id
            for assignment in booking.assignments
            if assignment.resource_kind == ResourceKind.STAFF
            and assignment.is_mandatory
            and assignment.released_at is None
            and assignment.status != AssignmentStatus.ACCEPTED
        ]
        if waiting and not override:
            raise StateError(
                "Mandatory staff have not accepted yet: "
                + ", ".join(str(staff_id) for staff_id in waiting),
                current_state=booking.status.value,
            )
        if waiting:
            logger.warning(
                "Booking %s confirmed by admin override without staff %s",
                booking.id,
                waiting,
            )

        booking.status = BookingStatus.CONFIRMED
        booking.confirmed_at = self._clock()
        self._commit("confirm booking")
        logger.info("Booking %s confirmed", booking.id)
        return booking

    def start(self, booking_id: int, *, override: bool = False) -> Booking:
        booking = self._get_booking(booking_id)
        self._ensure_transition(booking, BookingStatus.IN_PROGRESS)

        now = self._clock()
        earliest = booking.effective_window.start
        if now < earliest and not override:
            raise StateError(
                f"Booking {booking.id} cannot start before {earliest.isoformat()}",
                current_state=booking.status.value,
            )

        booking.status = BookingStatus.IN_PROGRESS
        booking.started_at = now
        self._commit("start booking")
        logger.info("Booking %s started", booking.id)
        return booking

    def complete(self, booking_id: int, *, override: bool = False) -> Booking:
        booking = self._get_booking(booking_id)
        self._ensure_transition(booking, BookingStatus.COMPLETED)

        now = self._clock()
        if now < booking.end_time and not override:
            raise StateError(
                f"Booking {booking.id} cannot be completed before {booking.end_time.isoformat()}",
                current_state=booking.status.value,
            )

        booking.status = BookingStatus.COMPLETED
        booking.completed_at = now
        try:
            assignment_repository.release_assignments(self.db, booking, released_at=now)
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self._commit("complete booking")
        logger.info("Booking %s completed", booking.id)
        return booking

    def cancel(self, booking_id: int, reason: Optional[str] = None) -> Booking:
        booking = self._get_booking(booking_id)
        self._ensure_transition(booking, BookingStatus.CANCELLED)

        now = self._clock()
        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = now
        booking.cancellation_reason = reason
        try:
            released = assignment_repository.release_assignments(
                self.db, booking, released_at=now
            )
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self._commit("cancel booking")
        logger.info(
            "Booking %s cancelled, %s assignment(s) released", booking.id, len(released)
        )
        return booking

    def reschedule(
        self,
        booking_id: int,
        new_window: TimeWindow,
        buffers: Optional[Buffers] = None,
    ) -> Booking:
        """Move a booking, keeping every assignment it already holds.

        On conflict the booking is left untouched and :class:`ConflictError`
        carries the per-resource detail.
        """

        booking = self._get_booking(booking_id)
        if booking.status not in _RESCHEDULABLE:
            raise StateError(
                f"Booking {booking.id} cannot be rescheduled while {booking.status.value}",
                current_state=booking.status.value,
            )

        buffers = buffers or booking.buffers
        keys = self._held_keys(booking)
        resources = ResourceRequest.of(
            staff_ids=[key.resource_id for key in keys if key.kind is ResourceKind.STAFF],
            equipment_ids=[key.resource_id for key in keys if key.kind is ResourceKind.EQUIPMENT],
            room_ids=[key.resource_id for key in keys if key.kind is ResourceKind.ROOM],
        )

        report = self.availability.check_availability(
            booking.studio_id,
            new_window,
            buffers,
            resources,
            exclude_booking_id=booking.id,
        )
        if not report.is_available:
            raise ConflictError(
                f"Booking {booking.id} cannot be moved to the requested time",
                details=report.conflict_details(),
                report=report,
            )

        with self.locks.guard(keys, db=self.db):
            self.db.refresh(booking)
            if booking.status not in _RESCHEDULABLE:
                self.db.rollback()
                raise ConcurrencyError(
                    f"Booking {booking.id} changed state while being rescheduled"
                )
            self._recheck(
                booking.studio_id,
                keys,
                [new_window],
                buffers,
                exclude_booking_id=booking.id,
            )
            previous = booking.window
            try:
                booking_repository.update_booking_window(self.db, booking, new_window, buffers)
            except SQLAlchemyError:
                self.db.rollback()
                raise
            self._commit("reschedule booking")

        logger.info(
            "Booking %s moved from %s to %s", booking.id, previous.start, new_window.start
        )
        return booking

    # -- queries ---------------------------------------------------------

    def get_booking(self, booking_id: int) -> Booking:
        return self._get_booking(booking_id)

    def list_bookings(
        self,
        *,
        studio_id: Optional[int] = None,
        status_filter: Optional[BookingStatus] = None,
        within: Optional[TimeWindow] = None,
    ) -> List[Booking]:
        return booking_repository.list_bookings(
            self.db,
            studio_id=studio_id,
            status_filter=status_filter,
            within=within,
        )

    def list_series(self, booking_id: int) -> List[Booking]:
        booking = self._get_booking(booking_id)
        root_id = booking.parent_booking_id or booking.id
        return booking_repository.list_series(self.db, root_id)


__all__ = ["BookingCandidate", "BookingService", "StaffSlot"]
