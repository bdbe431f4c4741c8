import threading
from datetime import date, datetime

import pytest

from conftest import STUDIO_ID, window
from studio_scheduling.core.database import SessionLocal
from studio_scheduling.core.exceptions import (
    ConcurrencyError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from studio_scheduling.core.interval import Buffers
from studio_scheduling.core.resources import ResourceKind
from studio_scheduling.models.booking import Booking
from studio_scheduling.models.enums import (
    AssignmentStatus,
    BookingStatus,
    RecurrenceFrequency,
)
from studio_scheduling.services.availability_service import AvailabilityService, SeriesPolicy
from studio_scheduling.services.booking_service import BookingService, StaffSlot
from studio_scheduling.services.recurrence import Recurrence


def _booking_count():
    session = SessionLocal()
    try:
        return session.query(Booking).count()
    finally:
        session.close()


def test_submit_creates_pending_booking_with_assignments(
    booking_service, candidate, notifier, make_staff, make_room, make_equipment
):
    staff_id = make_staff()
    room_id = make_room()
    equipment_id = make_equipment()

    [booking] = booking_service.submit(
        candidate(
            window(2, 10, 11),
            staff=[StaffSlot(staff_id, role="photographer")],
            rooms=[room_id],
            equipment=[equipment_id],
            buffers=Buffers.from_minutes(15, 30),
        )
    )

    booking = booking_service.get_booking(booking.id)
    assert booking.status == BookingStatus.PENDING
    statuses = {a.resource_kind: a.status for a in booking.assignments}
    assert statuses == {
        ResourceKind.STAFF: AssignmentStatus.PROPOSED,
        ResourceKind.EQUIPMENT: AssignmentStatus.OPEN,
        ResourceKind.ROOM: None,
    }
    for assignment in booking.assignments:
        assert assignment.effective_start == datetime(2024, 1, 2, 9, 45)
        assert assignment.effective_end == datetime(2024, 1, 2, 11, 30)
    assert notifier.proposals == [(staff_id, booking.id, "photographer")]


def test_conflicting_submit_creates_nothing(booking_service, candidate, make_equipment):
    equipment_id = make_equipment()
    booking_service.submit(candidate(window(2, 10, 12), equipment=[equipment_id]))

    with pytest.raises(ConflictError) as excinfo:
        booking_service.submit(candidate(window(2, 11, 13), equipment=[equipment_id]))

    assert _booking_count() == 1
    assert excinfo.value.details[0]["resourceId"] == equipment_id
    assert excinfo.value.to_payload()["code"] == "resource_conflict"


def test_blank_title_is_rejected(booking_service, candidate):
    with pytest.raises(ValidationError):
        booking_service.submit(candidate(window(2, 10, 11), title="  "))


def test_recurring_submit_materialises_every_occurrence(booking_service, candidate, make_room):
    room_id = make_room()
    pattern = Recurrence(
        RecurrenceFrequency.WEEKLY, days_of_week=(0, 2), end_date=date(2024, 1, 10)
    )

    bookings = booking_service.submit(
        candidate(window(1, 9, 10), rooms=[room_id], recurrence=pattern)
    )

    assert [b.start_time.day for b in bookings] == [1, 3, 8, 10]
    root = bookings[0]
    assert root.parent_booking_id is None
    assert all(b.parent_booking_id == root.id for b in bookings[1:])
    assert booking_service.get_booking(root.id).recurrence.weekdays == [0, 2]
    assert [b.id for b in booking_service.list_series(bookings[2].id)] == [b.id for b in bookings]


def test_series_policy_decides_conflicting_occurrences(booking_service, candidate, make_room):
    room_id = make_room()
    booking_service.submit(candidate(window(3, 9, 10), rooms=[room_id]))
    pattern = Recurrence(RecurrenceFrequency.DAILY, end_date=date(2024, 1, 4))

    with pytest.raises(ConflictError) as excinfo:
        booking_service.submit(candidate(window(2, 9, 10), rooms=[room_id], recurrence=pattern))
    assert len(excinfo.value.details) == 1
    assert excinfo.value.details[0]["window"]["start"] == "2024-01-03T09:00:00"

    created = booking_service.submit(
        candidate(
            window(2, 9, 10),
            rooms=[room_id],
            recurrence=pattern,
            series_policy=SeriesPolicy.SKIP_CONFLICTS,
        )
    )
    assert [b.start_time.day for b in created] == [2, 4]


def test_confirm_requires_mandatory_staff(booking_service, candidate, make_staff):
    lead = make_staff("Lead")
    assistant = make_staff("Assistant")
    [booking] = booking_service.submit(
        candidate(
            window(2, 10, 11),
            staff=[StaffSlot(lead), StaffSlot(assistant, is_mandatory=False)],
        )
    )

    with pytest.raises(StateError) as excinfo:
        booking_service.confirm(booking.id)
    assert excinfo.value.current_state == "PENDING"

    lead_assignment = next(
        a for a in booking_service.get_booking(booking.id).assignments if a.resource_id == lead
    )
    booking_service.respond_to_assignment(lead_assignment.id, accept=True)

    confirmed = booking_service.confirm(booking.id)
    assert confirmed.status == BookingStatus.CONFIRMED
    assert confirmed.confirmed_at is not None


def test_admin_override_confirms_without_acceptance(booking_service, candidate, make_staff):
    [booking] = booking_service.submit(candidate(window(2, 10, 11), staff=[make_staff()]))

    assert booking_service.confirm(booking.id, override=True).status == BookingStatus.CONFIRMED


def test_staff_responses(booking_service, candidate, make_staff, make_room):
    staff_id = make_staff()
    [booking] = booking_service.submit(
        candidate(window(2, 10, 11), staff=[staff_id], rooms=[make_room()])
    )
    assignments = {a.resource_kind: a for a in booking_service.get_booking(booking.id).assignments}

    with pytest.raises(ValidationError):
        booking_service.respond_to_assignment(assignments[ResourceKind.ROOM].id, accept=True)

    declined = booking_service.respond_to_assignment(assignments[ResourceKind.STAFF].id, False)
    assert declined.status == AssignmentStatus.DECLINED

    with pytest.raises(StateError):
        booking_service.respond_to_assignment(declined.id, accept=True)
    with pytest.raises(NotFoundError):
        booking_service.respond_to_assignment(9999, accept=True)

    # A declined proposal frees the staff member for other bookings.
    [other] = booking_service.submit(candidate(window(2, 10, 11), staff=[staff_id]))
    assert other.id != booking.id


def test_start_waits_for_the_buffered_start(booking_service, candidate, clock):
    [booking] = booking_service.submit(
        candidate(window(2, 10, 11), buffers=Buffers.from_minutes(30, 0))
    )
    booking_service.confirm(booking.id)

    with pytest.raises(StateError):
        booking_service.start(booking.id)

    clock.now = datetime(2024, 1, 2, 9, 30)
    started = booking_service.start(booking.id)
    assert started.status == BookingStatus.IN_PROGRESS


def test_complete_closes_equipment_and_releases_resources(
    booking_service, candidate, clock, make_equipment
):
    equipment_id = make_equipment()
    [booking] = booking_service.submit(candidate(window(2, 10, 11), equipment=[equipment_id]))
    booking_service.confirm(booking.id)

    with pytest.raises(StateError):
        booking_service.complete(booking.id)

    clock.now = datetime(2024, 1, 2, 11)
    completed = booking_service.complete(booking.id)

    assert completed.status == BookingStatus.COMPLETED
    [assignment] = booking_service.get_booking(booking.id).assignments
    assert assignment.status == AssignmentStatus.CLOSED
    assert assignment.released_at == datetime(2024, 1, 2, 11)


def test_cancel_releases_and_is_terminal(booking_service, candidate, make_room):
    room_id = make_room()
    [booking] = booking_service.submit(candidate(window(2, 10, 11), rooms=[room_id]))

    cancelled = booking_service.cancel(booking.id, "client request")

    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancellation_reason == "client request"
    assert all(a.released_at is not None for a in cancelled.assignments)

    for transition in (
        booking_service.confirm,
        booking_service.start,
        booking_service.complete,
        booking_service.cancel,
    ):
        with pytest.raises(StateError):
            transition(booking.id)

    # The room is free again.
    booking_service.submit(candidate(window(2, 10, 11), rooms=[room_id]))


def test_illegal_transitions_raise_state_error(booking_service, candidate):
    [booking] = booking_service.submit(candidate(window(2, 10, 11)))

    with pytest.raises(StateError):
        booking_service.start(booking.id, override=True)
    with pytest.raises(StateError):
        booking_service.complete(booking.id, override=True)


def test_reschedule_moves_assignments(booking_service, candidate, make_room):
    room_id = make_room()
    [booking] = booking_service.submit(
        candidate(window(2, 10, 11), rooms=[room_id], buffers=Buffers.from_minutes(0, 15))
    )

    moved = booking_service.reschedule(booking.id, window(2, 10.5, 11.5))

    assert moved.start_time == datetime(2024, 1, 2, 10, 30)
    [assignment] = booking_service.get_booking(booking.id).assignments
    assert assignment.effective_start == datetime(2024, 1, 2, 10, 30)
    assert assignment.effective_end == datetime(2024, 1, 2, 11, 45)


def test_reschedule_conflict_leaves_booking_unchanged(booking_service, candidate, make_room):
    room_id = make_room()
    [booking] = booking_service.submit(candidate(window(2, 10, 11), rooms=[room_id]))
    booking_service.submit(candidate(window(2, 14, 15), rooms=[room_id]))

    with pytest.raises(ConflictError) as excinfo:
        booking_service.reschedule(booking.id, window(2, 14, 15))

    assert excinfo.value.details[0]["resourceId"] == room_id
    unchanged = booking_service.get_booking(booking.id)
    assert unchanged.start_time == datetime(2024, 1, 2, 10)
    assert unchanged.assignments[0].effective_start == datetime(2024, 1, 2, 10)


def test_reschedule_requires_pending_or_confirmed(booking_service, candidate):
    [booking] = booking_service.submit(candidate(window(2, 10, 11)))
    booking_service.cancel(booking.id)

    with pytest.raises(StateError):
        booking_service.reschedule(booking.id, window(3, 10, 11))


def test_unknown_booking_raises_not_found(booking_service):
    with pytest.raises(NotFoundError):
        booking_service.get_booking(12345)


def test_list_bookings_filters(booking_service, candidate):
    [first] = booking_service.submit(candidate(window(2, 10, 11)))
    [second] = booking_service.submit(candidate(window(5, 10, 11)))
    booking_service.cancel(second.id)

    pending = booking_service.list_bookings(
        studio_id=STUDIO_ID, status_filter=BookingStatus.PENDING
    )
    in_window = booking_service.list_bookings(within=window(5, 0, 23))

    assert [b.id for b in pending] == [first.id]
    assert [b.id for b in in_window] == [second.id]


def test_concurrent_submits_for_one_resource(clock, notifier, candidate, make_equipment):
    equipment_id = make_equipment()
    barrier = threading.Barrier(2)
    outcomes = []

    def submit():
        session = SessionLocal()
        try:
            service = BookingService(
                session,
                availability=AvailabilityService(SessionLocal, clock=clock),
                notifier=notifier,
                clock=clock,
            )
            barrier.wait()
            service.submit(candidate(window(2, 10, 11), equipment=[equipment_id]))
            outcomes.append("created")
        except (ConflictError, ConcurrencyError) as exc:
            outcomes.append(type(exc).__name__)
        finally:
            session.close()

    threads = [threading.Thread(target=submit) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert outcomes.count("created") == 1
    assert len(outcomes) == 2
    assert _booking_count() == 1
