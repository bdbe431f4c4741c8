import time

import pytest

from conftest import STUDIO_ID, window
from studio_scheduling.core.database import SessionLocal
from studio_scheduling.core.exceptions import DeadlineExceededError, NotFoundError
from studio_scheduling.core.interval import Buffers
from studio_scheduling.core.resources import ResourceKey, ResourceKind
from studio_scheduling.models.enums import EquipmentStatus
from studio_scheduling.services.availability_service import (
    AvailabilityService,
    ResourceRequest,
    SeriesPolicy,
)


def test_buffer_enforcement(availability, booking_service, candidate, make_room):
    room_id = make_room()
    booking_service.submit(
        candidate(window(2, 10, 11), rooms=[room_id], buffers=Buffers.from_minutes(0, 30))
    )
    request = ResourceRequest.of(room_ids=[room_id])

    at_eleven = availability.check_availability(STUDIO_ID, window(2, 11, 12), None, request)
    at_half_past = availability.check_availability(STUDIO_ID, window(2, 11.5, 12.5), None, request)

    assert not at_eleven.is_available
    assert at_half_past.is_available


def test_every_requested_resource_is_reported(
    availability, booking_service, candidate, make_staff, make_room, make_equipment
):
    busy_staff = make_staff("Busy")
    free_staff = make_staff("Free")
    room_id = make_room()
    equipment_id = make_equipment()
    booking_service.submit(candidate(window(2, 9, 12), staff=[busy_staff]))

    report = availability.check_availability(
        STUDIO_ID,
        window(2, 10, 11),
        Buffers(),
        ResourceRequest.of(
            staff_ids=[busy_staff, free_staff],
            room_ids=[room_id],
            equipment_ids=[equipment_id],
        ),
    )

    assert not report.is_available
    assert len(report.resources) == 4
    assert [r.key for r in report.unavailable()] == [ResourceKey(ResourceKind.STAFF, busy_staff)]
    assert report.resources[ResourceKey(ResourceKind.STAFF, free_staff)].is_available
    detail = report.conflict_details()[0]
    assert detail["resourceId"] == busy_staff
    assert detail["resourceKind"] == "STAFF"
    assert detail["conflicts"][0]["source"] == "booking"


def test_same_id_in_different_kinds_is_reported_separately(
    availability, make_staff, make_room
):
    staff_id = make_staff()
    room_id = make_room()
    assert staff_id == room_id

    report = availability.check_availability(
        STUDIO_ID,
        window(2, 10, 11),
        None,
        ResourceRequest.of(staff_ids=[staff_id], room_ids=[room_id]),
    )

    assert set(report.resources) == {
        ResourceKey(ResourceKind.STAFF, staff_id),
        ResourceKey(ResourceKind.ROOM, room_id),
    }


def test_excluding_a_booking_removes_its_own_conflicts(
    availability, booking_service, candidate, make_room
):
    room_id = make_room()
    [booking] = booking_service.submit(candidate(window(2, 10, 11), rooms=[room_id]))

    report = availability.check_availability(
        STUDIO_ID,
        window(2, 10.5, 11.5),
        None,
        ResourceRequest.of(room_ids=[room_id]),
        exclude_booking_id=booking.id,
    )

    assert report.is_available


def test_retired_and_inactive_resources_are_blocked(
    availability, make_staff, make_equipment
):
    staff_id = make_staff(is_active=False)
    equipment_id = make_equipment(status=EquipmentStatus.RETIRED)

    report = availability.check_availability(
        STUDIO_ID,
        window(2, 10, 11),
        None,
        ResourceRequest.of(staff_ids=[staff_id], equipment_ids=[equipment_id]),
    )

    reasons = {key.kind: result.blocked_reason for key, result in report.resources.items()}
    assert reasons == {ResourceKind.STAFF: "inactive", ResourceKind.EQUIPMENT: "retired"}
    assert not report.is_available


def test_equipment_under_maintenance_is_blocked(availability, make_equipment):
    equipment_id = make_equipment(status=EquipmentStatus.MAINTENANCE)

    report = availability.check_availability(
        STUDIO_ID,
        window(20, 10, 11),
        None,
        ResourceRequest.of(equipment_ids=[equipment_id]),
    )

    [result] = report.resources.values()
    assert result.blocked_reason == "maintenance"
    assert not report.is_available


def test_report_without_a_substituted_resource(
    availability, booking_service, candidate, make_room, make_equipment
):
    room_id = make_room()
    camera_id = make_equipment()
    booking_service.submit(candidate(window(2, 10, 11), equipment=[camera_id]))

    report = availability.check_availability(
        STUDIO_ID,
        window(2, 10, 11),
        None,
        ResourceRequest.of(room_ids=[room_id], equipment_ids=[camera_id]),
    )
    camera_key = ResourceKey(ResourceKind.EQUIPMENT, camera_id)
    remaining = report.without(camera_key)

    assert not report.is_available
    assert remaining.is_available
    assert list(remaining.resources) == [ResourceKey(ResourceKind.ROOM, room_id)]
    assert camera_key in report.resources


def test_unknown_resource_propagates_not_found(availability):
    with pytest.raises(NotFoundError):
        availability.check_availability(
            STUDIO_ID, window(2, 10, 11), None, ResourceRequest.of(room_ids=[404])
        )


def test_no_resources_is_trivially_available(availability):
    report = availability.check_availability(STUDIO_ID, window(2, 10, 11), None, ResourceRequest())

    assert report.is_available
    assert report.resources == {}


def test_deadline_abandons_slow_checks(clock, make_room):
    room_id = make_room()

    def slow_session():
        time.sleep(0.5)
        return SessionLocal()

    service = AvailabilityService(slow_session, clock=clock, timeout=0.05)

    with pytest.raises(DeadlineExceededError):
        service.check_availability(
            STUDIO_ID, window(2, 10, 11), None, ResourceRequest.of(room_ids=[room_id])
        )


def test_series_report_and_policies(availability, booking_service, candidate, make_room):
    room_id = make_room()
    booking_service.submit(candidate(window(3, 10, 11), rooms=[room_id]))
    windows = [window(day, 10, 11) for day in (2, 3, 4)]

    series = availability.check_series(
        STUDIO_ID, windows, None, ResourceRequest.of(room_ids=[room_id])
    )

    assert [report.is_available for report in series.occurrences] == [True, False, True]
    assert series.accepted(SeriesPolicy.ALL_OR_NOTHING) == []
    assert [r.window for r in series.accepted(SeriesPolicy.SKIP_CONFLICTS)] == [
        windows[0],
        windows[2],
    ]
    assert [r.window for r in series.conflicting()] == [windows[1]]
