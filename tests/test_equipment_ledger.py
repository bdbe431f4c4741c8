import threading
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from conftest import STUDIO_ID, window
from studio_scheduling.core.database import SessionLocal
from studio_scheduling.core.exceptions import (
    ConcurrencyError,
    NotFoundError,
    StateError,
    ValidationError,
)
from studio_scheduling.core.resources import ResourceKey, ResourceKind
from studio_scheduling.models.enums import EquipmentStatus
from studio_scheduling.models.maintenance_log import MaintenanceLog
from studio_scheduling.repository import equipment_repository
from studio_scheduling.services.availability_service import ResourceRequest
from studio_scheduling.services.equipment_ledger import EquipmentLedger


def _status(db, equipment_id):
    db.expire_all()
    return equipment_repository.get_equipment(db, equipment_id).status


def test_check_out_marks_equipment_in_use(db, ledger, clock, make_equipment):
    equipment_id = make_equipment(condition="Excellent")

    record = ledger.check_out(
        equipment_id, 42, expected_return_at=clock() + timedelta(hours=3), notes="shoot"
    )

    assert record.is_open
    assert record.check_out_condition == "Excellent"
    assert record.custodian_id == 42
    assert _status(db, equipment_id) == EquipmentStatus.IN_USE


def test_equipment_is_exclusive(ledger, clock, make_equipment):
    equipment_id = make_equipment()
    ledger.check_out(equipment_id, 1, expected_return_at=clock() + timedelta(hours=1))

    with pytest.raises(StateError) as excinfo:
        ledger.check_out(equipment_id, 2, expected_return_at=clock() + timedelta(hours=1))

    assert excinfo.value.current_state == "IN_USE"
    assert len(ledger.list_assignments(equipment_id, open_only=True)) == 1


def test_check_out_validation(ledger, clock, make_equipment):
    equipment_id = make_equipment()

    with pytest.raises(ValidationError):
        ledger.check_out(equipment_id, 1, expected_return_at=clock() - timedelta(minutes=1))
    with pytest.raises(NotFoundError):
        ledger.check_out(404, 1, expected_return_at=clock() + timedelta(hours=1))
    with pytest.raises(NotFoundError):
        ledger.check_out(
            equipment_id, 1, expected_return_at=clock() + timedelta(hours=1), booking_id=404
        )


def test_check_in_round_trip(db, ledger, clock, notifier, make_equipment):
    equipment_id = make_equipment()
    record = ledger.check_out(equipment_id, 1, expected_return_at=clock() + timedelta(hours=4))
    clock.advance(hours=2, minutes=30)

    returned = ledger.check_in(record.id, "Good", notes="all fine")

    assert not returned.is_open
    assert returned.usage_hours == Decimal("2.50")
    equipment = equipment_repository.get_equipment(db, equipment_id)
    assert equipment.status == EquipmentStatus.AVAILABLE
    assert equipment.usage_count == 1
    assert equipment.total_hours_used == Decimal("2.50")
    assert notifier.maintenance == []

    with pytest.raises(StateError):
        ledger.check_in(record.id, "Good")


def test_damaged_check_in_goes_to_maintenance(db, ledger, clock, notifier, make_equipment):
    equipment_id = make_equipment()
    record = ledger.check_out(equipment_id, 9, expected_return_at=clock() + timedelta(hours=4))
    clock.advance(hours=1)

    ledger.check_in(
        record.id, "Damaged", damage_reported=True, damage_description="cracked lens"
    )

    equipment = equipment_repository.get_equipment(db, equipment_id)
    assert equipment.status == EquipmentStatus.MAINTENANCE
    assert equipment.condition == "Damaged"
    [log] = equipment_repository.list_open_maintenance_logs(db, equipment_id)
    assert log.kind == "repair"
    assert log.performed_by == "Pending"
    assert "cracked lens" in log.description
    assert notifier.maintenance == [(equipment_id, "cracked lens")]


def test_check_in_unknown_assignment(ledger):
    with pytest.raises(NotFoundError):
        ledger.check_in(404, "Good")


def test_maintenance_lifecycle(db, ledger, notifier, make_equipment):
    equipment_id = make_equipment()

    with pytest.raises(StateError):
        ledger.retire(equipment_id)

    ledger.send_to_maintenance(equipment_id, "sensor cleaning")
    assert _status(db, equipment_id) == EquipmentStatus.MAINTENANCE
    assert notifier.maintenance == [(equipment_id, "sensor cleaning")]

    log = ledger.log_maintenance(
        equipment_id,
        description="Sensor cleaned",
        performed_by="Camera Shop",
        cost=Decimal("80.00"),
    )
    assert log.completed_at is not None
    assert _status(db, equipment_id) == EquipmentStatus.AVAILABLE
    assert equipment_repository.list_open_maintenance_logs(db, equipment_id) == []
    closed = db.query(MaintenanceLog).filter(MaintenanceLog.equipment_id == equipment_id).all()
    assert len(closed) == 2

    ledger.send_to_maintenance(equipment_id, "shutter worn out")
    retired = ledger.retire(equipment_id)
    assert retired.status == EquipmentStatus.RETIRED
    assert retired.retired_at is not None

    with pytest.raises(StateError):
        ledger.send_to_maintenance(equipment_id, "again")
    with pytest.raises(StateError):
        ledger.log_maintenance(equipment_id, description="x", performed_by="y")


def test_retired_equipment_cannot_be_checked_out(ledger, clock, make_equipment):
    equipment_id = make_equipment(status=EquipmentStatus.RETIRED)

    with pytest.raises(StateError) as excinfo:
        ledger.check_out(equipment_id, 1, expected_return_at=clock() + timedelta(hours=1))

    assert excinfo.value.current_state == "RETIRED"


def test_overdue_assignments(ledger, clock, make_equipment):
    late = make_equipment("Late")
    on_time = make_equipment("On time")
    late_record = ledger.check_out(late, 1, expected_return_at=clock() + timedelta(hours=1))
    ledger.check_out(on_time, 1, expected_return_at=clock() + timedelta(days=2))

    clock.advance(hours=3)

    assert [r.id for r in ledger.list_overdue_assignments(studio_id=STUDIO_ID)] == [late_record.id]
    assert ledger.list_overdue_assignments(studio_id=99) == []


def test_checked_out_equipment_is_unavailable_for_bookings(
    ledger, availability, clock, make_equipment
):
    equipment_id = make_equipment()
    ledger.check_out(equipment_id, 1, expected_return_at=clock() + timedelta(hours=2))

    report = availability.check_availability(
        STUDIO_ID, window(1, 12, 13), None, ResourceRequest.of(equipment_ids=[equipment_id])
    )

    result = report.resources[ResourceKey(ResourceKind.EQUIPMENT, equipment_id)]
    assert not result.is_available
    assert result.conflicts[0].source == "custody"


def test_concurrent_check_outs(clock, notifier, make_equipment):
    equipment_id = make_equipment()
    barrier = threading.Barrier(2)
    outcomes = []

    def check_out(custodian_id):
        session = SessionLocal()
        try:
            ledger = EquipmentLedger(session, notifier=notifier, clock=clock)
            barrier.wait()
            ledger.check_out(
                equipment_id, custodian_id, expected_return_at=clock() + timedelta(hours=1)
            )
            outcomes.append("checked_out")
        except (StateError, ConcurrencyError) as exc:
            outcomes.append(type(exc).__name__)
        finally:
            session.close()

    threads = [threading.Thread(target=check_out, args=(n,)) for n in (1, 2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert outcomes.count("checked_out") == 1
    assert len(outcomes) == 2


def test_checked_out_equipment_must_come_back_before_maintenance(
    db, ledger, clock, make_equipment
):
    equipment_id = make_equipment()
    record = ledger.check_out(equipment_id, 5, expected_return_at=clock() + timedelta(hours=2))

    with pytest.raises(StateError) as excinfo:
        ledger.send_to_maintenance(equipment_id, "strap frayed")

    assert excinfo.value.current_state == "IN_USE"
    assert _status(db, equipment_id) == EquipmentStatus.IN_USE
    assert equipment_repository.list_open_maintenance_logs(db, equipment_id) == []

    equipment = equipment_repository.get_equipment(db, equipment_id)
    equipment.status = EquipmentStatus.MAINTENANCE
    db.commit()

    with pytest.raises(StateError):
        ledger.retire(equipment_id)
    assert _status(db, equipment_id) == EquipmentStatus.MAINTENANCE

    ledger.check_in(record.id, "Fair", damage_reported=True, damage_description="strap")
    assert ledger.retire(equipment_id).status == EquipmentStatus.RETIRED


def test_refused_damaged_check_in_changes_nothing(db, ledger, clock, make_equipment):
    equipment_id = make_equipment()
    record = ledger.check_out(equipment_id, 5, expected_return_at=clock() + timedelta(hours=2))
    equipment = equipment_repository.get_equipment(db, equipment_id)
    equipment.status = EquipmentStatus.RETIRED
    db.commit()

    with pytest.raises(StateError):
        ledger.check_in(record.id, "Broken", damage_reported=True)

    db.expire_all()
    assert equipment_repository.get_equipment_assignment(db, record.id).is_open
    assert equipment_repository.get_equipment(db, equipment_id).usage_count == 0
    assert equipment_repository.list_open_maintenance_logs(db, equipment_id) == []


def test_second_check_in_is_refused(ledger, clock, make_equipment):
    equipment_id = make_equipment()
    record = ledger.check_out(equipment_id, 5, expected_return_at=clock() + timedelta(hours=2))
    ledger.check_in(record.id, "Good")

    with pytest.raises(StateError):
        ledger.check_in(record.id, "Good")


def test_check_in_condition_length(ledger, clock, make_equipment):
    equipment_id = make_equipment()
    record = ledger.check_out(equipment_id, 5, expected_return_at=clock() + timedelta(hours=2))

    with pytest.raises(ValidationError):
        ledger.check_in(record.id, "x" * 31)

    assert ledger.check_in(record.id, "x" * 30).check_in_condition == "x" * 30


def test_maintenance_schedule(ledger, clock, make_equipment):
    soon = make_equipment("Soon")
    overdue = make_equipment("Overdue")
    later = make_equipment("Later")
    retired = make_equipment("Retired")
    make_equipment("Never serviced")

    ledger.log_maintenance(
        soon, description="Check", performed_by="Shop", next_due_at=datetime(2024, 1, 10)
    )
    ledger.log_maintenance(
        overdue, description="Check", performed_by="Shop", next_due_at=datetime(2023, 12, 25)
    )
    ledger.log_maintenance(
        later, description="Check", performed_by="Shop", next_due_at=datetime(2024, 3, 1)
    )
    ledger.log_maintenance(
        retired, description="Check", performed_by="Shop", next_due_at=datetime(2023, 12, 1)
    )
    ledger.send_to_maintenance(retired, "end of life")
    ledger.retire(retired)

    schedule = ledger.maintenance_schedule(STUDIO_ID, days_ahead=30)

    assert [due.equipment.id for due in schedule] == [overdue, soon]
    assert schedule[0].is_overdue
    assert schedule[0].days_until_due < 0
    assert not schedule[1].is_overdue
    assert schedule[1].next_due_at == datetime(2024, 1, 10)
    assert ledger.maintenance_schedule(2) == []


def test_maintenance_schedule_rejects_negative_horizon(ledger):
    with pytest.raises(ValidationError):
        ledger.maintenance_schedule(STUDIO_ID, days_ahead=-1)
