"""Exclusive custody of physical equipment and its maintenance lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from studio_scheduling.core.config import settings
from studio_scheduling.core.exceptions import (
    ConcurrencyError,
    NotFoundError,
    StateError,
    ValidationError,
)
from studio_scheduling.core.interval import as_utc_naive, utcnow
from studio_scheduling.core.locks import ResourceLockManager, resource_locks
from studio_scheduling.core.resources import ResourceKey, ResourceKind
from studio_scheduling.models.enums import EquipmentStatus
from studio_scheduling.models.equipment import Equipment
from studio_scheduling.models.equipment_assignment import EquipmentAssignment
from studio_scheduling.models.maintenance_log import MaintenanceLog
from studio_scheduling.repository import booking_repository, equipment_repository
from studio_scheduling.services.notification_client import NotificationClient

logger = logging.getLogger(__name__)

_TRANSITIONS: Dict[EquipmentStatus, frozenset] = {
    EquipmentStatus.AVAILABLE: frozenset({EquipmentStatus.IN_USE, EquipmentStatus.MAINTENANCE}),
    EquipmentStatus.IN_USE: frozenset({EquipmentStatus.AVAILABLE, EquipmentStatus.MAINTENANCE}),
    EquipmentStatus.MAINTENANCE: frozenset({EquipmentStatus.AVAILABLE, EquipmentStatus.RETIRED}),
    EquipmentStatus.RETIRED: frozenset(),
}

_HOUR = Decimal("3600")
# Width of the condition columns on equipment and custody records.
_CONDITION_LENGTH = 30


def _hours_between(start: datetime, end: datetime) -> Decimal:
    seconds = Decimal(str(max((end - start).total_seconds(), 0)))
    return (seconds / _HOUR).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class MaintenanceDue:
    equipment: Equipment
    next_due_at: datetime
    days_until_due: int

    @property
    def is_overdue(self) -> bool:
        return self.days_until_due < 0


class EquipmentLedger:
    def __init__(
        self,
        db: Session,
        *,
        notifier: Optional[NotificationClient] = None,
        locks: Optional[ResourceLockManager] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.notifier = notifier or NotificationClient()
        self.locks = locks or resource_locks
        self._clock = clock

    def _get_equipment(self, equipment_id: int) -> Equipment:
        equipment = equipment_repository.get_equipment(self.db, equipment_id)
        if equipment is None:
            raise NotFoundError(f"Equipment {equipment_id} not found")
        return equipment

    @staticmethod
    def _ensure_transition(equipment: Equipment, target: EquipmentStatus) -> None:
        current = EquipmentStatus(equipment.status)
        if target not in _TRANSITIONS[current]:
            raise StateError(
                f"Equipment {equipment.id} is {current.value.lower()} and cannot move to "
                f"{target.value.lower()}",
                current_state=current.value,
            )

    def _ensure_returned(self, equipment: Equipment) -> None:
        equipment_id = equipment.id
        if equipment_repository.get_open_assignment(self.db, equipment_id) is not None:
            current = equipment.status.value
            self.db.rollback()
            raise StateError(
                f"Equipment {equipment_id} is checked out and must be checked in first",
                current_state=current,
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

    @staticmethod
    def _key(equipment_id: int) -> ResourceKey:
        return ResourceKey(ResourceKind.EQUIPMENT, int(equipment_id))

    def check_out(
        self,
        equipment_id: int,
        custodian_id: int,
        *,
        expected_return_at: datetime,
        booking_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> EquipmentAssignment:
        now = self._clock()
        expected_return_at = as_utc_naive(expected_return_at)
        if expected_return_at <= now:
            raise ValidationError("expected_return_at must be in the future")

        if booking_id is not None and booking_repository.get_booking(self.db, booking_id) is None:
            raise NotFoundError(f"Booking {booking_id} not found")

        with self.locks.guard([self._key(equipment_id)], db=self.db):
            equipment = self._get_equipment(equipment_id)
            self.db.refresh(equipment)

            if equipment.status != EquipmentStatus.AVAILABLE:
                raise StateError(
                    f"Equipment is {equipment.status.value.lower()}",
                    current_state=equipment.status.value,
                )
            if equipment_repository.get_open_assignment(self.db, equipment.id) is not None:
                raise StateError(
                    f"Equipment {equipment.id} is already checked out",
                    current_state=equipment.status.value,
                )

            try:
                record = equipment_repository.create_equipment_assignment(
                    self.db,
                    EquipmentAssignment(
                        equipment_id=equipment.id,
                        custodian_id=custodian_id,
                        booking_id=booking_id,
                        checked_out_at=now,
                        expected_return_at=expected_return_at,
                        check_out_condition=equipment.condition,
                        check_out_notes=notes,
                    ),
                )
                equipment_repository.update_equipment_status(
                    self.db, equipment, EquipmentStatus.IN_USE
                )
            except IntegrityError as exc:
                self.db.rollback()
                raise ConcurrencyError(
                    f"Equipment {equipment_id} was checked out by a concurrent request"
                ) from exc
            except SQLAlchemyError:
                self.db.rollback()
                raise
            self._commit("check out equipment")

        logger.info(
            "Equipment %s checked out to %s until %s",
            equipment_id,
            custodian_id,
            expected_return_at,
        )
        return record

    def check_in(
        self,
        assignment_id: int,
        condition: str,
        *,
        notes: Optional[str] = None,
        damage_reported: bool = False,
        damage_description: Optional[str] = None,
    ) -> EquipmentAssignment:
        record = equipment_repository.get_equipment_assignment(self.db, assignment_id)
        if record is None:
            raise NotFoundError(f"Equipment assignment {assignment_id} not found")
        if not condition or not condition.strip():
            raise ValidationError("condition is required")
        if len(condition) > _CONDITION_LENGTH:
            raise ValidationError(
                f"condition must be at most {_CONDITION_LENGTH} characters"
            )

        with self.locks.guard([self._key(record.equipment_id)], db=self.db):
            self.db.refresh(record)
            equipment = record.equipment
            self.db.refresh(equipment)
            if not record.is_open:
                current = equipment.status.value
                self.db.rollback()
                raise StateError("Equipment already checked in", current_state=current)
            if damage_reported and equipment.status != EquipmentStatus.MAINTENANCE:
                try:
                    self._ensure_transition(equipment, EquipmentStatus.MAINTENANCE)
                except StateError:
                    self.db.rollback()
                    raise

            now = self._clock()
            hours = _hours_between(record.checked_out_at, now)

            record.checked_in_at = now
            record.check_in_condition = condition
            record.check_in_notes = notes
            record.damage_reported = damage_reported
            record.damage_description = damage_description
            record.usage_hours = hours

            equipment.condition = condition
            equipment.usage_count = (equipment.usage_count or 0) + 1
            equipment.total_hours_used = Decimal(equipment.total_hours_used or 0) + hours

            reason = None
            try:
                if damage_reported:
                    reason = damage_description or "Damage reported"
                    equipment_repository.create_maintenance_log(
                        self.db,
                        MaintenanceLog(
                            equipment_id=equipment.id,
                            kind="repair",
                            description=f"Damage reported: {reason}",
                            performed_by="Pending",
                            notes=f"Reported during check-in by custodian {record.custodian_id}",
                            opened_at=now,
                        ),
                    )
                    if equipment.status != EquipmentStatus.MAINTENANCE:
                        equipment_repository.update_equipment_status(
                            self.db, equipment, EquipmentStatus.MAINTENANCE
                        )
                elif equipment.status == EquipmentStatus.IN_USE:
                    equipment_repository.update_equipment_status(
                        self.db, equipment, EquipmentStatus.AVAILABLE
                    )
            except SQLAlchemyError:
                self.db.rollback()
                raise
            self._commit("check in equipment")

        logger.info(
            "Equipment %s checked in after %s hour(s)%s",
            record.equipment_id,
            hours,
            " with damage" if damage_reported else "",
        )
        if reason is not None:
            self.notifier.notify_maintenance_needed(record.equipment_id, reason)
        return record

    def send_to_maintenance(
        self,
        equipment_id: int,
        reason: str,
        *,
        kind: str = "service",
    ) -> Equipment:
        with self.locks.guard([self._key(equipment_id)], db=self.db):
            equipment = self._get_equipment(equipment_id)
            self.db.refresh(equipment)
            self._ensure_transition(equipment, EquipmentStatus.MAINTENANCE)
            self._ensure_returned(equipment)

            try:
                equipment_repository.create_maintenance_log(
                    self.db,
                    MaintenanceLog(
                        equipment_id=equipment.id,
                        kind=kind,
                        description=reason,
                        performed_by="Pending",
                        opened_at=self._clock(),
                    ),
                )
                equipment_repository.update_equipment_status(
                    self.db, equipment, EquipmentStatus.MAINTENANCE
                )
            except SQLAlchemyError:
                self.db.rollback()
                raise
            self._commit("send equipment to maintenance")

        logger.info("Equipment %s sent to maintenance: %s", equipment_id, reason)
        self.notifier.notify_maintenance_needed(equipment_id, reason)
        return equipment

    def log_maintenance(
        self,
        equipment_id: int,
        *,
        description: str,
        performed_by: str,
        kind: str = "service",
        cost: Optional[Decimal] = None,
        notes: Optional[str] = None,
        next_due_at: Optional[datetime] = None,
    ) -> MaintenanceLog:
        """Record finished maintenance work.

        Open maintenance entries are closed and an item under maintenance goes
        back to AVAILABLE. Routine work on an available or checked out item
        leaves its status alone.
        """

        with self.locks.guard([self._key(equipment_id)], db=self.db):
            equipment = self._get_equipment(equipment_id)
            self.db.refresh(equipment)
            if equipment.status == EquipmentStatus.RETIRED:
                raise StateError(
                    f"Equipment {equipment.id} is retired",
                    current_state=equipment.status.value,
                )

            now = self._clock()
            try:
                for entry in equipment_repository.list_open_maintenance_logs(
                    self.db, equipment.id
                ):
                    entry.completed_at = now
                    if entry.performed_by == "Pending":
                        entry.performed_by = performed_by

                log = equipment_repository.create_maintenance_log(
                    self.db,
                    MaintenanceLog(
                        equipment_id=equipment.id,
                        kind=kind,
                        description=description,
                        performed_by=performed_by,
                        notes=notes,
                        cost=cost,
                        opened_at=now,
                        completed_at=now,
                    ),
                )

                equipment.last_maintenance_at = now
                equipment.next_maintenance_at = (
                    as_utc_naive(next_due_at) if next_due_at is not None else None
                )
                if equipment.status == EquipmentStatus.MAINTENANCE:
                    equipment_repository.update_equipment_status(
                        self.db, equipment, EquipmentStatus.AVAILABLE
                    )
            except SQLAlchemyError:
                self.db.rollback()
                raise
            self._commit("log maintenance")

        logger.info("Maintenance logged for equipment %s by %s", equipment_id, performed_by)
        return log

    def retire(self, equipment_id: int) -> Equipment:
        with self.locks.guard([self._key(equipment_id)], db=self.db):
            equipment = self._get_equipment(equipment_id)
            self.db.refresh(equipment)
            self._ensure_transition(equipment, EquipmentStatus.RETIRED)
            self._ensure_returned(equipment)

            try:
                equipment.retired_at = self._clock()
                equipment_repository.update_equipment_status(
                    self.db, equipment, EquipmentStatus.RETIRED
                )
            except SQLAlchemyError:
                self.db.rollback()
                raise
            self._commit("retire equipment")

        logger.info("Equipment %s retired", equipment_id)
        return equipment

    def maintenance_schedule(
        self,
        studio_id: int,
        *,
        days_ahead: int = 30,
    ) -> List[MaintenanceDue]:
        """Equipment due for maintenance within ``days_ahead`` days, overdue first.

        Items without a scheduled date fall due a fixed interval after their
        last maintenance, or after registration when never serviced.
        """

        if days_ahead < 0:
            raise ValidationError("days_ahead cannot be negative")

        now = self._clock()
        cutoff = now + timedelta(days=days_ahead)
        interval = timedelta(days=settings.MAINTENANCE_INTERVAL_DAYS)

        schedule = []
        for equipment in equipment_repository.list_maintenance_candidates(
            self.db, studio_id=studio_id, due_before=cutoff
        ):
            next_due = equipment.next_maintenance_at
            if next_due is None:
                next_due = (equipment.last_maintenance_at or equipment.created_at) + interval
            if next_due > cutoff:
                continue
            schedule.append(
                MaintenanceDue(
                    equipment=equipment,
                    next_due_at=next_due,
                    days_until_due=(next_due - now).days,
                )
            )

        return sorted(schedule, key=lambda due: (due.next_due_at, due.equipment.id))

    def list_assignments(
        self,
        equipment_id: int,
        *,
        open_only: bool = False,
    ) -> List[EquipmentAssignment]:
        self._get_equipment(equipment_id)
        return equipment_repository.list_assignments(
            self.db, equipment_id, open_only=open_only
        )

    def list_overdue_assignments(
        self,
        *,
        studio_id: Optional[int] = None,
    ) -> List[EquipmentAssignment]:
        return equipment_repository.list_overdue_assignments(
            self.db, now=self._clock(), studio_id=studio_id
        )


__all__ = ["EquipmentLedger", "MaintenanceDue"]
