"""Detection of assignments that overlap a candidate window for one resource."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from sqlalchemy.orm import Session

from studio_scheduling.core.config import settings
from studio_scheduling.core.exceptions import NotFoundError
from studio_scheduling.core.interval import TimeWindow, span, utcnow
from studio_scheduling.core.resources import ResourceKey, ResourceKind, policy_for
from studio_scheduling.models.enums import EquipmentStatus
from studio_scheduling.models.equipment_assignment import EquipmentAssignment
from studio_scheduling.repository import assignment_repository, resource_repository
from studio_scheduling.repository.resource_repository import Resource

SOURCE_BOOKING = "booking"
SOURCE_CUSTODY = "custody"


@dataclass(frozen=True)
class Conflict:
    """An existing use of a resource that overlaps the candidate window."""

    resource: ResourceKey
    window: TimeWindow
    source: str
    assignment_id: int
    booking_id: Optional[int] = None

    def as_dict(self) -> dict:
        return {
            "bookingId": self.booking_id,
            "assignmentId": self.assignment_id,
            "source": self.source,
            "window": self.window.as_dict(),
        }


@dataclass(frozen=True)
class ResourceLookup:
    key: ResourceKey
    blocked_reason: Optional[str] = None


@dataclass(frozen=True)
class Assessment:
    lookup: ResourceLookup
    # One list per requested window, in request order.
    conflicts: List[List[Conflict]]


def blocked_reason_for(kind: ResourceKind, resource: Resource) -> Optional[str]:
    if kind is ResourceKind.EQUIPMENT:
        if resource.status == EquipmentStatus.RETIRED:
            return "retired"
        # Items under maintenance have no known return date.
        if resource.status == EquipmentStatus.MAINTENANCE:
            return "maintenance"
        return None
    if not resource.is_active:
        return "inactive"
    return None


class ConflictDetector:
    def __init__(
        self,
        db: Session,
        *,
        clock: Callable[[], datetime] = utcnow,
        custody_horizon: Optional[timedelta] = None,
    ) -> None:
        self.db = db
        self._clock = clock
        self._custody_horizon = custody_horizon or timedelta(
            hours=settings.EQUIPMENT_CUSTODY_HORIZON_HOURS
        )

    def lookup(self, studio_id: int, kind: ResourceKind, resource_id: int) -> ResourceLookup:
        kind = ResourceKind(kind)
        resource = resource_repository.get_resource(
            self.db, kind, resource_id, studio_id=studio_id
        )
        if resource is None:
            raise NotFoundError(f"{kind.value.title()} {resource_id} not found")
        return ResourceLookup(
            key=ResourceKey(kind, resource_id),
            blocked_reason=blocked_reason_for(kind, resource),
        )

    def custody_window(self, record: EquipmentAssignment) -> TimeWindow:
        """Window during which a custody record holds its equipment.

        An item that has not come back is assumed to stay out until at least
        now plus the custody horizon.
        """

        if record.checked_in_at is not None:
            end = record.checked_in_at
        else:
            end = max(record.expected_return_at, self._clock() + self._custody_horizon)
        if end <= record.checked_out_at:
            end = record.checked_out_at + timedelta(seconds=1)
        return TimeWindow(record.checked_out_at, end)

    def _existing_uses(
        self,
        studio_id: int,
        key: ResourceKey,
        within: TimeWindow,
        exclude_booking_id: Optional[int],
    ) -> List[Conflict]:
        uses = [
            Conflict(
                resource=key,
                window=assignment.effective_window,
                source=SOURCE_BOOKING,
                assignment_id=assignment.id,
                booking_id=assignment.booking_id,
            )
            for assignment in assignment_repository.fetch_active_assignments(
                self.db,
                studio_id,
                key.kind,
                key.resource_id,
                within=within,
                exclude_booking_id=exclude_booking_id,
            )
        ]

        if policy_for(key.kind).open_ended_custody:
            for record in assignment_repository.fetch_custody_records(
                self.db, key.resource_id, within=within
            ):
                if exclude_booking_id is not None and record.booking_id == exclude_booking_id:
                    continue
                uses.append(
                    Conflict(
                        resource=key,
                        window=self.custody_window(record),
                        source=SOURCE_CUSTODY,
                        assignment_id=record.id,
                        booking_id=record.booking_id,
                    )
                )

        return uses

    def assess(
        self,
        studio_id: int,
        kind: ResourceKind,
        resource_id: int,
        windows: Sequence[TimeWindow],
        *,
        exclude_booking_id: Optional[int] = None,
    ) -> Assessment:
        """Look the resource up and collect its conflicts for each of ``windows``.

        The resource's existing uses are read once for the span of all
        windows, so a whole recurring series costs one query per resource.
        """

        lookup = self.lookup(studio_id, kind, resource_id)
        if not windows:
            return Assessment(lookup=lookup, conflicts=[])

        uses = self._existing_uses(
            studio_id, lookup.key, span(windows), exclude_booking_id
        )
        return Assessment(
            lookup=lookup,
            conflicts=[
                sorted(
                    (use for use in uses if use.window.overlaps(window)),
                    key=lambda use: (use.window.start, use.assignment_id),
                )
                for window in windows
            ],
        )

    def find_conflicts_many(
        self,
        studio_id: int,
        kind: ResourceKind,
        resource_id: int,
        windows: Sequence[TimeWindow],
        *,
        exclude_booking_id: Optional[int] = None,
    ) -> List[List[Conflict]]:
        return self.assess(
            studio_id,
            kind,
            resource_id,
            windows,
            exclude_booking_id=exclude_booking_id,
        ).conflicts

    def find_conflicts(
        self,
        studio_id: int,
        kind: ResourceKind,
        resource_id: int,
        window: TimeWindow,
        *,
        exclude_booking_id: Optional[int] = None,
    ) -> List[Conflict]:
        return self.find_conflicts_many(
            studio_id,
            kind,
            resource_id,
            [window],
            exclude_booking_id=exclude_booking_id,
        )[0]


__all__ = [
    "Assessment",
    "Conflict",
    "ConflictDetector",
    "ResourceLookup",
    "SOURCE_BOOKING",
    "SOURCE_CUSTODY",
    "blocked_reason_for",
]
