"""Concurrent availability checks across every resource a booking requests."""

from __future__ import annotations

import enum
import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session, sessionmaker

from studio_scheduling.core.config import settings
from studio_scheduling.core.database import SessionLocal
from studio_scheduling.core.exceptions import DeadlineExceededError
from studio_scheduling.core.interval import Buffers, TimeWindow, utcnow
from studio_scheduling.core.resources import BufferPolicy, ResourceKey, ResourceKind, policy_for
from studio_scheduling.services.conflict_detector import Assessment, Conflict, ConflictDetector

logger = logging.getLogger(__name__)


class SeriesPolicy(str, enum.Enum):
    """What to do with a recurring series when some occurrences conflict."""

    ALL_OR_NOTHING = "ALL_OR_NOTHING"
    SKIP_CONFLICTS = "SKIP_CONFLICTS"


@dataclass(frozen=True)
class ResourceRequest:
    staff_ids: Tuple[int, ...] = ()
    equipment_ids: Tuple[int, ...] = ()
    room_ids: Tuple[int, ...] = ()

    @classmethod
    def of(
        cls,
        *,
        staff_ids: Iterable[int] = (),
        equipment_ids: Iterable[int] = (),
        room_ids: Iterable[int] = (),
    ) -> "ResourceRequest":
        return cls(tuple(staff_ids or ()), tuple(equipment_ids or ()), tuple(room_ids or ()))

    def keys(self) -> List[ResourceKey]:
        keys: List[ResourceKey] = []
        for kind, ids in (
            (ResourceKind.STAFF, self.staff_ids),
            (ResourceKind.EQUIPMENT, self.equipment_ids),
            (ResourceKind.ROOM, self.room_ids),
        ):
            for resource_id in ids:
                key = ResourceKey(kind, int(resource_id))
                if key not in keys:
                    keys.append(key)
        return keys


@dataclass
class ResourceAvailability:
    key: ResourceKey
    conflicts: List[Conflict] = field(default_factory=list)
    blocked_reason: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return not self.conflicts and self.blocked_reason is None

    def as_dict(self) -> dict:
        return {
            "resourceId": self.key.resource_id,
            "resourceKind": self.key.kind.value,
            "isAvailable": self.is_available,
            "blockedReason": self.blocked_reason,
            "conflicts": [conflict.as_dict() for conflict in self.conflicts],
        }


@dataclass
class AvailabilityReport:
    window: TimeWindow
    effective_window: TimeWindow
    resources: Dict[ResourceKey, ResourceAvailability] = field(default_factory=dict)

    @property
    def is_available(self) -> bool:
        return all(result.is_available for result in self.resources.values())

    def unavailable(self) -> List[ResourceAvailability]:
        return [result for result in self.resources.values() if not result.is_available]

    def without(self, *keys: ResourceKey) -> "AvailabilityReport":
        """Same report with ``keys`` dropped, for callers substituting a resource."""

        return AvailabilityReport(
            window=self.window,
            effective_window=self.effective_window,
            resources={key: value for key, value in self.resources.items() if key not in keys},
        )

    def conflict_details(self) -> List[dict]:
        return [result.as_dict() for result in self.unavailable()]


@dataclass
class SeriesAvailability:
    occurrences: List[AvailabilityReport]

    @property
    def is_available(self) -> bool:
        return all(report.is_available for report in self.occurrences)

    def conflicting(self) -> List[AvailabilityReport]:
        return [report for report in self.occurrences if not report.is_available]

    def accepted(self, policy: SeriesPolicy) -> List[AvailabilityReport]:
        """Occurrences that may be committed under ``policy``.

        ``ALL_OR_NOTHING`` accepts nothing as soon as one occurrence conflicts.
        """

        if SeriesPolicy(policy) is SeriesPolicy.ALL_OR_NOTHING:
            return list(self.occurrences) if self.is_available else []
        return [report for report in self.occurrences if report.is_available]

    def conflict_details(self) -> List[dict]:
        return [
            {
                "window": report.window.as_dict(),
                "resources": report.conflict_details(),
            }
            for report in self.conflicting()
        ]


def effective_for(key: ResourceKey, window: TimeWindow, buffers: Optional[Buffers]) -> TimeWindow:
    if policy_for(key.kind).buffer_policy is BufferPolicy.BOOKING:
        return window.effective(buffers)
    return window


class AvailabilityService:
    """Fans conflict checks out over a thread pool, one task per resource.

    Each task reads on its own session, so checks for different resources
    never share a connection and may be abandoned on timeout without side
    effects.
    """

    def __init__(
        self,
        session_factory: sessionmaker | Callable[[], Session] = SessionLocal,
        *,
        clock: Callable[[], datetime] = utcnow,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
        custody_horizon: Optional[timedelta] = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._max_workers = max_workers or settings.AVAILABILITY_MAX_WORKERS
        self._timeout = settings.AVAILABILITY_TIMEOUT_SECONDS if timeout is None else timeout
        self._custody_horizon = custody_horizon

    def _assess_resource(
        self,
        studio_id: int,
        key: ResourceKey,
        windows: Sequence[TimeWindow],
        exclude_booking_id: Optional[int],
    ) -> Assessment:
        db = self._session_factory()
        try:
            detector = ConflictDetector(
                db, clock=self._clock, custody_horizon=self._custody_horizon
            )
            return detector.assess(
                studio_id,
                key.kind,
                key.resource_id,
                windows,
                exclude_booking_id=exclude_booking_id,
            )
        finally:
            db.close()

    def _fan_out(
        self,
        studio_id: int,
        keys: List[ResourceKey],
        effective_windows: Dict[ResourceKey, List[TimeWindow]],
        exclude_booking_id: Optional[int],
        timeout: float,
    ) -> Dict[ResourceKey, Assessment]:
        if not keys:
            return {}

        executor = ThreadPoolExecutor(
            max_workers=min(len(keys), self._max_workers),
            thread_name_prefix="availability",
        )
        try:
            futures = {
                executor.submit(
                    self._assess_resource,
                    studio_id,
                    key,
                    effective_windows[key],
                    exclude_booking_id,
                ): key
                for key in keys
            }
            done, pending = wait(futures, timeout=timeout, return_when=FIRST_EXCEPTION)

            for future in done:
                error = future.exception()
                if error is not None:
                    raise error

            if pending:
                logger.warning(
                    "Availability check abandoned after %.2fs with %s resource(s) pending",
                    timeout,
                    len(pending),
                )
                raise DeadlineExceededError(
                    "Availability check did not finish before the deadline"
                )

            return {futures[future]: future.result() for future in done}
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def check_series(
        self,
        studio_id: int,
        windows: Sequence[TimeWindow],
        buffers: Optional[Buffers],
        resources: ResourceRequest,
        *,
        exclude_booking_id: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> SeriesAvailability:
        """One availability report per occurrence window."""

        windows = list(windows)
        keys = resources.keys()
        effective_windows = {
            key: [effective_for(key, window, buffers) for window in windows] for key in keys
        }

        assessments = self._fan_out(
            studio_id,
            keys,
            effective_windows,
            exclude_booking_id,
            self._timeout if timeout is None else timeout,
        )

        reports = []
        for index, window in enumerate(windows):
            report = AvailabilityReport(
                window=window,
                effective_window=window.effective(buffers),
            )
            for key in keys:
                assessment = assessments[key]
                report.resources[key] = ResourceAvailability(
                    key=key,
                    conflicts=assessment.conflicts[index],
                    blocked_reason=assessment.lookup.blocked_reason,
                )
            reports.append(report)

        return SeriesAvailability(occurrences=reports)

    def check_availability(
        self,
        studio_id: int,
        window: TimeWindow,
        buffers: Optional[Buffers],
        resources: ResourceRequest,
        *,
        exclude_booking_id: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> AvailabilityReport:
        return self.check_series(
            studio_id,
            [window],
            buffers,
            resources,
            exclude_booking_id=exclude_booking_id,
            timeout=timeout,
        ).occurrences[0]


__all__ = [
    "AvailabilityReport",
    "AvailabilityService",
    "ResourceAvailability",
    "ResourceRequest",
    "SeriesAvailability",
    "SeriesPolicy",
    "effective_for",
]
