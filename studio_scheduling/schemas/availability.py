from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from studio_scheduling.core.interval import Buffers, TimeWindow
from studio_scheduling.core.resources import ResourceKind
from studio_scheduling.schemas.base import CamelModel
from studio_scheduling.services.availability_service import ResourceRequest


class AvailabilityQuery(CamelModel):
    studio_id: int = Field(..., gt=0)
    start_date_time: datetime
    end_date_time: datetime
    buffer_time_before: int = Field(0, ge=0)
    buffer_time_after: int = Field(0, ge=0)
    staff_ids: list[int] = Field(default_factory=list)
    equipment_ids: list[int] = Field(default_factory=list)
    room_ids: list[int] = Field(default_factory=list)
    exclude_booking_id: Optional[int] = None

    def window(self) -> TimeWindow:
        return TimeWindow(self.start_date_time, self.end_date_time)

    def buffers(self) -> Buffers:
        return Buffers.from_minutes(self.buffer_time_before, self.buffer_time_after)

    def resources(self) -> ResourceRequest:
        return ResourceRequest.of(
            staff_ids=self.staff_ids,
            equipment_ids=self.equipment_ids,
            room_ids=self.room_ids,
        )


class WindowResponse(CamelModel):
    start: datetime
    end: datetime


class ConflictResponse(CamelModel):
    booking_id: Optional[int] = None
    assignment_id: int
    source: str
    window: WindowResponse


class ResourceAvailabilityResponse(CamelModel):
    resource_id: int
    resource_kind: ResourceKind
    is_available: bool
    blocked_reason: Optional[str] = None
    conflicts: list[ConflictResponse] = Field(default_factory=list)
