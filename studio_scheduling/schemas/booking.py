from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import Field, field_validator

from studio_scheduling.core.interval import Buffers, TimeWindow
from studio_scheduling.core.resources import ResourceKind
from studio_scheduling.models.enums import (
    AssignmentStatus,
    BookingStatus,
    LocationType,
    RecurrenceFrequency,
)
from studio_scheduling.schemas.base import CamelModel
from studio_scheduling.services.availability_service import SeriesPolicy
from studio_scheduling.services.booking_service import BookingCandidate, StaffSlot
from studio_scheduling.services.recurrence import Recurrence


class StaffAssignmentRequest(CamelModel):
    staff_id: int = Field(..., gt=0)
    role: Optional[str] = Field(None, max_length=50)
    is_mandatory: bool = True


class RecurrenceRequest(CamelModel):
    frequency: RecurrenceFrequency
    interval: int = 1
    end_date: Optional[date] = None
    days_of_week: list[int] = Field(default_factory=list)

    def to_recurrence(self) -> Recurrence:
        return Recurrence(
            frequency=self.frequency,
            interval=self.interval,
            end_date=self.end_date,
            days_of_week=tuple(self.days_of_week),
        )


class BookingCreate(CamelModel):
    studio_id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=200)
    start_date_time: datetime
    end_date_time: datetime
    buffer_time_before: int = Field(0, ge=0)
    buffer_time_after: int = Field(0, ge=0)
    location_type: LocationType = LocationType.STUDIO
    client_id: Optional[int] = None
    notes: Optional[str] = None
    staff: list[StaffAssignmentRequest] = Field(default_factory=list)
    equipment_ids: list[int] = Field(default_factory=list)
    room_ids: list[int] = Field(default_factory=list)
    recurrence: Optional[RecurrenceRequest] = None
    series_policy: SeriesPolicy = SeriesPolicy.ALL_OR_NOTHING

    def to_candidate(self, *, created_by: Optional[int] = None) -> BookingCandidate:
        return BookingCandidate(
            studio_id=self.studio_id,
            title=self.title,
            window=TimeWindow(self.start_date_time, self.end_date_time),
            buffers=Buffers.from_minutes(self.buffer_time_before, self.buffer_time_after),
            staff=[
                StaffSlot(slot.staff_id, role=slot.role, is_mandatory=slot.is_mandatory)
                for slot in self.staff
            ],
            equipment_ids=self.equipment_ids,
            room_ids=self.room_ids,
            location_type=self.location_type,
            client_id=self.client_id,
            created_by=created_by,
            notes=self.notes,
            recurrence=self.recurrence.to_recurrence() if self.recurrence else None,
            series_policy=self.series_policy,
        )


class BookingReschedule(CamelModel):
    start_date_time: datetime
    end_date_time: datetime
    buffer_time_before: Optional[int] = Field(None, ge=0)
    buffer_time_after: Optional[int] = Field(None, ge=0)

    def window(self) -> TimeWindow:
        return TimeWindow(self.start_date_time, self.end_date_time)

    def buffers(self) -> Optional[Buffers]:
        if self.buffer_time_before is None and self.buffer_time_after is None:
            return None
        return Buffers.from_minutes(self.buffer_time_before, self.buffer_time_after)


class BookingCancel(CamelModel):
    reason: Optional[str] = None


class TransitionRequest(CamelModel):
    override: bool = False


class AssignmentReply(CamelModel):
    accept: bool


class AssignmentResponse(CamelModel):
    id: int
    booking_id: int
    resource_kind: ResourceKind
    resource_id: int
    role: Optional[str] = None
    is_mandatory: bool
    status: Optional[AssignmentStatus] = None
    effective_start: datetime
    effective_end: datetime
    responded_at: Optional[datetime] = None
    released_at: Optional[datetime] = None


class RecurrenceResponse(CamelModel):
    frequency: RecurrenceFrequency
    interval: int
    end_date: Optional[date] = None
    days_of_week: list[int] = Field(default_factory=list)

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _split_days(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [int(day) for day in value.split(",") if day]
        return value


class BookingResponse(CamelModel):
    id: int
    studio_id: int
    title: str
    client_id: Optional[int] = None
    created_by: Optional[int] = None
    start_time: datetime
    end_time: datetime
    location_type: LocationType
    status: BookingStatus
    buffer_before_minutes: int
    buffer_after_minutes: int
    parent_booking_id: Optional[int] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    assignments: list[AssignmentResponse] = Field(default_factory=list)
    recurrence: Optional[RecurrenceResponse] = None
