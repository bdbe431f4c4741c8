from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from studio_scheduling.models.enums import EquipmentStatus
from studio_scheduling.schemas.base import CamelModel


class EquipmentCreate(CamelModel):
    studio_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=50)
    serial_number: Optional[str] = Field(None, max_length=100)
    condition: str = Field("Good", max_length=30)
    notes: Optional[str] = None


class EquipmentResponse(CamelModel):
    id: int
    studio_id: int
    name: str
    category: str
    serial_number: Optional[str] = None
    status: EquipmentStatus
    condition: str
    notes: Optional[str] = None
    usage_count: int
    total_hours_used: Decimal
    last_maintenance_at: Optional[datetime] = None
    next_maintenance_at: Optional[datetime] = None
    retired_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CheckOutRequest(CamelModel):
    custodian_id: int = Field(..., gt=0)
    booking_id: Optional[int] = None
    expected_return_at: datetime
    notes: Optional[str] = None


class CheckInRequest(CamelModel):
    condition: str = Field(..., min_length=1, max_length=30)
    notes: Optional[str] = None
    damage_reported: bool = False
    damage_description: Optional[str] = None


class EquipmentAssignmentResponse(CamelModel):
    id: int
    equipment_id: int
    custodian_id: int
    booking_id: Optional[int] = None
    checked_out_at: datetime
    expected_return_at: datetime
    checked_in_at: Optional[datetime] = None
    check_out_condition: Optional[str] = None
    check_in_condition: Optional[str] = None
    check_out_notes: Optional[str] = None
    check_in_notes: Optional[str] = None
    damage_reported: bool
    damage_description: Optional[str] = None
    usage_hours: Optional[Decimal] = None


class MaintenanceRequest(CamelModel):
    reason: str = Field(..., min_length=1)
    kind: str = Field("service", max_length=30)


class MaintenanceComplete(CamelModel):
    description: str = Field(..., min_length=1)
    performed_by: str = Field(..., min_length=1, max_length=200)
    kind: str = Field("service", max_length=30)
    cost: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    next_due_at: Optional[datetime] = None


class MaintenanceLogResponse(CamelModel):
    id: int
    equipment_id: int
    kind: str
    description: str
    performed_by: str
    notes: Optional[str] = None
    cost: Optional[Decimal] = None
    opened_at: datetime
    completed_at: Optional[datetime] = None


class MaintenanceDueResponse(CamelModel):
    equipment: EquipmentResponse
    next_due_at: datetime
    days_until_due: int
    is_overdue: bool
