from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from studio_scheduling.schemas.base import CamelModel


class StaffCreate(CamelModel):
    studio_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    role: str = Field("photographer", max_length=50)
    is_active: bool = True


class StaffResponse(StaffCreate):
    id: int
    created_at: Optional[datetime] = None


class RoomCreate(CamelModel):
    studio_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    capacity: int = Field(1, gt=0)
    is_active: bool = True


class RoomResponse(RoomCreate):
    id: int
    created_at: Optional[datetime] = None
