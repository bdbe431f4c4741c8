from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, DateTime, Enum, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studio_scheduling.core.database import Base, Identifier
from studio_scheduling.core.interval import TimeWindow
from studio_scheduling.core.resources import ResourceKey, ResourceKind
from studio_scheduling.models.enums import AssignmentStatus

if TYPE_CHECKING:  # pragma: no cover
    from studio_scheduling.models.booking import Booking


class ResourceAssignment(Base):
    """One resource bound to one booking occurrence.

    ``effective_start``/``effective_end`` already include the booking buffers.
    ``status`` is PROPOSED/ACCEPTED/DECLINED for staff, OPEN/CLOSED for
    equipment and NULL for rooms.
    """

    __tablename__ = "resource_assignment"
    __table_args__ = (
        Index(
            "ix_resource_assignment_resource_window",
            "resource_kind",
            "resource_id",
            "effective_start",
            "effective_end",
        ),
    )

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, index=True)
    booking_id: Mapped[int] = mapped_column(
        Identifier, ForeignKey("booking.id"), nullable=False, index=True
    )
    studio_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    resource_kind: Mapped[ResourceKind] = mapped_column(
        Enum(ResourceKind, native_enum=False, length=20), nullable=False
    )
    resource_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[AssignmentStatus | None] = mapped_column(
        Enum(AssignmentStatus, native_enum=False, length=20), nullable=True
    )
    effective_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    effective_end: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="assignments")

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(ResourceKind(self.resource_kind), self.resource_id)

    @property
    def effective_window(self) -> TimeWindow:
        return TimeWindow(self.effective_start, self.effective_end)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return (
            f"<ResourceAssignment(id={self.id}, kind={self.resource_kind}, "
            f"resource_id={self.resource_id}, booking_id={self.booking_id})>"
        )


__all__ = ["ResourceAssignment"]
