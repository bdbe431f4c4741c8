from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, DateTime, Enum, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studio_scheduling.core.database import Base, Identifier
from studio_scheduling.models.enums import EquipmentStatus

if TYPE_CHECKING:  # pragma: no cover
    from studio_scheduling.models.equipment_assignment import EquipmentAssignment
    from studio_scheduling.models.maintenance_log import MaintenanceLog


class Equipment(Base):
    """A physical item whose custody is tracked by the assignment ledger."""

    __tablename__ = "equipment"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, index=True)
    studio_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[EquipmentStatus] = mapped_column(
        Enum(EquipmentStatus, native_enum=False, length=30),
        nullable=False,
        default=EquipmentStatus.AVAILABLE,
    )
    condition: Mapped[str] = mapped_column(String(30), nullable=False, default="Good")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_hours_used: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    last_maintenance_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    next_maintenance_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    retired_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    assignments: Mapped[list["EquipmentAssignment"]] = relationship(
        "EquipmentAssignment",
        back_populates="equipment",
        order_by="EquipmentAssignment.checked_out_at.desc()",
    )
    maintenance_logs: Mapped[list["MaintenanceLog"]] = relationship(
        "MaintenanceLog",
        back_populates="equipment",
        order_by="MaintenanceLog.opened_at.desc()",
    )

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Equipment(id={self.id}, name={self.name}, status={self.status})>"


__all__ = ["Equipment"]
