from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studio_scheduling.core.database import Base, Identifier

if TYPE_CHECKING:  # pragma: no cover
    from studio_scheduling.models.equipment import Equipment


class MaintenanceLog(Base):
    """A repair or service entry; open while ``completed_at`` is NULL."""

    __tablename__ = "maintenance_log"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, index=True)
    equipment_id: Mapped[int] = mapped_column(
        Identifier, ForeignKey("equipment.id"), nullable=False, index=True
    )
    kind: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    performed_by: Mapped[str] = mapped_column(String(200), nullable=False, default="Pending")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    opened_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    equipment: Mapped["Equipment"] = relationship("Equipment", back_populates="maintenance_logs")


__all__ = ["MaintenanceLog"]
