from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studio_scheduling.core.database import Base, Identifier

if TYPE_CHECKING:  # pragma: no cover
    from studio_scheduling.models.equipment import Equipment


class EquipmentAssignment(Base):
    """Physical custody of one equipment item; open while ``checked_in_at`` is NULL."""

    __tablename__ = "equipment_assignment"
    __table_args__ = (
        # At most one open custody record per item.
        Index(
            "uq_equipment_assignment_open",
            "equipment_id",
            unique=True,
            sqlite_where=text("checked_in_at IS NULL"),
            postgresql_where=text("checked_in_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, index=True)
    equipment_id: Mapped[int] = mapped_column(
        Identifier, ForeignKey("equipment.id"), nullable=False, index=True
    )
    custodian_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    booking_id: Mapped[int | None] = mapped_column(
        Identifier, ForeignKey("booking.id"), nullable=True, index=True
    )
    checked_out_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expected_return_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    check_out_condition: Mapped[str | None] = mapped_column(String(30), nullable=True)
    check_in_condition: Mapped[str | None] = mapped_column(String(30), nullable=True)
    check_out_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    check_in_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    damage_reported: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    damage_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    usage_hours: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    equipment: Mapped["Equipment"] = relationship("Equipment", back_populates="assignments")

    @property
    def is_open(self) -> bool:
        return self.checked_in_at is None

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return (
            f"<EquipmentAssignment(id={self.id}, equipment_id={self.equipment_id}, "
            f"checked_out_at={self.checked_out_at}, checked_in_at={self.checked_in_at})>"
        )


__all__ = ["EquipmentAssignment"]
