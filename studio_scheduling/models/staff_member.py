from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from studio_scheduling.core.database import Base, Identifier


class StaffMember(Base):
    """A studio user who can be assigned to shoots."""

    __tablename__ = "staff_member"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, index=True)
    studio_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="photographer")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<StaffMember(id={self.id}, name={self.name})>"


__all__ = ["StaffMember"]
