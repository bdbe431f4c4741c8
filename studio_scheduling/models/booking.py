from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studio_scheduling.core.database import Base, Identifier
from studio_scheduling.core.interval import Buffers, TimeWindow
from studio_scheduling.models.enums import (
    TERMINAL_BOOKING_STATUSES,
    BookingStatus,
    LocationType,
    RecurrenceFrequency,
)

if TYPE_CHECKING:  # pragma: no cover
    from studio_scheduling.models.resource_assignment import ResourceAssignment


class Booking(Base):
    """A shoot occupying staff, equipment and rooms over a time window."""

    __tablename__ = "booking"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, index=True)
    studio_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    client_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    location_type: Mapped[LocationType] = mapped_column(
        Enum(LocationType, native_enum=False, length=30),
        nullable=False,
        default=LocationType.STUDIO,
    )
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, native_enum=False, length=30),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )
    buffer_before_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    buffer_after_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    parent_booking_id: Mapped[int | None] = mapped_column(
        Identifier, ForeignKey("booking.id"), nullable=True, index=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=func.now())

    assignments: Mapped[list["ResourceAssignment"]] = relationship(
        "ResourceAssignment",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="ResourceAssignment.id",
    )
    recurrence: Mapped[Optional["RecurrencePattern"]] = relationship(
        "RecurrencePattern",
        back_populates="booking",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_time, self.end_time)

    @property
    def buffers(self) -> Buffers:
        return Buffers.from_minutes(self.buffer_before_minutes, self.buffer_after_minutes)

    @property
    def effective_window(self) -> TimeWindow:
        return self.window.effective(self.buffers)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_BOOKING_STATUSES

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return (
            f"<Booking(id={self.id}, status={self.status}, "
            f"start_time={self.start_time}, end_time={self.end_time})>"
        )


class RecurrencePattern(Base):
    """Recurrence rule kept on the first booking of a series."""

    __tablename__ = "recurrence_pattern"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, index=True)
    booking_id: Mapped[int] = mapped_column(
        Identifier, ForeignKey("booking.id"), nullable=False, unique=True
    )
    frequency: Mapped[RecurrenceFrequency] = mapped_column(
        Enum(RecurrenceFrequency, native_enum=False, length=20), nullable=False
    )
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # Comma separated weekday numbers, Monday = 0.
    days_of_week: Mapped[str | None] = mapped_column(String(20), nullable=True)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="recurrence")

    @property
    def weekdays(self) -> list[int]:
        if not self.days_of_week:
            return []
        return [int(value) for value in self.days_of_week.split(",") if value]


__all__ = ["Booking", "RecurrencePattern"]
