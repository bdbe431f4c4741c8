"""Half-open time windows and the overlap arithmetic used for conflict math."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from studio_scheduling.core.exceptions import ValidationError


def as_utc_naive(value: datetime) -> datetime:
    """Normalise a datetime to naive UTC; naive input is taken as UTC already."""

    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class Buffers:
    """Per-booking padding applied symmetrically to every resource it touches."""

    before: timedelta = timedelta(0)
    after: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        if self.before < timedelta(0) or self.after < timedelta(0):
            raise ValidationError("Buffer times cannot be negative")

    @classmethod
    def from_minutes(cls, before: Optional[float] = 0, after: Optional[float] = 0) -> "Buffers":
        return cls(
            before=timedelta(minutes=before or 0),
            after=timedelta(minutes=after or 0),
        )


@dataclass(frozen=True)
class TimeWindow:
    """The window ``[start, end)``; ``end`` must be strictly after ``start``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        start = as_utc_naive(self.start)
        end = as_utc_naive(self.end)
        if end <= start:
            raise ValidationError("end_time must be after start_time")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, moment: datetime) -> bool:
        moment = as_utc_naive(moment)
        return self.start <= moment < self.end

    def shift(self, delta: timedelta) -> "TimeWindow":
        return TimeWindow(self.start + delta, self.end + delta)

    def effective(self, buffers: Optional[Buffers]) -> "TimeWindow":
        """Return the window padded by the booking buffers."""

        if buffers is None:
            return self
        return TimeWindow(self.start - buffers.before, self.end + buffers.after)

    def as_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def overlaps(a: TimeWindow, b: TimeWindow) -> bool:
    return a.overlaps(b)


def span(windows) -> TimeWindow:
    """Smallest window covering every window in ``windows``."""

    windows = list(windows)
    if not windows:
        raise ValidationError("At least one window is required")
    return TimeWindow(
        min(window.start for window in windows),
        max(window.end for window in windows),
    )


__all__ = ["Buffers", "TimeWindow", "as_utc_naive", "overlaps", "span", "utcnow"]
