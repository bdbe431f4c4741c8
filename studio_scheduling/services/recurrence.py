"""Expansion of recurrence patterns into concrete occurrence windows."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterator, Optional, Sequence, Tuple

from dateutil.relativedelta import relativedelta

from studio_scheduling.core.config import settings
from studio_scheduling.core.exceptions import ValidationError
from studio_scheduling.core.interval import TimeWindow
from studio_scheduling.models.enums import RecurrenceFrequency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recurrence:
    frequency: RecurrenceFrequency
    interval: int = 1
    end_date: Optional[date] = None
    # Monday = 0 ... Sunday = 6; weekly patterns only.
    days_of_week: Tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "frequency", RecurrenceFrequency(self.frequency))
        object.__setattr__(self, "days_of_week", tuple(sorted(set(self.days_of_week or ()))))

        if self.interval < 1:
            raise ValidationError("Recurrence interval must be a positive integer")
        if any(day < 0 or day > 6 for day in self.days_of_week):
            raise ValidationError("days_of_week values must be between 0 (Monday) and 6 (Sunday)")
        if self.days_of_week and self.frequency is not RecurrenceFrequency.WEEKLY:
            raise ValidationError("days_of_week is only supported for weekly recurrence")


def _step(frequency: RecurrenceFrequency, count: int) -> relativedelta:
    if frequency is RecurrenceFrequency.DAILY:
        return relativedelta(days=count)
    if frequency is RecurrenceFrequency.WEEKLY:
        return relativedelta(weeks=count)
    if frequency is RecurrenceFrequency.MONTHLY:
        # relativedelta clamps the day to the last day of shorter months.
        return relativedelta(months=count)
    return relativedelta(years=count)


def _candidate_starts(pattern: Recurrence, base_start: datetime) -> Iterator[datetime]:
    """Candidate starts in chronological order, ending at the calendar limit."""

    try:
        yield from _unbounded_starts(pattern, base_start)
    except (OverflowError, ValueError):
        # Stepped past datetime.max; nothing later can be scheduled.
        return


def _unbounded_starts(pattern: Recurrence, base_start: datetime) -> Iterator[datetime]:
    if pattern.frequency is RecurrenceFrequency.WEEKLY and pattern.days_of_week:
        week_start = base_start - timedelta(days=base_start.weekday())
        step = 0
        while True:
            current_week = week_start + timedelta(weeks=step * pattern.interval)
            for weekday in pattern.days_of_week:
                candidate = current_week + timedelta(days=weekday)
                if candidate >= base_start:
                    yield candidate
            step += 1
    else:
        count = 0
        while True:
            # Always offset from the base so a clamped month does not drift
            # the day-of-month of later occurrences.
            yield base_start + _step(pattern.frequency, count * pattern.interval)
            count += 1


def expand(
    pattern: Recurrence,
    base_window: TimeWindow,
    *,
    max_occurrences: Optional[int] = None,
    max_horizon: Optional[timedelta] = None,
) -> Iterator[TimeWindow]:
    """Yield the occurrences of ``pattern`` starting from ``base_window``.

    Occurrences keep the base duration and time of day. Expansion stops at
    the pattern's end date (inclusive) or at the safety cap, whichever comes
    first. The returned generator is consumed once.
    """

    limit = max_occurrences or settings.RECURRENCE_MAX_OCCURRENCES
    horizon = max_horizon or timedelta(days=settings.RECURRENCE_MAX_HORIZON_DAYS)

    if pattern.end_date is not None and pattern.end_date < base_window.start.date():
        raise ValidationError("Recurrence end_date cannot be before the first occurrence")

    duration = base_window.duration
    hard_stop = base_window.start + horizon
    produced = 0

    for start in _candidate_starts(pattern, base_window.start):
        if pattern.end_date is not None and start.date() > pattern.end_date:
            return
        if produced >= limit or start > hard_stop:
            if pattern.end_date is None:
                logger.info(
                    "Open-ended recurrence capped after %s occurrences", produced
                )
            else:
                logger.warning(
                    "Recurrence ending %s truncated after %s occurrences",
                    pattern.end_date,
                    produced,
                )
            return
        produced += 1
        yield TimeWindow(start, start + duration)


def materialize(
    pattern: Optional[Recurrence],
    base_window: TimeWindow,
    **limits,
) -> Sequence[TimeWindow]:
    """Expand ``pattern`` into a list; a missing pattern yields the base window."""

    if pattern is None:
        return [base_window]
    occurrences = list(expand(pattern, base_window, **limits))
    if not occurrences:
        raise ValidationError("Recurrence pattern does not produce any occurrence")
    return occurrences


__all__ = ["Recurrence", "expand", "materialize"]
