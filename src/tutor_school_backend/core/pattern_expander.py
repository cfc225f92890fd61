'''
Turns a recurrence pattern into a bounded, ordered sequence of candidate lesson slots.

Pure date arithmetic: no database, no conflict checking. Whoever consumes the
candidates decides what to do with each one.
'''
import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..common.config import settings
from ..common.exceptions import SchedulingValidationError
from ..database.db_enums import RecurrenceFrequency
from ..models.recurring import RecurringPatternCreate

# Hard ceiling on the number of candidates any single pattern may produce.
RECURRING_SAFETY_CAP = settings.RECURRING_SAFETY_CAP


@dataclass(frozen=True)
class CandidateSlot:
    """One occurrence of a pattern, before it is checked or persisted."""
    local_date: date
    scheduled_at: datetime  # UTC
    duration_minutes: Optional[int]


def to_sunday_based_weekday(day: date) -> int:
    """Python counts Monday=0, patterns count Sunday=0."""
    return (day.weekday() + 1) % 7


def _resolve_zone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or settings.DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        raise SchedulingValidationError(f"Unknown timezone '{name}'.", details={"timezone": name})


def validate_pattern(pattern: RecurringPatternCreate, safety_cap: int = RECURRING_SAFETY_CAP) -> None:
    """
    Rejects patterns that cannot be expanded into a finite, sensible series.
    Raises SchedulingValidationError.
    """
    if pattern.end_date is None and pattern.occurrences_count is None:
        raise SchedulingValidationError(
            "A recurring pattern needs an end_date or an occurrences_count."
        )
    if pattern.end_date is not None and pattern.end_date < pattern.start_date:
        raise SchedulingValidationError(
            "end_date cannot be before start_date.",
            details={"start_date": pattern.start_date.isoformat(), "end_date": pattern.end_date.isoformat()}
        )
    if pattern.interval < 1:
        raise SchedulingValidationError("interval must be at least 1.")
    if pattern.occurrences_count is not None and pattern.occurrences_count > safety_cap:
        raise SchedulingValidationError(
            f"occurrences_count cannot exceed {safety_cap}.",
            details={"occurrences_count": pattern.occurrences_count, "max": safety_cap}
        )
    if pattern.days_of_week:
        invalid_days = [d for d in pattern.days_of_week if not 0 <= d <= 6]
        if invalid_days:
            raise SchedulingValidationError(
                "days_of_week values must be between 0 (Sunday) and 6 (Saturday).",
                details={"invalid_days": invalid_days}
            )
    _resolve_zone(pattern.timezone)


def _add_months(anchor: date, months: int) -> date:
    """Same day-of-month `months` later, clamped to the last day of shorter months."""
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor.day, last_day))


def _weekly_dates(pattern: RecurringPatternCreate) -> Iterator[date]:
    weeks_per_step = 2 if pattern.frequency == RecurrenceFrequency.BIWEEKLY else 1
    step = timedelta(weeks=weeks_per_step * pattern.interval)
    days = set(pattern.days_of_week or [to_sunday_based_weekday(pattern.start_date)])

    anchor = pattern.start_date
    while True:
        for offset in range(7):
            day = anchor + timedelta(days=offset)
            if to_sunday_based_weekday(day) in days:
                yield day
        anchor += step


def _monthly_dates(pattern: RecurringPatternCreate) -> Iterator[date]:
    step_number = 0
    while True:
        yield _add_months(pattern.start_date, step_number * pattern.interval)
        step_number += 1


def expand_pattern(pattern: RecurringPatternCreate, safety_cap: int = RECURRING_SAFETY_CAP) -> Iterator[CandidateSlot]:
    """
    Lazily yields the candidate slots of a pattern in chronological order.

    Stops after `occurrences_count` candidates, after the last date not later than
    `end_date` (inclusive), or after `safety_cap` candidates, whichever comes first.
    """
    zone = _resolve_zone(pattern.timezone)
    limit = safety_cap
    if pattern.occurrences_count is not None:
        limit = min(limit, pattern.occurrences_count)

    if pattern.frequency == RecurrenceFrequency.MONTHLY:
        dates = _monthly_dates(pattern)
    else:
        dates = _weekly_dates(pattern)

    emitted = 0
    for local_date in dates:
        if emitted >= limit:
            return
        if pattern.end_date is not None and local_date > pattern.end_date:
            return
        local_start = datetime.combine(local_date, pattern.time).replace(tzinfo=zone)
        yield CandidateSlot(
            local_date=local_date,
            scheduled_at=local_start.astimezone(timezone.utc),
            duration_minutes=pattern.duration_minutes,
        )
        emitted += 1
