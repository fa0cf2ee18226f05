"""Task schedules and the recurrence evaluator."""

from datetime import date
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hearth.core.config import Constants


SATURDAY = 5
SUNDAY = 6


class DailyPattern(BaseModel):
    """Every day, optionally skipping Saturday and Sunday."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["daily"] = "daily"
    skip_weekends: bool = Field(default=False, description="Skip Saturday and Sunday")


class WeeklyPattern(BaseModel):
    """Once a week on a fixed weekday."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["weekly"] = "weekly"
    day_of_week: int = Field(..., ge=0, le=6, description="0=Monday ... 6=Sunday")


class MonthlyPattern(BaseModel):
    """Once a month on a fixed day; capped at 28 so every month has it."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["monthly"] = "monthly"
    day_of_month: int = Field(..., ge=1, le=Constants.MAX_MONTHLY_DAY, description="Day of month (1-28)")


RecurrencePattern = Annotated[DailyPattern | WeeklyPattern | MonthlyPattern, Field(discriminator="kind")]


class OneTimeSchedule(BaseModel):
    """A single occurrence due on the deadline date."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["one_time"] = "one_time"
    deadline: date = Field(..., description="Date the single execution is scheduled on")


class RecurringSchedule(BaseModel):
    """A recurrence pattern bounded by an inclusive date range."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["recurring"] = "recurring"
    pattern: RecurrencePattern
    start_date: date = Field(..., description="First date the pattern may fire")
    end_date: date | None = Field(default=None, description="Last date the pattern may fire (inclusive)")

    @model_validator(mode="after")
    def _check_range(self) -> "RecurringSchedule":
        if self.end_date is not None and self.start_date >= self.end_date:
            msg = f"start_date {self.start_date} must be before end_date {self.end_date}"
            raise ValueError(msg)
        return self


TaskSchedule = Annotated[OneTimeSchedule | RecurringSchedule, Field(discriminator="kind")]


def pattern_matches(pattern: DailyPattern | WeeklyPattern | MonthlyPattern, on_date: date) -> bool:
    """Return True if the pattern alone (ignoring the date range) fires on the date."""
    match pattern:
        case DailyPattern(skip_weekends=skip_weekends):
            return not (skip_weekends and on_date.weekday() in (SATURDAY, SUNDAY))
        case WeeklyPattern(day_of_week=day_of_week):
            return on_date.weekday() == day_of_week
        case MonthlyPattern(day_of_month=day_of_month):
            return on_date.day == day_of_month
    msg = f"Unknown recurrence pattern: {pattern!r}"
    raise TypeError(msg)


def should_occur(
    pattern: DailyPattern | WeeklyPattern | MonthlyPattern,
    start_date: date,
    end_date: date | None,
    on_date: date,
) -> bool:
    """Decide whether a recurring task fires on a date.

    Pure: the answer depends only on the arguments.

    Args:
        pattern: Daily, weekly or monthly recurrence pattern
        start_date: First date the pattern may fire (inclusive)
        end_date: Last date the pattern may fire (inclusive), or None for open-ended
        on_date: Date being evaluated

    Returns:
        True when on_date lies in range and matches the pattern
    """
    if on_date < start_date:
        return False
    if end_date is not None and on_date > end_date:
        return False
    return pattern_matches(pattern, on_date)


def fires_on(schedule: OneTimeSchedule | RecurringSchedule, on_date: date) -> bool:
    """Return True if daily generation should create an execution for the date.

    One-time schedules never fire for generation; their execution is created
    together with the definition.
    """
    if isinstance(schedule, OneTimeSchedule):
        return False
    return should_occur(schedule.pattern, schedule.start_date, schedule.end_date, on_date)


def is_daily(schedule: OneTimeSchedule | RecurringSchedule) -> bool:
    """Return True for recurring schedules with a daily pattern."""
    return isinstance(schedule, RecurringSchedule) and isinstance(schedule.pattern, DailyPattern)


def falls_on(schedule: OneTimeSchedule | RecurringSchedule, on_date: date) -> bool:
    """Return True if the schedule has an occurrence on the date, one-time deadlines included."""
    if isinstance(schedule, OneTimeSchedule):
        return schedule.deadline == on_date
    return fires_on(schedule, on_date)
