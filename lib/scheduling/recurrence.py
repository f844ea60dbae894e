"""Recurrence rules and their expansion into concrete dates."""

from datetime import date, timedelta
from enum import Enum
from typing import FrozenSet, Iterator, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RecurrenceRule(BaseModel):
    """When a pattern repeats.

    weekdays uses lower-case English day names ("monday" ... "sunday");
    day_of_month is 1-31 and months without that day are skipped.
    """

    recurrence_type: RecurrenceType
    weekdays: FrozenSet[str] = frozenset()
    day_of_month: Optional[int] = None
    start_date: date
    end_date: Optional[date] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("weekdays", mode="before")
    @classmethod
    def normalize_weekdays(cls, v):
        if v is None:
            return frozenset()
        days = frozenset(str(d).strip().lower() for d in v)
        unknown = days - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(sorted(unknown))}")
        return days

    @model_validator(mode="after")
    def check_rule(self):
        if self.recurrence_type == RecurrenceType.WEEKLY and not self.weekdays:
            raise ValueError("Weekly recurrence needs at least one weekday")
        if self.recurrence_type == RecurrenceType.MONTHLY:
            if self.day_of_month is None or not 1 <= self.day_of_month <= 31:
                raise ValueError("Monthly recurrence needs a day of month between 1 and 31")
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date must not be before start date")
        return self

    def matches(self, day: date) -> bool:
        if self.recurrence_type == RecurrenceType.DAILY:
            return True
        if self.recurrence_type == RecurrenceType.WEEKLY:
            return WEEKDAYS[day.weekday()] in self.weekdays
        return day.day == self.day_of_month


class DateSequence:
    """Finite, restartable sequence of the dates a rule produces in a window.

    Iterating twice yields the same dates; nothing is materialised up front.
    """

    def __init__(self, rule: RecurrenceRule, first: date, last: date):
        self.rule = rule
        self.first = first
        self.last = last

    def __iter__(self) -> Iterator[date]:
        day = self.first
        one_day = timedelta(days=1)
        while day <= self.last:
            if self.rule.matches(day):
                yield day
            day += one_day

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return next(iter(self), None) is not None

    def __repr__(self) -> str:
        return f"DateSequence({self.rule.recurrence_type.value}, {self.first}..{self.last})"


def expand(rule: RecurrenceRule, range_start: date, range_end: date) -> DateSequence:
    """Dates matching `rule` within [max(range_start, start), min(range_end, end or range_end)]."""
    first = max(range_start, rule.start_date)
    last = min(range_end, rule.end_date or range_end)
    return DateSequence(rule, first, last)


def weekdays_from_schedule(schedule: dict) -> FrozenSet[str]:
    """Selected weekdays of a Monday-Friday flex schedule row."""
    return frozenset(day for day in WEEKDAYS[:5] if schedule.get(day))
