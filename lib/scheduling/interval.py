"""Interval model - a wall-clock time range on one calendar date.

Offsets are minutes from midnight. Intervals are half-open, so 09:00-10:00
and 10:00-11:00 touch but do not overlap.
"""

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal

from lib.scheduling.errors import ValidationError

MINUTES_PER_DAY = 24 * 60


def parse_clock(value: str) -> int:
    """Parse "HH:MM" (or "HH:MM:SS") into minutes from midnight."""
    try:
        parts = [int(p) for p in value.strip().split(":")]
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid time: {value!r}")
    if len(parts) < 2 or not (0 <= parts[0] <= 24) or not (0 <= parts[1] < 60):
        raise ValidationError(f"Invalid time: {value!r}")
    minutes = parts[0] * 60 + parts[1]
    if minutes > MINUTES_PER_DAY:
        raise ValidationError(f"Invalid time: {value!r}")
    return minutes


def format_clock(minutes: int) -> str:
    """Format minutes from midnight as "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class Interval:
    """A time range on a single date."""

    date: date
    start_offset: int
    end_offset: int

    def __post_init__(self):
        if not 0 <= self.start_offset < MINUTES_PER_DAY:
            raise ValidationError(f"Start offset out of range: {self.start_offset}")
        if self.end_offset > MINUTES_PER_DAY:
            raise ValidationError(f"End offset out of range: {self.end_offset}")
        if self.end_offset <= self.start_offset:
            raise ValidationError(
                f"End time {format_clock(self.end_offset)} must be after "
                f"start time {format_clock(self.start_offset)}"
            )

    @classmethod
    def from_clock(cls, on: date, start: str, end: str) -> "Interval":
        return cls(on, parse_clock(start), parse_clock(end))

    @classmethod
    def from_times(cls, on: date, start: time, end: time) -> "Interval":
        end_offset = end.hour * 60 + end.minute
        # 00:00 as an end time means midnight at the end of the day
        if end_offset == 0:
            end_offset = MINUTES_PER_DAY
        return cls(on, start.hour * 60 + start.minute, end_offset)

    def on(self, other_date: date) -> "Interval":
        """Same time range on another date."""
        return Interval(other_date, self.start_offset, self.end_offset)

    def is_on_grid(self, step_minutes: int) -> bool:
        return self.start_offset % step_minutes == 0 and self.end_offset % step_minutes == 0

    @property
    def minutes(self) -> int:
        return self.end_offset - self.start_offset

    @property
    def start_label(self) -> str:
        return format_clock(self.start_offset)

    @property
    def end_label(self) -> str:
        return format_clock(self.end_offset)

    @property
    def label(self) -> str:
        return f"{self.start_label} - {self.end_label}"


def duration(interval: Interval) -> Decimal:
    """Length of an interval in hours."""
    return Decimal(interval.minutes) / Decimal(60)


def overlaps(a: Interval, b: Interval) -> bool:
    """Half-open overlap test on offsets: a.start < b.end and b.start < a.end.

    Callers compare intervals of the same date; the date is not part of the test.
    """
    return a.start_offset < b.end_offset and b.start_offset < a.end_offset
