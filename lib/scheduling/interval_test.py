"""Tests for the interval model."""

from datetime import date, time
from decimal import Decimal
import itertools

import pytest

from lib.scheduling.errors import ValidationError
from lib.scheduling.interval import Interval, duration, format_clock, overlaps, parse_clock

DAY = date(2025, 3, 10)


class TestParseClock:
    """Tests for HH:MM parsing."""

    @pytest.mark.no_db
    def test_parse_morning(self):
        assert parse_clock("09:30") == 570

    @pytest.mark.no_db
    def test_parse_with_seconds(self):
        assert parse_clock("13:00:00") == 780

    @pytest.mark.no_db
    def test_parse_end_of_day(self):
        assert parse_clock("24:00") == 1440

    @pytest.mark.no_db
    @pytest.mark.parametrize("value", ["", "9", "ab:cd", "25:00", "10:75", "24:30"])
    def test_rejects_garbage(self, value):
        with pytest.raises(ValidationError):
            parse_clock(value)

    @pytest.mark.no_db
    def test_format_clock(self):
        assert format_clock(570) == "09:30"
        assert format_clock(1440) == "24:00"


class TestInterval:
    """Tests for Interval construction."""

    @pytest.mark.no_db
    def test_from_clock(self):
        interval = Interval.from_clock(DAY, "09:00", "13:00")
        assert interval.start_offset == 540
        assert interval.end_offset == 780
        assert interval.label == "09:00 - 13:00"

    @pytest.mark.no_db
    def test_end_must_be_after_start(self):
        with pytest.raises(ValidationError):
            Interval.from_clock(DAY, "10:00", "10:00")
        with pytest.raises(ValidationError):
            Interval.from_clock(DAY, "11:00", "10:00")

    @pytest.mark.no_db
    def test_from_times_midnight_end(self):
        """00:00 as end time means end of day."""
        interval = Interval.from_times(DAY, time(18, 0), time(0, 0))
        assert interval.end_offset == 1440

    @pytest.mark.no_db
    def test_on_other_date_keeps_times(self):
        interval = Interval.from_clock(DAY, "09:00", "10:30")
        moved = interval.on(date(2025, 3, 11))
        assert moved.date == date(2025, 3, 11)
        assert (moved.start_offset, moved.end_offset) == (540, 630)

    @pytest.mark.no_db
    def test_grid(self):
        assert Interval.from_clock(DAY, "09:00", "10:30").is_on_grid(30)
        assert not Interval.from_clock(DAY, "09:15", "10:30").is_on_grid(30)

    @pytest.mark.no_db
    def test_is_immutable(self):
        interval = Interval.from_clock(DAY, "09:00", "10:00")
        with pytest.raises(AttributeError):
            interval.start_offset = 0


class TestDuration:

    @pytest.mark.no_db
    def test_four_hours(self):
        assert duration(Interval.from_clock(DAY, "09:00", "13:00")) == Decimal(4)

    @pytest.mark.no_db
    def test_half_hour(self):
        assert duration(Interval.from_clock(DAY, "09:00", "09:30")) == Decimal("0.5")


class TestOverlaps:
    """Half-open overlap semantics."""

    @pytest.mark.no_db
    def test_touching_intervals_do_not_overlap(self):
        a = Interval.from_clock(DAY, "09:00", "10:00")
        b = Interval.from_clock(DAY, "10:00", "11:00")
        assert not overlaps(a, b)

    @pytest.mark.no_db
    def test_partial_overlap(self):
        a = Interval.from_clock(DAY, "09:00", "13:00")
        b = Interval.from_clock(DAY, "12:00", "14:00")
        assert overlaps(a, b)

    @pytest.mark.no_db
    def test_containment(self):
        a = Interval.from_clock(DAY, "08:00", "18:00")
        b = Interval.from_clock(DAY, "12:00", "12:30")
        assert overlaps(a, b)

    @pytest.mark.no_db
    def test_symmetric(self):
        """overlaps(a, b) == overlaps(b, a) for every pair on an hourly grid."""
        slots = [
            Interval(DAY, start * 60, end * 60)
            for start in range(8, 14)
            for end in range(start + 1, 15)
        ]
        for a, b in itertools.product(slots, repeat=2):
            assert overlaps(a, b) == overlaps(b, a)
