"""Conflict Checker - detect overlapping non-cancelled bookings on a space."""

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional

from lib.scheduling.interval import Interval, overlaps
from services.booking.repo import IBookingRepo


def find_overlapping(bookings: Iterable, candidate: Interval, exclude_booking_id: Optional[str] = None) -> List:
    """Bookings whose interval overlaps `candidate`, skipping the excluded id."""
    return [
        b for b in bookings
        if b.id != exclude_booking_id and overlaps(b.interval, candidate)
    ]


class ConflictChecker:
    """Reads the space's bookings for the date and tests them for overlap.

    Nothing is cached: every call goes back to the store so a check always sees
    the latest committed bookings.
    """

    def __init__(self, repo: IBookingRepo):
        self._repo = repo

    async def find_conflicts(
        self,
        space_id: str,
        booking_date: date,
        interval: Interval,
        exclude_booking_id: Optional[str] = None,
    ) -> List:
        bookings = await self._repo.get_active_bookings(space_id, booking_date)
        return find_overlapping(bookings, interval.on(booking_date), exclude_booking_id)

    async def has_conflict(
        self,
        space_id: str,
        booking_date: date,
        interval: Interval,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        return bool(await self.find_conflicts(space_id, booking_date, interval, exclude_booking_id))

    async def day_index(self, space_id: str, start_date: date, end_date: date) -> "DayIndex":
        """Load a date range once for bulk fills."""
        bookings = await self._repo.get_active_bookings_in_range(space_id, start_date, end_date)
        return DayIndex(b.interval for b in bookings)


class DayIndex:
    """Occupied intervals per date, for checking many candidate dates in one pass.

    Accepted candidates are added back so later dates in the same fill see them.
    """

    def __init__(self, intervals: Iterable[Interval] = ()):
        self._by_date: Dict[date, List[Interval]] = defaultdict(list)
        for interval in intervals:
            self.add(interval)

    def add(self, interval: Interval) -> None:
        self._by_date[interval.date].append(interval)

    def conflicts(self, candidate: Interval) -> bool:
        return any(overlaps(existing, candidate) for existing in self._by_date.get(candidate.date, ()))
