from datetime import date, datetime
from typing import Optional

from db.models.base import StoreRecord
from lib.scheduling.credits import DayType, HalfDayPeriod, flex_interval
from lib.scheduling.interval import Interval


class FlexDayBooking(StoreRecord):
    """Flex desk day booking row (flex_day_bookings table). Always held by a lease."""

    id: str
    lease_id: str
    space_id: str
    booking_date: date
    is_half_day: bool = False
    half_day_period: Optional[str] = None  # morning, afternoon
    status: str = "confirmed"
    created_at: Optional[datetime] = None

    @property
    def day_type(self) -> DayType:
        return DayType.HALF_DAY if self.is_half_day else DayType.FULL_DAY

    @property
    def interval(self) -> Interval:
        period = HalfDayPeriod(self.half_day_period) if self.half_day_period else HalfDayPeriod.MORNING
        return flex_interval(self.booking_date, self.day_type, period)


class NewFlexDayBooking(StoreRecord):
    """Fields of a flex day booking about to be inserted."""

    lease_id: str
    space_id: str
    booking_date: date
    is_half_day: bool = False
    half_day_period: Optional[str] = None
    status: str = "confirmed"

    def batch_params(self) -> tuple:
        """Positional params for BATCH_INSERT_FLEX_DAY_BOOKINGS."""
        return (self.lease_id, self.space_id, self.booking_date, self.is_half_day, self.half_day_period)
