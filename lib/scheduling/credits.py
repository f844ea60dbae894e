"""Flex-desk credit math.

A full day costs one credit. A half day costs half a credit, but only on leases
sold as half-day flex; on full-day leases any booking uses a whole credit.
"""

import calendar
import math
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from pydantic import BaseModel

from lib.scheduling.errors import ValidationError
from lib.scheduling.interval import MINUTES_PER_DAY, Interval

FULL_CREDIT = Decimal("1")
HALF_CREDIT = Decimal("0.5")
MIDDAY = 12 * 60


class DayType(str, Enum):
    FULL_DAY = "full_day"
    HALF_DAY = "half_day"


class HalfDayPeriod(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"


class CreditUsage(BaseModel):
    """Outcome of a quota check for one lease and month."""
    month: date
    used: Decimal
    quota: Decimal
    cost: Decimal
    allowed: bool

    @property
    def remaining(self) -> Decimal:
        return max(self.quota - self.used, Decimal(0))


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_bounds(day: date) -> Tuple[date, date]:
    """First and last date of the calendar month containing `day`."""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def credit_cost(day_type: DayType, lease_day_type: DayType = DayType.HALF_DAY) -> Decimal:
    if day_type == DayType.HALF_DAY and lease_day_type == DayType.HALF_DAY:
        return HALF_CREDIT
    return FULL_CREDIT


def monthly_quota(
    month: date,
    monthly_credit_quota: Optional[Decimal] = None,
    credits_per_week: Optional[Decimal] = None,
) -> Decimal:
    """Credits available in the month: explicit quota, else weekly credits times weeks in month."""
    if monthly_credit_quota is not None:
        return Decimal(monthly_credit_quota)
    if credits_per_week is None:
        raise ValidationError("Lease has no flex credit quota configured")
    days = calendar.monthrange(month.year, month.month)[1]
    return Decimal(credits_per_week) * math.ceil(days / 7)


def flex_interval(day: date, day_type: DayType, period: Optional[HalfDayPeriod] = None) -> Interval:
    """Part of the day a flex booking occupies, for overlap checks."""
    if day_type == DayType.FULL_DAY:
        return Interval(day, 0, MINUTES_PER_DAY)
    if period is None:
        raise ValidationError("Half-day bookings need a morning or afternoon period")
    if period == HalfDayPeriod.MORNING:
        return Interval(day, 0, MIDDAY)
    return Interval(day, MIDDAY, MINUTES_PER_DAY)


def credits_used(costs: Iterable[Decimal]) -> Decimal:
    return sum(costs, Decimal(0))


class RollingQuota:
    """Running per-month credit totals while planning a bulk fill.

    Seeded with what is already booked; each accepted date adds its cost to
    its own month so later candidates see the projected usage.
    """

    def __init__(self, quota_for_month, used_by_month: Optional[Dict[str, Decimal]] = None):
        self._quota_for_month = quota_for_month
        self._used: Dict[str, Decimal] = dict(used_by_month or {})

    def used(self, day: date) -> Decimal:
        return self._used.get(month_key(day), Decimal(0))

    def try_consume(self, day: date, cost: Decimal) -> bool:
        key = month_key(day)
        used = self._used.get(key, Decimal(0))
        if used + cost > self._quota_for_month(month_start(day)):
            return False
        self._used[key] = used + cost
        return True
