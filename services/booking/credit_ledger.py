"""Credit Ledger - monthly flex-day credit accounting per lease.

Usage is never stored. It is recomputed from the lease's non-cancelled flex day
bookings on every check.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict

from loguru import logger

from db.models import FlexLease
from lib.scheduling.credits import (
    CreditUsage,
    DayType,
    RollingQuota,
    credit_cost,
    credits_used,
    month_bounds,
    month_key,
    month_start,
    monthly_quota,
)
from lib.scheduling.errors import NotFoundError
from services.booking.repo import IBookingRepo


class CreditLedger:
    def __init__(self, repo: IBookingRepo):
        self._repo = repo

    async def get_lease(self, lease_id: str) -> FlexLease:
        lease = await self._repo.get_flex_lease(lease_id)
        if lease is None:
            raise NotFoundError(f"Lease {lease_id} not found")
        return lease

    @staticmethod
    def quota_for(lease: FlexLease, month: date) -> Decimal:
        return monthly_quota(month, lease.monthly_credit_quota, lease.credits_per_week)

    async def used(self, lease: FlexLease, month: date) -> Decimal:
        first, last = month_bounds(month)
        bookings = await self._repo.get_active_flex_bookings(lease.id, first, last)
        return credits_used(credit_cost(b.day_type, lease.day_type) for b in bookings)

    async def can_consume(self, lease_id: str, month: date, day_type: DayType) -> CreditUsage:
        """Would one more booking of `day_type` fit in the lease's quota for `month`?"""
        lease = await self.get_lease(lease_id)
        return await self.check(lease, month, day_type)

    async def check(self, lease: FlexLease, month: date, day_type: DayType) -> CreditUsage:
        month = month_start(month)
        used = await self.used(lease, month)
        quota = self.quota_for(lease, month)
        cost = credit_cost(day_type, lease.day_type)
        allowed = used + cost <= quota
        if not allowed:
            logger.info(f"Lease {lease.id} {month_key(month)}: {used} of {quota} credits used, {cost} more refused")
        return CreditUsage(month=month, used=used, quota=quota, cost=cost, allowed=allowed)

    async def rolling_quota(self, lease: FlexLease, start_date: date, end_date: date) -> RollingQuota:
        """Seed a RollingQuota with what the lease already uses in [start_date, end_date]."""
        first = month_bounds(start_date)[0]
        last = month_bounds(end_date)[1]
        bookings = await self._repo.get_active_flex_bookings(lease.id, first, last)

        used: Dict[str, Decimal] = defaultdict(Decimal)
        for b in bookings:
            used[month_key(b.booking_date)] += credit_cost(b.day_type, lease.day_type)

        return RollingQuota(lambda m: self.quota_for(lease, m), used)
