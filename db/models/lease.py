from datetime import date
from decimal import Decimal
from typing import Optional

from db.models.base import StoreRecord
from lib.scheduling.credits import DayType


class FlexLease(StoreRecord):
    """Flex lease columns the credit ledger needs (leases table)."""

    id: str
    tenant_id: str
    start_date: date
    end_date: Optional[date] = None
    status: str = "active"
    lease_type: str = "flex"
    flex_day_type: str = "full_day"
    credits_per_week: Optional[Decimal] = None
    monthly_credit_quota: Optional[Decimal] = None

    @property
    def day_type(self) -> DayType:
        return DayType(self.flex_day_type)


class FlexSchedule(StoreRecord):
    """Fixed weekday schedule of a flex lease on one space (flex_schedules table)."""

    lease_id: str
    space_id: str
    monday: bool = False
    tuesday: bool = False
    wednesday: bool = False
    thursday: bool = False
    friday: bool = False
