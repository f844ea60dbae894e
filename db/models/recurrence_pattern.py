from datetime import date, datetime
from typing import List, Optional

from pydantic import field_validator

from db.models.base import StoreRecord
from lib.scheduling.holder import HolderRef
from lib.scheduling.recurrence import RecurrenceRule, RecurrenceType


class RecurrencePattern(StoreRecord):
    """Recurring booking pattern row (recurrence_patterns table)."""

    id: str
    space_id: str
    tenant_id: Optional[str] = None
    external_customer_id: Optional[str] = None
    lease_id: Optional[str] = None

    start_minute: int
    end_minute: int

    recurrence_type: str  # daily, weekly, monthly
    recurrence_days: List[str] = []
    recurrence_date: Optional[int] = None

    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True
    notes: str = ""
    created_at: Optional[datetime] = None

    @field_validator("recurrence_days", mode="before")
    @classmethod
    def days_none_to_empty(cls, v):
        """Handle NULL array from database."""
        return v if v is not None else []

    @property
    def holder(self) -> HolderRef:
        return HolderRef.from_columns(self.tenant_id, self.external_customer_id, self.lease_id)

    @property
    def rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            recurrence_type=RecurrenceType(self.recurrence_type),
            weekdays=self.recurrence_days,
            day_of_month=self.recurrence_date,
            start_date=self.start_date,
            end_date=self.end_date,
        )


class NewRecurrencePattern(StoreRecord):
    """Fields of a recurrence pattern about to be inserted."""

    space_id: str
    tenant_id: Optional[str] = None
    external_customer_id: Optional[str] = None
    lease_id: Optional[str] = None
    start_minute: int
    end_minute: int
    recurrence_type: str
    recurrence_days: List[str] = []
    recurrence_date: Optional[int] = None
    start_date: date
    end_date: Optional[date] = None
    notes: str = ""
