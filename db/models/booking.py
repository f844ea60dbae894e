from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from db.models.base import StoreRecord
from lib.scheduling.holder import HolderRef
from lib.scheduling.interval import Interval, duration


class Booking(StoreRecord):
    """Meeting room booking row (bookings table)."""

    id: str
    space_id: str

    # Holder - exactly one is set
    tenant_id: Optional[str] = None
    external_customer_id: Optional[str] = None
    lease_id: Optional[str] = None

    booking_date: date
    start_minute: int
    end_minute: int

    # pending, confirmed, cancelled, completed
    status: str = "confirmed"

    # Pricing snapshot
    rate_type: Optional[str] = None  # hourly, half_day, full_day
    applied_rate: Optional[Decimal] = None
    hourly_rate: Optional[Decimal] = None
    subtotal: Decimal = Decimal(0)  # before discount
    discount_percentage: Decimal = Decimal(0)
    discount_amount: Decimal = Decimal(0)
    total_amount: Decimal = Decimal(0)  # after discount

    recurring_pattern_id: Optional[str] = None
    invoice_id: Optional[str] = None
    is_exception: bool = False
    notes: str = ""

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def holder(self) -> HolderRef:
        return HolderRef.from_columns(self.tenant_id, self.external_customer_id, self.lease_id)

    @property
    def interval(self) -> Interval:
        return Interval(self.booking_date, self.start_minute, self.end_minute)

    @property
    def total_hours(self) -> Decimal:
        return duration(self.interval)


class NewBooking(StoreRecord):
    """Fields of a booking about to be inserted."""

    space_id: str
    tenant_id: Optional[str] = None
    external_customer_id: Optional[str] = None
    lease_id: Optional[str] = None
    booking_date: date
    start_minute: int
    end_minute: int
    status: str = "confirmed"
    rate_type: Optional[str] = None
    applied_rate: Optional[Decimal] = None
    hourly_rate: Optional[Decimal] = None
    subtotal: Decimal = Decimal(0)
    discount_percentage: Decimal = Decimal(0)
    discount_amount: Decimal = Decimal(0)
    total_amount: Decimal = Decimal(0)
    recurring_pattern_id: Optional[str] = None
    is_exception: bool = False
    notes: str = ""

    def batch_params(self) -> tuple:
        """Positional params for BATCH_INSERT_BOOKINGS."""
        return (
            self.space_id, self.tenant_id, self.external_customer_id, self.lease_id,
            self.booking_date, self.start_minute, self.end_minute, self.status,
            self.rate_type, self.applied_rate, self.hourly_rate, self.subtotal,
            self.discount_percentage, self.discount_amount, self.total_amount,
            self.recurring_pattern_id, self.notes,
        )
