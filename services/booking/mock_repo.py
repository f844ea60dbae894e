"""In-memory booking repo for tests and dry runs."""

import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from db.models import (
    Booking,
    NewBooking,
    FlexDayBooking,
    NewFlexDayBooking,
    RecurrencePattern,
    NewRecurrencePattern,
    TariffCard,
    FlexLease,
    FlexSchedule,
    Invoice,
    InvoiceBookingLine,
    NewInvoice,
)
from lib.scheduling.errors import StoreError
from lib.scheduling.holder import HolderKind, HolderRef
from lib.scheduling.interval import Interval
from services.booking.repo import IBookingRepo


def _new_id() -> str:
    return str(uuid.uuid4())


class MockBookingRepo(IBookingRepo):
    """Mock repository backed by dicts.

    Seed it with add_space / add_lease / set_discount. Set `fail_on_batch`
    to make the n-th bulk insert call (1-based) raise StoreError. transaction()
    restores the stored records when its block raises.
    """

    def __init__(self):
        self.bookings: Dict[str, Booking] = {}
        self.patterns: Dict[str, RecurrencePattern] = {}
        self.flex_days: Dict[str, FlexDayBooking] = {}
        self.tariffs: Dict[str, TariffCard] = {}
        self.leases: Dict[str, FlexLease] = {}
        self.schedules: Dict[Tuple[str, str], FlexSchedule] = {}
        self.discounts: Dict[HolderRef, Decimal] = {}
        self.invoices: Dict[str, Invoice] = {}
        self.invoice_lines: Dict[str, List[InvoiceBookingLine]] = {}
        self.batch_calls = 0
        self.fail_on_batch: Optional[int] = None

    # -- seeding -------------------------------------------------------------

    def add_space(
        self,
        space_id: str,
        name: str = "Meeting Room",
        hourly_rate="25",
        half_day_rate=None,
        full_day_rate=None,
        vat_inclusive: bool = False,
        space_type: str = "meeting_room",
    ) -> TariffCard:
        card = TariffCard(
            space_id=space_id,
            space_name=name,
            space_type=space_type,
            hourly_rate=Decimal(str(hourly_rate)),
            half_day_rate=Decimal(str(half_day_rate)) if half_day_rate is not None else None,
            full_day_rate=Decimal(str(full_day_rate)) if full_day_rate is not None else None,
            vat_inclusive=vat_inclusive,
        )
        self.tariffs[space_id] = card
        return card

    def add_lease(self, lease: FlexLease, schedule: Optional[FlexSchedule] = None) -> None:
        self.leases[lease.id] = lease
        if schedule is not None:
            self.schedules[(schedule.lease_id, schedule.space_id)] = schedule

    def set_discount(self, holder: HolderRef, percentage) -> None:
        self.discounts[holder] = Decimal(str(percentage))

    def _snapshot(self) -> dict:
        return {
            "bookings": dict(self.bookings),
            "patterns": dict(self.patterns),
            "flex_days": dict(self.flex_days),
            "invoices": dict(self.invoices),
            "invoice_lines": {k: list(v) for k, v in self.invoice_lines.items()},
        }

    @asynccontextmanager
    async def transaction(self):
        snapshot = self._snapshot()
        try:
            yield self
        except Exception:
            for name, value in snapshot.items():
                setattr(self, name, value)
            raise

    def _check_batch(self) -> None:
        self.batch_calls += 1
        if self.fail_on_batch is not None and self.batch_calls >= self.fail_on_batch:
            raise StoreError(f"insert batch {self.batch_calls} failed")

    # -- bookings ------------------------------------------------------------

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self.bookings.get(booking_id)

    async def get_active_bookings(self, space_id: str, booking_date: date) -> List[Booking]:
        return await self.get_active_bookings_in_range(space_id, booking_date, booking_date)

    async def get_active_bookings_in_range(self, space_id: str, start_date: date, end_date: date) -> List[Booking]:
        return [
            b for b in await self.get_bookings_in_range(space_id, start_date, end_date)
            if b.status != "cancelled"
        ]

    async def get_bookings_in_range(self, space_id: str, start_date: date, end_date: date) -> List[Booking]:
        found = [
            b for b in self.bookings.values()
            if b.space_id == space_id and start_date <= b.booking_date <= end_date
        ]
        return sorted(found, key=lambda b: (b.booking_date, b.start_minute))

    async def get_active_pattern_bookings_after(self, pattern_id: str, after_date: date) -> List[Booking]:
        found = [
            b for b in self.bookings.values()
            if b.recurring_pattern_id == pattern_id and b.booking_date > after_date and b.status != "cancelled"
        ]
        return sorted(found, key=lambda b: b.booking_date)

    async def insert_booking(self, booking: NewBooking) -> Booking:
        now = datetime.now()
        row = Booking(id=_new_id(), created_at=now, updated_at=now, **booking.model_dump())
        self.bookings[row.id] = row
        return row

    async def insert_bookings(self, bookings: List[NewBooking]) -> int:
        self._check_batch()
        for b in bookings:
            await self.insert_booking(b)
        return len(bookings)

    async def update_booking_status(self, booking_id: str, status: str) -> Booking:
        return self._update_booking(booking_id, status=status)

    async def update_booking_slot(self, booking_id: str, interval: Interval, is_exception: bool) -> Booking:
        return self._update_booking(
            booking_id,
            booking_date=interval.date,
            start_minute=interval.start_offset,
            end_minute=interval.end_offset,
            is_exception=is_exception,
        )

    async def set_booking_invoice(self, booking_id: str, invoice_id: Optional[str]) -> None:
        if booking_id in self.bookings:
            self._update_booking(booking_id, invoice_id=invoice_id)

    async def delete_booking(self, booking_id: str) -> None:
        self.bookings.pop(booking_id, None)
        for lines in self.invoice_lines.values():
            lines[:] = [line for line in lines if line.booking_id != booking_id]

    async def count_invoice_bookings(self, invoice_id: str) -> int:
        return sum(1 for b in self.bookings.values() if b.invoice_id == invoice_id)

    def _update_booking(self, booking_id: str, **changes) -> Booking:
        row = self.bookings[booking_id].model_copy(update={**changes, "updated_at": datetime.now()})
        self.bookings[booking_id] = row
        return row

    # -- recurrence patterns -------------------------------------------------

    async def insert_pattern(self, pattern: NewRecurrencePattern) -> RecurrencePattern:
        row = RecurrencePattern(id=_new_id(), is_active=True, created_at=datetime.now(), **pattern.model_dump())
        self.patterns[row.id] = row
        return row

    async def get_pattern(self, pattern_id: str) -> Optional[RecurrencePattern]:
        return self.patterns.get(pattern_id)

    async def deactivate_pattern(self, pattern_id: str, end_date: date) -> RecurrencePattern:
        row = self.patterns[pattern_id].model_copy(update={"is_active": False, "end_date": end_date})
        self.patterns[pattern_id] = row
        return row

    # -- flex days -----------------------------------------------------------

    async def get_flex_day_booking(self, booking_id: str) -> Optional[FlexDayBooking]:
        return self.flex_days.get(booking_id)

    async def get_active_flex_bookings(self, lease_id: str, start_date: date, end_date: date) -> List[FlexDayBooking]:
        found = [
            b for b in self.flex_days.values()
            if b.lease_id == lease_id and start_date <= b.booking_date <= end_date and b.status != "cancelled"
        ]
        return sorted(found, key=lambda b: b.booking_date)

    async def insert_flex_day_booking(self, booking: NewFlexDayBooking) -> FlexDayBooking:
        row = FlexDayBooking(id=_new_id(), created_at=datetime.now(), **booking.model_dump())
        self.flex_days[row.id] = row
        return row

    async def insert_flex_day_bookings(self, bookings: List[NewFlexDayBooking]) -> int:
        self._check_batch()
        for b in bookings:
            await self.insert_flex_day_booking(b)
        return len(bookings)

    async def update_flex_day_booking_status(self, booking_id: str, status: str) -> FlexDayBooking:
        row = self.flex_days[booking_id].model_copy(update={"status": status})
        self.flex_days[booking_id] = row
        return row

    async def delete_flex_day_booking(self, booking_id: str) -> None:
        self.flex_days.pop(booking_id, None)

    async def get_flex_lease(self, lease_id: str) -> Optional[FlexLease]:
        return self.leases.get(lease_id)

    async def get_flex_schedule(self, lease_id: str, space_id: str) -> Optional[FlexSchedule]:
        return self.schedules.get((lease_id, space_id))

    # -- tariffs and discounts -----------------------------------------------

    async def get_tariff_card(self, space_id: str) -> Optional[TariffCard]:
        return self.tariffs.get(space_id)

    async def get_discount_percentage(self, holder: HolderRef) -> Decimal:
        if holder.kind == HolderKind.LEASE:
            return Decimal(0)
        return self.discounts.get(holder, Decimal(0))

    # -- invoices ------------------------------------------------------------

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        return self.invoices.get(invoice_id)

    async def find_draft_invoice(self, holder: HolderRef, invoice_month: str) -> Optional[Invoice]:
        for invoice in self.invoices.values():
            if invoice.status == "draft" and invoice.invoice_month == invoice_month and invoice.holder == holder:
                return invoice
        return None

    async def next_invoice_number(self, year: int) -> str:
        prefix = f"{year}-"
        numbers = [
            int(inv.invoice_number.split("-")[1])
            for inv in self.invoices.values()
            if inv.invoice_number.startswith(prefix)
        ]
        return f"{year}-{max(numbers, default=0) + 1:04d}"

    async def insert_invoice(self, invoice: NewInvoice) -> Invoice:
        row = Invoice(id=_new_id(), status="draft", created_at=datetime.now(), **invoice.model_dump())
        self.invoices[row.id] = row
        self.invoice_lines[row.id] = []
        return row

    async def update_invoice_totals(
        self,
        invoice_id: str,
        subtotal: Decimal,
        discount_amount: Decimal,
        vat_amount: Decimal,
        amount: Decimal,
        notes: List[str],
    ) -> Invoice:
        invoice = self.invoices.get(invoice_id)
        if invoice is None or invoice.status != "draft":
            raise StoreError(f"Invoice {invoice_id} was not updated (missing or no longer draft)")
        row = invoice.model_copy(update={
            "subtotal": subtotal,
            "discount_amount": discount_amount,
            "vat_amount": vat_amount,
            "amount": amount,
            "notes": list(notes),
        })
        self.invoices[invoice_id] = row
        return row

    async def delete_invoice(self, invoice_id: str) -> None:
        invoice = self.invoices.get(invoice_id)
        if invoice is None or invoice.status != "draft":
            return
        del self.invoices[invoice_id]
        self.invoice_lines.pop(invoice_id, None)
        for b in list(self.bookings.values()):
            if b.invoice_id == invoice_id:
                self._update_booking(b.id, invoice_id=None)

    async def get_invoice_lines(self, invoice_id: str) -> List[InvoiceBookingLine]:
        return list(self.invoice_lines.get(invoice_id, []))

    async def insert_invoice_line(self, line: InvoiceBookingLine) -> None:
        self.invoice_lines.setdefault(line.invoice_id, []).append(line)

    async def delete_invoice_line(self, invoice_id: str, booking_id: str) -> Optional[InvoiceBookingLine]:
        lines = self.invoice_lines.get(invoice_id, [])
        for i, line in enumerate(lines):
            if line.booking_id == booking_id:
                return lines.pop(i)
        return None
