"""Booking Repository - record store operations for the booking engine.

IBookingRepo is the store interface the orchestrator depends on; BookingRepo
binds it to Postgres through asyncpg + aiosql.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import date
from decimal import Decimal
from typing import List, Optional

import asyncpg

from db.client import queries, get_conn, get_transaction
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
from db.queries.batch import BATCH_INSERT_BOOKINGS, BATCH_INSERT_FLEX_DAY_BOOKINGS
from lib.scheduling.errors import ConflictError, StoreError
from lib.scheduling.holder import HolderKind, HolderRef
from lib.scheduling.interval import Interval


class IBookingRepo(ABC):
    """Record store interface for bookings, patterns, flex days, tariffs and invoices."""

    # -- unit of work --------------------------------------------------------

    @abstractmethod
    def transaction(self):
        """Async context manager. Store calls made inside it commit together or not at all.

        Nested use joins the outer unit of work.
        """
        pass

    # -- bookings ------------------------------------------------------------

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        pass

    @abstractmethod
    async def get_active_bookings(self, space_id: str, booking_date: date) -> List[Booking]:
        """Non-cancelled bookings of a space on one date."""
        pass

    @abstractmethod
    async def get_active_bookings_in_range(self, space_id: str, start_date: date, end_date: date) -> List[Booking]:
        """Non-cancelled bookings of a space between two dates (inclusive)."""
        pass

    @abstractmethod
    async def get_bookings_in_range(self, space_id: str, start_date: date, end_date: date) -> List[Booking]:
        """All bookings of a space between two dates, any status."""
        pass

    @abstractmethod
    async def get_active_pattern_bookings_after(self, pattern_id: str, after_date: date) -> List[Booking]:
        pass

    @abstractmethod
    async def insert_booking(self, booking: NewBooking) -> Booking:
        pass

    @abstractmethod
    async def insert_bookings(self, bookings: List[NewBooking]) -> int:
        """Insert one batch atomically. Returns number of rows written."""
        pass

    @abstractmethod
    async def update_booking_status(self, booking_id: str, status: str) -> Booking:
        pass

    @abstractmethod
    async def update_booking_slot(self, booking_id: str, interval: Interval, is_exception: bool) -> Booking:
        pass

    @abstractmethod
    async def set_booking_invoice(self, booking_id: str, invoice_id: Optional[str]) -> None:
        pass

    @abstractmethod
    async def delete_booking(self, booking_id: str) -> None:
        pass

    @abstractmethod
    async def count_invoice_bookings(self, invoice_id: str) -> int:
        """Number of bookings still linked to an invoice."""
        pass

    # -- recurrence patterns -------------------------------------------------

    @abstractmethod
    async def insert_pattern(self, pattern: NewRecurrencePattern) -> RecurrencePattern:
        pass

    @abstractmethod
    async def get_pattern(self, pattern_id: str) -> Optional[RecurrencePattern]:
        pass

    @abstractmethod
    async def deactivate_pattern(self, pattern_id: str, end_date: date) -> RecurrencePattern:
        pass

    # -- flex days -----------------------------------------------------------

    @abstractmethod
    async def get_flex_day_booking(self, booking_id: str) -> Optional[FlexDayBooking]:
        pass

    @abstractmethod
    async def get_active_flex_bookings(self, lease_id: str, start_date: date, end_date: date) -> List[FlexDayBooking]:
        """Non-cancelled flex days of a lease between two dates (inclusive)."""
        pass

    @abstractmethod
    async def insert_flex_day_booking(self, booking: NewFlexDayBooking) -> FlexDayBooking:
        pass

    @abstractmethod
    async def insert_flex_day_bookings(self, bookings: List[NewFlexDayBooking]) -> int:
        """Insert one batch atomically. Returns number of rows written."""
        pass

    @abstractmethod
    async def update_flex_day_booking_status(self, booking_id: str, status: str) -> FlexDayBooking:
        pass

    @abstractmethod
    async def delete_flex_day_booking(self, booking_id: str) -> None:
        pass

    @abstractmethod
    async def get_flex_lease(self, lease_id: str) -> Optional[FlexLease]:
        pass

    @abstractmethod
    async def get_flex_schedule(self, lease_id: str, space_id: str) -> Optional[FlexSchedule]:
        pass

    # -- tariffs and discounts -----------------------------------------------

    @abstractmethod
    async def get_tariff_card(self, space_id: str) -> Optional[TariffCard]:
        pass

    @abstractmethod
    async def get_discount_percentage(self, holder: HolderRef) -> Decimal:
        """Meeting discount of a tenant or external customer; 0 for leases."""
        pass

    # -- invoices ------------------------------------------------------------

    @abstractmethod
    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        pass

    @abstractmethod
    async def find_draft_invoice(self, holder: HolderRef, invoice_month: str) -> Optional[Invoice]:
        pass

    @abstractmethod
    async def next_invoice_number(self, year: int) -> str:
        pass

    @abstractmethod
    async def insert_invoice(self, invoice: NewInvoice) -> Invoice:
        pass

    @abstractmethod
    async def update_invoice_totals(
        self,
        invoice_id: str,
        subtotal: Decimal,
        discount_amount: Decimal,
        vat_amount: Decimal,
        amount: Decimal,
        notes: List[str],
    ) -> Invoice:
        pass

    @abstractmethod
    async def delete_invoice(self, invoice_id: str) -> None:
        pass

    @abstractmethod
    async def get_invoice_lines(self, invoice_id: str) -> List[InvoiceBookingLine]:
        pass

    @abstractmethod
    async def insert_invoice_line(self, line: InvoiceBookingLine) -> None:
        pass

    @abstractmethod
    async def delete_invoice_line(self, invoice_id: str, booking_id: str) -> Optional[InvoiceBookingLine]:
        """Remove a booking's line; returns it, or None if it was not on the invoice."""
        pass


# Constraints whose violation means a double booking
SLOT_CONSTRAINTS = {"bookings_no_overlap"}

# Connection of the unit of work running in the current task, if any
_active_conn: ContextVar = ContextVar("booking_repo_conn", default=None)


@asynccontextmanager
async def store_call(action: str):
    """Translate asyncpg failures into booking engine errors.

    The booking overlap guard maps to ConflictError. Other unique violations
    (invoice numbers, invoice lines) are StoreErrors, not double bookings.
    """
    try:
        yield
    except asyncpg.IntegrityConstraintViolationError as e:
        constraint = getattr(e, "constraint_name", None)
        if isinstance(e, asyncpg.ExclusionViolationError) or constraint in SLOT_CONSTRAINTS:
            raise ConflictError(f"{action}: the slot is already booked") from e
        raise StoreError(f"{action} failed: {e}") from e
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
        raise StoreError(f"{action} failed: {e}") from e


def _one(model, row):
    return model.model_validate(dict(row)) if row else None


def _many(model, rows) -> list:
    return [model.model_validate(dict(r)) for r in rows]


class BookingRepo(IBookingRepo):
    """Postgres implementation of the booking record store.

    Every method runs on the connection of the surrounding transaction() when
    there is one, otherwise on its own pooled connection.
    """

    @asynccontextmanager
    async def transaction(self):
        conn = _active_conn.get()
        if conn is not None:
            # Savepoint inside the outer transaction
            async with conn.transaction():
                yield conn
            return

        async with store_call("commit"), get_transaction() as conn:
            token = _active_conn.set(conn)
            try:
                yield conn
            finally:
                _active_conn.reset(token)

    @asynccontextmanager
    async def _conn(self):
        conn = _active_conn.get()
        if conn is not None:
            yield conn
            return
        async with get_conn() as conn:
            yield conn

    # -- bookings ------------------------------------------------------------

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        async with store_call("get booking"), self._conn() as conn:
            row = await queries.get_booking(conn, booking_id=booking_id)
            return _one(Booking, row)

    async def get_active_bookings(self, space_id: str, booking_date: date) -> List[Booking]:
        async with store_call("get bookings"), self._conn() as conn:
            rows = await queries.get_active_bookings_for_space_date(
                conn, space_id=space_id, booking_date=booking_date
            )
            return _many(Booking, rows)

    async def get_active_bookings_in_range(self, space_id: str, start_date: date, end_date: date) -> List[Booking]:
        async with store_call("get bookings"), self._conn() as conn:
            rows = await queries.get_active_bookings_for_space_range(
                conn, space_id=space_id, start_date=start_date, end_date=end_date
            )
            return _many(Booking, rows)

    async def get_bookings_in_range(self, space_id: str, start_date: date, end_date: date) -> List[Booking]:
        async with store_call("list bookings"), self._conn() as conn:
            rows = await queries.get_bookings_for_space_range(
                conn, space_id=space_id, start_date=start_date, end_date=end_date
            )
            return _many(Booking, rows)

    async def get_active_pattern_bookings_after(self, pattern_id: str, after_date: date) -> List[Booking]:
        async with store_call("get pattern bookings"), self._conn() as conn:
            rows = await queries.get_active_pattern_bookings_after(
                conn, pattern_id=pattern_id, after_date=after_date
            )
            return _many(Booking, rows)

    async def insert_booking(self, booking: NewBooking) -> Booking:
        async with store_call("insert booking"), self._conn() as conn:
            row = await queries.insert_booking(conn, **booking.model_dump())
            return _one(Booking, row)

    async def insert_bookings(self, bookings: List[NewBooking]) -> int:
        if not bookings:
            return 0
        async with store_call("insert booking batch"), self.transaction() as conn:
            await conn.executemany(BATCH_INSERT_BOOKINGS, [b.batch_params() for b in bookings])
        return len(bookings)

    async def update_booking_status(self, booking_id: str, status: str) -> Booking:
        async with store_call("update booking status"), self._conn() as conn:
            row = await queries.update_booking_status(conn, booking_id=booking_id, status=status)
            return _one(Booking, row)

    async def update_booking_slot(self, booking_id: str, interval: Interval, is_exception: bool) -> Booking:
        async with store_call("move booking"), self._conn() as conn:
            row = await queries.update_booking_slot(
                conn,
                booking_id=booking_id,
                booking_date=interval.date,
                start_minute=interval.start_offset,
                end_minute=interval.end_offset,
                is_exception=is_exception,
            )
            return _one(Booking, row)

    async def set_booking_invoice(self, booking_id: str, invoice_id: Optional[str]) -> None:
        async with store_call("link booking to invoice"), self._conn() as conn:
            await queries.set_booking_invoice(conn, booking_id=booking_id, invoice_id=invoice_id)

    async def delete_booking(self, booking_id: str) -> None:
        async with store_call("delete booking"), self._conn() as conn:
            await queries.delete_booking(conn, booking_id=booking_id)

    async def count_invoice_bookings(self, invoice_id: str) -> int:
        async with store_call("count invoice bookings"), self._conn() as conn:
            count = await queries.count_invoice_bookings(conn, invoice_id=invoice_id)
        return int(count or 0)

    # -- recurrence patterns -------------------------------------------------

    async def insert_pattern(self, pattern: NewRecurrencePattern) -> RecurrencePattern:
        async with store_call("insert pattern"), self._conn() as conn:
            row = await queries.insert_pattern(conn, **pattern.model_dump())
            return _one(RecurrencePattern, row)

    async def get_pattern(self, pattern_id: str) -> Optional[RecurrencePattern]:
        async with store_call("get pattern"), self._conn() as conn:
            row = await queries.get_pattern(conn, pattern_id=pattern_id)
            return _one(RecurrencePattern, row)

    async def deactivate_pattern(self, pattern_id: str, end_date: date) -> RecurrencePattern:
        async with store_call("deactivate pattern"), self._conn() as conn:
            row = await queries.deactivate_pattern(conn, pattern_id=pattern_id, end_date=end_date)
            return _one(RecurrencePattern, row)

    # -- flex days -----------------------------------------------------------

    async def get_flex_day_booking(self, booking_id: str) -> Optional[FlexDayBooking]:
        async with store_call("get flex day"), self._conn() as conn:
            row = await queries.get_flex_day_booking(conn, booking_id=booking_id)
            return _one(FlexDayBooking, row)

    async def get_active_flex_bookings(self, lease_id: str, start_date: date, end_date: date) -> List[FlexDayBooking]:
        async with store_call("get flex days"), self._conn() as conn:
            rows = await queries.get_active_flex_bookings_for_lease_range(
                conn, lease_id=lease_id, start_date=start_date, end_date=end_date
            )
            return _many(FlexDayBooking, rows)

    async def insert_flex_day_booking(self, booking: NewFlexDayBooking) -> FlexDayBooking:
        async with store_call("insert flex day"), self._conn() as conn:
            row = await queries.insert_flex_day_booking(conn, **booking.model_dump())
            return _one(FlexDayBooking, row)

    async def insert_flex_day_bookings(self, bookings: List[NewFlexDayBooking]) -> int:
        if not bookings:
            return 0
        async with store_call("insert flex day batch"), self.transaction() as conn:
            await conn.executemany(BATCH_INSERT_FLEX_DAY_BOOKINGS, [b.batch_params() for b in bookings])
        return len(bookings)

    async def update_flex_day_booking_status(self, booking_id: str, status: str) -> FlexDayBooking:
        async with store_call("update flex day status"), self._conn() as conn:
            row = await queries.update_flex_day_booking_status(conn, booking_id=booking_id, status=status)
            return _one(FlexDayBooking, row)

    async def delete_flex_day_booking(self, booking_id: str) -> None:
        async with store_call("delete flex day"), self._conn() as conn:
            await queries.delete_flex_day_booking(conn, booking_id=booking_id)

    async def get_flex_lease(self, lease_id: str) -> Optional[FlexLease]:
        async with store_call("get lease"), self._conn() as conn:
            row = await queries.get_flex_lease(conn, lease_id=lease_id)
            return _one(FlexLease, row)

    async def get_flex_schedule(self, lease_id: str, space_id: str) -> Optional[FlexSchedule]:
        async with store_call("get flex schedule"), self._conn() as conn:
            row = await queries.get_flex_schedule(conn, lease_id=lease_id, space_id=space_id)
            return _one(FlexSchedule, row)

    # -- tariffs and discounts -----------------------------------------------

    async def get_tariff_card(self, space_id: str) -> Optional[TariffCard]:
        async with store_call("get tariff"), self._conn() as conn:
            row = await queries.get_space_tariff(conn, space_id=space_id)
            return _one(TariffCard, row)

    async def get_discount_percentage(self, holder: HolderRef) -> Decimal:
        if holder.kind == HolderKind.LEASE:
            return Decimal(0)
        async with store_call("get discount"), self._conn() as conn:
            if holder.kind == HolderKind.TENANT:
                value = await queries.get_tenant_discount(conn, holder_id=holder.id)
            else:
                value = await queries.get_external_customer_discount(conn, holder_id=holder.id)
        return Decimal(value) if value is not None else Decimal(0)

    # -- invoices ------------------------------------------------------------

    async def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        async with store_call("get invoice"), self._conn() as conn:
            row = await queries.get_invoice(conn, invoice_id=invoice_id)
            return _one(Invoice, row)

    async def find_draft_invoice(self, holder: HolderRef, invoice_month: str) -> Optional[Invoice]:
        async with store_call("find draft invoice"), self._conn() as conn:
            row = await queries.find_draft_invoice(conn, invoice_month=invoice_month, **holder.columns())
            return _one(Invoice, row)

    async def next_invoice_number(self, year: int) -> str:
        async with store_call("generate invoice number"), self._conn() as conn:
            seq = await queries.next_invoice_sequence(conn, prefix=f"{year}-%")
        return f"{year}-{int(seq):04d}"

    async def insert_invoice(self, invoice: NewInvoice) -> Invoice:
        fields = invoice.model_dump()
        fields["notes"] = "\n".join(invoice.notes)
        async with store_call("insert invoice"), self._conn() as conn:
            row = await queries.insert_invoice(conn, **fields)
            return _one(Invoice, row)

    async def update_invoice_totals(
        self,
        invoice_id: str,
        subtotal: Decimal,
        discount_amount: Decimal,
        vat_amount: Decimal,
        amount: Decimal,
        notes: List[str],
    ) -> Invoice:
        async with store_call("update invoice"), self._conn() as conn:
            row = await queries.update_invoice_totals(
                conn,
                invoice_id=invoice_id,
                subtotal=subtotal,
                discount_amount=discount_amount,
                vat_amount=vat_amount,
                amount=amount,
                notes="\n".join(notes),
            )
        if not row:
            raise StoreError(f"Invoice {invoice_id} was not updated (missing or no longer draft)")
        return _one(Invoice, row)

    async def delete_invoice(self, invoice_id: str) -> None:
        async with store_call("delete invoice"), self._conn() as conn:
            await queries.delete_invoice(conn, invoice_id=invoice_id)

    async def get_invoice_lines(self, invoice_id: str) -> List[InvoiceBookingLine]:
        async with store_call("get invoice lines"), self._conn() as conn:
            rows = await queries.get_invoice_lines(conn, invoice_id=invoice_id)
            return _many(InvoiceBookingLine, rows)

    async def insert_invoice_line(self, line: InvoiceBookingLine) -> None:
        async with store_call("insert invoice line"), self._conn() as conn:
            await queries.insert_invoice_line(conn, **line.model_dump())

    async def delete_invoice_line(self, invoice_id: str, booking_id: str) -> Optional[InvoiceBookingLine]:
        async with store_call("delete invoice line"), self._conn() as conn:
            row = await queries.delete_invoice_line(conn, invoice_id=invoice_id, booking_id=booking_id)
            return _one(InvoiceBookingLine, row)
