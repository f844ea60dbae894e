"""Booking Service.

Orchestrates meeting room and flex desk bookings: pricing, conflict checks,
recurring patterns, flex credit quotas and draft invoice reconciliation.
Uses dependency injection for the repo so tests can run against memory.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Awaitable, Callable, Iterable, List, Optional, Union

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from db.models import (
    Booking,
    NewBooking,
    FlexDayBooking,
    NewFlexDayBooking,
    RecurrencePattern,
    NewRecurrencePattern,
    TariffCard,
    Invoice,
)
from lib.scheduling.credits import CreditUsage, DayType, HalfDayPeriod, credit_cost, flex_interval, month_bounds
from lib.scheduling.errors import (
    BatchInsertError,
    BookingError,
    ConflictError,
    InvalidTransitionError,
    InvoiceLockedError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from lib.scheduling.holder import HolderKind, HolderRef
from lib.scheduling.interval import Interval, duration
from lib.scheduling.recurrence import RecurrenceRule, RecurrenceType, WEEKDAYS, expand, weekdays_from_schedule
from lib.scheduling.tariff import PricedAmount, apply_discount, money, resolve
from services.booking.config import BookingConfig
from services.booking.conflicts import ConflictChecker, find_overlapping
from services.booking.constants import BookingKind, BookingStatus, can_transition
from services.booking.credit_ledger import CreditLedger
from services.booking.invoicing import InvoiceReconciler, RemovalResult
from services.booking.repo import IBookingRepo, BookingRepo


@dataclass
class RecurrenceResult:
    """Result of creating or extending a recurring pattern."""
    pattern_id: str
    created_count: int
    skipped_count: int


@dataclass
class StatusChangeResult:
    """Result of a status change. `warning` is set when the invoice could not be updated."""
    booking: Union[Booking, FlexDayBooking]
    invoice_updated: bool = False
    invoice_deleted: bool = False
    warning: Optional[str] = None


@dataclass
class DeleteResult:
    booking_id: str
    invoice_updated: bool = False
    invoice_deleted: bool = False
    warning: Optional[str] = None


@dataclass
class MoveResult:
    booking: Booking
    invoice_id: Optional[str] = None
    warning: Optional[str] = None


@dataclass
class DeactivateResult:
    pattern: RecurrencePattern
    cancelled_count: int
    warnings: List[str] = field(default_factory=list)


@dataclass
class FlexFillResult:
    """Result of filling a flex schedule into flex day bookings."""
    created: int = 0
    skipped_existing: int = 0
    skipped_quota: int = 0


def make_rule(
    recurrence_type: str,
    start_date: date,
    end_date: Optional[date] = None,
    weekdays: Iterable[str] = (),
    day_of_month: Optional[int] = None,
) -> RecurrenceRule:
    """Build a RecurrenceRule, reporting bad input as a booking ValidationError."""
    try:
        return RecurrenceRule(
            recurrence_type=RecurrenceType(recurrence_type),
            weekdays=list(weekdays),
            day_of_month=day_of_month,
            start_date=start_date,
            end_date=end_date,
        )
    except PydanticValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        raise ValidationError(f"Invalid recurrence: {messages}") from e
    except ValueError as e:
        raise ValidationError(f"Invalid recurrence type: {recurrence_type!r}") from e


class IService(ABC):
    """Booking Service - reservations, patterns, flex credits and draft invoices."""

    @abstractmethod
    async def create_booking(
        self,
        space_id: str,
        holder: HolderRef,
        booking_date: date,
        interval: Optional[Interval] = None,
        kind: str = BookingKind.MEETING_ROOM,
        day_type: Optional[DayType] = None,
        period: Optional[HalfDayPeriod] = None,
        notes: str = "",
    ) -> Union[Booking, FlexDayBooking]:
        """Create a single booking.

        Meeting rooms are priced and conflict checked; flex days are checked
        against the lease's monthly credit quota instead.

        Raises:
            ValidationError, ConflictError, QuotaExceededError, NotFoundError
        """
        pass

    @abstractmethod
    async def create_recurring_pattern(
        self,
        space_id: str,
        holder: HolderRef,
        template: Interval,
        rule: RecurrenceRule,
        notes: str = "",
    ) -> RecurrenceResult:
        """Persist a pattern and fill it over its whole span.

        Conflicting dates are skipped and counted. Open-ended patterns are
        filled `open_ended_horizon_days` ahead.
        """
        pass

    @abstractmethod
    async def fill_pattern(self, pattern_id: str, range_start: date, range_end: date) -> RecurrenceResult:
        """Generate more bookings for an active pattern."""
        pass

    @abstractmethod
    async def deactivate_pattern(self, pattern_id: str, end_date: date) -> DeactivateResult:
        """Stop a pattern and cancel its future bookings after `end_date`."""
        pass

    @abstractmethod
    async def change_status(
        self, booking_id: str, new_status: str, kind: str = BookingKind.MEETING_ROOM
    ) -> StatusChangeResult:
        """Move a booking through its lifecycle. Raises InvalidTransitionError."""
        pass

    @abstractmethod
    async def delete_booking(self, booking_id: str, kind: str = BookingKind.MEETING_ROOM) -> DeleteResult:
        pass

    @abstractmethod
    async def move_booking(self, booking_id: str, new_date: date, new_interval: Interval) -> MoveResult:
        """Reschedule a meeting room booking in place. Pricing is kept."""
        pass

    @abstractmethod
    async def generate_or_update_invoice_for_booking(self, booking_id: str) -> Invoice:
        pass

    @abstractmethod
    async def remove_booking_from_invoice(self, booking_id: str) -> RemovalResult:
        """Raises InvoiceLockedError when the invoice is no longer a draft."""
        pass

    @abstractmethod
    async def fill_flex_month(self, lease_id: str, space_id: str, month: date) -> FlexFillResult:
        pass

    @abstractmethod
    async def fill_flex_contract(self, lease_id: str, space_id: str) -> FlexFillResult:
        pass

    # =========================================================================
    # QUERIES
    # =========================================================================

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Booking:
        pass

    @abstractmethod
    async def list_bookings(self, space_id: str, start_date: date, end_date: date) -> List[Booking]:
        pass

    @abstractmethod
    async def credit_summary(self, lease_id: str, month: date) -> CreditUsage:
        pass

    @abstractmethod
    async def get_invoice(self, invoice_id: str) -> Invoice:
        pass


class Service(IService):
    def __init__(
        self,
        repo: Optional[IBookingRepo] = None,
        config: Optional[BookingConfig] = None,
    ) -> None:
        self._repo = repo or BookingRepo()
        self._config = config or BookingConfig.from_env()
        self._conflicts = ConflictChecker(self._repo)
        self._ledger = CreditLedger(self._repo)
        self._invoicing = InvoiceReconciler(self._repo, self._config)

    # =========================================================================
    # SINGLE BOOKINGS
    # =========================================================================

    async def create_booking(
        self,
        space_id: str,
        holder: HolderRef,
        booking_date: date,
        interval: Optional[Interval] = None,
        kind: str = BookingKind.MEETING_ROOM,
        day_type: Optional[DayType] = None,
        period: Optional[HalfDayPeriod] = None,
        notes: str = "",
    ) -> Union[Booking, FlexDayBooking]:
        self._require_selection(space_id, holder, booking_date)
        if kind == BookingKind.FLEX_DAY:
            return await self._create_flex_day(space_id, holder, booking_date, day_type, period)
        if kind != BookingKind.MEETING_ROOM:
            raise ValidationError(f"Unknown booking kind: {kind!r}")
        if interval is None:
            raise ValidationError("Select a start and end time")

        candidate = interval.on(booking_date)
        self._require_grid(candidate)

        card = await self._tariff(space_id)
        priced = self._price(card, candidate, await self._discount(holder))

        conflicts = await self._conflicts.find_conflicts(space_id, booking_date, candidate)
        if conflicts:
            raise ConflictError(
                f"{card.space_name} is already booked on {booking_date} during {candidate.label}",
                [b.id for b in conflicts],
            )

        booking = await self._repo.insert_booking(
            self._new_booking(space_id, holder, candidate, card, priced, notes=notes)
        )
        logger.success(
            f"Booked {card.space_name} on {booking_date} {candidate.label} "
            f"({priced.tier.value}, €{booking.total_amount})"
        )
        return booking

    async def _create_flex_day(
        self,
        space_id: str,
        holder: HolderRef,
        booking_date: date,
        day_type: Optional[DayType],
        period: Optional[HalfDayPeriod],
    ) -> FlexDayBooking:
        if holder.kind != HolderKind.LEASE:
            raise ValidationError("Flex day bookings must be made on a lease")

        lease = await self._ledger.get_lease(holder.id)
        day_type = DayType(day_type) if day_type else lease.day_type
        period = HalfDayPeriod(period) if period else None
        candidate = flex_interval(booking_date, day_type, period)

        existing = await self._repo.get_active_flex_bookings(lease.id, booking_date, booking_date)
        same_space = [b for b in existing if b.space_id == space_id]
        conflicts = find_overlapping(same_space, candidate)
        if conflicts:
            raise ConflictError(
                f"Lease {lease.id} already has a flex booking on {booking_date}",
                [b.id for b in conflicts],
            )

        usage = await self._ledger.check(lease, booking_date, day_type)
        if not usage.allowed:
            raise QuotaExceededError(usage.used, usage.quota, usage.cost)

        is_half_day = day_type == DayType.HALF_DAY
        booking = await self._repo.insert_flex_day_booking(NewFlexDayBooking(
            lease_id=lease.id,
            space_id=space_id,
            booking_date=booking_date,
            is_half_day=is_half_day,
            half_day_period=period.value if is_half_day else None,
        ))
        logger.success(
            f"Flex {day_type.value} booked for lease {lease.id} on {booking_date} "
            f"({usage.used + usage.cost} of {usage.quota} credits)"
        )
        return booking

    # =========================================================================
    # RECURRING PATTERNS
    # =========================================================================

    async def create_recurring_pattern(
        self,
        space_id: str,
        holder: HolderRef,
        template: Interval,
        rule: RecurrenceRule,
        notes: str = "",
    ) -> RecurrenceResult:
        self._require_selection(space_id, holder, rule.start_date)
        self._require_grid(template)
        # Fail on an unknown space before anything is written
        await self._tariff(space_id)

        pattern = await self._repo.insert_pattern(NewRecurrencePattern(
            space_id=space_id,
            start_minute=template.start_offset,
            end_minute=template.end_offset,
            recurrence_type=rule.recurrence_type.value,
            recurrence_days=sorted(rule.weekdays, key=WEEKDAYS.index),
            recurrence_date=rule.day_of_month,
            start_date=rule.start_date,
            end_date=rule.end_date,
            notes=notes,
            **holder.columns(),
        ))
        logger.info(f"Created {rule.recurrence_type.value} pattern {pattern.id} for space {space_id}")

        range_end = rule.end_date or rule.start_date + timedelta(days=self._config.open_ended_horizon_days)
        return await self._fill_pattern(pattern, rule.start_date, range_end)

    async def fill_pattern(self, pattern_id: str, range_start: date, range_end: date) -> RecurrenceResult:
        pattern = await self._repo.get_pattern(pattern_id)
        if pattern is None:
            raise NotFoundError(f"Pattern {pattern_id} not found")
        if not pattern.is_active:
            raise ValidationError(f"Pattern {pattern_id} is no longer active")
        return await self._fill_pattern(pattern, range_start, range_end)

    async def _fill_pattern(self, pattern: RecurrencePattern, range_start: date, range_end: date) -> RecurrenceResult:
        dates = expand(pattern.rule, range_start, range_end)
        if not dates:
            logger.info(f"Pattern {pattern.id}: no dates between {range_start} and {range_end}")
            return RecurrenceResult(pattern_id=pattern.id, created_count=0, skipped_count=0)

        holder = pattern.holder
        card = await self._tariff(pattern.space_id)
        discount = await self._discount(holder)
        occupied = await self._conflicts.day_index(pattern.space_id, dates.first, dates.last)
        template = Interval(dates.first, pattern.start_minute, pattern.end_minute)

        pending: List[NewBooking] = []
        skipped = 0
        for day in dates:
            candidate = template.on(day)
            if occupied.conflicts(candidate):
                skipped += 1
                logger.info(f"Pattern {pattern.id}: {day} {candidate.label} already booked, skipping")
                continue
            priced = self._price(card, candidate, discount)
            pending.append(self._new_booking(
                pattern.space_id, holder, candidate, card, priced,
                pattern_id=pattern.id, notes=pattern.notes,
            ))
            occupied.add(candidate)

        try:
            created = await self._insert_batches(self._repo.insert_bookings, pending)
        except BatchInsertError as e:
            e.pattern_id = pattern.id
            logger.error(f"Pattern {pattern.id}: stopped after {e.committed} bookings, resume with fill_pattern")
            raise
        logger.success(f"Pattern {pattern.id}: created {created} bookings, skipped {skipped} conflicts")
        return RecurrenceResult(pattern_id=pattern.id, created_count=created, skipped_count=skipped)

    async def deactivate_pattern(self, pattern_id: str, end_date: date) -> DeactivateResult:
        pattern = await self._repo.get_pattern(pattern_id)
        if pattern is None:
            raise NotFoundError(f"Pattern {pattern_id} not found")

        pattern = await self._repo.deactivate_pattern(pattern_id, end_date)
        today = self._config.today()

        cancelled = 0
        warnings: List[str] = []
        for booking in await self._repo.get_active_pattern_bookings_after(pattern_id, end_date):
            if booking.booking_date < today or not can_transition(booking.status, BookingStatus.CANCELLED):
                continue
            result = await self._cancel(booking)
            cancelled += 1
            if result.warning:
                warnings.append(result.warning)

        logger.info(f"Deactivated pattern {pattern_id} from {end_date}, cancelled {cancelled} bookings")
        return DeactivateResult(pattern=pattern, cancelled_count=cancelled, warnings=warnings)

    # =========================================================================
    # STATUS / DELETE / MOVE
    # =========================================================================

    async def change_status(
        self, booking_id: str, new_status: str, kind: str = BookingKind.MEETING_ROOM
    ) -> StatusChangeResult:
        if new_status not in BookingStatus.ALL:
            raise ValidationError(f"Unknown booking status: {new_status!r}")

        if kind == BookingKind.FLEX_DAY:
            flex = await self._get_flex_day(booking_id)
            if not can_transition(flex.status, new_status):
                raise InvalidTransitionError(flex.status, new_status)
            updated = await self._repo.update_flex_day_booking_status(booking_id, new_status)
            logger.info(f"Flex day {booking_id}: {flex.status} -> {new_status}")
            return StatusChangeResult(booking=updated)

        booking = await self.get_booking(booking_id)
        if not can_transition(booking.status, new_status):
            raise InvalidTransitionError(booking.status, new_status)

        if new_status == BookingStatus.CANCELLED:
            return await self._cancel(booking)

        updated = await self._repo.update_booking_status(booking_id, new_status)
        logger.info(f"Booking {booking_id}: {booking.status} -> {new_status}")
        return StatusChangeResult(booking=updated)

    async def _cancel(self, booking: Booking) -> StatusChangeResult:
        async with self._repo.transaction():
            removal, warning = await self._unlink_invoice(booking)
            updated = await self._repo.update_booking_status(booking.id, BookingStatus.CANCELLED)
        logger.info(f"Booking {booking.id}: {booking.status} -> {BookingStatus.CANCELLED}")
        return StatusChangeResult(
            booking=updated,
            invoice_updated=removal.invoice_updated,
            invoice_deleted=removal.invoice_deleted,
            warning=warning,
        )

    async def delete_booking(self, booking_id: str, kind: str = BookingKind.MEETING_ROOM) -> DeleteResult:
        if kind == BookingKind.FLEX_DAY:
            await self._get_flex_day(booking_id)
            await self._repo.delete_flex_day_booking(booking_id)
            logger.info(f"Deleted flex day {booking_id}")
            return DeleteResult(booking_id=booking_id)

        booking = await self.get_booking(booking_id)
        async with self._repo.transaction():
            removal, warning = await self._unlink_invoice(booking)
            await self._repo.delete_booking(booking_id)
        logger.info(f"Deleted booking {booking_id}")
        return DeleteResult(
            booking_id=booking_id,
            invoice_updated=removal.invoice_updated,
            invoice_deleted=removal.invoice_deleted,
            warning=warning,
        )

    async def move_booking(self, booking_id: str, new_date: date, new_interval: Interval) -> MoveResult:
        booking = await self.get_booking(booking_id)
        if booking.status == BookingStatus.CANCELLED:
            raise ValidationError("Cancelled bookings cannot be moved")

        candidate = new_interval.on(new_date)
        self._require_grid(candidate)

        conflicts = await self._conflicts.find_conflicts(
            booking.space_id, new_date, candidate, exclude_booking_id=booking.id
        )
        if conflicts:
            raise ConflictError(
                f"Space is already booked on {new_date} during {candidate.label}",
                [b.id for b in conflicts],
            )

        is_exception = booking.is_exception or booking.recurring_pattern_id is not None
        async with self._repo.transaction():
            moved = await self._repo.update_booking_slot(booking.id, candidate, is_exception)
            result = await self._move_invoice_line(booking, moved)
        logger.info(f"Moved booking {booking.id} to {new_date} {candidate.label}")
        return result

    async def _move_invoice_line(self, booking: Booking, moved: Booking) -> MoveResult:
        if not booking.invoice_id:
            return MoveResult(booking=moved)

        # The line text carries date and time, so the invoice line is rebuilt
        _, warning = await self._unlink_invoice(booking)
        if warning:
            return MoveResult(booking=moved, invoice_id=booking.invoice_id, warning=warning)

        invoice = await self._invoicing.add_booking(moved.model_copy(update={"invoice_id": None}))
        moved = moved.model_copy(update={"invoice_id": invoice.id})
        return MoveResult(booking=moved, invoice_id=invoice.id)

    async def _unlink_invoice(self, booking: Booking):
        """Reconcile before a cancel/delete/move. A locked invoice becomes a warning."""
        if not booking.invoice_id:
            return RemovalResult(), None
        try:
            return await self._invoicing.remove_booking(booking), None
        except InvoiceLockedError as e:
            logger.warning(f"Booking {booking.id}: {e}; invoice left unchanged")
            return RemovalResult(), str(e)

    # =========================================================================
    # INVOICES
    # =========================================================================

    async def generate_or_update_invoice_for_booking(self, booking_id: str) -> Invoice:
        booking = await self.get_booking(booking_id)
        if booking.status == BookingStatus.CANCELLED:
            raise ValidationError("Cancelled bookings cannot be invoiced")
        return await self._invoicing.add_booking(booking)

    async def remove_booking_from_invoice(self, booking_id: str) -> RemovalResult:
        booking = await self.get_booking(booking_id)
        return await self._invoicing.remove_booking(booking)

    # =========================================================================
    # FLEX SCHEDULES
    # =========================================================================

    async def fill_flex_month(self, lease_id: str, space_id: str, month: date) -> FlexFillResult:
        first, last = month_bounds(month)
        return await self._fill_flex(lease_id, space_id, first, last)

    async def fill_flex_contract(self, lease_id: str, space_id: str) -> FlexFillResult:
        lease = await self._ledger.get_lease(lease_id)
        end = lease.end_date or date(
            lease.start_date.year + self._config.flex_contract_horizon_years, 12, 31
        )
        return await self._fill_flex(lease_id, space_id, lease.start_date, end)

    async def _fill_flex(self, lease_id: str, space_id: str, first: date, last: date) -> FlexFillResult:
        lease = await self._ledger.get_lease(lease_id)
        schedule = await self._repo.get_flex_schedule(lease_id, space_id)
        if schedule is None:
            raise NotFoundError(f"Lease {lease_id} has no flex schedule for space {space_id}")
        weekdays = weekdays_from_schedule(schedule.model_dump())
        if not weekdays:
            raise ValidationError("Flex schedule has no weekdays selected")

        start = max(first, lease.start_date, self._config.today())
        end = min(last, lease.end_date) if lease.end_date else last
        result = FlexFillResult()
        if start > end:
            logger.info(f"Lease {lease_id}: nothing to fill between {first} and {last}")
            return result

        rule = RecurrenceRule(recurrence_type=RecurrenceType.WEEKLY, weekdays=weekdays, start_date=start, end_date=end)
        existing = await self._repo.get_active_flex_bookings(lease.id, start, end)
        booked = {b.booking_date for b in existing if b.space_id == space_id}
        quota = await self._ledger.rolling_quota(lease, start, end)

        day_type = lease.day_type
        cost = credit_cost(day_type, lease.day_type)
        is_half_day = day_type == DayType.HALF_DAY

        pending: List[NewFlexDayBooking] = []
        for day in expand(rule, start, end):
            if day in booked:
                result.skipped_existing += 1
                continue
            if not quota.try_consume(day, cost):
                result.skipped_quota += 1
                continue
            pending.append(NewFlexDayBooking(
                lease_id=lease.id,
                space_id=space_id,
                booking_date=day,
                is_half_day=is_half_day,
                half_day_period=HalfDayPeriod.MORNING.value if is_half_day else None,
            ))

        result.created = await self._insert_batches(self._repo.insert_flex_day_bookings, pending)
        logger.success(
            f"Lease {lease_id}: {result.created} flex days created, "
            f"{result.skipped_existing} already booked, {result.skipped_quota} over quota"
        )
        return result

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_booking(self, booking_id: str) -> Booking:
        booking = await self._repo.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    async def list_bookings(self, space_id: str, start_date: date, end_date: date) -> List[Booking]:
        return await self._repo.get_bookings_in_range(space_id, start_date, end_date)

    async def credit_summary(self, lease_id: str, month: date) -> CreditUsage:
        lease = await self._ledger.get_lease(lease_id)
        return await self._ledger.check(lease, month, lease.day_type)

    async def get_invoice(self, invoice_id: str) -> Invoice:
        invoice = await self._repo.get_invoice(invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        return invoice

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _get_flex_day(self, booking_id: str) -> FlexDayBooking:
        flex = await self._repo.get_flex_day_booking(booking_id)
        if flex is None:
            raise NotFoundError(f"Flex day booking {booking_id} not found")
        return flex

    async def _tariff(self, space_id: str) -> TariffCard:
        card = await self._repo.get_tariff_card(space_id)
        if card is None:
            raise NotFoundError(f"Space {space_id} not found or has no tariff card")
        return card

    async def _discount(self, holder: HolderRef) -> Decimal:
        pct = await self._repo.get_discount_percentage(holder)
        if pct > 100:
            raise ValidationError(f"Discount of {pct}% is over 100%")
        return max(pct, Decimal(0))

    def _require_selection(self, space_id: str, holder: Optional[HolderRef], booking_date: Optional[date]) -> None:
        if not space_id:
            raise ValidationError("Select a space")
        if holder is None:
            raise ValidationError("Select a tenant, external customer or lease")
        if booking_date is None:
            raise ValidationError("Select a date")

    def _require_grid(self, interval: Interval) -> None:
        step = self._config.slot_minutes
        if not interval.is_on_grid(step):
            raise ValidationError(f"Times must be on a {step}-minute grid, got {interval.label}")

    @staticmethod
    def _price(card: TariffCard, interval: Interval, discount_percentage: Decimal) -> PricedAmount:
        quote = resolve(duration(interval), card.hourly_rate, card.half_day_rate, card.full_day_rate)
        return apply_discount(quote, discount_percentage)

    @staticmethod
    def _new_booking(
        space_id: str,
        holder: HolderRef,
        interval: Interval,
        card: TariffCard,
        priced: PricedAmount,
        pattern_id: Optional[str] = None,
        notes: str = "",
    ) -> NewBooking:
        return NewBooking(
            space_id=space_id,
            booking_date=interval.date,
            start_minute=interval.start_offset,
            end_minute=interval.end_offset,
            status=BookingStatus.CONFIRMED,
            rate_type=priced.tier.value,
            applied_rate=priced.applied_rate,
            hourly_rate=card.hourly_rate,
            subtotal=money(priced.amount),
            discount_percentage=priced.discount_percentage,
            discount_amount=money(priced.discount_amount),
            total_amount=money(priced.final_amount),
            recurring_pattern_id=pattern_id,
            notes=notes,
            **holder.columns(),
        )

    async def _insert_batches(self, insert: Callable[[list], Awaitable[int]], records: list) -> int:
        """Write records in chunks of `batch_size`; stop at the first failing chunk."""
        committed = 0
        size = self._config.batch_size
        for start in range(0, len(records), size):
            chunk = records[start:start + size]
            try:
                committed += await insert(chunk)
            except BookingError as e:
                logger.error(f"Batch insert failed after {committed} records: {e}")
                raise BatchInsertError(
                    f"Batch insert failed after {committed} of {len(records)} records: {e}",
                    committed,
                ) from e
        return committed
