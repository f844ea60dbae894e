"""Unit tests for the booking Service.

Runs the orchestrator against MockBookingRepo; no database needed.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from db.models import FlexLease, FlexSchedule
from lib.scheduling.credits import DayType, HalfDayPeriod
from lib.scheduling.errors import (
    BatchInsertError,
    ConflictError,
    InvalidTransitionError,
    InvoiceLockedError,
    NotFoundError,
    QuotaExceededError,
    StoreError,
    ValidationError,
)
from lib.scheduling.holder import HolderRef
from lib.scheduling.interval import Interval
from services.booking.config import BookingConfig
from services.booking.constants import BookingKind, BookingStatus
from services.booking.mock_repo import MockBookingRepo
from services.booking.service import Service, make_rule

ROOM = "room-1"
OTHER_ROOM = "room-2"
DESK = "desk-1"
TENANT = HolderRef.tenant("tenant-1")
CUSTOMER = HolderRef.external_customer("customer-1")
MONDAY = date(2025, 3, 10)
TODAY = date(2025, 3, 1)


def slot(start: str, end: str, on: date = MONDAY) -> Interval:
    return Interval.from_clock(on, start, end)


@pytest.fixture
def repo():
    repo = MockBookingRepo()
    repo.add_space(ROOM, "Boardroom", hourly_rate=25, half_day_rate=80, full_day_rate=150)
    repo.add_space(OTHER_ROOM, "Focus Room", hourly_rate=15)
    repo.add_space(DESK, "Flex Desk", hourly_rate=10, space_type="flex_desk")
    repo.set_discount(TENANT, 10)
    return repo


@pytest.fixture
def config():
    return BookingConfig(test_date=TODAY)


@pytest.fixture
def service(repo, config):
    return Service(repo=repo, config=config)


def add_flex_lease(repo, lease_id="lease-1", day_type="full_day", quota=Decimal(5), start=date(2025, 1, 1),
                   end=None, weekdays=()):
    lease = FlexLease(
        id=lease_id,
        tenant_id="tenant-1",
        start_date=start,
        end_date=end,
        lease_type="flex",
        flex_day_type=day_type,
        monthly_credit_quota=quota,
    )
    schedule = None
    if weekdays:
        schedule = FlexSchedule(lease_id=lease_id, space_id=DESK, **{d: True for d in weekdays})
    repo.add_lease(lease, schedule)
    return HolderRef.lease(lease_id)


class TestCreateBooking:
    """Single meeting room bookings."""

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_half_day_with_discount_then_conflict(self, service):
        """09:00-13:00 at 25/80/150 with 10% off costs 72; 12:00-14:00 then conflicts."""
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "13:00"))

        assert booking.status == BookingStatus.CONFIRMED
        assert booking.rate_type == "half_day"
        assert booking.applied_rate == Decimal(80)
        assert booking.subtotal == Decimal(80)
        assert booking.discount_amount == Decimal(8)
        assert booking.total_amount == Decimal(72)

        with pytest.raises(ConflictError) as exc:
            await service.create_booking(ROOM, TENANT, MONDAY, slot("12:00", "14:00"))
        assert exc.value.conflicting_ids == [booking.id]

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_adjacent_slot_and_other_room_allowed(self, service, repo):
        await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "13:00"))
        await service.create_booking(ROOM, CUSTOMER, MONDAY, slot("13:00", "14:00"))
        await service.create_booking(OTHER_ROOM, CUSTOMER, MONDAY, slot("09:00", "13:00"))

        assert len(repo.bookings) == 3

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_interval_date_follows_booking_date(self, service):
        booking = await service.create_booking(ROOM, CUSTOMER, date(2025, 3, 11), slot("09:00", "10:00"))
        assert booking.booking_date == date(2025, 3, 11)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_cancelled_booking_frees_slot(self, service):
        first = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        await service.change_status(first.id, BookingStatus.CANCELLED)

        second = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        assert second.id != first.id

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_external_customer_without_discount(self, service):
        booking = await service.create_booking(ROOM, CUSTOMER, MONDAY, slot("09:00", "11:00"))
        assert booking.rate_type == "hourly"
        assert booking.total_amount == Decimal(50)
        assert booking.external_customer_id == "customer-1"
        assert booking.tenant_id is None

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_full_day(self, service):
        booking = await service.create_booking(ROOM, CUSTOMER, MONDAY, slot("08:00", "17:00"))
        assert booking.rate_type == "full_day"
        assert booking.total_amount == Decimal(150)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_missing_selections(self, service):
        with pytest.raises(ValidationError):
            await service.create_booking("", TENANT, MONDAY, slot("09:00", "10:00"))
        with pytest.raises(ValidationError):
            await service.create_booking(ROOM, None, MONDAY, slot("09:00", "10:00"))
        with pytest.raises(ValidationError):
            await service.create_booking(ROOM, TENANT, None, slot("09:00", "10:00"))
        with pytest.raises(ValidationError):
            await service.create_booking(ROOM, TENANT, MONDAY, None)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_off_grid_times_rejected(self, service):
        with pytest.raises(ValidationError):
            await service.create_booking(ROOM, TENANT, MONDAY, slot("09:15", "10:00"))

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_unknown_space(self, service):
        with pytest.raises(NotFoundError):
            await service.create_booking("nope", TENANT, MONDAY, slot("09:00", "10:00"))

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_discount_over_100_rejected(self, service, repo):
        repo.set_discount(CUSTOMER, 120)
        with pytest.raises(ValidationError):
            await service.create_booking(ROOM, CUSTOMER, MONDAY, slot("09:00", "10:00"))

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_store_conflict_surfaces_as_conflict(self, service, repo):
        """A racing insert rejected by the store still reports ConflictError."""
        repo.insert_booking = AsyncMock(side_effect=ConflictError("insert booking: the slot is already booked"))
        with pytest.raises(ConflictError):
            await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_no_overlap_after_many_requests(self, service, repo):
        """Whatever succeeds, the confirmed bookings never overlap."""
        for start, end in [("09:00", "11:00"), ("10:00", "12:00"), ("11:00", "12:30"),
                           ("08:00", "09:30"), ("12:30", "13:00"), ("08:00", "09:00")]:
            try:
                await service.create_booking(ROOM, CUSTOMER, MONDAY, slot(start, end))
            except ConflictError:
                pass

        active = await repo.get_active_bookings(ROOM, MONDAY)
        for i, a in enumerate(active):
            for b in active[i + 1:]:
                assert a.end_minute <= b.start_minute or b.end_minute <= a.start_minute
        assert len(active) == 4


class TestCreateFlexDay:
    """Flex day bookings and the monthly credit quota."""

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_quota_boundary(self, service, repo):
        lease = add_flex_lease(repo, quota=Decimal(5))
        for day in (3, 4, 5, 6):
            await service.create_booking(DESK, lease, date(2025, 3, day), kind=BookingKind.FLEX_DAY)

        fifth = await service.create_booking(DESK, lease, date(2025, 3, 7), kind=BookingKind.FLEX_DAY)
        assert fifth.is_half_day is False

        with pytest.raises(QuotaExceededError) as exc:
            await service.create_booking(DESK, lease, date(2025, 3, 10), kind=BookingKind.FLEX_DAY)
        assert exc.value.used == Decimal(5)
        assert exc.value.quota == Decimal(5)
        assert exc.value.remaining == 0

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_next_month_has_fresh_quota(self, service, repo):
        lease = add_flex_lease(repo, quota=Decimal(1))
        await service.create_booking(DESK, lease, date(2025, 3, 3), kind=BookingKind.FLEX_DAY)
        await service.create_booking(DESK, lease, date(2025, 4, 1), kind=BookingKind.FLEX_DAY)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_cancelled_flex_day_returns_credit(self, service, repo):
        lease = add_flex_lease(repo, quota=Decimal(1))
        booked = await service.create_booking(DESK, lease, date(2025, 3, 3), kind=BookingKind.FLEX_DAY)
        await service.change_status(booked.id, BookingStatus.CANCELLED, kind=BookingKind.FLEX_DAY)

        await service.create_booking(DESK, lease, date(2025, 3, 4), kind=BookingKind.FLEX_DAY)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_requires_lease_holder(self, service, repo):
        add_flex_lease(repo)
        with pytest.raises(ValidationError):
            await service.create_booking(DESK, TENANT, MONDAY, kind=BookingKind.FLEX_DAY)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_same_day_twice_conflicts(self, service, repo):
        lease = add_flex_lease(repo)
        await service.create_booking(DESK, lease, MONDAY, kind=BookingKind.FLEX_DAY)
        with pytest.raises(ConflictError):
            await service.create_booking(DESK, lease, MONDAY, kind=BookingKind.FLEX_DAY)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_half_day_lease(self, service, repo):
        """Morning and afternoon fit one credit; a third half day does not."""
        lease = add_flex_lease(repo, day_type="half_day", quota=Decimal(1))
        morning = await service.create_booking(
            DESK, lease, MONDAY, kind=BookingKind.FLEX_DAY, period=HalfDayPeriod.MORNING
        )
        afternoon = await service.create_booking(
            DESK, lease, MONDAY, kind=BookingKind.FLEX_DAY, period=HalfDayPeriod.AFTERNOON
        )
        assert morning.half_day_period == "morning"
        assert afternoon.half_day_period == "afternoon"

        with pytest.raises(QuotaExceededError):
            await service.create_booking(
                DESK, lease, date(2025, 3, 11), kind=BookingKind.FLEX_DAY, period=HalfDayPeriod.MORNING
            )

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_half_day_on_full_day_lease_costs_full_credit(self, service, repo):
        lease = add_flex_lease(repo, quota=Decimal(1))
        await service.create_booking(
            DESK, lease, MONDAY, kind=BookingKind.FLEX_DAY,
            day_type=DayType.HALF_DAY, period=HalfDayPeriod.MORNING,
        )
        with pytest.raises(QuotaExceededError):
            await service.create_booking(
                DESK, lease, MONDAY, kind=BookingKind.FLEX_DAY,
                day_type=DayType.HALF_DAY, period=HalfDayPeriod.AFTERNOON,
            )

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_half_day_needs_period(self, service, repo):
        lease = add_flex_lease(repo, day_type="half_day")
        with pytest.raises(ValidationError):
            await service.create_booking(DESK, lease, MONDAY, kind=BookingKind.FLEX_DAY)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_unknown_lease(self, service):
        with pytest.raises(NotFoundError):
            await service.create_booking(DESK, HolderRef.lease("ghost"), MONDAY, kind=BookingKind.FLEX_DAY)


class TestRecurringPattern:
    """Pattern creation and bulk fill."""

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_weekly_fill(self, service, repo):
        rule = make_rule("weekly", date(2025, 3, 3), date(2025, 3, 16), weekdays=["monday", "wednesday"])
        result = await service.create_recurring_pattern(ROOM, TENANT, slot("09:00", "10:00"), rule)

        assert result.created_count == 4
        assert result.skipped_count == 0
        bookings = await service.list_bookings(ROOM, date(2025, 3, 1), date(2025, 3, 31))
        assert [b.booking_date for b in bookings] == [
            date(2025, 3, 3), date(2025, 3, 5), date(2025, 3, 10), date(2025, 3, 12),
        ]
        assert all(b.recurring_pattern_id == result.pattern_id for b in bookings)
        assert all(b.total_amount == Decimal("22.50") for b in bookings)

        pattern = repo.patterns[result.pattern_id]
        assert pattern.recurrence_days == ["monday", "wednesday"]

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_conflicting_dates_skipped(self, service):
        await service.create_booking(ROOM, CUSTOMER, date(2025, 3, 5), slot("09:30", "10:30"))

        rule = make_rule("weekly", date(2025, 3, 3), date(2025, 3, 16), weekdays=["monday", "wednesday"])
        result = await service.create_recurring_pattern(ROOM, TENANT, slot("09:00", "10:00"), rule)

        assert result.created_count == 3
        assert result.skipped_count == 1

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_monthly_skips_short_months(self, service):
        rule = make_rule("monthly", date(2025, 1, 1), date(2025, 4, 30), day_of_month=31)
        result = await service.create_recurring_pattern(ROOM, TENANT, slot("09:00", "10:00"), rule)
        assert result.created_count == 2

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_open_ended_pattern_uses_horizon(self, service):
        rule = make_rule("daily", date(2025, 3, 3))
        result = await service.create_recurring_pattern(ROOM, TENANT, slot("09:00", "10:00"), rule)
        assert result.created_count == 366

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_inserts_in_batches(self, repo):
        service = Service(repo=repo, config=BookingConfig(test_date=TODAY, batch_size=2))
        rule = make_rule("daily", date(2025, 3, 3), date(2025, 3, 7))
        result = await service.create_recurring_pattern(ROOM, TENANT, slot("09:00", "10:00"), rule)

        assert result.created_count == 5
        assert repo.batch_calls == 3

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_partial_batch_failure_reports_committed(self, repo):
        service = Service(repo=repo, config=BookingConfig(test_date=TODAY, batch_size=2))
        repo.fail_on_batch = 2
        rule = make_rule("weekly", date(2025, 3, 3), date(2025, 3, 16), weekdays=["monday", "wednesday"])

        with pytest.raises(BatchInsertError) as exc:
            await service.create_recurring_pattern(ROOM, TENANT, slot("09:00", "10:00"), rule)

        assert exc.value.committed == 2
        assert exc.value.pattern_id in repo.patterns
        assert len(repo.bookings) == 2

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_unknown_space_writes_nothing(self, service, repo):
        rule = make_rule("daily", date(2025, 3, 3), date(2025, 3, 7))
        with pytest.raises(NotFoundError):
            await service.create_recurring_pattern("nope", TENANT, slot("09:00", "10:00"), rule)
        assert repo.patterns == {}

    @pytest.mark.no_db
    def test_make_rule_rejects_bad_input(self):
        with pytest.raises(ValidationError):
            make_rule("weekly", date(2025, 3, 3))
        with pytest.raises(ValidationError):
            make_rule("fortnightly", date(2025, 3, 3))
        with pytest.raises(ValidationError):
            make_rule("daily", date(2025, 3, 3), date(2025, 3, 1))

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_fill_pattern_extends(self, service):
        rule = make_rule("weekly", date(2025, 3, 3), None, weekdays=["monday"])
        created = await service.create_recurring_pattern(OTHER_ROOM, TENANT, slot("09:00", "10:00"), rule)

        # Already filled for a year ahead; filling again only finds conflicts
        again = await service.fill_pattern(created.pattern_id, date(2025, 3, 1), date(2025, 3, 31))
        assert again.created_count == 0
        assert again.skipped_count == 5

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_deactivate_cancels_future_bookings(self, repo):
        service = Service(repo=repo, config=BookingConfig(test_date=date(2025, 3, 20)))
        rule = make_rule("weekly", date(2025, 3, 3), date(2025, 3, 31), weekdays=["monday"])
        created = await service.create_recurring_pattern(ROOM, TENANT, slot("09:00", "10:00"), rule)
        assert created.created_count == 5

        result = await service.deactivate_pattern(created.pattern_id, date(2025, 3, 16))

        assert result.pattern.is_active is False
        assert result.pattern.end_date == date(2025, 3, 16)
        # The 17th is already in the past, 24th and 31st are cancelled
        assert result.cancelled_count == 2
        statuses = {b.booking_date.day: b.status for b in repo.bookings.values()}
        assert statuses == {3: "confirmed", 10: "confirmed", 17: "confirmed", 24: "cancelled", 31: "cancelled"}

        with pytest.raises(ValidationError):
            await service.fill_pattern(created.pattern_id, date(2025, 4, 1), date(2025, 4, 30))


class TestChangeStatus:
    """Booking lifecycle transitions."""

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_complete_and_revert(self, service):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))

        completed = await service.change_status(booking.id, BookingStatus.COMPLETED)
        assert completed.booking.status == BookingStatus.COMPLETED

        reverted = await service.change_status(booking.id, BookingStatus.CONFIRMED)
        assert reverted.booking.status == BookingStatus.CONFIRMED

    @pytest.mark.no_db
    @pytest.mark.asyncio
    @pytest.mark.parametrize("requested", [BookingStatus.PENDING, BookingStatus.CONFIRMED])
    async def test_illegal_transitions_from_confirmed(self, service, requested):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        with pytest.raises(InvalidTransitionError):
            await service.change_status(booking.id, requested)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_cancelled_is_terminal(self, service):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        await service.change_status(booking.id, BookingStatus.CANCELLED)

        with pytest.raises(InvalidTransitionError) as exc:
            await service.change_status(booking.id, BookingStatus.CONFIRMED)
        assert exc.value.current == BookingStatus.CANCELLED

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_completed_cannot_be_cancelled(self, service):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        await service.change_status(booking.id, BookingStatus.COMPLETED)
        with pytest.raises(InvalidTransitionError):
            await service.change_status(booking.id, BookingStatus.CANCELLED)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_failed_cancel_keeps_booking_on_invoice(self, service, repo):
        """The invoice change and the status write succeed or fail together."""
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        invoice = await service.generate_or_update_invoice_for_booking(booking.id)
        repo.update_booking_status = AsyncMock(side_effect=StoreError("update booking status failed"))

        with pytest.raises(StoreError):
            await service.change_status(booking.id, BookingStatus.CANCELLED)

        assert repo.bookings[booking.id].status == BookingStatus.CONFIRMED
        assert repo.bookings[booking.id].invoice_id == invoice.id
        assert invoice.id in repo.invoices

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_unknown_status(self, service):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        with pytest.raises(ValidationError):
            await service.change_status(booking.id, "archived")

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_unknown_booking(self, service):
        with pytest.raises(NotFoundError):
            await service.change_status("missing", BookingStatus.CANCELLED)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_cancel_removes_from_draft_invoice(self, service, repo):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "13:00"))
        invoice = await service.generate_or_update_invoice_for_booking(booking.id)

        result = await service.change_status(booking.id, BookingStatus.CANCELLED)

        assert result.booking.status == BookingStatus.CANCELLED
        assert result.invoice_deleted is True
        assert result.warning is None
        assert invoice.id not in repo.invoices

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_cancel_with_issued_invoice_warns(self, service, repo):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "13:00"))
        invoice = await service.generate_or_update_invoice_for_booking(booking.id)
        repo.invoices[invoice.id] = repo.invoices[invoice.id].model_copy(update={"status": "issued"})

        result = await service.change_status(booking.id, BookingStatus.CANCELLED)

        assert result.booking.status == BookingStatus.CANCELLED
        assert result.invoice_updated is False
        assert result.invoice_deleted is False
        assert "issued" in result.warning
        assert repo.invoices[invoice.id].subtotal == invoice.subtotal
        assert repo.invoices[invoice.id].notes == invoice.notes


class TestDeleteBooking:

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_delete_updates_shared_invoice(self, service, repo):
        first = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "13:00"))
        second = await service.create_booking(ROOM, TENANT, MONDAY, slot("14:00", "16:00"))
        await service.generate_or_update_invoice_for_booking(first.id)
        invoice = await service.generate_or_update_invoice_for_booking(second.id)

        result = await service.delete_booking(second.id)

        assert result.invoice_updated is True
        assert second.id not in repo.bookings
        assert repo.invoices[invoice.id].subtotal == Decimal(80)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_delete_flex_day(self, service, repo):
        lease = add_flex_lease(repo)
        flex = await service.create_booking(DESK, lease, MONDAY, kind=BookingKind.FLEX_DAY)

        await service.delete_booking(flex.id, kind=BookingKind.FLEX_DAY)
        assert repo.flex_days == {}

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_delete_missing(self, service):
        with pytest.raises(NotFoundError):
            await service.delete_booking("missing")


class TestMoveBooking:
    """Rescheduling in place."""

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_move_keeps_pricing(self, service):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "13:00"))

        result = await service.move_booking(booking.id, date(2025, 3, 11), slot("10:00", "12:00"))

        assert result.booking.booking_date == date(2025, 3, 11)
        assert (result.booking.start_minute, result.booking.end_minute) == (600, 720)
        assert result.booking.total_amount == Decimal(72)
        assert result.booking.is_exception is False

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_move_overlapping_own_slot(self, service):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "11:00"))
        result = await service.move_booking(booking.id, MONDAY, slot("10:00", "12:00"))
        assert result.booking.start_minute == 600

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_move_onto_other_booking_conflicts(self, service, repo):
        other = await service.create_booking(ROOM, CUSTOMER, MONDAY, slot("14:00", "15:00"))
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))

        with pytest.raises(ConflictError) as exc:
            await service.move_booking(booking.id, MONDAY, slot("14:30", "15:30"))
        assert exc.value.conflicting_ids == [other.id]
        assert repo.bookings[booking.id].start_minute == 540

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_moving_pattern_booking_marks_exception(self, service, repo):
        rule = make_rule("weekly", date(2025, 3, 3), date(2025, 3, 16), weekdays=["monday"])
        created = await service.create_recurring_pattern(ROOM, TENANT, slot("09:00", "10:00"), rule)
        occurrence = next(b for b in repo.bookings.values() if b.recurring_pattern_id == created.pattern_id)

        result = await service.move_booking(occurrence.id, occurrence.booking_date, slot("15:00", "16:00"))
        assert result.booking.is_exception is True

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_cancelled_booking_cannot_move(self, service):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        await service.change_status(booking.id, BookingStatus.CANCELLED)
        with pytest.raises(ValidationError):
            await service.move_booking(booking.id, MONDAY, slot("11:00", "12:00"))

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_move_rewrites_invoice_line(self, service, repo):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "13:00"))
        await service.generate_or_update_invoice_for_booking(booking.id)

        result = await service.move_booking(booking.id, date(2025, 3, 12), slot("14:00", "18:00"))

        invoice = repo.invoices[result.invoice_id]
        assert result.booking.invoice_id == invoice.id
        assert invoice.notes == [
            "Boardroom 12-03-2025 14:00 - 18:00: half day rate €80.00 = €80.00",
            "  Discount 10%: -€8.00",
        ]
        assert invoice.subtotal == Decimal(80)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_move_with_locked_invoice_warns(self, service, repo):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "13:00"))
        invoice = await service.generate_or_update_invoice_for_booking(booking.id)
        repo.invoices[invoice.id] = repo.invoices[invoice.id].model_copy(update={"status": "paid"})

        result = await service.move_booking(booking.id, date(2025, 3, 12), slot("14:00", "18:00"))

        assert result.booking.booking_date == date(2025, 3, 12)
        assert "paid" in result.warning
        assert repo.invoices[invoice.id].notes == invoice.notes


class TestInvoiceOperations:
    """Caller-facing invoice reconciliation."""

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_first_booking_creates_draft(self, service, repo):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "13:00"))
        invoice = await service.generate_or_update_invoice_for_booking(booking.id)

        assert invoice.status == "draft"
        assert invoice.invoice_number == "2025-0001"
        assert invoice.invoice_month == "2025-03"
        assert invoice.invoice_date == TODAY
        assert invoice.due_date == date(2025, 3, 15)
        assert invoice.tenant_id == "tenant-1"
        assert invoice.subtotal == Decimal(80)
        assert invoice.discount_amount == Decimal(8)
        assert invoice.vat_amount == Decimal("15.12")
        assert invoice.amount == Decimal("87.12")
        assert invoice.notes == [
            "Boardroom 10-03-2025 09:00 - 13:00: half day rate €80.00 = €80.00",
            "  Discount 10%: -€8.00",
        ]
        assert repo.bookings[booking.id].invoice_id == invoice.id

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_same_month_appends_to_draft(self, service):
        first = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "13:00"))
        second = await service.create_booking(ROOM, TENANT, date(2025, 3, 20), slot("14:00", "16:00"))
        invoice = await service.generate_or_update_invoice_for_booking(first.id)
        updated = await service.generate_or_update_invoice_for_booking(second.id)

        assert updated.id == invoice.id
        assert updated.subtotal == Decimal(130)
        assert updated.discount_amount == Decimal(13)
        assert updated.vat_amount == Decimal("24.57")
        assert updated.amount == Decimal("141.57")
        assert updated.notes[2:] == [
            "Boardroom 20-03-2025 14:00 - 16:00: 2 hours @ €25.00/hour = €50.00",
            "  Discount 10%: -€5.00",
        ]

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_other_month_or_holder_gets_own_invoice(self, service):
        march = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        april = await service.create_booking(ROOM, TENANT, date(2025, 4, 7), slot("09:00", "10:00"))
        other = await service.create_booking(ROOM, CUSTOMER, MONDAY, slot("11:00", "12:00"))

        numbers = [
            (await service.generate_or_update_invoice_for_booking(b.id)).invoice_number
            for b in (march, april, other)
        ]
        assert numbers == ["2025-0001", "2025-0002", "2025-0003"]

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_generate_twice_is_idempotent(self, service, repo):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        first = await service.generate_or_update_invoice_for_booking(booking.id)
        second = await service.generate_or_update_invoice_for_booking(booking.id)

        assert first.id == second.id
        assert len(repo.invoice_lines[first.id]) == 1

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_remove_one_of_two(self, service, repo):
        first = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "13:00"))
        second = await service.create_booking(ROOM, TENANT, MONDAY, slot("14:00", "16:00"))
        await service.generate_or_update_invoice_for_booking(first.id)
        invoice = await service.generate_or_update_invoice_for_booking(second.id)

        result = await service.remove_booking_from_invoice(second.id)

        assert result.invoice_updated is True
        assert result.invoice_deleted is False
        updated = await service.get_invoice(invoice.id)
        assert updated.subtotal == Decimal(80)
        assert updated.amount == Decimal("87.12")
        assert updated.notes == [
            "Boardroom 10-03-2025 09:00 - 13:00: half day rate €80.00 = €80.00",
            "  Discount 10%: -€8.00",
        ]
        assert repo.bookings[second.id].invoice_id is None
        lines = await repo.get_invoice_lines(invoice.id)
        assert updated.subtotal == sum(line.amount for line in lines)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_remove_last_deletes_invoice(self, service, repo):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        invoice = await service.generate_or_update_invoice_for_booking(booking.id)

        result = await service.remove_booking_from_invoice(booking.id)

        assert result.invoice_deleted is True
        with pytest.raises(NotFoundError):
            await service.get_invoice(invoice.id)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_remove_from_issued_invoice_raises(self, service, repo):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        invoice = await service.generate_or_update_invoice_for_booking(booking.id)
        repo.invoices[invoice.id] = repo.invoices[invoice.id].model_copy(update={"status": "issued"})

        with pytest.raises(InvoiceLockedError):
            await service.remove_booking_from_invoice(booking.id)
        assert repo.bookings[booking.id].invoice_id == invoice.id
        assert len(repo.invoice_lines[invoice.id]) == 1

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_remove_uninvoiced_booking_is_noop(self, service):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        result = await service.remove_booking_from_invoice(booking.id)
        assert (result.invoice_updated, result.invoice_deleted) == (False, False)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_cancelled_booking_not_invoiced(self, service):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        await service.change_status(booking.id, BookingStatus.CANCELLED)
        with pytest.raises(ValidationError):
            await service.generate_or_update_invoice_for_booking(booking.id)


class TestFlexFill:
    """Filling flex schedules into flex day bookings."""

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_fill_month(self, service, repo):
        add_flex_lease(repo, quota=Decimal(20), weekdays=("monday", "wednesday", "friday"))

        result = await service.fill_flex_month("lease-1", DESK, date(2025, 3, 1))

        # March 2025: 5 Mondays, 4 Wednesdays, 4 Fridays
        assert result.created == 13
        assert result.skipped_existing == 0
        assert result.skipped_quota == 0
        assert all(b.booking_date.weekday() in (0, 2, 4) for b in repo.flex_days.values())

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_quota_limits_fill(self, service, repo):
        add_flex_lease(repo, quota=Decimal(10), weekdays=("monday", "wednesday", "friday"))

        result = await service.fill_flex_month("lease-1", DESK, date(2025, 3, 1))

        assert result.created == 10
        assert result.skipped_quota == 3
        usage = await service.credit_summary("lease-1", date(2025, 3, 1))
        assert usage.used == Decimal(10)
        assert usage.allowed is False

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_existing_days_skipped(self, service, repo):
        lease = add_flex_lease(repo, quota=Decimal(20), weekdays=("monday",))
        await service.create_booking(DESK, lease, date(2025, 3, 3), kind=BookingKind.FLEX_DAY)

        result = await service.fill_flex_month("lease-1", DESK, date(2025, 3, 1))

        assert result.created == 4
        assert result.skipped_existing == 1

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_past_dates_not_filled(self, repo):
        service = Service(repo=repo, config=BookingConfig(test_date=date(2025, 3, 15)))
        add_flex_lease(repo, quota=Decimal(20), weekdays=("monday", "wednesday", "friday"))

        result = await service.fill_flex_month("lease-1", DESK, date(2025, 3, 1))

        assert result.created == 7
        assert min(b.booking_date for b in repo.flex_days.values()) == date(2025, 3, 17)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_fill_contract(self, service, repo):
        add_flex_lease(
            repo, quota=Decimal(100), start=date(2025, 3, 1), end=date(2025, 4, 30),
            weekdays=("monday", "wednesday", "friday"),
        )

        result = await service.fill_flex_contract("lease-1", DESK)

        assert result.created == 26
        assert max(b.booking_date for b in repo.flex_days.values()) == date(2025, 4, 30)

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_half_day_lease_fill(self, service, repo):
        add_flex_lease(repo, day_type="half_day", quota=Decimal(2), weekdays=("monday", "tuesday"))

        result = await service.fill_flex_month("lease-1", DESK, date(2025, 3, 1))

        # Half a credit each: 4 bookings fit in 2 credits
        assert result.created == 4
        assert result.skipped_quota == 5
        assert all(b.is_half_day and b.half_day_period == "morning" for b in repo.flex_days.values())

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_missing_schedule(self, service, repo):
        add_flex_lease(repo)
        with pytest.raises(NotFoundError):
            await service.fill_flex_month("lease-1", DESK, date(2025, 3, 1))


class TestQueries:

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_get_booking(self, service):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        assert (await service.get_booking(booking.id)).id == booking.id

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_get_booking_missing(self, service):
        with pytest.raises(NotFoundError):
            await service.get_booking("missing")

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_list_includes_cancelled(self, service):
        booking = await service.create_booking(ROOM, TENANT, MONDAY, slot("09:00", "10:00"))
        await service.change_status(booking.id, BookingStatus.CANCELLED)

        listed = await service.list_bookings(ROOM, MONDAY, MONDAY)
        assert [b.status for b in listed] == [BookingStatus.CANCELLED]

    @pytest.mark.no_db
    @pytest.mark.asyncio
    async def test_credit_summary_weekly_credits(self, service, repo):
        repo.add_lease(FlexLease(
            id="lease-2", tenant_id="tenant-1", start_date=date(2025, 1, 1), credits_per_week=Decimal(2),
        ))
        usage = await service.credit_summary("lease-2", date(2025, 2, 14))

        assert usage.month == date(2025, 2, 1)
        assert usage.quota == Decimal(8)
        assert usage.used == 0
        assert usage.remaining == Decimal(8)
        assert usage.allowed is True
