"""Invoice Reconciliation - keep draft invoices in step with their bookings.

Each invoiced booking owns one structured line (invoice_booking_lines). Notes
keep the rendered text of those lines; removal is keyed by booking id and the
rendered text is dropped from the notes.
"""

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from loguru import logger

from db.models import Booking, Invoice, InvoiceBookingLine, NewInvoice
from lib.scheduling.credits import month_key
from lib.scheduling.errors import InvoiceLockedError, NotFoundError
from lib.scheduling.invoice_lines import (
    booking_line_text,
    discount_line_text,
    net_from_gross,
    remove_lines,
    vat_breakdown,
)
from lib.scheduling.tariff import RateTier, describe_tier, money
from services.booking.config import BookingConfig
from services.booking.constants import InvoiceStatus
from services.booking.repo import IBookingRepo


@dataclass
class RemovalResult:
    """Outcome of taking a booking off its invoice."""
    invoice_updated: bool = False
    invoice_deleted: bool = False


class InvoiceReconciler:
    def __init__(self, repo: IBookingRepo, config: Optional[BookingConfig] = None):
        self._repo = repo
        self._config = config or BookingConfig()

    async def line_for(self, booking: Booking, invoice_id: str, vat_rate: Decimal) -> InvoiceBookingLine:
        """Build the invoice line for a booking. Amounts are net of VAT."""
        card = await self._repo.get_tariff_card(booking.space_id)
        if card is None:
            raise NotFoundError(f"No tariff card for space {booking.space_id}")

        amount = money(booking.subtotal)
        discount = money(booking.discount_amount)
        if card.vat_inclusive:
            amount = net_from_gross(amount, vat_rate)
            discount = net_from_gross(discount, vat_rate)

        tier = RateTier(booking.rate_type or RateTier.HOURLY.value)
        rate = booking.applied_rate if booking.applied_rate is not None else card.hourly_rate
        description = booking_line_text(
            card.space_name,
            booking.interval,
            describe_tier(tier, rate, booking.total_hours),
            amount,
        )
        discount_description = None
        if discount > 0:
            discount_description = discount_line_text(booking.discount_percentage, discount)

        return InvoiceBookingLine(
            invoice_id=invoice_id,
            booking_id=booking.id,
            description=description,
            discount_description=discount_description,
            amount=amount,
            discount_amount=discount,
        )

    async def add_booking(self, booking: Booking) -> Invoice:
        """Put a booking on its holder's draft invoice for the booking month.

        A booking that is already on an invoice is returned unchanged. The line,
        the totals and the booking link are written in one unit of work.
        """
        if booking.invoice_id:
            invoice = await self._repo.get_invoice(booking.invoice_id)
            if invoice is not None:
                return invoice

        holder = booking.holder
        invoice_month = month_key(booking.booking_date)

        async with self._repo.transaction():
            invoice = await self._repo.find_draft_invoice(holder, invoice_month)
            created = invoice is None
            if created:
                invoice = await self._create_invoice(booking, invoice_month)
            else:
                line = await self.line_for(booking, invoice.id, invoice.vat_rate)
                await self._repo.insert_invoice_line(line)
                subtotal = invoice.subtotal + line.amount
                discount = invoice.discount_amount + line.discount_amount
                vat_amount, total = vat_breakdown(subtotal - discount, invoice.vat_rate)
                invoice = await self._repo.update_invoice_totals(
                    invoice.id, money(subtotal), money(discount), vat_amount, total,
                    invoice.notes + line.rendered(),
                )
            await self._repo.set_booking_invoice(booking.id, invoice.id)

        if created:
            logger.success(f"Created draft invoice {invoice.invoice_number} for booking {booking.id}")
        else:
            logger.info(f"Added booking {booking.id} to draft invoice {invoice.invoice_number}")
        return invoice

    async def _create_invoice(self, booking: Booking, invoice_month: str) -> Invoice:
        today = self._config.today()
        vat_rate = self._config.vat_rate
        number = await self._repo.next_invoice_number(today.year)

        # Line amounts are known before the invoice row exists; the id is filled in after insert
        line = await self.line_for(booking, "", vat_rate)
        vat_amount, total = vat_breakdown(line.amount - line.discount_amount, vat_rate)

        invoice = await self._repo.insert_invoice(NewInvoice(
            invoice_number=number,
            invoice_month=invoice_month,
            invoice_date=today,
            due_date=today + timedelta(days=self._config.invoice_due_days),
            subtotal=line.amount,
            discount_amount=line.discount_amount,
            vat_rate=vat_rate,
            vat_amount=vat_amount,
            amount=total,
            notes=line.rendered(),
            **booking.holder.columns(),
        ))
        await self._repo.insert_invoice_line(line.model_copy(update={"invoice_id": invoice.id}))
        return invoice

    async def remove_booking(self, booking: Booking) -> RemovalResult:
        """Take a booking off its invoice.

        Raises InvoiceLockedError when the invoice is no longer a draft; nothing
        is changed in that case. The invoice is deleted once no booking lines
        remain and no other booking is linked to it. All writes share one unit
        of work.
        """
        if not booking.invoice_id:
            return RemovalResult()

        async with self._repo.transaction():
            invoice = await self._repo.get_invoice(booking.invoice_id)
            if invoice is None:
                logger.warning(f"Booking {booking.id} points at missing invoice {booking.invoice_id}, unlinking")
                await self._repo.set_booking_invoice(booking.id, None)
                return RemovalResult()

            if invoice.status != InvoiceStatus.DRAFT:
                raise InvoiceLockedError(invoice.id, invoice.status)

            line = await self._repo.delete_invoice_line(invoice.id, booking.id)
            if line is None:
                # Linked before structured lines existed; rebuild the line to find its text
                line = await self.line_for(booking, invoice.id, invoice.vat_rate)

            await self._repo.set_booking_invoice(booking.id, None)

            remaining = await self._repo.get_invoice_lines(invoice.id)
            still_linked = await self._repo.count_invoice_bookings(invoice.id)
            if not remaining and not still_linked:
                await self._repo.delete_invoice(invoice.id)
                deleted = True
            else:
                subtotal = max(invoice.subtotal - line.amount, Decimal(0))
                discount = max(invoice.discount_amount - line.discount_amount, Decimal(0))
                vat_amount, total = vat_breakdown(max(subtotal - discount, Decimal(0)), invoice.vat_rate)
                await self._repo.update_invoice_totals(
                    invoice.id, money(subtotal), money(discount), vat_amount, total,
                    remove_lines(invoice.notes, line.rendered()),
                )
                deleted = False

        if deleted:
            logger.info(f"Deleted draft invoice {invoice.invoice_number}, no bookings left on it")
            return RemovalResult(invoice_deleted=True)
        logger.info(f"Removed booking {booking.id} from draft invoice {invoice.invoice_number}")
        return RemovalResult(invoice_updated=True)
