from db.models.booking import Booking, NewBooking
from db.models.flex_day_booking import FlexDayBooking, NewFlexDayBooking
from db.models.recurrence_pattern import RecurrencePattern, NewRecurrencePattern
from db.models.tariff_card import TariffCard
from db.models.lease import FlexLease, FlexSchedule
from db.models.invoice import Invoice, InvoiceBookingLine, NewInvoice

__all__ = [
    "Booking",
    "NewBooking",
    "FlexDayBooking",
    "NewFlexDayBooking",
    "RecurrencePattern",
    "NewRecurrencePattern",
    "TariffCard",
    "FlexLease",
    "FlexSchedule",
    "Invoice",
    "InvoiceBookingLine",
    "NewInvoice",
]
