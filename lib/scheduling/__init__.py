"""Scheduling shared library.

Pure booking engine code: intervals, tariffs, recurrence, credits, invoice lines.
No repo or database access here (that lives in services/booking).
"""

from lib.scheduling.errors import (
    BookingError,
    ValidationError,
    ConflictError,
    QuotaExceededError,
    InvalidTransitionError,
    InvoiceLockedError,
    NotFoundError,
    StoreError,
    BatchInsertError,
)
from lib.scheduling.interval import Interval, duration, overlaps, parse_clock, format_clock
from lib.scheduling.holder import HolderRef, HolderKind
from lib.scheduling.tariff import RateTier, TariffQuote, PricedAmount, resolve, apply_discount
from lib.scheduling.recurrence import RecurrenceRule, RecurrenceType, DateSequence, expand, WEEKDAYS
from lib.scheduling.credits import DayType, HalfDayPeriod, CreditUsage, RollingQuota, credit_cost, monthly_quota
from lib.scheduling.invoice_lines import InvoiceLine, render_notes, vat_breakdown, net_from_gross

__all__ = [
    # Errors
    "BookingError",
    "ValidationError",
    "ConflictError",
    "QuotaExceededError",
    "InvalidTransitionError",
    "InvoiceLockedError",
    "NotFoundError",
    "StoreError",
    "BatchInsertError",
    # Interval
    "Interval",
    "duration",
    "overlaps",
    "parse_clock",
    "format_clock",
    # Holder
    "HolderRef",
    "HolderKind",
    # Tariff
    "RateTier",
    "TariffQuote",
    "PricedAmount",
    "resolve",
    "apply_discount",
    # Recurrence
    "RecurrenceRule",
    "RecurrenceType",
    "DateSequence",
    "expand",
    "WEEKDAYS",
    # Credits
    "DayType",
    "HalfDayPeriod",
    "CreditUsage",
    "RollingQuota",
    "credit_cost",
    "monthly_quota",
    # Invoice lines
    "InvoiceLine",
    "render_notes",
    "vat_breakdown",
    "net_from_gross",
]
