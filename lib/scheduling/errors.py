"""Booking engine error taxonomy.

Every error a caller can observe derives from BookingError so API layers can
catch the whole family in one place.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for booking engine errors."""


class ValidationError(BookingError):
    """A required selection (space, holder, date, ...) is missing or malformed."""


class ConflictError(BookingError):
    """The requested slot overlaps an existing non-cancelled booking."""

    def __init__(self, message: str, conflicting_ids: Optional[list] = None):
        super().__init__(message)
        self.conflicting_ids = conflicting_ids or []


class QuotaExceededError(BookingError):
    """A flex-day booking would push the lease over its monthly credits."""

    def __init__(self, used: float, quota: float, cost: float):
        self.used = used
        self.quota = quota
        self.cost = cost
        self.remaining = max(quota - used, 0)
        super().__init__(
            f"Monthly credit limit reached: {used:g} of {quota:g} used, "
            f"booking needs {cost:g}"
        )


class InvalidTransitionError(BookingError):
    """Requested status change is not allowed from the current status."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change booking status from {current} to {requested}")


class InvoiceLockedError(BookingError):
    """The linked invoice is no longer a draft and may not be altered."""

    def __init__(self, invoice_id: str, status: str):
        self.invoice_id = invoice_id
        self.status = status
        super().__init__(f"Invoice {invoice_id} is {status}, only draft invoices can be changed")


class NotFoundError(BookingError):
    """A referenced record does not exist in the store."""


class StoreError(BookingError):
    """The record store failed to complete a read or write."""


class BatchInsertError(StoreError):
    """A bulk insert stopped part-way; `committed` records were written before it failed.

    `pattern_id` is set when the records belonged to a recurring pattern, so the
    caller can resume it with fill_pattern.
    """

    def __init__(self, message: str, committed: int, pattern_id: Optional[str] = None):
        super().__init__(message)
        self.committed = committed
        self.pattern_id = pattern_id
