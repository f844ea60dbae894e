"""Booking engine service.

Meeting room and flex desk bookings, recurring patterns, flex credit
quotas and draft invoice reconciliation.
"""

from services.booking.repo import (
    IBookingRepo,
    BookingRepo,
)
from services.booking.mock_repo import MockBookingRepo
from services.booking.config import BookingConfig
from services.booking.constants import (
    BookingStatus,
    BookingKind,
    InvoiceStatus,
)
from services.booking.service import (
    IService,
    Service,
    RecurrenceResult,
    StatusChangeResult,
    DeleteResult,
    MoveResult,
    DeactivateResult,
    FlexFillResult,
    make_rule,
)
from services.booking.invoicing import RemovalResult

__all__ = [
    # Repo
    "IBookingRepo",
    "BookingRepo",
    "MockBookingRepo",
    # Config / constants
    "BookingConfig",
    "BookingStatus",
    "BookingKind",
    "InvoiceStatus",
    # Service
    "IService",
    "Service",
    "RecurrenceResult",
    "StatusChangeResult",
    "DeleteResult",
    "MoveResult",
    "DeactivateResult",
    "FlexFillResult",
    "RemovalResult",
    "make_rule",
]
