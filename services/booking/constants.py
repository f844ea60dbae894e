"""Constants for the booking service."""

from typing import Dict, FrozenSet


class BookingStatus:
    """Booking lifecycle.

    PENDING -> CONFIRMED -> COMPLETED
    PENDING / CONFIRMED -> CANCELLED (terminal)
    COMPLETED -> CONFIRMED (revert a completion)
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    ALL = frozenset({PENDING, CONFIRMED, CANCELLED, COMPLETED})


ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset({BookingStatus.CONFIRMED}),
    BookingStatus.CANCELLED: frozenset(),
}


class InvoiceStatus:
    DRAFT = "draft"
    ISSUED = "issued"
    PAID = "paid"


class BookingKind:
    MEETING_ROOM = "meeting_room"
    FLEX_DAY = "flex_day"


def can_transition(current: str, requested: str) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())
