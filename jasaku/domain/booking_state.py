"""Booking state machine."""

from enum import Enum


class BookingStatus(str, Enum):
    """Lifecycle states of a booking."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

# Only a refund may move a completed booking, and only to cancelled.
REFUND_BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.COMPLETED: frozenset({BookingStatus.CANCELLED}),
}


def can_transition_booking(
    current: BookingStatus, target: BookingStatus, privileged_refund: bool = False
) -> bool:
    if target in BOOKING_TRANSITIONS.get(current, frozenset()):
        return True
    if privileged_refund:
        return target in REFUND_BOOKING_TRANSITIONS.get(current, frozenset())
    return False
