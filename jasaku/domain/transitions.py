"""Transition authority for booking/payment pairs.

``evaluate_transition`` is a pure function: given a snapshot of a booking and
its payment, an actor and the requested statuses, it decides whether the
change is legal and what the resulting pair would be. It never touches
storage. ``assert_transition`` turns a rejection into the matching exception.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from jasaku.core.exceptions import (
    AuthorizationError,
    InconsistentJointState,
    InvalidTransition,
)
from jasaku.domain.actors import Actor
from jasaku.domain.booking_state import BookingStatus, can_transition_booking
from jasaku.domain.payment_state import PaymentStatus, can_transition_payment

# Allowed (booking, payment) pairs. None means no payment was initiated.
JOINT_STATES: dict[BookingStatus, frozenset[PaymentStatus | None]] = {
    BookingStatus.PENDING: frozenset({None, PaymentStatus.PENDING}),
    BookingStatus.CONFIRMED: frozenset(
        {None, PaymentStatus.PENDING, PaymentStatus.COMPLETED}
    ),
    BookingStatus.IN_PROGRESS: frozenset({None, PaymentStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset({None, PaymentStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(
        {None, PaymentStatus.CANCELLED, PaymentStatus.FAILED, PaymentStatus.REFUNDED}
    ),
}


def is_valid_joint_state(
    booking_status: BookingStatus, payment_status: PaymentStatus | None
) -> bool:
    return payment_status in JOINT_STATES.get(booking_status, frozenset())


class RejectionReason(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    INCONSISTENT_JOINT_STATE = "INCONSISTENT_JOINT_STATE"


@dataclass(frozen=True)
class JointSnapshot:
    """Current state of a booking and its (optional) payment."""

    booking_id: str
    booking_status: BookingStatus
    customer_id: str
    provider_id: str
    payment_id: str | None = None
    payment_status: PaymentStatus | None = None


@dataclass(frozen=True)
class TransitionRequest:
    """A requested change to one booking/payment pair."""

    booking_id: str
    actor: Actor
    booking_status: BookingStatus | None = None
    payment_id: str | None = None
    payment_status: PaymentStatus | None = None
    cause: str = "manual"
    completed_at: datetime | None = None
    privileged_refund: bool = False


@dataclass(frozen=True)
class TransitionDecision:
    """Outcome of evaluating a request against a snapshot."""

    allowed: bool
    booking_status: BookingStatus
    payment_status: PaymentStatus | None
    booking_changed: bool = False
    payment_changed: bool = False
    reason: RejectionReason | None = None
    detail: str | None = None

    @property
    def is_noop(self) -> bool:
        return self.allowed and not (self.booking_changed or self.payment_changed)


def _reject(
    snapshot: JointSnapshot, reason: RejectionReason, detail: str
) -> TransitionDecision:
    return TransitionDecision(
        allowed=False,
        booking_status=snapshot.booking_status,
        payment_status=snapshot.payment_status,
        reason=reason,
        detail=detail,
    )


def _authorize(snapshot: JointSnapshot, request: TransitionRequest) -> str | None:
    """Return a denial message, or None if the actor may proceed."""
    actor = request.actor
    if actor.is_gateway:
        if request.privileged_refund:
            return "Refunds can only be issued by an admin"
        return None

    if not actor.is_admin and actor.id not in (snapshot.customer_id, snapshot.provider_id):
        return "You don't have permission to modify this booking"

    if request.privileged_refund and not actor.is_admin:
        return "Refunds can only be issued by an admin"

    if request.payment_status is not None and not actor.is_admin:
        return "Only admins can change a payment status directly"

    return None


def evaluate_transition(
    snapshot: JointSnapshot, request: TransitionRequest
) -> TransitionDecision:
    """Decide whether ``request`` may be applied to ``snapshot``."""
    if request.booking_status is None and request.payment_status is None:
        return _reject(
            snapshot, RejectionReason.INVALID_TRANSITION, "No target status requested"
        )

    denial = _authorize(snapshot, request)
    if denial:
        return _reject(snapshot, RejectionReason.UNAUTHORIZED, denial)

    if request.payment_status is not None and snapshot.payment_status is None:
        return _reject(
            snapshot,
            RejectionReason.INVALID_TRANSITION,
            "Booking has no payment to update",
        )

    target_booking = request.booking_status or snapshot.booking_status
    booking_changed = target_booking != snapshot.booking_status
    if booking_changed and not can_transition_booking(
        snapshot.booking_status, target_booking, request.privileged_refund
    ):
        return _reject(
            snapshot,
            RejectionReason.INVALID_TRANSITION,
            f"Invalid booking transition: {snapshot.booking_status.value} → {target_booking.value}",
        )

    target_payment = request.payment_status or snapshot.payment_status
    # Cancelling a booking voids an invoice that has not been paid yet.
    if (
        request.payment_status is None
        and booking_changed
        and target_booking == BookingStatus.CANCELLED
        and snapshot.payment_status == PaymentStatus.PENDING
    ):
        target_payment = PaymentStatus.CANCELLED

    payment_changed = target_payment != snapshot.payment_status
    if payment_changed and not can_transition_payment(
        snapshot.payment_status, target_payment, request.privileged_refund
    ):
        return _reject(
            snapshot,
            RejectionReason.INVALID_TRANSITION,
            f"Invalid payment transition: {snapshot.payment_status.value} → {target_payment.value}",
        )

    if not is_valid_joint_state(target_booking, target_payment):
        payment_label = target_payment.value if target_payment else "none"
        return _reject(
            snapshot,
            RejectionReason.INCONSISTENT_JOINT_STATE,
            f"Booking {target_booking.value} cannot coexist with payment {payment_label}",
        )

    return TransitionDecision(
        allowed=True,
        booking_status=target_booking,
        payment_status=target_payment,
        booking_changed=booking_changed,
        payment_changed=payment_changed,
    )


def assert_transition(decision: TransitionDecision) -> None:
    """Raise the typed error for a rejected decision."""
    if decision.allowed:
        return
    if decision.reason == RejectionReason.UNAUTHORIZED:
        raise AuthorizationError(decision.detail or "Not permitted")
    if decision.reason == RejectionReason.INCONSISTENT_JOINT_STATE:
        raise InconsistentJointState(decision.detail or "Inconsistent joint state")
    raise InvalidTransition(decision.detail or "Invalid transition")
