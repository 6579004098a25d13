"""Payment state machine.

States move forward only:
- pending: invoice issued, money not yet moved
- completed / failed / cancelled: gateway outcome
- refunded: completed payment reversed by an admin refund

A failed or cancelled invoice may still settle late (→ completed); whether
that is accepted also depends on the booking side.
"""

from enum import Enum


class PaymentStatus(str, Enum):
    """Lifecycle states of a payment."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED}
    ),
    PaymentStatus.FAILED: frozenset({PaymentStatus.COMPLETED}),
    PaymentStatus.CANCELLED: frozenset({PaymentStatus.COMPLETED}),
    PaymentStatus.COMPLETED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

REFUND_PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
}


def can_transition_payment(
    current: PaymentStatus, target: PaymentStatus, privileged_refund: bool = False
) -> bool:
    if target in PAYMENT_TRANSITIONS.get(current, frozenset()):
        return True
    if privileged_refund:
        return target in REFUND_PAYMENT_TRANSITIONS.get(current, frozenset())
    return False
