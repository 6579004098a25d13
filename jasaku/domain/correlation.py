"""External correlation identifiers attached to gateway invoices.

Shape: ``PREFIX-{booking_id}-{payment_id}``. Booking ids may contain the
separator, so the payment id is always the text after the last one.
"""

from dataclasses import dataclass

from jasaku.core.exceptions import MalformedCorrelationId

SEPARATOR = "-"


@dataclass(frozen=True)
class CorrelationId:
    """Booking and payment ids recovered from an external id."""

    prefix: str
    booking_id: str
    payment_id: str

    def __str__(self) -> str:
        return format_correlation_id(self.prefix, self.booking_id, self.payment_id)


def format_correlation_id(prefix: str, booking_id: str, payment_id: str) -> str:
    if not booking_id or not payment_id:
        raise ValueError("booking_id and payment_id are required")
    if SEPARATOR in payment_id:
        raise ValueError(f"payment_id must not contain {SEPARATOR!r}")
    return f"{prefix}{SEPARATOR}{booking_id}{SEPARATOR}{payment_id}"


def parse_correlation_id(external_id: str, prefix: str) -> CorrelationId:
    """Split an external id into its booking and payment parts.

    Raises:
        MalformedCorrelationId: If the prefix is wrong or either part is empty
    """
    head = f"{prefix}{SEPARATOR}"
    if not isinstance(external_id, str) or not external_id.startswith(head):
        raise MalformedCorrelationId(str(external_id))

    booking_id, sep, payment_id = external_id[len(head):].rpartition(SEPARATOR)
    if not sep or not booking_id or not payment_id:
        raise MalformedCorrelationId(external_id)

    return CorrelationId(prefix=prefix, booking_id=booking_id, payment_id=payment_id)
