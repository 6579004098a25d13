"""Domain events emitted after a committed state change."""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from jasaku.domain.actors import ActorRole
from jasaku.domain.booking_state import BookingStatus
from jasaku.domain.payment_state import PaymentStatus


@dataclass(frozen=True)
class BookingStateChanged:
    """A booking and/or its payment changed status."""

    booking_id: str
    from_status: BookingStatus
    to_status: BookingStatus
    cause: str
    actor_role: ActorRole
    payment_id: str | None = None
    payment_from: PaymentStatus | None = None
    payment_to: PaymentStatus | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    name = "BookingStateChanged"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, (BookingStatus, PaymentStatus, ActorRole)):
                data[key] = value.value
        data["occurred_at"] = self.occurred_at.isoformat()
        data["event"] = self.name
        return data


@dataclass(frozen=True)
class GatewayEventIgnored:
    """A gateway notification was acknowledged without changing state."""

    event: str
    external_id: str
    transaction_id: str
    reason: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    name = "GatewayEventIgnored"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        data["event_name"] = self.name
        return data
