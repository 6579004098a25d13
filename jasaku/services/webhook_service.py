"""Payment gateway webhook ingestion.

Turns an invoice callback into a GATEWAY transition request for the
reconciliation engine. Authentication and parsing happen before any
database access, so a rejected delivery never leaves partial state.
Deliveries are at-least-once and may arrive out of order:

- a replay of an already applied event is a successful no-op
- an event the current state can no longer accept is acknowledged (the
  gateway must not retry it forever) and reported as ``GatewayEventIgnored``
- unknown event names are acknowledged without touching state
"""

import hmac
import json
import logging
from datetime import timedelta
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jasaku.config import Settings
from jasaku.core.exceptions import (
    InconsistentJointState,
    InvalidTransition,
    MalformedEvent,
    WebhookUnauthorized,
)
from jasaku.core.idempotency import IdempotencyStore, generate_idempotency_key
from jasaku.domain.actors import Actor
from jasaku.domain.booking_state import BookingStatus
from jasaku.domain.correlation import CorrelationId, parse_correlation_id
from jasaku.domain.events import GatewayEventIgnored
from jasaku.domain.payment_state import PaymentStatus
from jasaku.domain.transitions import TransitionRequest
from jasaku.models.booking import Booking
from jasaku.models.payment import Payment
from jasaku.schemas.webhook import InvoiceWebhook
from jasaku.services.notification_service import NotificationService, notification_service
from jasaku.services.reconciliation_service import ReconciliationEngine
from jasaku.utils.payment_method import resolve_payment_method

logger = logging.getLogger(__name__)

CALLBACK_TOKEN_HEADER = "x-callback-token"

WEBHOOK_EVENT_MAP: Mapping[str, tuple[PaymentStatus, BookingStatus]] = MappingProxyType(
    {
        "invoice.paid": (PaymentStatus.COMPLETED, BookingStatus.CONFIRMED),
        "invoice.expired": (PaymentStatus.CANCELLED, BookingStatus.CANCELLED),
        "invoice.failed": (PaymentStatus.FAILED, BookingStatus.CANCELLED),
    }
)

MESSAGE_PROCESSED = "Webhook processed successfully"
MESSAGE_DUPLICATE = "Webhook already processed"
MESSAGE_UNHANDLED = "Event acknowledged but not processed"
MESSAGE_NOT_APPLIED = "Event acknowledged but not applied"


class WebhookIngestionGateway:
    """Authenticates, validates and de-duplicates invoice callbacks."""

    def __init__(
        self,
        engine: ReconciliationEngine,
        callback_token: str | None = None,
        correlation_prefix: str = "JASAKU",
        replay_store: IdempotencyStore | None = None,
        notifier: NotificationService | None = None,
        gateway_name: str = "xendit",
    ) -> None:
        self.engine = engine
        self.callback_token = callback_token
        self.correlation_prefix = correlation_prefix
        self.replay_store = replay_store or IdempotencyStore()
        self.notifier = notifier or notification_service
        self.actor = Actor.gateway(gateway_name)

    @classmethod
    def from_settings(
        cls, config: Settings, engine: ReconciliationEngine
    ) -> "WebhookIngestionGateway":
        return cls(
            engine=engine,
            callback_token=config.xendit_webhook_token,
            correlation_prefix=config.correlation_prefix,
            replay_store=IdempotencyStore(ttl=timedelta(hours=config.webhook_replay_ttl_hours)),
        )

    def authenticate(self, token: str | None) -> None:
        """Check the shared callback token, if one is configured.

        Raises:
            WebhookUnauthorized: Token configured and missing or different
        """
        if not self.callback_token:
            return
        if token is None or not hmac.compare_digest(token.encode(), self.callback_token.encode()):
            logger.error("Rejected webhook with invalid callback token")
            raise WebhookUnauthorized()

    def parse(self, body: bytes | str) -> InvoiceWebhook:
        """Decode and validate the callback body.

        Raises:
            MalformedEvent: Not JSON, or missing ``event`` / ``data.id`` / ``data.external_id``
        """
        try:
            payload = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            raise MalformedEvent("Invalid JSON payload")
        if not isinstance(payload, dict):
            raise MalformedEvent("Webhook payload must be a JSON object")

        try:
            return InvoiceWebhook.model_validate(payload)
        except PydanticValidationError as e:
            missing = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            logger.error("Invalid webhook data, problem fields: %s", missing)
            raise MalformedEvent("Invalid webhook data: missing external_id or event")

    async def ingest(self, db: AsyncSession, body: bytes | str, token: str | None) -> dict[str, Any]:
        """Process one delivery and return the acknowledgement body.

        Raises:
            WebhookUnauthorized: Bad callback token
            MalformedEvent: Unusable body, or transaction id owned by another payment
            MalformedCorrelationId: ``external_id`` not ``PREFIX-{booking}-{payment}``
            NotFoundError: Booking or payment unknown
            Conflict: Lost a race with another writer; a retry resolves it
        """
        self.authenticate(token)
        webhook = self.parse(body)
        correlation = parse_correlation_id(webhook.data.external_id, self.correlation_prefix)
        transaction_id = webhook.data.id

        logger.info(
            "Webhook %s for booking %s payment %s (transaction %s)",
            webhook.event,
            correlation.booking_id,
            correlation.payment_id,
            transaction_id,
        )

        target = WEBHOOK_EVENT_MAP.get(webhook.event)
        if target is None:
            logger.info("Unhandled gateway event: %s", webhook.event)
            await self.notifier.publish(
                GatewayEventIgnored(
                    event=webhook.event,
                    external_id=webhook.data.external_id,
                    transaction_id=transaction_id,
                    reason="unmapped event",
                )
            )
            return {
                "message": MESSAGE_UNHANDLED,
                "event": webhook.event,
                "external_id": webhook.data.external_id,
            }

        replay_key = generate_idempotency_key(
            f"webhook:{webhook.event}",
            transaction_id,
            {"external_id": webhook.data.external_id},
        )
        if self.replay_store.exists(replay_key):
            logger.info("Replayed delivery of %s for transaction %s", webhook.event, transaction_id)
            # The pair may have moved on since the first delivery (e.g. a refund).
            booking, payment = await self.engine.load_pair(
                db, correlation.booking_id, correlation.payment_id
            )
            return {
                "message": MESSAGE_DUPLICATE,
                "external_id": webhook.data.external_id,
                "event": webhook.event,
                "payment_status": payment.status.value if payment else None,
                "booking_status": booking.status.value,
            }

        payment_status, booking_status = target
        return await self._apply(db, webhook, correlation, payment_status, booking_status, replay_key)

    async def _apply(
        self,
        db: AsyncSession,
        webhook: InvoiceWebhook,
        correlation: CorrelationId,
        payment_status: PaymentStatus,
        booking_status: BookingStatus,
        replay_key: str,
    ) -> dict[str, Any]:
        transaction_id = webhook.data.id
        data = webhook.raw_data()

        async def transaction_belongs_here(booking: Booking, payment: Payment | None) -> None:
            owner = await db.execute(
                select(Payment.id).where(
                    Payment.gateway_transaction_id == transaction_id,
                    Payment.id != correlation.payment_id,
                )
            )
            if owner.scalar_one_or_none() is not None:
                raise MalformedEvent(
                    f"Transaction {transaction_id} is already linked to another payment"
                )

        request = TransitionRequest(
            booking_id=correlation.booking_id,
            payment_id=correlation.payment_id,
            booking_status=booking_status,
            payment_status=payment_status,
            actor=self.actor,
            cause=webhook.event,
        )
        payment_fields = {
            "gateway_transaction_id": transaction_id,
            "payment_method": resolve_payment_method(data),
            "gateway_response": data,
        }

        try:
            result = await self.engine.apply(
                db, request, payment_fields=payment_fields, guard=transaction_belongs_here
            )
        except (InvalidTransition, InconsistentJointState) as e:
            booking, payment = await self.engine.load_pair(
                db, correlation.booking_id, correlation.payment_id
            )
            logger.warning(
                "Gateway event %s not applied to booking %s (%s/%s): %s",
                webhook.event,
                correlation.booking_id,
                booking.status.value,
                payment.status.value if payment else None,
                e.detail,
            )
            await self.notifier.publish(
                GatewayEventIgnored(
                    event=webhook.event,
                    external_id=webhook.data.external_id,
                    transaction_id=transaction_id,
                    reason=e.detail,
                )
            )
            return {
                "message": MESSAGE_NOT_APPLIED,
                "external_id": webhook.data.external_id,
                "event": webhook.event,
                "payment_status": payment.status.value if payment else None,
                "booking_status": booking.status.value,
            }

        response = {
            "message": MESSAGE_PROCESSED if result.applied else MESSAGE_DUPLICATE,
            "external_id": webhook.data.external_id,
            "event": webhook.event,
            "payment_status": result.decision.payment_status.value,
            "booking_status": result.decision.booking_status.value,
        }
        self.replay_store.set(
            replay_key, {"transaction_id": transaction_id, "event": webhook.event}
        )
        return response
