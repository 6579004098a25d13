"""Refund workflow: cancel a booking and reverse its completed payment."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jasaku.core.exceptions import AuthorizationError, InvalidRefundAmount, NotFoundError, RefundNotAllowed
from jasaku.domain.actors import Actor
from jasaku.domain.booking_state import BookingStatus
from jasaku.domain.payment_state import PaymentStatus
from jasaku.domain.transitions import TransitionRequest
from jasaku.models.booking import Booking
from jasaku.models.payment import Payment, Refund
from jasaku.services.audit_service import AuditService, audit_service
from jasaku.services.reconciliation_service import (
    ReconciliationEngine,
    TransitionResult,
    reconciliation_engine,
)

logger = logging.getLogger(__name__)


@dataclass
class RefundOutcome:
    refund: Refund
    result: TransitionResult

    @property
    def payment(self) -> Payment:
        return self.result.payment

    @property
    def booking(self) -> Booking:
        return self.result.booking

    @property
    def refunded_at(self) -> datetime:
        return self.refund.processed_at


class RefundService:
    """Admin refunds layered on the reconciliation engine.

    The requested amount is recorded but not tracked cumulatively: a payment
    is either refunded or not, and a refunded payment cannot be refunded
    again.
    """

    def __init__(
        self,
        engine: ReconciliationEngine | None = None,
        audit: AuditService | None = None,
    ) -> None:
        self.engine = engine or reconciliation_engine
        self.audit = audit or audit_service

    async def refund(
        self,
        db: AsyncSession,
        payment_id: str,
        amount: int,
        reason: str,
        actor: Actor,
    ) -> RefundOutcome:
        """Refund a completed payment and cancel its booking.

        Raises:
            AuthorizationError: Actor is not an admin
            NotFoundError: Payment missing
            RefundNotAllowed: Payment is not COMPLETED
            InvalidRefundAmount: Amount not in (0, payment.amount]
        """
        if not actor.is_admin:
            raise AuthorizationError("Refunds can only be issued by an admin")

        payment = (
            await db.execute(select(Payment).where(Payment.id == payment_id))
        ).scalar_one_or_none()
        if not payment:
            raise NotFoundError("Payment", payment_id)
        booking_id = payment.booking_id

        recorded: list[Refund] = []

        # Re-checked under the booking lock so two refunds cannot both pass.
        async def check_refundable(booking: Booking, current: Payment | None) -> None:
            if current is None:
                raise NotFoundError("Payment", payment_id)
            if current.status != PaymentStatus.COMPLETED:
                raise RefundNotAllowed(
                    f"Only completed payments can be refunded (payment is {current.status.value})"
                )
            if amount <= 0:
                raise InvalidRefundAmount("Refund amount must be positive")
            if amount > current.amount:
                raise InvalidRefundAmount("Refund amount cannot exceed original payment amount")

        async def record_refund(db: AsyncSession, booking: Booking, current: Payment | None) -> None:
            refund = Refund(
                booking_id=booking.id,
                payment_id=payment_id,
                amount=amount,
                reason=reason,
                processed_by=actor.id,
            )
            db.add(refund)
            await db.flush()
            await self.audit.log_refund_action(
                db,
                actor=actor,
                refund_id=refund.id,
                payment_id=payment_id,
                amount=amount,
                reason=reason,
            )
            recorded.append(refund)

        result = await self.engine.apply(
            db,
            TransitionRequest(
                booking_id=booking_id,
                payment_id=payment_id,
                booking_status=BookingStatus.CANCELLED,
                payment_status=PaymentStatus.REFUNDED,
                actor=actor,
                cause="refund",
                privileged_refund=True,
            ),
            guard=check_refundable,
            after_write=record_refund,
        )

        refund = recorded[0]
        logger.info(
            "Refunded payment %s (%s of %s) by %s",
            payment_id,
            amount,
            result.payment.amount if result.payment else None,
            actor.id,
        )
        return RefundOutcome(refund=refund, result=result)


refund_service = RefundService()
