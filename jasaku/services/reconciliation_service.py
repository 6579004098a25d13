"""Reconciliation engine.

Every status change to a booking or its payment, whether requested by a
person or reported by the payment gateway, goes through
``ReconciliationEngine.apply``. A change is applied to the booking/payment
pair as one transaction:

1. take the booking's in-process lock (a second caller waits, then sees the
   committed result of the first)
2. re-read both rows (``FOR UPDATE`` where the dialect supports it)
3. ask the transition authority whether the change is legal
4. write both rows with a status precondition; a lost race raises Conflict
5. commit, then publish ``BookingStateChanged``
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from jasaku.config import settings
from jasaku.core.exceptions import AuthorizationError, Conflict, NotFoundError, ValidationError
from jasaku.core.locks import BookingLockRegistry
from jasaku.domain.actors import Actor
from jasaku.domain.booking_state import BookingStatus
from jasaku.domain.correlation import format_correlation_id
from jasaku.domain.events import BookingStateChanged
from jasaku.domain.payment_state import PaymentStatus
from jasaku.domain.transitions import (
    JointSnapshot,
    TransitionDecision,
    TransitionRequest,
    assert_transition,
    evaluate_transition,
)
from jasaku.models.booking import Booking, new_id
from jasaku.models.payment import Payment
from jasaku.services.audit_service import AuditService, audit_service
from jasaku.services.notification_service import NotificationService, notification_service

logger = logging.getLogger(__name__)

# Called under the booking lock with freshly loaded rows, before the authority.
Guard = Callable[[Booking, Payment | None], Awaitable[None]]
# Called inside the transaction after both rows are written.
AfterWrite = Callable[[AsyncSession, Booking, Payment | None], Awaitable[None]]

PAYABLE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


@dataclass
class TransitionResult:
    """What ``apply`` did."""

    booking: Booking
    payment: Payment | None
    decision: TransitionDecision
    applied: bool
    event: BookingStateChanged | None = None


def snapshot_of(booking: Booking, payment: Payment | None) -> JointSnapshot:
    return JointSnapshot(
        booking_id=booking.id,
        booking_status=booking.status,
        customer_id=booking.customer_id,
        provider_id=booking.provider_id,
        payment_id=payment.id if payment else None,
        payment_status=payment.status if payment else None,
    )


class ReconciliationEngine:
    """Applies transition requests to booking/payment pairs atomically."""

    def __init__(
        self,
        locks: BookingLockRegistry | None = None,
        notifier: NotificationService | None = None,
        audit: AuditService | None = None,
        correlation_prefix: str = "JASAKU",
    ) -> None:
        self.locks = locks or BookingLockRegistry()
        self.notifier = notifier or notification_service
        self.audit = audit or audit_service
        self.correlation_prefix = correlation_prefix

    async def load_pair(
        self,
        db: AsyncSession,
        booking_id: str,
        payment_id: str | None = None,
        for_update: bool = False,
    ) -> tuple[Booking, Payment | None]:
        """Load a booking and its payment, bypassing stale identity-map state.

        Raises:
            NotFoundError: If the booking is missing, or ``payment_id`` does not
                name this booking's payment
        """
        query = (
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        booking = (await db.execute(query)).scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", booking_id)

        payment_query = (
            select(Payment)
            .where(Payment.booking_id == booking.id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            payment_query = payment_query.with_for_update()
        payment = (await db.execute(payment_query)).scalar_one_or_none()

        if payment_id is not None and (payment is None or payment.id != payment_id):
            raise NotFoundError("Payment", payment_id)

        return booking, payment

    async def apply(
        self,
        db: AsyncSession,
        request: TransitionRequest,
        payment_fields: dict[str, Any] | None = None,
        guard: Guard | None = None,
        after_write: AfterWrite | None = None,
    ) -> TransitionResult:
        """Apply one transition request as a single committed unit.

        Args:
            db: Database session; the engine owns its transaction
            request: Requested booking and/or payment status
            payment_fields: Extra payment columns written with the change
                (gateway transaction id, method label, raw response)
            guard: Extra precondition checked against the fresh rows
            after_write: Extra writes that must commit with the change

        Raises:
            NotFoundError: Booking or payment missing
            AuthorizationError: Actor may not act on this booking
            InvalidTransition: Status not reachable from the current one
            InconsistentJointState: Resulting pair is not allowed
            Conflict: Another writer changed the rows first
        """
        async with self.locks.hold(request.booking_id):
            if db.in_transaction():
                await db.rollback()
            try:
                booking, payment = await self.load_pair(
                    db, request.booking_id, request.payment_id, for_update=True
                )
                if guard is not None:
                    await guard(booking, payment)

                snapshot = snapshot_of(booking, payment)
                decision = evaluate_transition(snapshot, request)
                if not decision.allowed:
                    logger.info(
                        "Rejected %s on booking %s by %s: %s",
                        request.cause,
                        request.booking_id,
                        request.actor.role.value,
                        decision.detail,
                    )
                    assert_transition(decision)

                if decision.is_noop:
                    # Ends the read transaction without expiring the loaded rows.
                    await db.commit()
                    return TransitionResult(
                        booking=booking, payment=payment, decision=decision, applied=False
                    )

                await self._write(db, snapshot, decision, request, payment_fields)
                await self.audit.log_transition(
                    db,
                    actor=request.actor,
                    booking_id=snapshot.booking_id,
                    cause=request.cause,
                    old_status=snapshot.booking_status.value,
                    new_status=decision.booking_status.value,
                    payment_id=snapshot.payment_id,
                    old_payment_status=snapshot.payment_status.value if snapshot.payment_status else None,
                    new_payment_status=decision.payment_status.value if decision.payment_status else None,
                )
                if after_write is not None:
                    await after_write(db, booking, payment)
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                logger.warning("Integrity error applying %s: %s", request.cause, e.orig)
                raise Conflict("The change conflicts with existing data")
            except Exception:
                await db.rollback()
                raise

            await db.refresh(booking)
            if payment is not None:
                await db.refresh(payment)

        event = BookingStateChanged(
            booking_id=snapshot.booking_id,
            from_status=snapshot.booking_status,
            to_status=decision.booking_status,
            cause=request.cause,
            actor_role=request.actor.role,
            payment_id=snapshot.payment_id,
            payment_from=snapshot.payment_status,
            payment_to=decision.payment_status,
        )
        logger.info(
            "Booking %s: %s → %s, payment %s: %s → %s (%s)",
            snapshot.booking_id,
            snapshot.booking_status.value,
            decision.booking_status.value,
            snapshot.payment_id,
            snapshot.payment_status.value if snapshot.payment_status else None,
            decision.payment_status.value if decision.payment_status else None,
            request.cause,
        )
        await self.notifier.publish(event)

        return TransitionResult(
            booking=booking, payment=payment, decision=decision, applied=True, event=event
        )

    async def _write(
        self,
        db: AsyncSession,
        snapshot: JointSnapshot,
        decision: TransitionDecision,
        request: TransitionRequest,
        payment_fields: dict[str, Any] | None,
    ) -> None:
        """Compare-and-set both rows against the statuses that were evaluated."""
        now = datetime.now(UTC)

        booking_values: dict[str, Any] = {"status": decision.booking_status, "updated_at": now}
        if decision.booking_changed and decision.booking_status == BookingStatus.COMPLETED:
            booking_values["completed_at"] = request.completed_at or now

        result = await db.execute(
            update(Booking)
            .where(Booking.id == snapshot.booking_id, Booking.status == snapshot.booking_status)
            .values(**booking_values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise Conflict()

        if snapshot.payment_id is None:
            return

        payment_values: dict[str, Any] = dict(payment_fields or {})
        payment_values["status"] = decision.payment_status
        payment_values["updated_at"] = now
        if decision.payment_changed and decision.payment_status == PaymentStatus.COMPLETED:
            payment_values["paid_at"] = now

        result = await db.execute(
            update(Payment)
            .where(Payment.id == snapshot.payment_id, Payment.status == snapshot.payment_status)
            .values(**payment_values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise Conflict()

    async def open_payment(
        self,
        db: AsyncSession,
        booking_id: str,
        actor: Actor,
        payment_method: str | None = None,
    ) -> Payment:
        """Create the PENDING payment that crosses the payment-initiated threshold.

        Raises:
            NotFoundError: Booking missing
            AuthorizationError: Actor is neither the customer nor an admin
            ValidationError: Booking not payable, or already has a payment
        """
        async with self.locks.hold(booking_id):
            if db.in_transaction():
                await db.rollback()
            try:
                booking, existing = await self.load_pair(db, booking_id, for_update=True)
                if not actor.is_admin and actor.id != booking.customer_id:
                    raise AuthorizationError("You can only pay for your own bookings")
                if existing is not None:
                    raise ValidationError("Payment already exists for this booking")
                if booking.status not in PAYABLE_BOOKING_STATUSES:
                    raise ValidationError(
                        f"Cannot pay for a booking that is {booking.status.value}"
                    )

                payment_id = new_id()
                payment = Payment(
                    id=payment_id,
                    booking_id=booking.id,
                    amount=booking.total_amount,
                    payment_method=payment_method,
                    status=PaymentStatus.PENDING,
                    external_id=format_correlation_id(
                        self.correlation_prefix, booking.id, payment_id
                    ),
                )
                db.add(payment)
                await self.audit.log_action(
                    db,
                    actor=actor,
                    action="payment_initiate",
                    resource_type="payment",
                    resource_id=payment_id,
                    new_values={
                        "booking_id": booking.id,
                        "amount": booking.total_amount,
                        "status": PaymentStatus.PENDING.value,
                    },
                )
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise Conflict("Payment already exists for this booking")
            except Exception:
                await db.rollback()
                raise

        logger.info("Opened payment %s for booking %s", payment.id, booking_id)
        return payment


reconciliation_engine = ReconciliationEngine(
    locks=BookingLockRegistry(timeout=settings.booking_lock_timeout_seconds),
    correlation_prefix=settings.correlation_prefix,
)
