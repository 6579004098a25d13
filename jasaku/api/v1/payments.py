"""Payment endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jasaku.api.deps import (
    get_current_actor,
    get_current_admin,
    get_db,
    get_reconciliation_engine,
    get_refund_service,
)
from jasaku.core.exceptions import NotFoundError
from jasaku.domain.actors import Actor
from jasaku.domain.payment_state import PaymentStatus
from jasaku.models.booking import Booking
from jasaku.models.payment import Payment
from jasaku.schemas.payment import (
    PaymentCreate,
    PaymentRefundRequest,
    PaymentResponse,
    PaymentStatusResponse,
    RefundDetails,
    RefundResponse,
)
from jasaku.services.reconciliation_service import ReconciliationEngine
from jasaku.services.refund_service import RefundService

router = APIRouter()


@router.post("/initiate", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def initiate_payment(
    payment_data: PaymentCreate,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[ReconciliationEngine, Depends(get_reconciliation_engine)],
) -> Payment:
    """Open the payment for a booking; its external_id goes on the gateway invoice."""
    return await engine.open_payment(
        db, payment_data.booking_id, actor, payment_method=payment_data.payment_method
    )


@router.get("/{payment_id}/status", response_model=PaymentStatusResponse)
async def get_payment_status(
    payment_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Check payment status."""
    row = (
        await db.execute(
            select(Payment, Booking)
            .join(Booking, Payment.booking_id == Booking.id)
            .where(Payment.id == payment_id)
        )
    ).one_or_none()
    if row is None:
        raise NotFoundError("Payment", payment_id)
    payment, booking = row

    # Hide payments from non-parties
    if not actor.is_admin and actor.id not in (booking.customer_id, booking.provider_id):
        raise NotFoundError("Payment", payment_id)

    return {
        "payment_id": payment.id,
        "status": payment.status,
        "booking_status": booking.status.value,
        "message": _get_status_message(payment.status),
    }


@router.post("/{payment_id}/refund", response_model=RefundResponse)
async def refund_payment(
    payment_id: str,
    refund_request: PaymentRefundRequest,
    actor: Annotated[Actor, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    refunds: Annotated[RefundService, Depends(get_refund_service)],
) -> RefundResponse:
    """Refund a completed payment and cancel its booking (admin only)."""
    outcome = await refunds.refund(
        db,
        payment_id=payment_id,
        amount=refund_request.amount,
        reason=refund_request.reason,
        actor=actor,
    )
    return RefundResponse(
        message="Payment refunded successfully",
        payment=PaymentResponse.model_validate(outcome.payment),
        booking_status=outcome.booking.status.value,
        refund_details=RefundDetails(
            amount=outcome.refund.amount,
            reason=outcome.refund.reason,
            refunded_at=outcome.refunded_at,
        ),
    )


def _get_status_message(payment_status: PaymentStatus) -> str:
    """Get human-readable status message."""
    messages = {
        PaymentStatus.PENDING: "Payment is pending",
        PaymentStatus.COMPLETED: "Payment completed successfully",
        PaymentStatus.FAILED: "Payment failed. Please try again.",
        PaymentStatus.CANCELLED: "Payment was cancelled",
        PaymentStatus.REFUNDED: "Payment has been refunded",
    }
    return messages.get(payment_status, "Unknown status")
