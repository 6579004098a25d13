"""Booking status endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jasaku.api.deps import get_current_actor, get_db, get_reconciliation_engine
from jasaku.core.exceptions import AuthorizationError
from jasaku.domain.actors import Actor
from jasaku.domain.transitions import TransitionRequest
from jasaku.models.booking import Booking
from jasaku.models.payment import Payment
from jasaku.schemas.booking import BookingResponse, BookingStatusResponse, BookingStatusUpdate
from jasaku.schemas.payment import PaymentResponse
from jasaku.services.reconciliation_service import ReconciliationEngine

router = APIRouter()


def booking_projection(booking: Booking, payment: Payment | None) -> BookingStatusResponse:
    return BookingStatusResponse(
        booking=BookingResponse.model_validate(booking),
        payment=PaymentResponse.model_validate(payment) if payment else None,
    )


@router.get("/{booking_id}/status", response_model=BookingStatusResponse)
async def get_booking_status(
    booking_id: str,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[ReconciliationEngine, Depends(get_reconciliation_engine)],
) -> BookingStatusResponse:
    """Current booking and payment status, for the booking's parties and admins."""
    booking, payment = await engine.load_pair(db, booking_id)

    if not actor.is_admin and actor.id not in (booking.customer_id, booking.provider_id):
        raise AuthorizationError("You don't have permission to access this booking")

    return booking_projection(booking, payment)


@router.patch("/{booking_id}/status", response_model=BookingStatusResponse)
async def update_booking_status(
    booking_id: str,
    update: BookingStatusUpdate,
    actor: Annotated[Actor, Depends(get_current_actor)],
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[ReconciliationEngine, Depends(get_reconciliation_engine)],
) -> BookingStatusResponse:
    """Move a booking (and, for admins, its payment) to a new status."""
    result = await engine.apply(
        db,
        TransitionRequest(
            booking_id=booking_id,
            actor=actor,
            booking_status=update.status,
            payment_status=update.payment_status,
            cause=f"{actor.role.value.lower()}_request",
            completed_at=update.completed_at,
        ),
    )
    return booking_projection(result.booking, result.payment)
