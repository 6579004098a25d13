"""Booking-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, model_validator

from jasaku.domain.booking_state import BookingStatus
from jasaku.domain.payment_state import PaymentStatus
from jasaku.schemas.payment import PaymentResponse


class BookingStatusUpdate(BaseModel):
    """Requested status change for a booking (and, for admins, its payment)."""

    status: BookingStatus | None = None
    payment_status: PaymentStatus | None = None
    completed_at: datetime | None = None

    @model_validator(mode="after")
    def require_target(self) -> "BookingStatusUpdate":
        if self.status is None and self.payment_status is None:
            raise ValueError("status or payment_status is required")
        return self


class BookingResponse(BaseModel):
    """Booking projection."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    service_id: str
    customer_id: str
    provider_id: str
    status: BookingStatus
    scheduled_at: datetime
    total_amount: int
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class BookingStatusResponse(BaseModel):
    """Joint projection returned by booking status endpoints."""

    booking: BookingResponse
    payment: PaymentResponse | None = None
