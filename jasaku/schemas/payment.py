"""Payment-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from jasaku.domain.payment_state import PaymentStatus


class PaymentCreate(BaseModel):
    """Schema for initiating a payment."""

    booking_id: str = Field(..., min_length=1)
    payment_method: str | None = Field(None, max_length=100)


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    booking_id: str
    amount: int
    payment_method: str | None
    status: PaymentStatus
    external_id: str | None
    gateway_transaction_id: str | None
    paid_at: datetime | None
    created_at: datetime


class PaymentStatusResponse(BaseModel):
    """Schema for payment status check."""

    payment_id: str
    status: PaymentStatus
    booking_status: str
    message: str | None = None


class PaymentRefundRequest(BaseModel):
    """Schema for refunding a payment.

    The amount is checked against the payment by the refund workflow, so a
    non-positive or excessive amount surfaces as ``invalid_refund_amount``.
    """

    amount: int
    reason: str = Field(..., min_length=1, max_length=1000)


class RefundDetails(BaseModel):
    amount: int
    reason: str | None
    refunded_at: datetime


class RefundResponse(BaseModel):
    """Schema for refund response."""

    message: str
    payment: PaymentResponse
    booking_status: str
    refund_details: RefundDetails
