"""Pydantic schemas for request/response validation."""

from jasaku.schemas.booking import BookingResponse, BookingStatusResponse, BookingStatusUpdate
from jasaku.schemas.payment import (
    PaymentCreate,
    PaymentRefundRequest,
    PaymentResponse,
    PaymentStatusResponse,
    RefundDetails,
    RefundResponse,
)
from jasaku.schemas.webhook import InvoiceData, InvoiceWebhook, WebhookError, WebhookResponse

__all__ = [
    # Booking
    "BookingResponse",
    "BookingStatusResponse",
    "BookingStatusUpdate",
    # Payment
    "PaymentCreate",
    "PaymentRefundRequest",
    "PaymentResponse",
    "PaymentStatusResponse",
    "RefundDetails",
    "RefundResponse",
    # Webhook
    "InvoiceData",
    "InvoiceWebhook",
    "WebhookError",
    "WebhookResponse",
]
