"""Core utilities: errors, locking, replay protection and security."""

from jasaku.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    Conflict,
    InconsistentJointState,
    InvalidRefundAmount,
    InvalidTransition,
    MalformedCorrelationId,
    MalformedEvent,
    NotFoundError,
    RefundNotAllowed,
    ValidationError,
    WebhookUnauthorized,
)
from jasaku.core.idempotency import IdempotencyStore, generate_idempotency_key
from jasaku.core.locks import BookingLockRegistry

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "BookingLockRegistry",
    "Conflict",
    "IdempotencyStore",
    "InconsistentJointState",
    "InvalidRefundAmount",
    "InvalidTransition",
    "MalformedCorrelationId",
    "MalformedEvent",
    "NotFoundError",
    "RefundNotAllowed",
    "ValidationError",
    "WebhookUnauthorized",
    "generate_idempotency_key",
]
