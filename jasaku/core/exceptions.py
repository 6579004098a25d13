"""Custom application exceptions."""

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    code = "internal_error"

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    code = "validation_error"

    def __init__(self, detail: str = "Validation failed") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    code = "not_found"

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    code = "unauthenticated"

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Actor is not permitted to act on the resource."""

    code = "unauthorized"

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class WebhookUnauthorized(AppException):
    """Webhook callback token missing or wrong."""

    code = "unauthorized"

    def __init__(self, detail: str = "Unauthorized") -> None:
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class MalformedEvent(ValidationError):
    """Webhook body is not a usable gateway event."""

    code = "malformed_event"

    def __init__(self, detail: str = "Invalid webhook data") -> None:
        super().__init__(detail)


class MalformedCorrelationId(ValidationError):
    """External correlation identifier does not have the expected shape."""

    code = "malformed_correlation_id"

    def __init__(self, external_id: str) -> None:
        self.external_id = external_id
        super().__init__(f"Invalid external ID format: {external_id!r}")


class InvalidTransition(ValidationError):
    """Requested status change is not reachable from the current status."""

    code = "invalid_transition"


class InconsistentJointState(ValidationError):
    """Requested change would break the booking/payment coupling."""

    code = "inconsistent_joint_state"


class RefundNotAllowed(ValidationError):
    """Payment is not in a refundable status."""

    code = "refund_not_allowed"

    def __init__(self, detail: str = "Only completed payments can be refunded") -> None:
        super().__init__(detail)


class InvalidRefundAmount(ValidationError):
    """Refund amount is not positive or exceeds the payment amount."""

    code = "invalid_refund_amount"


class Conflict(AppException):
    """Lost a race against a concurrent writer on the same booking."""

    code = "conflict"

    def __init__(self, detail: str = "The booking was modified concurrently. Please retry.") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)
