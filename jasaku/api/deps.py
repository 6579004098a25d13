"""API dependencies for authentication and service wiring."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from jasaku.config import settings
from jasaku.core.exceptions import AuthenticationError, AuthorizationError
from jasaku.core.security import verify_token
from jasaku.database import get_db
from jasaku.domain.actors import Actor, role_from_session
from jasaku.services.reconciliation_service import ReconciliationEngine, reconciliation_engine
from jasaku.services.refund_service import RefundService, refund_service
from jasaku.services.webhook_service import WebhookIngestionGateway

# Security scheme
security = HTTPBearer(auto_error=False)

_webhook_gateway = WebhookIngestionGateway.from_settings(settings, reconciliation_engine)

__all__ = [
    "get_current_actor",
    "get_current_admin",
    "get_db",
    "get_reconciliation_engine",
    "get_refund_service",
    "get_webhook_gateway",
]


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Actor:
    """Resolve the session token into an actor, once per request."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = verify_token(credentials.credentials, token_type="access")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    role = role_from_session(payload.get("role"))
    if role is None:
        raise AuthorizationError(f"Role '{payload.get('role')}' cannot act on bookings")

    return Actor(id=str(user_id), role=role)


async def get_current_admin(
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> Actor:
    """Get current actor and verify they are an admin."""
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")
    return actor


def get_reconciliation_engine() -> ReconciliationEngine:
    return reconciliation_engine


def get_refund_service() -> RefundService:
    return refund_service


def get_webhook_gateway() -> WebhookIngestionGateway:
    return _webhook_gateway
