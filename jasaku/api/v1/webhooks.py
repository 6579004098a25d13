"""Webhook endpoints for the payment gateway."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from jasaku.api.deps import get_db, get_webhook_gateway
from jasaku.core.exceptions import AppException
from jasaku.schemas.webhook import WebhookError, WebhookResponse
from jasaku.services.webhook_service import WebhookIngestionGateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/xendit")
async def xendit_webhook_probe() -> dict:
    """Liveness check used when registering the callback URL."""
    return {"message": "Xendit webhook endpoint is active"}


@router.post(
    "/xendit",
    status_code=status.HTTP_200_OK,
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    responses={400: {"model": WebhookError}, 401: {"model": WebhookError}},
)
async def xendit_webhook(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    gateway: Annotated[WebhookIngestionGateway, Depends(get_webhook_gateway)],
    callback_token: Annotated[str | None, Header(alias="x-callback-token")] = None,
):
    """Handle invoice callbacks."""
    body = await request.body()
    try:
        return await gateway.ingest(db, body, callback_token)
    except AppException as e:
        logger.warning("Webhook rejected (%s): %s", e.status_code, e.detail)
        return JSONResponse(status_code=e.status_code, content={"error": e.detail})
