"""Webhooks API — incoming video host status callbacks.

Learn: The receiver verifies the HMAC signature over the *raw* body
before parsing it, so it reads the request stream itself instead of
declaring a pydantic body.
"""

import json

import structlog
from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from coursegate.config import settings
from coursegate.db.engine import get_db
from coursegate.errors import InvalidInput, Unauthorized, handler_boundary
from coursegate.services.mux_webhook_service import MuxWebhookService, verify_signature

logger = structlog.get_logger()

router = APIRouter(prefix="/webhooks")


@router.post("/mux")
@handler_boundary()
async def receive_mux_webhook(
    request: Request,
    mux_signature: str = Header("", alias="Mux-Signature"),
    db: AsyncSession = Depends(get_db),
):
    """Receive an asset lifecycle event and update the matching video."""
    payload = await request.body()

    if not settings.mux_webhook_secret:
        logger.warning("mux.webhook_unverified", reason="no secret configured")
    elif not verify_signature(
        settings.mux_webhook_secret,
        payload,
        mux_signature,
        tolerance_seconds=settings.mux_webhook_tolerance_seconds,
    ):
        logger.warning("mux.webhook_bad_signature")
        raise Unauthorized("Invalid signature")

    try:
        event = json.loads(payload)
    except ValueError:
        raise InvalidInput("Invalid JSON payload")
    if not isinstance(event, dict) or not isinstance(event.get("data") or {}, dict):
        raise InvalidInput("Invalid JSON payload")

    await MuxWebhookService(db).handle(event)
    return {"received": True}
