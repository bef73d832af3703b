"""Scheduling webhook routes."""

import json
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from concierge_api.config import Settings, get_settings
from concierge_api.db.database import get_db
from concierge_api.webhooks.reconcile import (
    InvalidPayloadError,
    Outcome,
    SchedulingReconciler,
)
from concierge_api.webhooks.signature import (
    SIGNATURE_HEADER,
    InvalidSignatureError,
    verify_signature,
)

logger = logging.getLogger("concierge-webhooks")

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def get_reconciler(request: Request) -> SchedulingReconciler:
    return request.app.state.reconciler


@router.post("/scheduling")
async def scheduling_webhook(
    request: Request,
    signature: str | None = Header(default=None, alias=SIGNATURE_HEADER),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    reconciler: SchedulingReconciler = Depends(get_reconciler),
):
    """Handle Calendly scheduling webhooks.

    Only invitee.created moves a lead; other events are acknowledged.
    Returns 500 on unexpected failures so the sender retries.
    """
    payload = await request.body()

    if settings.calendly_signing_key:
        try:
            verify_signature(payload, signature, settings.calendly_signing_key)
        except InvalidSignatureError as e:
            logger.error(f"Invalid scheduling webhook signature: {e}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid signature",
            ) from e
    elif settings.webhook_require_signature:
        logger.error("Scheduling webhook rejected: signing key not configured")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Webhook signing key not configured",
        )
    else:
        logger.warning("CALENDLY_WEBHOOK_SIGNING_KEY not configured - skipping signature verification")

    try:
        event = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload",
        ) from e
    if not isinstance(event, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload",
        )

    try:
        outcome = await reconciler.process(db, event)
    except InvalidPayloadError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    except Exception as e:
        logger.exception("Scheduling webhook processing failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        ) from e

    if outcome == Outcome.ALREADY_PROCESSED:
        return {"received": True, "message": "Event already processed"}
    return {"received": True}


@router.get("/scheduling")
async def scheduling_webhook_health(settings: Settings = Depends(get_settings)):
    """Health check for the scheduling webhook endpoint."""
    return {
        "status": "ok",
        "configured": bool(settings.calendly_signing_key),
        "message": "Scheduling webhook endpoint is ready",
    }
