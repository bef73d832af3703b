"""Admin routes for success-fee management and conversation review.

All routes require an authenticated admin operator.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from concierge_api.auth.jwt import require_admin
from concierge_api.conversations.routes import ConversationResponse
from concierge_api.conversations.store import ConversationLog
from concierge_api.dashboard.queries import FeeSummary, get_fee_summary
from concierge_api.db.database import get_db
from concierge_api.leads.store import FeeConflictError, LeadStore
from concierge_api.schemas import CamelModel

logger = logging.getLogger("concierge-admin")

router = APIRouter(prefix="/admin", tags=["Admin"])


# =============================================================================
# Request/Response Models
# =============================================================================


class FeeLead(CamelModel):
    id: int
    name: str
    company: str
    success_fee_cents: int
    fee_collected: bool
    fee_collected_at: datetime | None
    fee_collected_by: str | None


class FeeActionResponse(CamelModel):
    """Result of a collect / uncollect action."""

    success: bool = True
    message: str
    lead: FeeLead


def _conflict_response(error: FeeConflictError) -> JSONResponse:
    content: dict = {"error": error.message}
    if error.collected_at is not None or error.collected_by is not None:
        content["collectedAt"] = error.collected_at
        content["collectedBy"] = error.collected_by
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(content),
    )


# =============================================================================
# Routes
# =============================================================================


@router.post("/leads/{lead_id}/collect-fee", response_model=FeeActionResponse)
async def collect_fee(
    lead_id: int,
    operator: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Mark a lead's success fee as collected."""
    try:
        lead = await LeadStore(db).collect_fee(lead_id, operator)
    except FeeConflictError as e:
        return _conflict_response(e)

    if lead is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")

    await db.commit()
    return FeeActionResponse(
        message="Fee marked as collected", lead=FeeLead.model_validate(lead)
    )


@router.post("/leads/{lead_id}/uncollect-fee", response_model=FeeActionResponse)
async def uncollect_fee(
    lead_id: int,
    operator: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Reverse a fee collection (billing corrections)."""
    try:
        lead = await LeadStore(db).uncollect_fee(lead_id, operator)
    except FeeConflictError as e:
        return _conflict_response(e)

    if lead is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")

    await db.commit()
    return FeeActionResponse(
        message="Fee collection reversed", lead=FeeLead.model_validate(lead)
    )


@router.get("/fees/summary", response_model=FeeSummary)
async def fee_summary(
    _: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Success-fee totals over every scheduled lead."""
    return await get_fee_summary(db)


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    _: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All conversations, newest first."""
    return await ConversationLog(db).list_conversations()


@router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(
    conversation_id: int,
    operator: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete a conversation and its messages."""
    if not await ConversationLog(db).delete_conversation(conversation_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found"
        )
    await db.commit()
    logger.info(f"Conversation {conversation_id} deleted by {operator}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
