"""Conversation API routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from concierge_api.conversations.store import ConversationLog
from concierge_api.db.database import get_db
from concierge_api.schemas import CamelModel

router = APIRouter(prefix="/conversations", tags=["Conversations"])


# =============================================================================
# Request/Response Models
# =============================================================================


class CreateConversationRequest(CamelModel):
    """Invalid or missing titles fall back to the default."""

    title: str | None = None


class ConversationResponse(CamelModel):
    id: int
    title: str
    created_at: datetime


class MessageResponse(CamelModel):
    id: int
    conversation_id: int
    role: str
    content: str
    created_at: datetime


class ConversationDetailResponse(ConversationResponse):
    messages: list[MessageResponse]


# =============================================================================
# Routes
# =============================================================================


@router.post(
    "", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED
)
async def create_conversation(
    request: CreateConversationRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Start a new conversation."""
    title = request.title if request else None
    conversation = await ConversationLog(db).create_conversation(title)
    await db.commit()
    return conversation


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(conversation_id: int, db: AsyncSession = Depends(get_db)):
    """Get a conversation with its messages, oldest first."""
    log = ConversationLog(db)
    conversation = await log.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found"
        )

    messages = await log.get_messages(conversation_id)
    return ConversationDetailResponse(
        id=conversation.id,
        title=conversation.title,
        created_at=conversation.created_at,
        messages=[MessageResponse.model_validate(m) for m in messages],
    )
