"""Chat and transcription routes."""

import base64
import binascii
import logging
from typing import Any

from concierge.llm import ChatModelError, Transcriber, TranscriptionError
from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import Field

from concierge_api.chat.service import ChatService, ConversationNotFoundError
from concierge_api.schemas import CamelModel

logger = logging.getLogger("concierge-chat")

router = APIRouter(tags=["Chat"])

MAX_CONTENT_LENGTH = 4000


# =============================================================================
# Request/Response Models
# =============================================================================


class ChatRequest(CamelModel):
    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)


class FunctionCallResponse(CamelModel):
    name: str
    arguments: dict[str, Any]
    result: str


class ChatResponse(CamelModel):
    response: str
    function_calls: list[FunctionCallResponse]


class TranscribeRequest(CamelModel):
    audio: str = Field(..., min_length=1)  # Base64-encoded
    format: str = "webm"


class TranscribeResponse(CamelModel):
    text: str


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_transcriber(request: Request) -> Transcriber:
    return request.app.state.transcriber


# =============================================================================
# Routes
# =============================================================================


@router.post("/chat/{conversation_id}", response_model=ChatResponse)
async def chat(
    conversation_id: int,
    request: ChatRequest,
    service: ChatService = Depends(get_chat_service),
):
    """Send a visitor message and get the persona's reply."""
    try:
        reply = await service.respond(conversation_id, request.content)
    except ConversationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found"
        ) from e
    except ChatModelError as e:
        logger.error(f"Chat failed for conversation {conversation_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process chat",
        ) from e
    except Exception as e:
        logger.exception(f"Chat failed for conversation {conversation_id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process chat",
        ) from e

    return ChatResponse(
        response=reply.response,
        function_calls=[
            FunctionCallResponse(name=fc.name, arguments=fc.arguments, result=fc.result)
            for fc in reply.function_calls
        ],
    )


@router.post("/transcribe", response_model=TranscribeResponse)
async def transcribe(
    request: TranscribeRequest,
    transcriber: Transcriber = Depends(get_transcriber),
):
    """Transcribe a base64-encoded audio clip."""
    try:
        audio = base64.b64decode(request.audio, validate=True)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Audio must be base64-encoded",
        ) from e
    if not audio:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Audio data required"
        )

    try:
        text = await transcriber.transcribe(audio, request.format)
    except TranscriptionError as e:
        logger.error(f"Transcription failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to transcribe audio",
        ) from e

    return TranscribeResponse(text=text)
