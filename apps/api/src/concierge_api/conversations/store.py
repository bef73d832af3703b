"""Conversation log persistence.

Conversations are created by visitors, messages are append-only, and only
operators may delete a conversation (its messages go with it).
"""

import logging

from concierge.schemas import MessageRole
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from concierge_api.db.models import DEFAULT_CONVERSATION_TITLE, Conversation, Message

logger = logging.getLogger("concierge-conversations")

MAX_TITLE_LENGTH = 200


def normalize_title(title: str | None) -> str:
    """Fall back to the default title when missing, blank, or too long."""
    if title is None:
        return DEFAULT_CONVERSATION_TITLE
    title = title.strip()
    if not title or len(title) > MAX_TITLE_LENGTH:
        return DEFAULT_CONVERSATION_TITLE
    return title


class ConversationLog:
    """Conversation and message queries bound to one session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_conversation(self, title: str | None = None) -> Conversation:
        conversation = Conversation(title=normalize_title(title))
        self.db.add(conversation)
        await self.db.flush()
        logger.info(f"Conversation {conversation.id} created")
        return conversation

    async def get_conversation(self, conversation_id: int) -> Conversation | None:
        return await self.db.get(Conversation, conversation_id)

    async def list_conversations(self) -> list[Conversation]:
        """All conversations, newest first."""
        result = await self.db.execute(
            select(Conversation).order_by(
                Conversation.created_at.desc(), Conversation.id.desc()
            )
        )
        return list(result.scalars().all())

    async def append_message(
        self, conversation_id: int, role: MessageRole, content: str
    ) -> Message:
        message = Message(
            conversation_id=conversation_id,
            role=MessageRole(role).value,
            content=content,
        )
        self.db.add(message)
        await self.db.flush()
        return message

    async def get_messages(self, conversation_id: int) -> list[Message]:
        """Messages of one conversation, oldest first."""
        result = await self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(result.scalars().all())

    async def delete_conversation(self, conversation_id: int) -> bool:
        """Delete a conversation and its messages. Returns False if it didn't exist."""
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            return False

        await self.db.execute(
            delete(Message).where(Message.conversation_id == conversation_id)
        )
        await self.db.execute(
            delete(Conversation).where(Conversation.id == conversation_id)
        )
        logger.info(f"Conversation {conversation_id} deleted")
        return True
