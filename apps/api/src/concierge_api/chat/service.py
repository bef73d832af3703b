"""Two-round chat protocol.

1. Persist the visitor's message.
2. Ask the model for a reply with the tool schema attached.
3. If it requested tools, execute them, feed the results back as tool
   turns, and ask once more (no tools) for the final text.
4. Persist the assistant reply.

Tool writes use their own short-lived sessions so a captured lead survives
a later failure in the same turn.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from concierge.llm import ChatModel
from concierge.schemas import LeadDraft, LeadSummary, MessageRole
from concierge.tools import SYSTEM_PROMPT, TOOLS, ToolDispatcher, ToolResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from concierge_api.conversations.store import ConversationLog
from concierge_api.leads.store import LeadStore

logger = logging.getLogger("concierge-chat")


class ConversationNotFoundError(Exception):
    """Raised when a chat message targets a conversation that doesn't exist."""

    pass


@dataclass
class ChatReply:
    """What the visitor gets back for one message."""

    response: str
    function_calls: list[ToolResult] = field(default_factory=list)


def make_lead_writer(session_factory: async_sessionmaker[AsyncSession]):
    """Lead writer for the tool dispatcher, committing in its own session."""

    async def write_lead(draft: LeadDraft) -> LeadSummary:
        async with session_factory() as session:
            lead = await LeadStore(session).create_lead(draft)
            await session.commit()
            return lead.to_summary()

    return write_lead


class ChatService:
    """Runs one visitor turn against the model and the tool dispatcher."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        chat_model: ChatModel,
        dispatcher: ToolDispatcher,
    ):
        self.session_factory = session_factory
        self.chat_model = chat_model
        self.dispatcher = dispatcher

    async def _record_user_message(
        self, conversation_id: int, content: str
    ) -> list[dict[str, Any]]:
        async with self.session_factory() as session:
            log = ConversationLog(session)
            if await log.get_conversation(conversation_id) is None:
                raise ConversationNotFoundError(f"Conversation {conversation_id} not found")

            await log.append_message(conversation_id, MessageRole.USER, content)
            await session.commit()

            history = await log.get_messages(conversation_id)
            return [
                {"role": "system", "content": SYSTEM_PROMPT},
                *({"role": m.role, "content": m.content} for m in history),
            ]

    async def _record_assistant_message(self, conversation_id: int, content: str) -> None:
        async with self.session_factory() as session:
            await ConversationLog(session).append_message(
                conversation_id, MessageRole.ASSISTANT, content
            )
            await session.commit()

    async def respond(self, conversation_id: int, content: str) -> ChatReply:
        """Handle one visitor message.

        Raises:
            ConversationNotFoundError: unknown conversation id.
            ChatModelError: the model call failed.
        """
        messages = await self._record_user_message(conversation_id, content)

        completion = await self.chat_model.complete(messages, tools=TOOLS)
        response_text = completion.text or ""
        function_calls: list[ToolResult] = []

        if completion.tool_calls:
            messages.append(
                {
                    "role": "assistant",
                    "content": completion.text,
                    "tool_calls": [tc.as_message_part() for tc in completion.tool_calls],
                }
            )
            for tool_call in completion.tool_calls:
                result = await self.dispatcher.dispatch(tool_call.name, tool_call.arguments)
                function_calls.append(result)
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": tool_call.id,
                        "content": result.result,
                    }
                )

            follow_up = await self.chat_model.complete(messages)
            response_text = follow_up.text or response_text

        if response_text:
            await self._record_assistant_message(conversation_id, response_text)

        logger.info(
            f"Conversation {conversation_id}: replied with {len(function_calls)} tool call(s)"
        )
        return ChatReply(response=response_text, function_calls=function_calls)
