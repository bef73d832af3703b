"""Language-model and transcription collaborators.

The rest of the system sees the model as an opaque function:
(system prompt, history, tool schema) -> text and/or tool calls.
Provider specifics stay in this module.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Protocol

from openai import AsyncOpenAI, OpenAIError

logger = logging.getLogger("concierge-llm")


class ChatModelError(Exception):
    """Raised when the chat-completion provider fails."""

    pass


class TranscriptionError(Exception):
    """Raised when the transcription provider fails."""

    pass


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class OpenAIConfig:
    """OpenAI client configuration."""

    api_key: str
    base_url: str | None = None
    model: str = "gpt-4o"
    transcribe_model: str = "gpt-4o-mini-transcribe"
    max_tokens: int = 256
    timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "OpenAIConfig":
        """Load OpenAI config from environment variables.

        Hosted integrations inject AI_INTEGRATIONS_OPENAI_*; those win over
        the standard OPENAI_* names.
        """
        api_key = os.getenv("AI_INTEGRATIONS_OPENAI_API_KEY") or os.getenv(
            "OPENAI_API_KEY", ""
        )
        base_url = os.getenv("AI_INTEGRATIONS_OPENAI_BASE_URL") or os.getenv(
            "OPENAI_BASE_URL"
        )

        if not api_key:
            logger.warning("OPENAI_API_KEY not set - chat and transcription will fail")

        return cls(
            api_key=api_key,
            base_url=base_url or None,
            model=os.getenv("OPENAI_MODEL", "gpt-4o"),
            transcribe_model=os.getenv(
                "OPENAI_TRANSCRIBE_MODEL", "gpt-4o-mini-transcribe"
            ),
            max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", "256")),
            timeout_seconds=float(os.getenv("OPENAI_TIMEOUT_SECONDS", "30")),
        )


# =============================================================================
# Provider-Neutral Types
# =============================================================================


@dataclass
class ToolCall:
    """A single function call requested by the model."""

    id: str
    name: str
    arguments: str  # Raw JSON text, validated later by the dispatcher

    def as_message_part(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class Completion:
    """Result of one model round."""

    text: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)


class ChatModel(Protocol):
    """Anything that can run one chat-completion round."""

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> Completion: ...


class Transcriber(Protocol):
    """Anything that can turn audio bytes into text."""

    async def transcribe(self, audio: bytes, audio_format: str) -> str: ...


# =============================================================================
# OpenAI Implementations
# =============================================================================


def _build_client(config: OpenAIConfig) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=config.api_key or "missing",
        base_url=config.base_url,
        timeout=config.timeout_seconds,
    )


class OpenAIChatModel:
    """Chat-completion round against the OpenAI API."""

    def __init__(self, config: OpenAIConfig, client: AsyncOpenAI | None = None):
        self.config = config
        self.client = client or _build_client(config)

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> Completion:
        params: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "max_completion_tokens": self.config.max_tokens,
        }
        if tools:
            params["tools"] = tools
            params["tool_choice"] = "auto"

        try:
            response = await self.client.chat.completions.create(**params)
        except OpenAIError as e:
            raise ChatModelError(f"Chat completion failed: {e!s}") from e

        if not response.choices:
            return Completion()

        message = response.choices[0].message
        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=tc.function.arguments or "{}",
            )
            for tc in (message.tool_calls or [])
            if getattr(tc, "function", None) is not None
        ]
        return Completion(text=message.content, tool_calls=tool_calls)


class OpenAITranscriber:
    """Speech-to-text through the OpenAI audio API."""

    def __init__(self, config: OpenAIConfig, client: AsyncOpenAI | None = None):
        self.config = config
        self.client = client or _build_client(config)

    async def transcribe(self, audio: bytes, audio_format: str = "webm") -> str:
        try:
            result = await self.client.audio.transcriptions.create(
                model=self.config.transcribe_model,
                file=(f"audio.{audio_format}", audio),
            )
        except OpenAIError as e:
            raise TranscriptionError(f"Transcription failed: {e!s}") from e
        return result.text
