"""Domain core for the Referral Concierge lead-qualification pipeline."""

from concierge.llm import (
    ChatModel,
    ChatModelError,
    Completion,
    OpenAIChatModel,
    OpenAIConfig,
    OpenAITranscriber,
    ToolCall,
    Transcriber,
    TranscriptionError,
)
from concierge.notify import NotificationFanout, Notifier, NotifyConfig
from concierge.qualification import SchedulingLinks, booking_link_for, is_high_intent
from concierge.schemas import (
    DEFAULT_SUCCESS_FEE_CENTS,
    CompanySize,
    LeadDraft,
    LeadSummary,
    LeadType,
    MessageRole,
)
from concierge.tools import SYSTEM_PROMPT, TOOLS, ToolDispatcher, ToolResult

__all__ = [
    "DEFAULT_SUCCESS_FEE_CENTS",
    "SYSTEM_PROMPT",
    "TOOLS",
    "ChatModel",
    "ChatModelError",
    "CompanySize",
    "Completion",
    "LeadDraft",
    "LeadSummary",
    "LeadType",
    "MessageRole",
    "NotificationFanout",
    "Notifier",
    "NotifyConfig",
    "OpenAIChatModel",
    "OpenAIConfig",
    "OpenAITranscriber",
    "SchedulingLinks",
    "ToolCall",
    "ToolDispatcher",
    "ToolResult",
    "Transcriber",
    "TranscriptionError",
    "booking_link_for",
    "is_high_intent",
]
