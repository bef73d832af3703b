"""Tool schema and dispatcher for the sales persona.

The model may request ``qualify_lead`` or ``qualify_and_schedule``. Each
request is validated against its argument model, turned into a lead draft,
written through an injected writer, and answered with a short text result
that is fed back to the model for the follow-up round.

The dispatcher never raises into the chat flow: unknown tools, bad arguments
and storage failures all come back as customer-safe text.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from concierge.notify import Notifier
from concierge.qualification import (
    SchedulingLinks,
    booking_link_for,
    draft_from_qualify_and_schedule,
    draft_from_qualify_lead,
)
from concierge.schemas import (
    ANONYMOUS_NAME,
    CompanySize,
    LeadDraft,
    LeadSummary,
    LeadType,
    QualifyAndScheduleArgs,
    QualifyLeadArgs,
)

logger = logging.getLogger("concierge-tools")

LeadWriter = Callable[[LeadDraft], Awaitable[LeadSummary]]

UNKNOWN_TOOL_REPLY = "I'm not sure how to handle that request."
SAVE_FAILED_REPLY = (
    "I've noted your information. Someone from our team will follow up shortly."
)
BAD_ARGUMENTS_REPLY = (
    "I need a little more detail before I can pass this to the team. "
    "What's the main challenge you're trying to solve?"
)


# =============================================================================
# Prompt & Schema
# =============================================================================

SYSTEM_PROMPT = """You are a senior AI consultant for Referral Service LLC. Your goal is to qualify the visitor by learning their main business pain point, their company size, and whether they have budget set aside. Keep responses under 2 sentences. Do not promise specific deliverables without a consultation.

You have access to the following functions:
- qualify_lead: Use as soon as the visitor shares their main pain point, even if contact details are missing.
- qualify_and_schedule: Use once you know the pain point and whether they want to upgrade an existing business (business_upgrade) or build a new venture with us (venture_studio). This sends them a booking link.

Be conversational and helpful. Ask ONE qualifying question at a time."""

TOOLS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "qualify_and_schedule",
            "description": "Log a qualified lead and offer the matching consultation booking link",
            "parameters": {
                "type": "object",
                "properties": {
                    "primaryPainPoint": {
                        "type": "string",
                        "description": "The main business challenge or pain point",
                    },
                    "intentType": {
                        "type": "string",
                        "enum": [t.value for t in LeadType],
                        "description": "business_upgrade for existing businesses, venture_studio for new ventures",
                    },
                    "name": {"type": "string", "description": "The lead's full name"},
                    "email": {"type": "string", "description": "The lead's email address"},
                    "company": {"type": "string", "description": "The lead's company name"},
                    "companySize": {
                        "type": "string",
                        "enum": [s.value for s in CompanySize],
                        "description": "Number of employees",
                    },
                    "budgetConfirmed": {
                        "type": "boolean",
                        "description": "True only if the lead confirmed budget is available",
                    },
                    "utmSource": {"type": "string"},
                    "utmMedium": {"type": "string"},
                    "utmCampaign": {"type": "string"},
                    "referrer": {"type": "string"},
                },
                "required": ["primaryPainPoint", "intentType"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "qualify_lead",
            "description": "Log lead information as soon as the user shares their pain point",
            "parameters": {
                "type": "object",
                "properties": {
                    "painPoint": {
                        "type": "string",
                        "description": "The main business challenge or pain point",
                    },
                    "name": {"type": "string", "description": "The lead's full name"},
                    "company": {"type": "string", "description": "The lead's company name"},
                    "email": {"type": "string", "description": "The lead's email address"},
                },
                "required": ["painPoint"],
            },
        },
    },
]


# =============================================================================
# Dispatcher
# =============================================================================


class ToolArgumentError(Exception):
    """Raised when tool-call arguments are not valid JSON or violate the schema."""

    pass


@dataclass
class ToolResult:
    """Outcome of one executed tool call."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    result: str = ""
    lead_id: int | None = None


def parse_arguments(raw: str | dict[str, Any] | None) -> dict[str, Any]:
    """Decode raw tool-call arguments into a dict."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ToolArgumentError(f"Arguments are not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ToolArgumentError("Arguments must be a JSON object")
    return parsed


def _validate(model, arguments: dict[str, Any]):
    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        raise ToolArgumentError(str(e)) from e


class ToolDispatcher:
    """Maps tool calls onto lead capture."""

    def __init__(
        self,
        write_lead: LeadWriter,
        links: SchedulingLinks,
        notifier: Notifier,
    ):
        self.write_lead = write_lead
        self.links = links
        self.notifier = notifier
        self._handlers = {
            "qualify_and_schedule": self._qualify_and_schedule,
            "qualify_lead": self._qualify_lead,
        }

    async def dispatch(self, name: str, raw_arguments: str | dict[str, Any] | None) -> ToolResult:
        """Execute one tool call. Never raises."""
        handler = self._handlers.get(name)

        try:
            arguments = parse_arguments(raw_arguments)
        except ToolArgumentError as e:
            logger.warning(f"Rejected {name} call: {e}")
            reply = BAD_ARGUMENTS_REPLY if handler else UNKNOWN_TOOL_REPLY
            return ToolResult(name=name, result=reply)

        if handler is None:
            logger.warning(f"Unknown tool requested: {name}")
            return ToolResult(name=name, arguments=arguments, result=UNKNOWN_TOOL_REPLY)

        try:
            return await handler(arguments)
        except ToolArgumentError as e:
            logger.warning(f"Rejected {name} call: {e}")
            return ToolResult(name=name, arguments=arguments, result=BAD_ARGUMENTS_REPLY)

    async def _save(self, name: str, draft: LeadDraft) -> LeadSummary | None:
        try:
            return await self.write_lead(draft)
        except Exception:
            logger.exception(f"Failed to save lead from {name}")
            return None

    async def _qualify_lead(self, arguments: dict[str, Any]) -> ToolResult:
        args = _validate(QualifyLeadArgs, arguments)
        lead = await self._save("qualify_lead", draft_from_qualify_lead(args))
        if lead is None:
            return ToolResult(name="qualify_lead", arguments=arguments, result=SAVE_FAILED_REPLY)

        logger.info(f"Lead {lead.id} captured (qualify_lead)")
        return ToolResult(
            name="qualify_lead",
            arguments=arguments,
            result=f"Lead has been logged: {lead.name} from {lead.company}. Thank you for your interest!",
            lead_id=lead.id,
        )

    async def _qualify_and_schedule(self, arguments: dict[str, Any]) -> ToolResult:
        args = _validate(QualifyAndScheduleArgs, arguments)
        lead = await self._save(
            "qualify_and_schedule", draft_from_qualify_and_schedule(args)
        )
        if lead is None:
            return ToolResult(
                name="qualify_and_schedule", arguments=arguments, result=SAVE_FAILED_REPLY
            )

        link = booking_link_for(args.intent_type, self.links, lead.name, lead.email)
        self.notifier.lead_captured(lead, link)
        logger.info(
            f"Lead {lead.id} qualified (intent={args.intent_type.value}, "
            f"high_intent={lead.is_high_intent})"
        )

        greeting = "Thanks" if lead.name == ANONYMOUS_NAME else f"Thanks, {lead.name}"
        return ToolResult(
            name="qualify_and_schedule",
            arguments=arguments,
            result=(
                f"{greeting}! The next step is a short strategy call with our team. "
                f"Pick a time that works for you here: {link}"
            ),
            lead_id=lead.id,
        )
