"""Pydantic schemas for the lead-qualification pipeline.

Tool-call arguments arrive from the language model as loosely typed JSON.
Every tool has an explicit argument model here; nothing downstream touches
the raw dict.

These schemas are framework-agnostic. Persistence lives in concierge_api.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# =============================================================================
# Constants
# =============================================================================

ANONYMOUS_NAME = "Anonymous"
UNKNOWN_COMPANY = "Unknown"

# Default success fee: $100
DEFAULT_SUCCESS_FEE_CENTS: int = 10000


# =============================================================================
# Enums
# =============================================================================


class CompanySize(str, Enum):
    """Headcount bucket reported by the visitor."""

    MICRO = "1-10"
    SMALL = "11-50"
    MID = "51-200"
    LARGE = "200+"
    UNKNOWN = "unknown"


class LeadType(str, Enum):
    """Intent path; selects which scheduling link is offered."""

    BUSINESS_UPGRADE = "business_upgrade"
    VENTURE_STUDIO = "venture_studio"


class MessageRole(str, Enum):
    """Roles persisted in the conversation log."""

    USER = "user"
    ASSISTANT = "assistant"


HIGH_INTENT_SIZES = frozenset({CompanySize.MID, CompanySize.LARGE})


# =============================================================================
# Tool Arguments
# =============================================================================


class ToolArguments(BaseModel):
    """Base for tool-call argument models.

    Field names follow the camelCase names declared in the tool schema.
    Blank strings are treated as "not provided".
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    @field_validator("*", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class QualifyLeadArgs(ToolArguments):
    """Arguments for ``qualify_lead`` (early capture, no scheduling link)."""

    pain_point: str = Field(..., min_length=1)
    name: str | None = None
    company: str | None = None
    email: str | None = None


class QualifyAndScheduleArgs(ToolArguments):
    """Arguments for ``qualify_and_schedule``."""

    primary_pain_point: str = Field(..., min_length=1)
    intent_type: LeadType
    name: str | None = None
    email: str | None = None
    company: str | None = None
    company_size: CompanySize | None = None
    budget_confirmed: bool | None = None

    # Attribution (copied verbatim onto the lead)
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    referrer: str | None = None


# =============================================================================
# Lead Draft (Engine Output, Store Input)
# =============================================================================


class LeadDraft(BaseModel):
    """Everything needed to insert a lead.

    Deliberately has no high-intent field: the store derives it from
    company_size and budget_confirmed at write time.
    """

    pain_point: str
    name: str = ANONYMOUS_NAME
    company: str = UNKNOWN_COMPANY
    email: str = ""
    company_size: CompanySize = CompanySize.UNKNOWN
    budget_confirmed: bool = False
    lead_type: LeadType = LeadType.BUSINESS_UPGRADE

    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    referrer: str | None = None


class LeadSummary(BaseModel):
    """Minimal view of a lead used by notifications."""

    id: int
    name: str
    company: str
    email: str
    pain_point: str
    company_size: str | None = None
    lead_type: str | None = None
    is_high_intent: bool = False
