"""Lead qualification rules.

Pure functions only. The model decides the routing path (intent type) and
we trust it; the model never decides whether a lead is high-intent.
"""

import os
from dataclasses import dataclass
from urllib.parse import urlencode, urlsplit, urlunsplit

from concierge.schemas import (
    ANONYMOUS_NAME,
    HIGH_INTENT_SIZES,
    UNKNOWN_COMPANY,
    CompanySize,
    LeadDraft,
    LeadType,
    QualifyAndScheduleArgs,
    QualifyLeadArgs,
)


def is_high_intent(
    company_size: CompanySize | str | None, budget_confirmed: bool | None
) -> bool:
    """Return True for mid/large companies or a confirmed budget."""
    if budget_confirmed is True:
        return True
    if company_size is None:
        return False
    try:
        size = CompanySize(company_size)
    except ValueError:
        return False
    return size in HIGH_INTENT_SIZES


def normalize_email(email: str | None) -> str:
    """Lower-case and trim an email; missing becomes the empty sentinel."""
    return (email or "").strip().lower()


def draft_from_qualify_lead(args: QualifyLeadArgs) -> LeadDraft:
    """Build a lead draft from an early ``qualify_lead`` capture."""
    return LeadDraft(
        pain_point=args.pain_point,
        name=args.name or ANONYMOUS_NAME,
        company=args.company or UNKNOWN_COMPANY,
        email=normalize_email(args.email),
    )


def draft_from_qualify_and_schedule(args: QualifyAndScheduleArgs) -> LeadDraft:
    """Build a lead draft from a full ``qualify_and_schedule`` call.

    Attribution fields are copied as given.
    """
    return LeadDraft(
        pain_point=args.primary_pain_point,
        name=args.name or ANONYMOUS_NAME,
        company=args.company or UNKNOWN_COMPANY,
        email=normalize_email(args.email),
        company_size=args.company_size or CompanySize.UNKNOWN,
        budget_confirmed=bool(args.budget_confirmed),
        lead_type=args.intent_type,
        utm_source=args.utm_source,
        utm_medium=args.utm_medium,
        utm_campaign=args.utm_campaign,
        referrer=args.referrer,
    )


# =============================================================================
# Scheduling Links
# =============================================================================


@dataclass(frozen=True)
class SchedulingLinks:
    """Calendly booking page per intent path."""

    business_upgrade: str
    venture_studio: str

    @classmethod
    def from_env(cls) -> "SchedulingLinks":
        """Load booking links from environment variables."""
        business_upgrade = os.getenv(
            "CALENDLY_BUSINESS_UPGRADE_URL",
            "https://calendly.com/referral-service/business-upgrade",
        )
        venture_studio = os.getenv(
            "CALENDLY_VENTURE_STUDIO_URL",
            "https://calendly.com/referral-service/venture-studio",
        )
        return cls(business_upgrade=business_upgrade, venture_studio=venture_studio)

    def for_intent(self, intent_type: LeadType) -> str:
        if intent_type == LeadType.VENTURE_STUDIO:
            return self.venture_studio
        return self.business_upgrade


def booking_link_for(
    intent_type: LeadType,
    links: SchedulingLinks,
    name: str | None = None,
    email: str | None = None,
) -> str:
    """Pick the booking page for an intent path and prefill invitee details.

    Prefilling the email keeps the booking matchable when the webhook
    comes back.
    """
    base = links.for_intent(intent_type)
    params = {}
    if name and name != ANONYMOUS_NAME:
        params["name"] = name
    if email:
        params["email"] = email
    if not params:
        return base

    parts = urlsplit(base)
    query = f"{parts.query}&{urlencode(params)}" if parts.query else urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
