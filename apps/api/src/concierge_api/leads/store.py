"""Lead record persistence.

The store is the only writer of the derived high-intent flag and of the
scheduling/fee fields. Callers hand it drafts and operator identities;
it never accepts a high-intent value from outside.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from concierge.qualification import is_high_intent, normalize_email
from concierge.schemas import LeadDraft
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from concierge_api.db.models import Lead

logger = logging.getLogger("concierge-leads")


class FeeConflictError(Exception):
    """Raised when a fee collection action conflicts with the lead's state."""

    def __init__(
        self,
        message: str,
        collected_at: datetime | None = None,
        collected_by: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.collected_at = collected_at
        self.collected_by = collected_by


@dataclass
class Booking:
    """Scheduling details carried by an invitee.created event."""

    event_uri: str | None
    invitee_uri: str
    scheduled_at: datetime | None


class LeadStore:
    """Lead queries and state transitions bound to one session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Creation & Lookup
    # =========================================================================

    async def create_lead(self, draft: LeadDraft) -> Lead:
        """Insert a lead, deriving is_high_intent from the draft."""
        lead = Lead(
            name=draft.name,
            company=draft.company,
            email=normalize_email(draft.email),
            pain_point=draft.pain_point,
            company_size=draft.company_size.value,
            budget_confirmed=draft.budget_confirmed,
            lead_type=draft.lead_type.value,
            is_high_intent=is_high_intent(draft.company_size, draft.budget_confirmed),
            success_fee_cents=0,
            fee_collected=False,
            scheduled_call=False,
            utm_source=draft.utm_source,
            utm_medium=draft.utm_medium,
            utm_campaign=draft.utm_campaign,
            referrer=draft.referrer,
            created_at=datetime.now(timezone.utc),
        )
        self.db.add(lead)
        await self.db.flush()
        return lead

    async def get(self, lead_id: int) -> Lead | None:
        return await self.db.get(Lead, lead_id)

    async def get_all(self) -> list[Lead]:
        """All leads, newest first."""
        result = await self.db.execute(
            select(Lead).order_by(Lead.created_at.desc(), Lead.id.desc())
        )
        return list(result.scalars().all())

    async def get_by_invitee_uri(self, invitee_uri: str) -> Lead | None:
        result = await self.db.execute(
            select(Lead).where(Lead.calendly_invitee_uri == invitee_uri)
        )
        return result.scalar_one_or_none()

    async def get_unscheduled_by_email(self, email: str) -> Lead | None:
        """Most recent not-yet-scheduled lead for an email (case-insensitive)."""
        email = normalize_email(email)
        if not email:
            return None
        result = await self.db.execute(
            select(Lead)
            .where(Lead.email == email, Lead.scheduled_call.is_(False))
            .order_by(Lead.created_at.desc(), Lead.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # Scheduling
    # =========================================================================

    async def mark_scheduled(
        self,
        lead: Lead,
        booking: Booking,
        fee_cents: int,
        fee_policy: str,
    ) -> bool:
        """Close the loop for a matched lead.

        A single conditional UPDATE guarded by ``scheduled_call = false``.
        Returns False when another delivery already scheduled the lead or
        already claimed the invitee URI.
        """
        values = {
            "scheduled_call": True,
            "calendly_event_uri": booking.event_uri,
            "calendly_invitee_uri": booking.invitee_uri,
            "scheduled_at": booking.scheduled_at,
        }
        if lead.is_high_intent:
            values["success_fee_cents"] = fee_cents
            values["success_fee_policy"] = fee_policy

        stmt = (
            update(Lead)
            .where(Lead.id == lead.id, Lead.scheduled_call.is_(False))
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        try:
            result = await self.db.execute(stmt)
        except IntegrityError:
            # Expires every loaded instance; callers must not touch `lead` after False
            await self.db.rollback()
            logger.info(f"Invitee {booking.invitee_uri} already claimed by another lead")
            return False

        if result.rowcount == 0:
            return False

        await self.db.refresh(lead)
        return True

    # =========================================================================
    # Fee Collection
    # =========================================================================

    async def collect_fee(self, lead_id: int, operator: str) -> Lead | None:
        """Mark a lead's success fee as collected. None if the lead doesn't exist."""
        lead = await self.get(lead_id)
        if lead is None:
            return None

        if lead.fee_collected:
            raise FeeConflictError(
                "Fee already collected",
                collected_at=lead.fee_collected_at,
                collected_by=lead.fee_collected_by,
            )
        if not lead.has_fee:
            raise FeeConflictError("No Success Fee assigned to this lead")

        lead.fee_collected = True
        lead.fee_collected_at = datetime.now(timezone.utc)
        lead.fee_collected_by = operator
        await self.db.flush()
        logger.info(f"Fee collected for lead {lead.id} by {operator}")
        return lead

    async def uncollect_fee(self, lead_id: int, operator: str) -> Lead | None:
        """Reverse a fee collection. None if the lead doesn't exist."""
        lead = await self.get(lead_id)
        if lead is None:
            return None

        if not lead.fee_collected:
            raise FeeConflictError("Fee not yet collected")

        lead.fee_collected = False
        lead.fee_collected_at = None
        lead.fee_collected_by = None
        await self.db.flush()
        logger.info(f"Fee collection reversed for lead {lead.id} by {operator}")
        return lead
