"""Scheduling reconciliation.

Closes the loop between a qualified lead and the meeting it booked. Deliveries
are at-least-once, so every step is idempotent: the invitee URI is the key,
backed by a unique index and a conditional update on ``scheduled_call``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from concierge.notify import Notifier
from sqlalchemy.ext.asyncio import AsyncSession

from concierge_api.leads.store import Booking, LeadStore

logger = logging.getLogger("concierge-webhooks")

INVITEE_CREATED = "invitee.created"


class InvalidPayloadError(Exception):
    """Raised when a delivery is missing fields required to reconcile it."""

    pass


class Outcome(str, Enum):
    """What happened to one delivery."""

    IGNORED = "ignored"  # Event type we don't act on
    ALREADY_PROCESSED = "already_processed"  # Retry or concurrent duplicate
    COLD_BOOKING = "cold_booking"  # No matching lead
    SCHEDULED = "scheduled"  # Lead moved to scheduled


@dataclass
class InviteeCreated:
    """Fields we use from an invitee.created payload."""

    email: str
    invitee_uri: str
    event_uri: str | None
    start_time: datetime | None

    @classmethod
    def from_event(cls, event: dict[str, Any]) -> "InviteeCreated":
        payload = event.get("payload")
        if not isinstance(payload, dict):
            raise InvalidPayloadError("Missing payload")

        email = payload.get("email")
        if not isinstance(email, str) or not email.strip():
            raise InvalidPayloadError("Missing email in payload")

        invitee_uri = payload.get("uri")
        if not isinstance(invitee_uri, str) or not invitee_uri.strip():
            raise InvalidPayloadError("Missing invitee uri in payload")

        scheduled_event = payload.get("scheduled_event") or {}
        return cls(
            email=email.strip().lower(),
            invitee_uri=invitee_uri.strip(),
            event_uri=payload.get("event"),
            start_time=parse_start_time(scheduled_event.get("start_time")),
        )


def parse_start_time(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning(f"Unparseable start_time in webhook: {value!r}")
        return None


class SchedulingReconciler:
    """Applies invitee.created deliveries to the lead store."""

    def __init__(self, notifier: Notifier, fee_cents: int, fee_policy: str):
        self.notifier = notifier
        self.fee_cents = fee_cents
        self.fee_policy = fee_policy

    async def process(self, db: AsyncSession, event: dict[str, Any]) -> Outcome:
        """Reconcile one parsed delivery.

        Raises:
            InvalidPayloadError: invitee.created without email or invitee uri.
        """
        event_type = event.get("event")
        logger.info(f"Scheduling webhook received: {event_type}")

        if event_type != INVITEE_CREATED:
            return Outcome.IGNORED

        invitee = InviteeCreated.from_event(event)
        store = LeadStore(db)

        existing = await store.get_by_invitee_uri(invitee.invitee_uri)
        if existing is not None:
            logger.info(
                f"Invitee {invitee.invitee_uri} already processed for lead {existing.id}"
            )
            return Outcome.ALREADY_PROCESSED

        lead = await store.get_unscheduled_by_email(invitee.email)
        if lead is None:
            logger.info(f"Cold booking: no unscheduled lead for {invitee.email}")
            return Outcome.COLD_BOOKING

        lead_id = lead.id
        booking = Booking(
            event_uri=invitee.event_uri,
            invitee_uri=invitee.invitee_uri,
            scheduled_at=invitee.start_time,
        )
        if not await store.mark_scheduled(lead, booking, self.fee_cents, self.fee_policy):
            logger.info(f"Lead {lead_id} was scheduled by a concurrent delivery")
            return Outcome.ALREADY_PROCESSED

        await db.commit()

        if lead.success_fee_cents:
            logger.info(
                f"Lead {lead.id} scheduled, success fee {lead.success_fee_cents} "
                f"cents ({lead.success_fee_policy})"
            )
        else:
            logger.info(f"Lead {lead.id} scheduled (not high-intent, no fee)")

        self.notifier.meeting_booked(lead.to_summary(), invitee.start_time)
        return Outcome.SCHEDULED
