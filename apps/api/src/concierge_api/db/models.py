"""SQLAlchemy models for conversations, messages, and leads.

A lead is written by the chat tool dispatcher, closed out by the scheduling
webhook, and settled by an operator when the success fee is collected.
"""

from datetime import datetime, timezone

from concierge.schemas import CompanySize, LeadSummary, LeadType
from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from concierge_api.db.database import Base

DEFAULT_CONVERSATION_TITLE = "AI Consultation"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Conversation Models
# =============================================================================


class Conversation(Base):
    """A chat session between a visitor and the sales persona."""

    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(
        String(200), nullable=False, default=DEFAULT_CONVERSATION_TITLE
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    # Relationships
    messages: Mapped[list["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.id",
    )

    __table_args__ = (Index("ix_conversations_created_at", "created_at"),)


class Message(Base):
    """One visitor or assistant turn. Append-only."""

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # user, assistant
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    # Relationships
    conversation: Mapped["Conversation"] = relationship(back_populates="messages")

    __table_args__ = (Index("ix_messages_conversation_id", "conversation_id"),)


# =============================================================================
# Lead Model
# =============================================================================


class Lead(Base):
    """A qualified prospect and its booking / fee state."""

    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Contact (email is stored lower-case; "" when not provided)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Qualification
    pain_point: Mapped[str] = mapped_column(Text, nullable=False)
    company_size: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CompanySize.UNKNOWN.value
    )
    budget_confirmed: Mapped[bool] = mapped_column(Boolean, default=False)
    lead_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default=LeadType.BUSINESS_UPGRADE.value
    )
    is_high_intent: Mapped[bool] = mapped_column(Boolean, default=False)

    # Success fee
    success_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_fee_policy: Mapped[str | None] = mapped_column(String(50))
    fee_collected: Mapped[bool] = mapped_column(Boolean, default=False)
    fee_collected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    fee_collected_by: Mapped[str | None] = mapped_column(String(255))

    # Scheduling (set once by the webhook)
    calendly_event_uri: Mapped[str | None] = mapped_column(String(500))
    calendly_invitee_uri: Mapped[str | None] = mapped_column(String(500), unique=True)
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    scheduled_call: Mapped[bool] = mapped_column(Boolean, default=False)

    # Attribution
    utm_source: Mapped[str | None] = mapped_column(String(255))
    utm_medium: Mapped[str | None] = mapped_column(String(255))
    utm_campaign: Mapped[str | None] = mapped_column(String(255))
    referrer: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("ix_leads_email", "email"),
        Index("ix_leads_created_at", "created_at"),
        Index("ix_leads_scheduled_call", "scheduled_call"),
    )

    @property
    def has_fee(self) -> bool:
        """Check if a success fee was assigned at booking."""
        return (self.success_fee_cents or 0) > 0

    def to_summary(self) -> LeadSummary:
        return LeadSummary(
            id=self.id,
            name=self.name,
            company=self.company,
            email=self.email,
            pain_point=self.pain_point,
            company_size=self.company_size,
            lead_type=self.lead_type,
            is_high_intent=bool(self.is_high_intent),
        )
