"""initial_schema

Revision ID: 5e2a9c4b71d0
Revises:
Create Date: 2026-09-28 10:14:32.518204

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5e2a9c4b71d0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create initial database schema."""
    # Conversations table
    op.create_table(
        "conversations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_conversations_created_at", "conversations", ["created_at"])

    # Messages table
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "conversation_id",
            sa.Integer,
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])

    # Leads table
    op.create_table(
        "leads",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        # Contact
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("company", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, server_default=""),
        # Qualification
        sa.Column("pain_point", sa.Text, nullable=False),
        sa.Column(
            "company_size", sa.String(20), nullable=False, server_default="unknown"
        ),
        sa.Column("budget_confirmed", sa.Boolean, server_default=sa.false()),
        sa.Column(
            "lead_type",
            sa.String(30),
            nullable=False,
            server_default="business_upgrade",
        ),
        sa.Column("is_high_intent", sa.Boolean, server_default=sa.false()),
        # Success fee
        sa.Column("success_fee_cents", sa.Integer, nullable=False, server_default="0"),
        sa.Column("success_fee_policy", sa.String(50)),
        sa.Column("fee_collected", sa.Boolean, server_default=sa.false()),
        sa.Column("fee_collected_at", sa.DateTime(timezone=True)),
        sa.Column("fee_collected_by", sa.String(255)),
        # Scheduling
        sa.Column("calendly_event_uri", sa.String(500)),
        sa.Column("calendly_invitee_uri", sa.String(500), unique=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True)),
        sa.Column("scheduled_call", sa.Boolean, server_default=sa.false()),
        # Attribution
        sa.Column("utm_source", sa.String(255)),
        sa.Column("utm_medium", sa.String(255)),
        sa.Column("utm_campaign", sa.String(255)),
        sa.Column("referrer", sa.Text),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_leads_email", "leads", ["email"])
    op.create_index("ix_leads_created_at", "leads", ["created_at"])
    op.create_index("ix_leads_scheduled_call", "leads", ["scheduled_call"])


def downgrade() -> None:
    """Drop all tables in reverse order."""
    op.drop_table("leads")
    op.drop_table("messages")
    op.drop_table("conversations")
