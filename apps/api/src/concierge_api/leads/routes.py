"""Lead API routes."""

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from concierge_api.db.database import get_db
from concierge_api.leads.store import LeadStore
from concierge_api.schemas import CamelModel

router = APIRouter(prefix="/leads", tags=["Leads"])


class LeadResponse(CamelModel):
    """Full lead record."""

    id: int
    name: str
    company: str
    email: str
    pain_point: str
    company_size: str | None
    budget_confirmed: bool
    lead_type: str | None
    is_high_intent: bool
    success_fee_cents: int
    success_fee_policy: str | None
    fee_collected: bool
    fee_collected_at: datetime | None
    fee_collected_by: str | None
    calendly_event_uri: str | None
    calendly_invitee_uri: str | None
    scheduled_at: datetime | None
    scheduled_call: bool
    utm_source: str | None
    utm_medium: str | None
    utm_campaign: str | None
    referrer: str | None
    created_at: datetime


@router.get("", response_model=list[LeadResponse])
async def list_leads(db: AsyncSession = Depends(get_db)):
    """All leads, newest first."""
    return await LeadStore(db).get_all()
