"""Dashboard API routes.

KPI rollups for operators. Any authenticated operator may read them.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from concierge_api.auth.jwt import require_operator
from concierge_api.config import Settings, get_settings
from concierge_api.dashboard.queries import (
    FunnelMetrics,
    LeadSegment,
    RecentLead,
    TrendPoint,
    get_daily_trend,
    get_funnel_metrics,
    get_lead_segments,
    get_recent_leads,
    window_start,
)
from concierge_api.db.database import get_db

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
    dependencies=[Depends(require_operator)],
)


@router.get("/metrics", response_model=FunnelMetrics)
async def funnel_metrics(
    days: int = Query(default=30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Funnel KPIs for the trailing window."""
    return await get_funnel_metrics(db, window_start(days), settings.average_deal_size)


@router.get("/segments", response_model=list[LeadSegment])
async def lead_segments(
    days: int = Query(default=30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    """Per company-size segments for the trailing window."""
    return await get_lead_segments(db, window_start(days))


@router.get("/recent", response_model=list[RecentLead])
async def recent_leads(
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Most recent leads."""
    return await get_recent_leads(db, limit)


@router.get("/trend", response_model=list[TrendPoint])
async def daily_trend(
    days: int = Query(default=30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    """Daily lead counts."""
    return await get_daily_trend(db, days)
