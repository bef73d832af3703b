"""Dashboard queries.

Read-only rollups over the leads table for a trailing window. Aggregates run
in SQL; the daily trend is bucketed in Python so it behaves the same on
PostgreSQL and SQLite.
"""

from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from concierge_api.db.models import Lead
from concierge_api.schemas import CamelModel

UNKNOWN_SIZE_KEY = "Unknown"
MAX_TOP_PAIN_POINTS = 3


# =============================================================================
# Result Models
# =============================================================================


class FunnelMetrics(CamelModel):
    """Headline KPIs for the reporting window."""

    total_volume: int
    high_intent_count: int
    scheduled_count: int
    budget_confirmed_count: int
    conversion_rate: int  # Percent of high-intent leads that scheduled
    pipeline_generated: int
    total_success_fees: int  # Cents
    collected_fees: int
    pending_fees: int
    by_size: dict[str, int]
    by_type: dict[str, int]


class LeadSegment(CamelModel):
    """Per company-size breakdown."""

    company_size: str
    total_leads: int
    high_intent_count: int
    scheduled_count: int
    budget_confirmed_percent: int
    top_pain_points: list[str]


class RecentLead(CamelModel):
    id: int
    name: str
    company: str
    email: str
    pain_point: str
    company_size: str | None
    is_high_intent: bool
    scheduled_call: bool
    budget_confirmed: bool
    lead_type: str | None
    created_at: datetime
    scheduled_at: datetime | None


class TrendPoint(CamelModel):
    date: str  # YYYY-MM-DD (UTC)
    total: int
    high_intent: int
    scheduled: int


class PendingFeeLead(CamelModel):
    id: int
    name: str
    company: str
    email: str
    success_fee_cents: int
    scheduled_at: datetime | None


class FeeSummary(CamelModel):
    """Success-fee ledger over all scheduled leads."""

    total_booked: int
    with_fees: int
    total_fee_cents: int
    collected_fee_cents: int
    pending_fee_cents: int
    pending_leads: list[PendingFeeLead]


# =============================================================================
# Helpers
# =============================================================================


def window_start(days: int, now: datetime | None = None) -> datetime:
    """Start of a trailing window of ``days`` days."""
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=days)


def _count_if(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def conversion_rate(scheduled: int, high_intent: int) -> int:
    """Scheduled / high-intent as a rounded percent; 0 with no high-intent leads."""
    if high_intent <= 0:
        return 0
    return round(scheduled / high_intent * 100)


def _utc_day(value: datetime) -> date:
    # SQLite hands back naive datetimes; they were written as UTC
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


# =============================================================================
# Queries
# =============================================================================


async def get_funnel_metrics(
    db: AsyncSession, since: datetime, average_deal_size: int
) -> FunnelMetrics:
    """Funnel KPIs for leads created at or after ``since``."""
    totals = (
        await db.execute(
            select(
                func.count(Lead.id),
                _count_if(Lead.is_high_intent.is_(True)),
                _count_if(Lead.scheduled_call.is_(True)),
                _count_if(Lead.budget_confirmed.is_(True)),
                func.coalesce(func.sum(Lead.success_fee_cents), 0),
                func.coalesce(
                    func.sum(
                        case(
                            (Lead.fee_collected.is_(True), Lead.success_fee_cents),
                            else_=0,
                        )
                    ),
                    0,
                ),
            ).where(Lead.created_at >= since)
        )
    ).one()
    total, high_intent, scheduled, budget_confirmed, earned, collected = (
        int(v or 0) for v in totals
    )

    size_rows = await db.execute(
        select(Lead.company_size, func.count(Lead.id))
        .where(Lead.created_at >= since)
        .group_by(Lead.company_size)
    )
    type_rows = await db.execute(
        select(Lead.lead_type, func.count(Lead.id))
        .where(Lead.created_at >= since)
        .group_by(Lead.lead_type)
    )

    return FunnelMetrics(
        total_volume=total,
        high_intent_count=high_intent,
        scheduled_count=scheduled,
        budget_confirmed_count=budget_confirmed,
        conversion_rate=conversion_rate(scheduled, high_intent),
        pipeline_generated=scheduled * average_deal_size,
        total_success_fees=earned,
        collected_fees=collected,
        pending_fees=earned - collected,
        by_size={(size or UNKNOWN_SIZE_KEY): count for size, count in size_rows.all()},
        by_type={(lead_type or "unknown"): count for lead_type, count in type_rows.all()},
    )


async def get_lead_segments(db: AsyncSession, since: datetime) -> list[LeadSegment]:
    """Per company-size segments with the most frequent pain points."""
    segment_rows = await db.execute(
        select(
            Lead.company_size,
            func.count(Lead.id),
            _count_if(Lead.is_high_intent.is_(True)),
            _count_if(Lead.scheduled_call.is_(True)),
            _count_if(Lead.budget_confirmed.is_(True)),
        )
        .where(Lead.created_at >= since)
        .group_by(Lead.company_size)
        .order_by(Lead.company_size)
    )

    pain_rows = await db.execute(
        select(Lead.company_size, Lead.pain_point, func.count(Lead.id).label("n"))
        .where(Lead.created_at >= since)
        .group_by(Lead.company_size, Lead.pain_point)
        .order_by(func.count(Lead.id).desc(), Lead.pain_point)
    )
    pain_points: dict[str, list[str]] = defaultdict(list)
    for size, pain_point, _ in pain_rows.all():
        bucket = pain_points[size or UNKNOWN_SIZE_KEY]
        if len(bucket) < MAX_TOP_PAIN_POINTS:
            bucket.append(pain_point)

    segments = []
    for size, total, high_intent, scheduled, budget_confirmed in segment_rows.all():
        key = size or UNKNOWN_SIZE_KEY
        total = int(total or 0)
        segments.append(
            LeadSegment(
                company_size=key,
                total_leads=total,
                high_intent_count=int(high_intent or 0),
                scheduled_count=int(scheduled or 0),
                budget_confirmed_percent=(
                    round(int(budget_confirmed or 0) / total * 100) if total else 0
                ),
                top_pain_points=pain_points.get(key, []),
            )
        )
    return segments


async def get_recent_leads(db: AsyncSession, limit: int = 10) -> list[RecentLead]:
    """Newest leads for the activity feed."""
    result = await db.execute(
        select(Lead).order_by(Lead.created_at.desc(), Lead.id.desc()).limit(limit)
    )
    return [RecentLead.model_validate(lead) for lead in result.scalars().all()]


async def get_daily_trend(
    db: AsyncSession, days: int = 30, now: datetime | None = None
) -> list[TrendPoint]:
    """Daily lead counts for the trend chart, oldest day first."""
    result = await db.execute(
        select(Lead.created_at, Lead.is_high_intent, Lead.scheduled_call).where(
            Lead.created_at >= window_start(days, now)
        )
    )

    totals: Counter[date] = Counter()
    high_intent: Counter[date] = Counter()
    scheduled: Counter[date] = Counter()
    for created_at, is_high_intent, scheduled_call in result.all():
        day = _utc_day(created_at)
        totals[day] += 1
        if is_high_intent:
            high_intent[day] += 1
        if scheduled_call:
            scheduled[day] += 1

    return [
        TrendPoint(
            date=day.isoformat(),
            total=totals[day],
            high_intent=high_intent[day],
            scheduled=scheduled[day],
        )
        for day in sorted(totals)
    ]


async def get_fee_summary(db: AsyncSession) -> FeeSummary:
    """Fee ledger over every scheduled lead (not windowed)."""
    result = await db.execute(
        select(Lead)
        .where(Lead.scheduled_call.is_(True))
        .order_by(Lead.scheduled_at.asc(), Lead.id.asc())
    )
    booked = list(result.scalars().all())

    with_fees = [lead for lead in booked if lead.has_fee]
    pending = [lead for lead in with_fees if not lead.fee_collected]

    return FeeSummary(
        total_booked=len(booked),
        with_fees=len(with_fees),
        total_fee_cents=sum(lead.success_fee_cents for lead in with_fees),
        collected_fee_cents=sum(
            lead.success_fee_cents for lead in with_fees if lead.fee_collected
        ),
        pending_fee_cents=sum(lead.success_fee_cents for lead in pending),
        pending_leads=[PendingFeeLead.model_validate(lead) for lead in pending],
    )
