"""Tests for dashboard rollups and routes."""

from datetime import datetime, timedelta, timezone

from concierge_api.dashboard.queries import (
    conversion_rate,
    get_daily_trend,
    get_fee_summary,
    get_funnel_metrics,
    get_lead_segments,
    get_recent_leads,
    window_start,
)
from concierge_api.db.models import Lead
from conftest import capture_lead, invitee_created, post_webhook

NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


def make_lead(
    created_at: datetime,
    company_size: str = "1-10",
    pain_point: str = "reporting",
    is_high_intent: bool = False,
    scheduled_call: bool = False,
    budget_confirmed: bool = False,
    lead_type: str = "business_upgrade",
    success_fee_cents: int = 0,
    fee_collected: bool = False,
) -> Lead:
    return Lead(
        name="Lead",
        company="Co",
        email="lead@co.io",
        pain_point=pain_point,
        company_size=company_size,
        budget_confirmed=budget_confirmed,
        lead_type=lead_type,
        is_high_intent=is_high_intent,
        scheduled_call=scheduled_call,
        success_fee_cents=success_fee_cents,
        fee_collected=fee_collected,
        scheduled_at=created_at if scheduled_call else None,
        created_at=created_at,
    )


# =============================================================================
# Helpers
# =============================================================================


class TestConversionRate:
    def test_no_high_intent_is_zero(self):
        assert conversion_rate(0, 0) == 0
        assert conversion_rate(3, 0) == 0

    def test_rounds_to_percent(self):
        assert conversion_rate(1, 3) == 33
        assert conversion_rate(2, 3) == 67
        assert conversion_rate(4, 4) == 100

    def test_window_start(self):
        assert window_start(30, NOW) == NOW - timedelta(days=30)


# =============================================================================
# Queries
# =============================================================================


class TestFunnelMetrics:
    async def test_empty(self, db):
        metrics = await get_funnel_metrics(db, window_start(30, NOW), 25000)

        assert metrics.total_volume == 0
        assert metrics.conversion_rate == 0
        assert metrics.pipeline_generated == 0
        assert metrics.by_size == {}

    async def test_window_and_totals(self, db):
        recent = NOW - timedelta(days=1)
        db.add_all(
            [
                make_lead(recent, "200+", is_high_intent=True, scheduled_call=True,
                          success_fee_cents=10000, fee_collected=True),
                make_lead(recent, "51-200", is_high_intent=True, scheduled_call=True,
                          success_fee_cents=10000),
                make_lead(recent, "51-200", is_high_intent=True),
                make_lead(recent, "1-10", budget_confirmed=True, is_high_intent=True,
                          lead_type="venture_studio"),
                make_lead(NOW - timedelta(days=90), "200+", is_high_intent=True),
            ]
        )
        await db.commit()

        metrics = await get_funnel_metrics(db, window_start(30, NOW), 25000)

        assert metrics.total_volume == 4
        assert metrics.high_intent_count == 4
        assert metrics.scheduled_count == 2
        assert metrics.budget_confirmed_count == 1
        assert metrics.conversion_rate == 50
        assert metrics.pipeline_generated == 50000
        assert metrics.total_success_fees == 20000
        assert metrics.collected_fees == 10000
        assert metrics.pending_fees == 10000
        assert metrics.by_size == {"200+": 1, "51-200": 2, "1-10": 1}
        assert metrics.by_type == {"business_upgrade": 3, "venture_studio": 1}

    async def test_serializes_camel_case(self, db):
        metrics = await get_funnel_metrics(db, window_start(30, NOW), 25000)

        data = metrics.model_dump(by_alias=True)

        assert "totalVolume" in data
        assert "conversionRate" in data
        assert "bySize" in data


class TestLeadSegments:
    async def test_top_pain_points(self, db):
        day = NOW - timedelta(days=2)
        db.add_all(
            [make_lead(day, "11-50", pain_point="billing") for _ in range(3)]
            + [make_lead(day, "11-50", pain_point="hiring") for _ in range(2)]
            + [make_lead(day, "11-50", pain_point="analytics")]
            + [make_lead(day, "11-50", pain_point="churn", budget_confirmed=True)]
            + [make_lead(day, "200+", pain_point="compliance", is_high_intent=True)]
        )
        await db.commit()

        segments = {
            s.company_size: s for s in await get_lead_segments(db, window_start(30, NOW))
        }

        small = segments["11-50"]
        assert small.total_leads == 7
        assert small.top_pain_points == ["billing", "hiring", "analytics"]
        assert small.budget_confirmed_percent == 14
        assert segments["200+"].high_intent_count == 1
        assert segments["200+"].top_pain_points == ["compliance"]


class TestRecentAndTrend:
    async def test_recent_newest_first_with_limit(self, db):
        for offset in range(5):
            db.add(make_lead(NOW - timedelta(hours=offset), pain_point=f"p{offset}"))
        await db.commit()

        recent = await get_recent_leads(db, limit=3)

        assert [lead.pain_point for lead in recent] == ["p0", "p1", "p2"]

    async def test_daily_trend(self, db):
        day_one = datetime(2026, 10, 14, 9, 0, tzinfo=timezone.utc)
        day_two = datetime(2026, 10, 15, 23, 30, tzinfo=timezone.utc)
        db.add_all(
            [
                make_lead(day_one, is_high_intent=True, scheduled_call=True),
                make_lead(day_one),
                make_lead(day_two, is_high_intent=True),
                make_lead(NOW - timedelta(days=60)),
            ]
        )
        await db.commit()

        trend = await get_daily_trend(db, days=30, now=NOW)

        assert [point.date for point in trend] == ["2026-10-14", "2026-10-15"]
        assert (trend[0].total, trend[0].high_intent, trend[0].scheduled) == (2, 1, 1)
        assert (trend[1].total, trend[1].high_intent, trend[1].scheduled) == (1, 1, 0)


class TestFeeSummaryQuery:
    async def test_counts_only_scheduled(self, db):
        day = NOW - timedelta(days=1)
        db.add_all(
            [
                make_lead(day, scheduled_call=True, success_fee_cents=10000),
                make_lead(day, scheduled_call=True),
                make_lead(day, success_fee_cents=0),
            ]
        )
        await db.commit()

        summary = await get_fee_summary(db)

        assert summary.total_booked == 2
        assert summary.with_fees == 1
        assert summary.pending_fee_cents == 10000
        assert len(summary.pending_leads) == 1


# =============================================================================
# Routes
# =============================================================================


class TestDashboardRoutes:
    def test_requires_authentication(self, client):
        for path in ("/dashboard/metrics", "/dashboard/segments", "/dashboard/recent", "/dashboard/trend"):
            assert client.get(path).status_code == 401

    def test_any_operator_may_read(self, client, operator_headers):
        response = client.get("/dashboard/metrics", headers=operator_headers)

        assert response.status_code == 200
        assert response.json()["totalVolume"] == 0

    def test_days_bounds(self, client, operator_headers):
        assert client.get("/dashboard/metrics?days=0", headers=operator_headers).status_code == 400
        assert client.get("/dashboard/trend?days=400", headers=operator_headers).status_code == 400
        assert client.get("/dashboard/segments?days=abc", headers=operator_headers).status_code == 400

    def test_recent_limit_bounds(self, client, operator_headers):
        assert client.get("/dashboard/recent?limit=0", headers=operator_headers).status_code == 400
        assert client.get("/dashboard/recent?limit=101", headers=operator_headers).status_code == 400

    def test_metrics_after_booking(self, client, chat_model, operator_headers):
        capture_lead(
            client,
            chat_model,
            primaryPainPoint="forecasting",
            intentType="business_upgrade",
            email="cfo@initech.com",
            companySize="200+",
        )
        post_webhook(client, invitee_created("cfo@initech.com"))

        metrics = client.get("/dashboard/metrics", headers=operator_headers).json()
        recent = client.get("/dashboard/recent", headers=operator_headers).json()
        trend = client.get("/dashboard/trend?days=7", headers=operator_headers).json()

        assert metrics["totalVolume"] == 1
        assert metrics["highIntentCount"] == 1
        assert metrics["scheduledCount"] == 1
        assert metrics["conversionRate"] == 100
        assert metrics["pipelineGenerated"] == 25000
        assert metrics["totalSuccessFees"] == 10000
        assert recent[0]["email"] == "cfo@initech.com"
        assert recent[0]["scheduledCall"] is True
        assert len(trend) == 1
        assert trend[0]["total"] == 1
        assert trend[0]["highIntent"] == 1
