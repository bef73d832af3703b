"""Dashboard module: KPI queries and routes."""

from concierge_api.dashboard.routes import router as dashboard_router

__all__ = ["dashboard_router"]
