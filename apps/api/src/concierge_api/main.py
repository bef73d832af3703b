"""FastAPI application for the Referral Concierge landing page.

Provides:
- Conversation log and the two-round chat protocol with lead capture tools
- Scheduling webhook reconciliation (idempotent, success-fee aware)
- Operator dashboard metrics and admin fee actions
- Transcription and avatar token collaborators

Flow:
1. POST /conversations - Start a conversation
2. POST /chat/{id} - Visitor message -> model -> tools -> lead capture
3. POST /webhooks/scheduling - Calendly booking closes the loop on a lead
4. GET /dashboard/metrics - Funnel KPIs for operators
5. POST /admin/leads/{id}/collect-fee - Settle a success fee
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from concierge.llm import (
    ChatModel,
    OpenAIChatModel,
    OpenAITranscriber,
    Transcriber,
)
from concierge.notify import NotificationFanout, Notifier
from concierge.tools import ToolDispatcher
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from concierge_api.avatar import router as avatar_router
from concierge_api.chat.routes import router as chat_router
from concierge_api.chat.service import ChatService, make_lead_writer
from concierge_api.config import Settings
from concierge_api.conversations.routes import router as conversations_router
from concierge_api.dashboard import dashboard_router
from concierge_api.db.database import Database
from concierge_api.leads.admin import router as admin_router
from concierge_api.leads.routes import router as leads_router
from concierge_api.webhooks.reconcile import SchedulingReconciler
from concierge_api.webhooks.routes import router as webhooks_router

logger = logging.getLogger("concierge-api")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    environment: str


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# =============================================================================
# App Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup (when enabled); flush notifications on shutdown."""
    settings: Settings = app.state.settings
    database: Database = app.state.database

    if settings.database_auto_create:
        await database.create_all()
        logger.info("Database tables ensured")

    yield

    await app.state.notifier.aclose()
    await database.dispose()


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are client errors: 400, never business logic."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def create_app(
    settings: Settings | None = None,
    *,
    chat_model: ChatModel | None = None,
    transcriber: Transcriber | None = None,
    notifier: Notifier | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the application.

    Collaborators default to the real OpenAI / Slack / Resend clients built
    from settings; tests pass fakes.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    database = Database(settings.database_url)
    notifier = notifier or NotificationFanout.from_config(settings.notify)
    chat_model = chat_model or OpenAIChatModel(settings.openai)
    transcriber = transcriber or OpenAITranscriber(settings.openai)

    dispatcher = ToolDispatcher(
        write_lead=make_lead_writer(database.session_factory),
        links=settings.scheduling_links,
        notifier=notifier,
    )

    app = FastAPI(
        title="Referral Concierge API",
        description="Conversational lead qualification with scheduling reconciliation",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.notifier = notifier
    app.state.transcriber = transcriber
    app.state.http_transport = http_transport
    app.state.chat_service = ChatService(
        database.session_factory, chat_model, dispatcher
    )
    app.state.reconciler = SchedulingReconciler(
        notifier=notifier,
        fee_cents=settings.success_fee_cents,
        fee_policy=settings.success_fee_policy,
    )

    # CORS middleware for the landing page
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.include_router(conversations_router)
    app.include_router(chat_router)
    app.include_router(leads_router)
    app.include_router(webhooks_router)
    app.include_router(dashboard_router)
    app.include_router(admin_router)
    app.include_router(avatar_router)

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            timestamp=datetime.now(timezone.utc).isoformat(),
            environment=settings.env,
        )

    logger.info(f"Referral Concierge API configured (env={settings.env})")
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
