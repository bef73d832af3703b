"""Shared fixtures for the API tests.

Every test gets its own SQLite file, a scripted chat model, and a notifier
that records instead of delivering.
"""

import asyncio
import hashlib
import hmac
import json
import sqlite3
import time
from collections.abc import AsyncGenerator
from typing import Any

import pytest
from concierge.llm import Completion, OpenAIConfig, ToolCall
from concierge.notify import NotifyConfig
from concierge.qualification import SchedulingLinks
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from concierge_api.auth.jwt import create_access_token
from concierge_api.config import Settings
from concierge_api.db.database import Database
from concierge_api.main import create_app

SIGNING_KEY = "calendly-test-signing-key"
JWT_SECRET = "test-jwt-secret-key-32-bytes-long!"
ADMIN_ID = "user_admin"
OPERATOR_ID = "user_operator"

LINKS = SchedulingLinks(
    business_upgrade="https://calendly.com/test/business-upgrade",
    venture_studio="https://calendly.com/test/venture-studio",
)


# =============================================================================
# Fakes
# =============================================================================


class ScriptedChatModel:
    """Chat model that replays queued completions and records every call."""

    def __init__(self):
        self.script: list[Completion | Exception] = []
        self.calls: list[dict[str, Any]] = []

    def queue(self, *completions: Completion | Exception) -> None:
        self.script.extend(completions)

    def queue_tool_call(
        self, name: str, arguments: dict[str, Any] | str, follow_up: str = "Great, thanks!"
    ) -> None:
        raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
        self.queue(
            Completion(tool_calls=[ToolCall(id=f"call_{len(self.script)}", name=name, arguments=raw)]),
            Completion(text=follow_up),
        )

    async def complete(self, messages, tools=None) -> Completion:
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools})
        if not self.script:
            return Completion(text="Tell me more about your business.")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeTranscriber:
    def __init__(self, text: str = "hello there"):
        self.text = text
        self.calls: list[tuple[bytes, str]] = []
        self.error: Exception | None = None

    async def transcribe(self, audio: bytes, audio_format: str) -> str:
        self.calls.append((audio, audio_format))
        if self.error:
            raise self.error
        return self.text


class RecordingNotifier:
    def __init__(self):
        self.captured: list[tuple[Any, str | None]] = []
        self.booked: list[tuple[Any, Any]] = []
        self.closed = False

    def lead_captured(self, lead, booking_link):
        self.captured.append((lead, booking_link))

    def meeting_booked(self, lead, scheduled_at):
        self.booked.append((lead, scheduled_at))

    async def aclose(self):
        self.closed = True


# =============================================================================
# Helpers
# =============================================================================


def make_settings(database_url: str, **overrides) -> Settings:
    values: dict[str, Any] = {
        "env": "test",
        "log_level": "INFO",
        "database_url": database_url,
        "database_auto_create": True,
        "calendly_signing_key": SIGNING_KEY,
        "webhook_require_signature": True,
        "jwt_secret_key": JWT_SECRET,
        "admin_user_ids": (ADMIN_ID,),
        "openai": OpenAIConfig(api_key="sk-test"),
        "notify": NotifyConfig(),
        "scheduling_links": LINKS,
        "heygen_api_key": "heygen-test-key",
    }
    values.update(overrides)
    return Settings(**values)


def auth_headers(operator_id: str, secret: str = JWT_SECRET) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(operator_id, secret)}"}


def sign(body: bytes, key: str = SIGNING_KEY, timestamp: int | None = None) -> str:
    """Build a Calendly-Webhook-Signature header value."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(
        key.encode(), f"{timestamp}.".encode() + body, hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={digest}"


def invitee_created(
    email: str,
    invitee_uri: str = "https://api.calendly.com/scheduled_events/EV1/invitees/INV1",
    start_time: str = "2026-10-20T15:00:00.000000Z",
) -> dict[str, Any]:
    return {
        "event": "invitee.created",
        "payload": {
            "email": email,
            "uri": invitee_uri,
            "event": "https://api.calendly.com/scheduled_events/EV1",
            "scheduled_event": {"start_time": start_time},
        },
    }


def post_webhook(client: TestClient, event: dict[str, Any], key: str | None = SIGNING_KEY):
    body = json.dumps(event).encode()
    headers = {"Content-Type": "application/json"}
    if key is not None:
        headers["Calendly-Webhook-Signature"] = sign(body, key)
    return client.post("/webhooks/scheduling", content=body, headers=headers)


def capture_lead(
    client: TestClient, chat_model: ScriptedChatModel, **arguments
) -> dict[str, Any]:
    """Run a chat turn in which the model calls qualify_and_schedule.

    Returns the function-call entry from the chat response.
    """
    conversation = client.post("/conversations", json={}).json()
    chat_model.queue_tool_call("qualify_and_schedule", arguments)
    response = client.post(
        f"/chat/{conversation['id']}", json={"content": "I'd like to book a call"}
    )
    assert response.status_code == 200, response.text
    return response.json()["functionCalls"][0]


def lead_by_email(client: TestClient, email: str) -> dict[str, Any]:
    leads = [lead for lead in client.get("/leads").json() if lead["email"] == email]
    assert leads, f"no lead for {email}"
    return leads[0]


def sqlite_path(database_url: str) -> str:
    return database_url.removeprefix("sqlite+aiosqlite:///")


async def count_when_body_sent(
    app,
    database_url: str,
    count_sql: str,
    method: str,
    path: str,
    headers: dict[str, str] | None = None,
    body: dict[str, Any] | None = None,
) -> tuple[int, int]:
    """Drive one request through the ASGI app.

    Runs ``count_sql`` on a separate sqlite3 connection at the moment the
    response body is sent, and returns ``(status_code, count)``.
    """
    raw_headers = [(b"content-type", b"application/json")]
    raw_headers += [
        (key.lower().encode(), value.encode()) for key, value in (headers or {}).items()
    ]
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": raw_headers,
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }
    payload = json.dumps(body).encode() if body is not None else b""
    request_sent = False
    finished = asyncio.Event()
    seen: dict[str, int] = {}

    async def receive():
        nonlocal request_sent
        if not request_sent:
            request_sent = True
            return {"type": "http.request", "body": payload, "more_body": False}
        await finished.wait()
        return {"type": "http.disconnect"}

    async def send(message):
        if message["type"] == "http.response.start":
            seen["status"] = message["status"]
        elif message["type"] == "http.response.body" and not message.get("more_body"):
            connection = sqlite3.connect(sqlite_path(database_url))
            try:
                seen["count"] = connection.execute(count_sql).fetchone()[0]
            finally:
                connection.close()
            finished.set()

    await app(scope, receive, send)
    return seen["status"], seen["count"]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'concierge.db'}"


@pytest.fixture
def settings(database_url) -> Settings:
    return make_settings(database_url)


@pytest.fixture
def chat_model() -> ScriptedChatModel:
    return ScriptedChatModel()


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def app(settings, chat_model, transcriber, notifier):
    return create_app(
        settings, chat_model=chat_model, transcriber=transcriber, notifier=notifier
    )


@pytest.fixture
def client(app):
    """Test client with the lifespan running (tables created)."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_headers(ADMIN_ID)


@pytest.fixture
def operator_headers() -> dict[str, str]:
    return auth_headers(OPERATOR_ID)


@pytest.fixture
async def db(database_url) -> AsyncGenerator[AsyncSession, None]:
    """A session on a fresh schema, for store and query tests."""
    database = Database(database_url)
    await database.create_all()
    async with database.session_factory() as session:
        yield session
    await database.dispose()
