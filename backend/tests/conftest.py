"""Pytest configuration for the OmniMind backend test suite."""

import os
import sys
import tempfile
from pathlib import Path

_DB_DIR = tempfile.mkdtemp(prefix="omnimind-test-")


def _ensure_test_env() -> None:
    """Seed required environment variables before any app module is imported."""
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/test.db"
    os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-jwt-signing-0123456789")
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")
    os.environ.setdefault("RATE_LIMIT_REQUESTS", "10000")
    os.environ.setdefault("BCRYPT_ROUNDS", "4")
    os.environ.setdefault("AUTO_CREATE_TABLES", "false")
    os.environ.setdefault("SMTP_HOST", "")


_ensure_test_env()

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event

import omnimind.models  # noqa: F401
from omnimind.core.database import Base, async_session, engine
from omnimind.main import app
from omnimind.services.ai_service import AIService


@event.listens_for(engine.sync_engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ---------------------------------------------------------------------------
# Fakes for the upstream collaborators
# ---------------------------------------------------------------------------

class FakeLLM:
    """Stands in for LLMGateway.

    Queued `responses` are returned (or raised, for exceptions) in order;
    once they run out, `default` is used.
    """

    def __init__(self):
        self.responses = []
        self.default = {}
        self.calls = []

    async def complete_json(self, system, prompt, *, temperature, max_tokens=2000, fast=False):
        self.calls.append(
            {"system": system, "prompt": prompt, "temperature": temperature, "fast": fast}
        )
        result = self.responses.pop(0) if self.responses else self.default
        if isinstance(result, Exception):
            raise result
        return result


class FakeEmailService:
    """Records messages instead of talking to an SMTP relay."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.sent = []

    async def send_welcome_email(self, user):
        self.sent.append(("welcome", user.email, {}))

    async def send_password_reset_email(self, user, reset_token):
        self.sent.append(("password_reset", user.email, {"token": reset_token}))

    async def send_task_reminder(self, user, task, project_name=None):
        self.sent.append(("task_reminder", user.email, {"task": task, "project": project_name}))

    async def send_daily_digest(self, user, data):
        self.sent.append(("daily_digest", user.email, data))

    async def send_custom_notification(self, email, subject, content):
        self.sent.append(("custom_notification", email, {"subject": subject, "content": content}))

    def of_kind(self, kind):
        return [m for m in self.sent if m[0] == kind]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
async def database():
    """Fresh schema for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest.fixture
async def db():
    async with async_session() as session:
        yield session


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
async def ai_service(fake_llm):
    service = AIService(fake_llm, async_session, max_retries=3, retry_delay=0, visibility_timeout=300)
    app.state.ai_service = service
    yield service
    await service.shutdown()


@pytest.fixture
def email_service():
    service = FakeEmailService()
    app.state.email_service = service
    return service


@pytest.fixture
async def client(ai_service, email_service):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def register_user(client, email="alice@example.com", name="Alice Smith", password="secret123"):
    response = await client.post(
        "/api/v1/auth/register",
        json={"email": email, "name": name, "password": password},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return body["user"], {"Authorization": f"Bearer {body['token']}"}


@pytest.fixture
async def auth(client):
    """(user, headers) for a freshly registered user."""
    return await register_user(client)


@pytest.fixture
async def other_auth(client):
    return await register_user(client, email="bob@example.com", name="Bob Jones")
