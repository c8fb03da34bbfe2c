"""Shared fixtures: temporary SQLite database, fake AI client, fake notifier, HTTP client."""

import os

# Set environment variables BEFORE any app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GROQ_API_KEY", "")
os.environ.setdefault("JWT_SECRET", "test-secret-key-with-at-least-32-bytes")
os.environ.setdefault("AUTO_CHECK_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from database.models import Base, Project, Service, User, UserProjectAssignment
from services.auth_service import create_access_token
from services.groq_service import LogAnalysis, QueryOptimization


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_user(db):
    async def _make(email="user@example.com", role="user", is_active=True):
        user = User(email=email, role=role, is_active=is_active)
        db.add(user)
        await db.commit()
        return user
    return _make


@pytest.fixture
def make_project(db):
    async def _make(owner, name="Checkout API", description=""):
        project = Project(name=name, description=description, owner_id=owner.id)
        db.add(project)
        await db.commit()
        return project
    return _make


@pytest.fixture
def assign(db):
    async def _assign(user, project):
        assignment = UserProjectAssignment(user_id=user.id, project_id=project.id)
        db.add(assignment)
        await db.commit()
        return assignment
    return _assign


@pytest.fixture
def make_service(db):
    async def _make(project, name="payments", url="http://payments.internal/health", **kwargs):
        service = Service(name=name, url=url, project_id=project.id, **kwargs)
        db.add(service)
        await db.commit()
        return service
    return _make


@pytest.fixture
def analysis() -> LogAnalysis:
    return LogAnalysis(
        summary="Null reference in order handler",
        cause="Order object was not loaded before use",
        severity="critical",
        fix="Guard against missing orders before dereferencing",
        code_patch="if order is None: return",
        raw={"summary": "Null reference in order handler", "severity": "critical"},
    )


@pytest.fixture
def fake_groq(analysis):
    """Stand-in for GroqAIService with canned answers."""
    groq = MagicMock()
    groq.is_configured = True
    groq.analyze_log = AsyncMock(return_value=analysis)
    groq.optimize_query = AsyncMock(return_value=QueryOptimization(
        query_type="SQL",
        language="PostgreSQL",
        is_valid=True,
        optimized_query="SELECT id, total FROM orders WHERE customer_id = $1",
        optimization_reason="Avoids SELECT * and uses the customer index",
        raw={"queryType": "SQL"},
    ))
    return groq


@pytest.fixture
def notifier():
    return AsyncMock(return_value=True)


@pytest.fixture
def probe_handler():
    """Outbound HTTP handler; tests replace .handler to change behavior."""
    return SimpleNamespace(handler=lambda request: httpx.Response(200, json={"status": "ok"}))


@pytest.fixture
def transport(probe_handler):
    return httpx.MockTransport(lambda request: probe_handler.handler(request))


@pytest.fixture
async def client(session_maker, fake_groq, notifier, transport):
    """AsyncClient against the app with storage and outbound calls faked."""
    from api.deps import get_groq_service, get_http_transport, get_notifier
    from api.main import app
    from database.connection import get_db, get_session_maker

    async def _get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    app.dependency_overrides[get_groq_service] = lambda: fake_groq
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_http_transport] = lambda: transport

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def headers_for():
    return auth_headers
