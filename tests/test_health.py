"""Tests for health check endpoints."""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
from httpx import AsyncClient

from shopsearch.core.config import settings
from shopsearch.core.deps import get_db
from shopsearch.main import app


class _StubSession:
    """Stands in for an AsyncSession in the health checks."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.statements: list[Any] = []

    async def execute(self, statement: Any) -> None:
        self.statements.append(statement)
        if self.error is not None:
            raise self.error


def _override_db(session: _StubSession) -> None:
    async def _get_db() -> AsyncGenerator[_StubSession, None]:
        yield session

    app.dependency_overrides[get_db] = _get_db


@pytest.fixture(autouse=True)
def _clear_overrides() -> Any:
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def analytics_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "search_analytics_enabled", False)


@pytest.mark.asyncio
async def test_root(plain_client: AsyncClient) -> None:
    """Test root endpoint returns API info."""
    response = await plain_client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == settings.project_name
    assert "version" in data
    assert "docs" in data
    assert data["search"] == "/api/v1/search"


@pytest.mark.asyncio
async def test_docs_redirect(plain_client: AsyncClient) -> None:
    response = await plain_client.get("/docs")
    assert response.status_code == 307
    assert response.headers["location"] == "/api/v1/docs"


@pytest.mark.asyncio
async def test_liveness(plain_client: AsyncClient) -> None:
    """Test liveness probe endpoint."""
    response = await plain_client.get("/api/v1/health/live")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "alive"


@pytest.mark.asyncio
async def test_readiness(plain_client: AsyncClient) -> None:
    session = _StubSession()
    _override_db(session)

    response = await plain_client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ready"}
    assert len(session.statements) == 1


@pytest.mark.asyncio
async def test_health_healthy(plain_client: AsyncClient, analytics_disabled: None) -> None:
    _override_db(_StubSession())

    response = await plain_client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"] == {"database": "healthy", "broker": "disabled"}


@pytest.mark.asyncio
async def test_health_database_down(plain_client: AsyncClient, analytics_disabled: None) -> None:
    _override_db(_StubSession(ConnectionRefusedError("connection refused")))

    response = await plain_client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["checks"]["database"].startswith("unhealthy:")
