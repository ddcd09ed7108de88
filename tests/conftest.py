"""Shared test fixtures for all test modules."""

from pathlib import Path

import httpx
import pytest

from apipulse.adapters.frameworks.asgi import Receive, Scope, Send, create_asgi_app
from apipulse.adapters.logging_context import clear_log_context
from apipulse.adapters.storage.in_memory import (
    InMemoryIdentityStore,
    InMemoryTelemetryStore,
)
from apipulse.core.models import IdentityRecord
from apipulse.service import AnalyticsService
from tests.helpers import (
    TIMELINE,
    TOP_ANONYMOUS,
    TOP_USERS,
    anonymous_record,
    timeline_record,
    user_record,
)


@pytest.fixture(autouse=True)
def _reset_log_context():
    """Keep request context from leaking between tests."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def identity_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for identity store tests."""
    return str(tmp_path / "identities.db")


@pytest.fixture
def telemetry_store() -> InMemoryTelemetryStore:
    """Fixture providing an empty telemetry store."""
    return InMemoryTelemetryStore()


@pytest.fixture
def identity_store() -> InMemoryIdentityStore:
    """Fixture providing an identity store with two known owners."""
    return InMemoryIdentityStore(
        {
            "k1": IdentityRecord("Ada Lovelace", "ada@example.org", "Analytical"),
            "k2": IdentityRecord("Grace Hopper", "grace@example.org", "Navy"),
        }
    )


@pytest.fixture
def populated_store(telemetry_store: InMemoryTelemetryStore) -> InMemoryTelemetryStore:
    """Telemetry store answering every dashboard query with sample data."""
    telemetry_store.add_rows(
        TOP_USERS,
        [
            user_record("k1", 200, 10, 150),
            user_record("k1", 500, 2, 200),
            user_record("k2", 200, 3, 40),
            user_record("k3", 404, 1, 10),
        ],
    )
    telemetry_store.add_rows(
        TOP_ANONYMOUS,
        [
            anonymous_record(3, 200, 4, 50, ip="198.51.100.2"),
            anonymous_record(3, 429, 1, 5, ip="198.51.100.1"),
            anonymous_record(10, 200, 2, 20),
        ],
    )
    telemetry_store.add_rows(
        TIMELINE,
        [
            timeline_record("2024-05-01 10:00:00", 6, 100),
            timeline_record("2024-05-01 10:05:00", 4, 50),
        ],
    )
    return telemetry_store


@pytest.fixture
def service(
    populated_store: InMemoryTelemetryStore,
    identity_store: InMemoryIdentityStore,
) -> AnalyticsService:
    """Analytics service over the in-memory stores."""
    return AnalyticsService(populated_store, identity_store, dataset="api_usage")


# === ASGI Test Fixtures ===


@pytest.fixture
def basic_asgi_app():
    """Basic ASGI app fixture that returns 200 OK."""

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        await send({"type": "http.response.start", "status": 200, "headers": []})
        await send({"type": "http.response.body", "body": b"OK"})

    return app


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""

    def _scope(
        method: str = "GET",
        path: str = "/test",
        query_string: bytes = b"",
        headers: list[tuple[bytes, bytes]] | None = None,
    ) -> Scope:
        return {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query_string,
            "headers": headers or [],
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""

    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        responses.append(message)

    return send, responses


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            async with asgi_test_client(app) as client:
                response = await client.get("/api/top-users")
    """

    def _get_client(app):
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client


@pytest.fixture
async def api_client(service: AnalyticsService, asgi_test_client):
    """Client for the dashboard ASGI app over the populated stores."""
    app = create_asgi_app(service)
    async with asgi_test_client(app) as client:
        yield client
