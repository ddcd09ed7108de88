"""Integration tests for the Analytics Engine SQL API adapter."""

import json

import httpx
import pytest

from apipulse.adapters.storage.analytics_engine import AnalyticsEngineStore
from apipulse.core.errors import StoreQueryFailed


def _store(handler) -> AnalyticsEngineStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AnalyticsEngineStore(
        account_id="acct-1",
        api_token="secret",
        base_url="https://analytics.test/client/v4/",
        client=client,
    )


class TestAnalyticsEngineStore:
    """Tests for AnalyticsEngineStore.execute()."""

    @pytest.mark.tier(1)
    @pytest.mark.storage
    async def test_posts_sql_with_bearer_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"data": [{"apiKey": "k1"}]})

        store = _store(handler)
        rows = await store.execute("SELECT 1")

        assert rows == [{"apiKey": "k1"}]
        [request] = seen
        assert request.method == "POST"
        assert str(request.url) == (
            "https://analytics.test/client/v4/accounts/acct-1/analytics_engine/sql"
        )
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.content == b"SELECT 1"

    @pytest.mark.tier(1)
    @pytest.mark.storage
    async def test_string_numbers_are_passed_through(self) -> None:
        body = {"data": [{"requestCount": "12", "statusCode": "200"}], "rows": 1}
        store = _store(lambda request: httpx.Response(200, json=body))

        assert await store.execute("SELECT 1") == body["data"]

    @pytest.mark.tier(1)
    @pytest.mark.storage
    async def test_missing_data_is_empty(self) -> None:
        store = _store(lambda request: httpx.Response(200, json={"meta": []}))

        assert await store.execute("SELECT 1") == []

    @pytest.mark.tier(1)
    @pytest.mark.storage
    async def test_non_success_status_raises_with_status(self) -> None:
        store = _store(lambda request: httpx.Response(403, text="forbidden"))

        with pytest.raises(StoreQueryFailed) as excinfo:
            await store.execute("SELECT 1")

        assert excinfo.value.status == 403
        assert str(excinfo.value) == "403 Analytics Engine query failed: forbidden"

    @pytest.mark.tier(1)
    @pytest.mark.storage
    async def test_transport_error_raises_without_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        store = _store(handler)

        with pytest.raises(StoreQueryFailed, match="request failed") as excinfo:
            await store.execute("SELECT 1")

        assert excinfo.value.status is None

    @pytest.mark.tier(1)
    @pytest.mark.storage
    @pytest.mark.parametrize(
        "content",
        [b"<html>oops</html>", json.dumps([1, 2]).encode(), b'{"data": [1, 2]}'],
    )
    async def test_malformed_bodies_raise(self, content: bytes) -> None:
        store = _store(lambda request: httpx.Response(200, content=content))

        with pytest.raises(StoreQueryFailed):
            await store.execute("SELECT 1")

    @pytest.mark.tier(1)
    @pytest.mark.storage
    async def test_close_leaves_injected_client_open(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        store = AnalyticsEngineStore("acct", "token", client=client)

        await store.close()

        assert not client.is_closed
        await client.aclose()

    @pytest.mark.tier(1)
    @pytest.mark.storage
    async def test_close_closes_owned_client(self) -> None:
        store = AnalyticsEngineStore("acct", "token")

        await store.close()

        assert store._client.is_closed
