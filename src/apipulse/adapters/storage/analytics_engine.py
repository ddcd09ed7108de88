"""Analytics Engine SQL API adapter implementing TelemetryStorePort."""

import json
from typing import Any

import httpx

from apipulse.core.errors import StoreQueryFailed
from apipulse.core.logs import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"


class AnalyticsEngineStore:
    """Executes SQL against the Analytics Engine SQL API over HTTP.

    Uses one pooled ``httpx.AsyncClient``. Pass ``client`` to share a pool
    or to inject a mock transport; a client passed in is not closed by
    :meth:`close`.

    Args:
        account_id: Account that owns the dataset.
        api_token: Bearer token with Analytics Engine read access.
        base_url: API base URL.
        timeout: Per-request timeout in seconds.
        client: Optional preconfigured client.
    """

    def __init__(
        self,
        account_id: str,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{base_url.rstrip('/')}/accounts/{account_id}/analytics_engine/sql"
        self._headers = {"Authorization": f"Bearer {api_token}"}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def url(self) -> str:
        return self._url

    async def execute(self, query: str) -> list[dict[str, Any]]:
        """Run ``query`` and return the ``data`` rows of the response.

        Raises:
            StoreQueryFailed: On transport errors, non-2xx responses, or a
                body that is not a JSON object with a ``data`` list.
        """
        logger.debug("Executing query: %s", " ".join(query.split()))
        try:
            response = await self._client.post(
                self._url, headers=self._headers, content=query.encode()
            )
        except httpx.HTTPError as e:
            raise StoreQueryFailed(f"Analytics Engine request failed: {e}") from e

        if not response.is_success:
            raise StoreQueryFailed(
                f"Analytics Engine query failed: {response.text}",
                status=response.status_code,
            )

        try:
            body = response.json()
        except json.JSONDecodeError as e:
            raise StoreQueryFailed(
                "Analytics Engine returned a non-JSON body",
                status=response.status_code,
            ) from e
        if not isinstance(body, dict):
            raise StoreQueryFailed(
                "Analytics Engine returned an unexpected body",
                status=response.status_code,
            )

        rows = body.get("data") or []
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise StoreQueryFailed(
                "Analytics Engine returned malformed rows",
                status=response.status_code,
            )
        logger.debug("Rows returned: %d", len(rows))
        return rows

    async def close(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._owns_client:
            await self._client.aclose()
