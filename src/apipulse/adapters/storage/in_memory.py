"""In-memory adapters for the telemetry and identity ports.

Suitable for tests, demos and local development without network access.
"""

from typing import Any

from apipulse.core.errors import LookupFailed, StoreQueryFailed
from apipulse.core.models import IdentityRecord


class InMemoryTelemetryStore:
    """Returns canned rows for queries containing a registered marker.

    Markers are matched in registration order against the query text; the
    first match wins and unmatched queries return no rows. Every executed
    query is kept in ``queries``.
    """

    def __init__(self) -> None:
        self._responses: list[tuple[str, list[dict[str, Any]] | Exception]] = []
        self.queries: list[str] = []

    def add_rows(self, marker: str, rows: list[dict[str, Any]]) -> None:
        """Answer queries containing ``marker`` with ``rows``."""
        self._responses.append((marker, rows))

    def add_failure(self, marker: str, error: Exception | None = None) -> None:
        """Fail queries containing ``marker`` (default: StoreQueryFailed 500)."""
        self._responses.append(
            (marker, error or StoreQueryFailed("store unavailable", status=500))
        )

    async def execute(self, query: str) -> list[dict[str, Any]]:
        self.queries.append(query)
        for marker, response in self._responses:
            if marker in query:
                if isinstance(response, Exception):
                    raise response
                return [dict(row) for row in response]
        return []

    async def close(self) -> None:
        pass


class InMemoryIdentityStore:
    """Dict-backed identity store.

    Keys listed in ``failing_keys`` raise LookupFailed, to exercise the
    enrichment fallback.
    """

    def __init__(
        self,
        records: dict[str, IdentityRecord] | None = None,
        failing_keys: set[str] | None = None,
    ) -> None:
        self._records = dict(records or {})
        self._failing_keys = set(failing_keys or ())
        self.lookups: list[str] = []

    def add(self, api_key: str, record: IdentityRecord) -> None:
        self._records[api_key] = record

    async def lookup(self, api_key: str) -> IdentityRecord | None:
        self.lookups.append(api_key)
        if api_key in self._failing_keys:
            raise LookupFailed(f"Identity lookup failed for {api_key!r}")
        return self._records.get(api_key)

    async def close(self) -> None:
        pass
