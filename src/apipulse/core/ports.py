"""Port interfaces for the telemetry and identity stores.

These protocols define the contracts that storage adapters must implement.
The core domain depends only on these interfaces, not concrete implementations.
"""

from typing import Any, Protocol, runtime_checkable

from apipulse.core.models import IdentityRecord


@runtime_checkable
class TelemetryStorePort(Protocol):
    """Port for the sampled time-series store.

    Examples: AnalyticsEngineStore, InMemoryTelemetryStore.
    """

    async def execute(self, query: str) -> list[dict[str, Any]]:
        """Run a query expression and return its rows.

        Args:
            query: A complete SQL query expression.

        Returns:
            Loosely-typed row records, in no guaranteed order. An empty list
            means no matching data.

        Raises:
            StoreQueryFailed: On transport errors, non-2xx responses or a
                malformed response body.
        """
        ...

    async def close(self) -> None:
        """Release pooled connections."""
        ...


@runtime_checkable
class IdentityLookupPort(Protocol):
    """Port for point lookups of API key owners.

    Examples: SQLiteIdentityStore, InMemoryIdentityStore.
    """

    async def lookup(self, api_key: str) -> IdentityRecord | None:
        """Return the record for ``api_key``, or None when none is on file.

        Raises:
            LookupFailed: If the store could not be queried.
        """
        ...

    async def close(self) -> None:
        """Release database connections."""
        ...
