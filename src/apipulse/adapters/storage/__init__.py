"""Storage adapters implementing core ports."""

from apipulse.adapters.storage.analytics_engine import AnalyticsEngineStore
from apipulse.adapters.storage.in_memory import (
    InMemoryIdentityStore,
    InMemoryTelemetryStore,
)
from apipulse.adapters.storage.sqlite_identity import SQLiteIdentityStore

__all__ = [
    "AnalyticsEngineStore",
    "InMemoryIdentityStore",
    "InMemoryTelemetryStore",
    "SQLiteIdentityStore",
]
