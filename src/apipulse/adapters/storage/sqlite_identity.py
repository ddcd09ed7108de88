"""SQLite identity store implementing IdentityLookupPort."""

import asyncio
import sqlite3

import aiosqlite

from apipulse.core.errors import LookupFailed
from apipulse.core.models import IdentityRecord

_API_KEYS_SCHEMA = """
CREATE TABLE IF NOT EXISTS api_keys (
    api_key TEXT PRIMARY KEY,
    email TEXT,
    name TEXT,
    organization TEXT,
    is_academic INTEGER NOT NULL DEFAULT 0,
    max_per_second INTEGER
);
"""

_SELECT_IDENTITY = """
SELECT name, email, organization FROM api_keys WHERE api_key = ?
"""

_INSERT_IDENTITY = """
INSERT OR REPLACE INTO api_keys (api_key, name, email, organization)
VALUES (?, ?, ?, ?)
"""


class SQLiteIdentityStore:
    """Point lookups against the ``api_keys`` table.

    One aiosqlite connection is opened on first use and shared by every
    lookup until :meth:`close`; aiosqlite runs its statements one at a time
    on the connection's worker thread. For ``:memory:`` databases this is
    also what keeps the data alive between calls.

    The table is read-only for the dashboard; :meth:`upsert` exists for
    seeding local databases and tests.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._connect_lock: asyncio.Lock | None = None

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is not None:
            return self._conn
        # Created lazily so the lock binds to the running event loop.
        if self._connect_lock is None:
            self._connect_lock = asyncio.Lock()
        async with self._connect_lock:
            if self._conn is None:
                conn = await aiosqlite.connect(self._db_path)
                try:
                    await conn.executescript(_API_KEYS_SCHEMA)
                except sqlite3.Error:
                    await conn.close()
                    raise
                self._conn = conn
        return self._conn

    async def lookup(self, api_key: str) -> IdentityRecord | None:
        """Return the owner of ``api_key``, or None when none is on file.

        Raises:
            LookupFailed: If the database could not be opened or queried.
        """
        try:
            db = await self._connection()
            async with db.execute(_SELECT_IDENTITY, (api_key,)) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise LookupFailed(f"Identity lookup failed: {e}") from e
        if row is None:
            return None
        return IdentityRecord(name=row[0], email=row[1], organization=row[2])

    async def upsert(
        self,
        api_key: str,
        name: str | None,
        email: str | None,
        organization: str | None,
    ) -> None:
        db = await self._connection()
        await db.execute(_INSERT_IDENTITY, (api_key, name, email, organization))
        await db.commit()

    async def close(self) -> None:
        """Close the shared connection; the next lookup reconnects."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
