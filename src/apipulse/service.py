"""Analytics operations behind the dashboard API.

Each operation builds its query, runs it against the telemetry store, and
passes the coerced rows through aggregation, ranking and (for authenticated
users) identity enrichment. Operations share no mutable state, so they can
run concurrently for the same request.
"""

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from apipulse.core import coercion, queries
from apipulse.core.aggregation import (
    aggregate_buckets,
    aggregate_rows,
    status_breakdown,
)
from apipulse.core.bucket_keys import parse_bucket_label
from apipulse.core.enrichment import IdentityCache, enrich
from apipulse.core.errors import StoreQueryFailed, ValidationFailed
from apipulse.core.logs import get_logger
from apipulse.core.models import (
    AnonymousBucket,
    EnrichedEntity,
    Period,
    QueryWindow,
    StatusBreakdown,
    TimeBucket,
)
from apipulse.core.ports import IdentityLookupPort, TelemetryStorePort
from apipulse.core.ranking import DEFAULT_LIMIT, rank
from apipulse.core.sql import is_identifier
from apipulse.core.timeline import bucketize

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Overview:
    """The three datasets the dashboard loads on every refresh."""

    top_users: list[EnrichedEntity]
    top_anonymous: list[AnonymousBucket]
    timeline: list[TimeBucket]


class AnalyticsService:
    """Runs the fixed set of analytics queries.

    Args:
        store: Telemetry store to query.
        identities: Identity store used to enrich top users.
        dataset: Analytics Engine dataset name.
        request_timeout: Seconds allowed for all store work of one call.
        identity_cache: Optional cache of identity lookups.
    """

    def __init__(
        self,
        store: TelemetryStorePort,
        identities: IdentityLookupPort,
        dataset: str,
        request_timeout: float = 30.0,
        identity_cache: IdentityCache | None = None,
    ) -> None:
        if not is_identifier(dataset):
            raise ValueError(f"dataset must be a plain identifier, got {dataset!r}")
        self.store = store
        self.identities = identities
        self.dataset = dataset
        self.request_timeout = request_timeout
        self.identity_cache = identity_cache

    async def _bounded(self, operation: Awaitable[T]) -> T:
        """Await ``operation`` under the request timeout.

        On expiry the pending store work is cancelled, partial results are
        dropped, and StoreQueryFailed is raised.
        """
        try:
            async with asyncio.timeout(self.request_timeout):
                return await operation
        except TimeoutError as e:
            raise StoreQueryFailed(
                f"Analytics query timed out after {self.request_timeout}s",
                status=504,
            ) from e

    async def _top_users(self, period: Period, limit: int) -> list[EnrichedEntity]:
        window = QueryWindow.for_period(period)
        records = await self.store.execute(
            queries.top_users_query(self.dataset, window)
        )
        rows = coercion.user_rows(records)
        entities = aggregate_rows(rows, window.duration_seconds)
        ranked = rank(entities, limit)
        logger.debug(
            "Aggregated %d rows into %d users, returning %d",
            len(rows),
            len(entities),
            len(ranked),
        )
        return await enrich(ranked, self.identities, self.identity_cache)

    async def _top_anonymous(self, period: Period, limit: int) -> list[AnonymousBucket]:
        window = QueryWindow.for_period(period)
        records = await self.store.execute(
            queries.top_anonymous_query(self.dataset, window)
        )
        buckets = aggregate_buckets(
            coercion.anonymous_rows(records), window.duration_seconds
        )
        return rank(buckets, limit)

    async def _timeline(self, period: Period, by_status: bool) -> list[TimeBucket]:
        window = QueryWindow.for_period(period)
        records = await self.store.execute(
            queries.timeline_query(self.dataset, window, by_status=by_status)
        )
        samples = coercion.timeline_samples(records, by_status=by_status)
        return bucketize(samples, window.granularity, by_status=by_status)

    async def top_users(
        self, period: Period = Period.HOUR, limit: int = DEFAULT_LIMIT
    ) -> list[EnrichedEntity]:
        """Authenticated API keys ranked by request weight, with owners.

        Only the truncated top ``limit`` entries are enriched.
        """
        _check_limit(limit)
        return await self._bounded(self._top_users(period, limit))

    async def top_anonymous(
        self, period: Period = Period.HOUR, limit: int = DEFAULT_LIMIT
    ) -> list[AnonymousBucket]:
        """Anonymous buckets ranked by request weight."""
        _check_limit(limit)
        return await self._bounded(self._top_anonymous(period, limit))

    async def usage_timeline(
        self, period: Period = Period.HOUR, by_status: bool = False
    ) -> list[TimeBucket]:
        """Request weight and average latency per window, oldest first."""
        return await self._bounded(self._timeline(period, by_status))

    async def user_status_breakdown(
        self, api_key: str, period: Period = Period.HOUR
    ) -> list[StatusBreakdown]:
        """Share of requests per status code for one API key."""
        if not api_key:
            raise ValidationFailed("apiKey parameter is required")
        window = QueryWindow.for_period(period)
        query = queries.user_status_query(self.dataset, window, api_key)
        records = await self._bounded(self.store.execute(query))
        return status_breakdown(coercion.status_counts(records))

    async def anonymous_status_breakdown(
        self, bucket: str, period: Period = Period.HOUR
    ) -> list[StatusBreakdown]:
        """Share of requests per status code for one ``anon_<id>`` bucket.

        Raises:
            InvalidBucketFormat: If ``bucket`` is not an ``anon_<id>`` label.
        """
        if not bucket:
            raise ValidationFailed("bucket parameter is required")
        bucket_id = parse_bucket_label(bucket)
        window = QueryWindow.for_period(period)
        query = queries.bucket_status_query(self.dataset, window, bucket_id)
        records = await self._bounded(self.store.execute(query))
        return status_breakdown(coercion.status_counts(records))

    async def overview(
        self, period: Period = Period.HOUR, limit: int = DEFAULT_LIMIT
    ) -> Overview:
        """Fetch top users, top anonymous buckets and the timeline concurrently.

        If any part fails, the others are cancelled and the failure
        propagates; no partial overview is returned.
        """
        _check_limit(limit)

        async def gather_all() -> Overview:
            async with asyncio.TaskGroup() as group:
                users = group.create_task(self._top_users(period, limit))
                anonymous = group.create_task(self._top_anonymous(period, limit))
                timeline = group.create_task(self._timeline(period, False))
            return Overview(
                top_users=users.result(),
                top_anonymous=anonymous.result(),
                timeline=timeline.result(),
            )

        try:
            return await self._bounded(gather_all())
        except ExceptionGroup as group:
            # Surface the first failure as-is so callers map it like any other.
            raise group.exceptions[0] from group

    async def close(self) -> None:
        await self.store.close()
        await self.identities.close()


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise ValidationFailed(f"limit must be a positive integer, got {limit}")
