"""Core domain models for sampled API usage analytics."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

ANONYMOUS_PREFIX = "anon_"


@dataclass(frozen=True)
class Authenticated:
    """Traffic carrying an API key.

    Attributes:
        api_key: The caller's API key as recorded by the proxy.
    """

    api_key: str

    @property
    def key(self) -> str:
        return self.api_key


@dataclass(frozen=True)
class Anonymous:
    """Unauthenticated traffic grouped into an opaque upstream bucket.

    Attributes:
        bucket_id: Integer bucket assigned by the proxy.
    """

    bucket_id: int

    @property
    def key(self) -> str:
        return f"{ANONYMOUS_PREFIX}{self.bucket_id}"

    @property
    def bucket(self) -> str:
        """Public bucket label, e.g. ``anon_42``."""
        return self.key


Identity = Authenticated | Anonymous


@dataclass(frozen=True)
class RawTelemetryRow:
    """One grouped row returned by the telemetry store.

    Attributes:
        identity: Who the traffic belongs to, resolved when the row is parsed.
        status_code: HTTP status code of the grouped requests.
        sample_weight: Number of real requests this row stands in for.
        response_time_weighted: Sum of response_time_ms * sample weight.
        success_weight: Sum of sample weight over 2xx responses.
        ip_sample: One client IP seen for the row, if the query selected it.
    """

    identity: Identity
    status_code: int
    sample_weight: float
    response_time_weighted: float
    success_weight: float
    ip_sample: str | None = None


@dataclass(frozen=True)
class AggregatedEntity:
    """All rows of one identity merged across status codes.

    Values are kept unrounded; rounding happens once when encoding.

    Attributes:
        identity: The merged identity.
        total_requests: Sum of sample weight.
        successful_requests: Sum of success weight.
        total_response_time_weighted: Sum of weighted response time.
        period_seconds: Length of the queried range, used for rates.
    """

    identity: Identity
    total_requests: float
    successful_requests: float
    total_response_time_weighted: float
    period_seconds: float

    @property
    def key(self) -> str:
        return self.identity.key

    @property
    def avg_response_time_ms(self) -> float:
        return self.total_response_time_weighted / self.total_requests

    @property
    def success_rate_percent(self) -> float:
        rate = 100.0 * self.successful_requests / self.total_requests
        return min(100.0, max(0.0, rate))

    @property
    def requests_per_second(self) -> float:
        return self.total_requests / self.period_seconds


@dataclass(frozen=True)
class AnonymousBucket(AggregatedEntity):
    """An aggregated anonymous bucket.

    Attributes:
        bucket_id: Bucket number extracted from the composite key.
        ip_sample: A non-authoritative IP seen in one of the bucket's rows.
    """

    bucket_id: int = 0
    ip_sample: str | None = None

    @property
    def bucket(self) -> str:
        return Anonymous(self.bucket_id).bucket


@dataclass(frozen=True)
class TimelineSample:
    """A weighted observation placed on the timeline.

    Attributes:
        timestamp: Timezone-aware time of the observation (or of a
            finer-grained window it was pre-aggregated into).
        sample_weight: Number of real requests represented.
        response_time_weighted: Sum of response_time_ms * sample weight.
        status_code: Status code facet, when the query grouped by it.
    """

    timestamp: datetime
    sample_weight: float
    response_time_weighted: float
    status_code: int | None = None


@dataclass(frozen=True)
class TimeBucket:
    """One non-empty window on a timeline.

    Attributes:
        window_start: Inclusive, granularity-aligned start of the window.
        request_count: Sum of sample weight inside the window.
        response_time_weighted: Sum of weighted response time in the window.
        status_code: Status code facet, or None for an unfaceted timeline.
    """

    window_start: datetime
    request_count: float
    response_time_weighted: float
    status_code: int | None = None

    @property
    def avg_response_time_ms(self) -> float:
        return self.response_time_weighted / self.request_count


@dataclass(frozen=True)
class IdentityRecord:
    """Owner details for an API key, as held by the lookup store."""

    name: str | None
    email: str | None
    organization: str | None


@dataclass(frozen=True)
class EnrichedEntity:
    """An aggregated entity joined with its identity record.

    Attributes:
        entity: The ranked aggregate.
        identity: The record on file, or None when nothing is on file or
            the lookup failed.
    """

    entity: AggregatedEntity
    identity: IdentityRecord | None = None


@dataclass(frozen=True)
class StatusBreakdown:
    """Share of traffic for one status code."""

    status_code: int
    request_count: float
    percentage: float


class Period(str, Enum):
    """Lookback window accepted by the API."""

    HOUR = "hour"
    DAY = "day"


_PERIOD_WINDOWS = {
    Period.HOUR: (timedelta(hours=1), timedelta(minutes=5)),
    Period.DAY: (timedelta(days=1), timedelta(hours=1)),
}


@dataclass(frozen=True)
class QueryWindow:
    """Time range and timeline granularity for one period.

    The store's time predicate and every per-second rate are both derived
    from ``lookback``.
    """

    period: Period
    lookback: timedelta
    granularity: timedelta

    @classmethod
    def for_period(cls, period: Period) -> "QueryWindow":
        lookback, granularity = _PERIOD_WINDOWS[period]
        return cls(period=period, lookback=lookback, granularity=granularity)

    @property
    def duration_seconds(self) -> float:
        return self.lookback.total_seconds()
