"""Sample-weighted aggregation of grouped telemetry rows.

The store groups rows by (identity, status code) so that the per-status
split survives the query. These functions merge those groups back into one
record per identity. Counts are sums of sample weight, never row counts:
under adaptive sampling the store drops rows and scales up the weight of
the rows it keeps.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from apipulse.core.errors import DataIntegrityError
from apipulse.core.models import (
    AggregatedEntity,
    Anonymous,
    AnonymousBucket,
    Identity,
    RawTelemetryRow,
    StatusBreakdown,
)


@dataclass
class _Accumulator:
    weights: list[float] = field(default_factory=list)
    successes: list[float] = field(default_factory=list)
    response_times: list[float] = field(default_factory=list)
    ip_samples: set[str] = field(default_factory=set)

    def add(self, row: RawTelemetryRow) -> None:
        self.weights.append(row.sample_weight)
        self.successes.append(row.success_weight)
        self.response_times.append(row.response_time_weighted)
        if row.ip_sample:
            self.ip_samples.add(row.ip_sample)


def _check_weight(row: RawTelemetryRow) -> None:
    if row.sample_weight < 0:
        raise DataIntegrityError(
            f"Negative sample weight {row.sample_weight} for {row.identity.key!r}"
        )


def _accumulate(rows: Iterable[RawTelemetryRow]) -> dict[Identity, _Accumulator]:
    accumulators: dict[Identity, _Accumulator] = {}
    for row in rows:
        _check_weight(row)
        accumulators.setdefault(row.identity, _Accumulator()).add(row)
    return accumulators


def aggregate_rows(
    rows: Iterable[RawTelemetryRow], period_seconds: float
) -> list[AggregatedEntity]:
    """Merge rows sharing an identity into one entity per identity.

    Sums are computed with ``math.fsum`` so the result does not depend on
    the order the store returned rows in. Identities whose total weight is
    zero are not emitted.

    Args:
        rows: Grouped rows, typically one per (identity, status code).
        period_seconds: Length of the queried range, for per-second rates.

    Returns:
        One AggregatedEntity per identity with non-zero weight, unordered.

    Raises:
        DataIntegrityError: If any row carries a negative sample weight.
    """
    entities: list[AggregatedEntity] = []
    for identity, acc in _accumulate(rows).items():
        total = math.fsum(acc.weights)
        if total <= 0:
            continue
        entities.append(
            AggregatedEntity(
                identity=identity,
                total_requests=total,
                successful_requests=math.fsum(acc.successes),
                total_response_time_weighted=math.fsum(acc.response_times),
                period_seconds=period_seconds,
            )
        )
    return entities


def aggregate_buckets(
    rows: Iterable[RawTelemetryRow], period_seconds: float
) -> list[AnonymousBucket]:
    """Merge anonymous rows into one AnonymousBucket per bucket id.

    Rows for authenticated identities are ignored. The IP sample is the
    smallest non-empty IP seen in the bucket; it is illustrative only.

    Raises:
        DataIntegrityError: If any row carries a negative sample weight.
    """
    accumulators: dict[Anonymous, _Accumulator] = {}
    for row in rows:
        if isinstance(row.identity, Anonymous):
            _check_weight(row)
            accumulators.setdefault(row.identity, _Accumulator()).add(row)
    buckets: list[AnonymousBucket] = []
    for identity, acc in accumulators.items():
        total = math.fsum(acc.weights)
        if total <= 0:
            continue
        buckets.append(
            AnonymousBucket(
                identity=identity,
                total_requests=total,
                successful_requests=math.fsum(acc.successes),
                total_response_time_weighted=math.fsum(acc.response_times),
                period_seconds=period_seconds,
                bucket_id=identity.bucket_id,
                ip_sample=min(acc.ip_samples) if acc.ip_samples else None,
            )
        )
    return buckets


def status_breakdown(counts: Iterable[tuple[int, float]]) -> list[StatusBreakdown]:
    """Share of request weight per status code, largest first.

    Duplicate status codes are merged. Returns an empty list when the total
    weight is zero.

    Raises:
        DataIntegrityError: If any weight is negative.
    """
    per_status: dict[int, list[float]] = {}
    for status_code, weight in counts:
        if weight < 0:
            raise DataIntegrityError(
                f"Negative sample weight {weight} for status {status_code}"
            )
        per_status.setdefault(status_code, []).append(weight)

    totals = {status: math.fsum(weights) for status, weights in per_status.items()}
    grand_total = math.fsum(totals.values())
    if grand_total <= 0:
        return []
    breakdown = [
        StatusBreakdown(
            status_code=status,
            request_count=total,
            percentage=100.0 * total / grand_total,
        )
        for status, total in totals.items()
        if total > 0
    ]
    breakdown.sort(key=lambda item: (-item.request_count, item.status_code))
    return breakdown
