"""Fixed-width timeline construction from weighted samples."""

import math
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from apipulse.core.errors import DataIntegrityError
from apipulse.core.models import TimeBucket, TimelineSample

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def floor_to_window(timestamp: datetime, granularity: timedelta) -> datetime:
    """Return the start of the epoch-aligned window containing ``timestamp``.

    Args:
        timestamp: Aware datetime; naive values are taken as UTC.
        granularity: Window width, e.g. 5 minutes.

    Returns:
        The largest window boundary <= timestamp, in UTC.
    """
    if granularity <= timedelta(0):
        raise ValueError(f"granularity must be positive: {granularity}")
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    offset = timestamp - _EPOCH
    return _EPOCH + (offset // granularity) * granularity


def bucketize(
    samples: Iterable[TimelineSample],
    granularity: timedelta,
    by_status: bool = False,
) -> list[TimeBucket]:
    """Group weighted samples into fixed windows.

    Each window reports the summed sample weight and the weighted response
    time sum, so its average is ``sum(value * weight) / sum(weight)``.
    With ``by_status`` the grouping also includes the status code and one
    window may produce several buckets.

    Output is sparse: a window (or window/status pair) without weight is not
    emitted, never zero-filled. Buckets are ordered by window start, then
    status code.

    Raises:
        DataIntegrityError: If a sample has a negative weight.
    """
    groups: dict[tuple[datetime, int | None], tuple[list[float], list[float]]] = {}
    for sample in samples:
        if sample.sample_weight < 0:
            raise DataIntegrityError(
                f"Negative sample weight {sample.sample_weight} at {sample.timestamp}"
            )
        window_start = floor_to_window(sample.timestamp, granularity)
        status = sample.status_code if by_status else None
        weights, response_times = groups.setdefault((window_start, status), ([], []))
        weights.append(sample.sample_weight)
        response_times.append(sample.response_time_weighted)

    buckets: list[TimeBucket] = []
    for (window_start, status), (weights, response_times) in groups.items():
        total = math.fsum(weights)
        if total <= 0:
            continue
        buckets.append(
            TimeBucket(
                window_start=window_start,
                request_count=total,
                response_time_weighted=math.fsum(response_times),
                status_code=status,
            )
        )
    buckets.sort(key=lambda b: (b.window_start, b.status_code or 0))
    return buckets


def status_codes(buckets: Iterable[TimeBucket]) -> list[int]:
    """Distinct status codes across a faceted timeline, ascending.

    Consumers rendering a full window x status matrix use this to fill the
    cells the sparse timeline leaves out.
    """
    return sorted({b.status_code for b in buckets if b.status_code is not None})
