"""JSON encoding of analytics results for the dashboard API.

All display rounding happens here and nowhere earlier: counts to whole
numbers, rates, averages and percentages to two decimals.
"""

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from apipulse.core.models import (
    AnonymousBucket,
    EnrichedEntity,
    Period,
    StatusBreakdown,
    TimeBucket,
)
from apipulse.core.ranking import round_count, round_half_up


def format_timestamp(moment: datetime) -> str:
    """Format as ISO 8601 UTC with milliseconds (``2024-05-01T10:05:00.000Z``)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def encode_user(item: EnrichedEntity) -> dict[str, Any]:
    entity = item.entity
    identity = item.identity
    return {
        "apiKey": entity.key,
        "name": identity.name if identity else None,
        "email": identity.email if identity else None,
        "organization": identity.organization if identity else None,
        "requestCount": round_count(entity.total_requests),
        "requestsPerSecond": round_half_up(entity.requests_per_second),
        "avgResponseTime": round_half_up(entity.avg_response_time_ms),
        "successRate": round_half_up(entity.success_rate_percent),
    }


def encode_anonymous(bucket: AnonymousBucket) -> dict[str, Any]:
    return {
        "bucket": bucket.bucket,
        "bucketId": bucket.bucket_id,
        "ipSample": bucket.ip_sample,
        "requestCount": round_count(bucket.total_requests),
        "requestsPerSecond": round_half_up(bucket.requests_per_second),
        "avgResponseTime": round_half_up(bucket.avg_response_time_ms),
        "successRate": round_half_up(bucket.success_rate_percent),
    }


def encode_time_bucket(bucket: TimeBucket) -> dict[str, Any]:
    encoded: dict[str, Any] = {
        "timestamp": format_timestamp(bucket.window_start),
        "requestCount": round_count(bucket.request_count),
        "avgResponseTime": round_half_up(bucket.avg_response_time_ms),
    }
    if bucket.status_code is not None:
        encoded["statusCode"] = bucket.status_code
    return encoded


def encode_status(item: StatusBreakdown) -> dict[str, Any]:
    return {
        "statusCode": item.status_code,
        "requestCount": round_count(item.request_count),
        "percentage": round_half_up(item.percentage),
    }


def encode_list(items: Iterable[Any]) -> list[dict[str, Any]]:
    """Encode a homogeneous list of results with the matching encoder."""
    encoded: list[dict[str, Any]] = []
    for item in items:
        if isinstance(item, EnrichedEntity):
            encoded.append(encode_user(item))
        elif isinstance(item, AnonymousBucket):
            encoded.append(encode_anonymous(item))
        elif isinstance(item, TimeBucket):
            encoded.append(encode_time_bucket(item))
        elif isinstance(item, StatusBreakdown):
            encoded.append(encode_status(item))
        else:
            raise TypeError(f"Cannot encode {type(item).__name__}")
    return encoded


def response_payload(
    period: Period,
    data: Any,
    now: datetime | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build the ``{period, data, timestamp}`` envelope.

    Args:
        period: Period the data covers.
        data: Already-encoded data (list or mapping).
        now: Response time (default: current UTC time).
        **extra: Additional top-level fields, e.g. ``statusCodes``.
    """
    return {
        "period": period.value,
        "data": data,
        **extra,
        "timestamp": format_timestamp(now or datetime.now(UTC)),
    }


def encode_json(payload: Any) -> str:
    return json.dumps(payload, indent=2)
