"""Conversion of loosely-typed store records into domain rows.

The SQL API returns numeric columns as JSON strings as often as numbers.
Every value is parsed here, once, before any arithmetic; a value that does
not parse raises MalformedRow instead of leaking NaN into the sums.
"""

import math
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from apipulse.core.bucket_keys import parse_bucket_key
from apipulse.core.errors import MalformedRow
from apipulse.core.models import (
    Anonymous,
    Authenticated,
    Identity,
    RawTelemetryRow,
    TimelineSample,
)

Record = dict[str, Any]


def to_number(record: Record, field: str) -> float:
    """Read ``field`` from ``record`` as a finite float.

    Raises:
        MalformedRow: If the field is missing, not numeric, or not finite.
    """
    if field not in record or record[field] is None:
        raise MalformedRow(f"Row is missing numeric field {field!r}")
    value = record[field]
    if isinstance(value, bool):
        raise MalformedRow(f"Field {field!r} is not numeric: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise MalformedRow(f"Field {field!r} is not numeric: {value!r}") from e
    if not math.isfinite(number):
        raise MalformedRow(f"Field {field!r} is not finite: {value!r}")
    return number


def to_status(record: Record, field: str = "statusCode") -> int:
    """Read an HTTP status code, accepting ``"200"`` and ``200.0`` alike."""
    number = to_number(record, field)
    if number != int(number):
        raise MalformedRow(f"Field {field!r} is not an integer: {record[field]!r}")
    return int(number)


def to_text(record: Record, field: str) -> str:
    value = record.get(field)
    if value is None:
        raise MalformedRow(f"Row is missing text field {field!r}")
    return str(value)


def parse_timestamp(value: Any) -> datetime:
    """Parse a store timestamp into an aware UTC datetime.

    Accepts ``"2024-05-01 10:05:00"`` (the SQL API's format), ISO 8601 with
    or without an offset, and epoch seconds.

    Raises:
        MalformedRow: If the value is not a recognizable timestamp.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            raise MalformedRow(f"Timestamp is not finite: {value!r}")
        return datetime.fromtimestamp(value, tz=UTC)
    if not isinstance(value, str):
        raise MalformedRow(f"Unrecognized timestamp: {value!r}")
    text = value.strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise MalformedRow(f"Unrecognized timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _weighted_row(record: Record, identity: Identity) -> RawTelemetryRow:
    ip_sample = record.get("ipSample") or None
    return RawTelemetryRow(
        identity=identity,
        status_code=to_status(record),
        sample_weight=to_number(record, "requestCount"),
        response_time_weighted=to_number(record, "weightedResponseTime"),
        success_weight=to_number(record, "successCount"),
        ip_sample=str(ip_sample) if ip_sample is not None else None,
    )


def user_rows(records: Iterable[Record]) -> list[RawTelemetryRow]:
    """Parse rows of the top-users query."""
    return [
        _weighted_row(record, Authenticated(api_key=to_text(record, "apiKey")))
        for record in records
    ]


def anonymous_rows(records: Iterable[Record]) -> list[RawTelemetryRow]:
    """Parse rows of the top-anonymous query.

    Rows whose index key is not an anonymous bucket key are skipped.
    """
    rows: list[RawTelemetryRow] = []
    for record in records:
        bucket_id = parse_bucket_key(to_text(record, "indexKey"))
        if bucket_id is None:
            continue
        rows.append(_weighted_row(record, Anonymous(bucket_id=bucket_id)))
    return rows


def timeline_samples(
    records: Iterable[Record], by_status: bool = False
) -> list[TimelineSample]:
    """Parse rows of the timeline query."""
    return [
        TimelineSample(
            timestamp=parse_timestamp(record.get("timeBucket")),
            sample_weight=to_number(record, "requestCount"),
            response_time_weighted=to_number(record, "weightedResponseTime"),
            status_code=to_status(record) if by_status else None,
        )
        for record in records
    ]


def status_counts(records: Iterable[Record]) -> list[tuple[int, float]]:
    """Parse rows of a status breakdown query as (status, weight) pairs."""
    return [
        (to_status(record), to_number(record, "requestCount")) for record in records
    ]
