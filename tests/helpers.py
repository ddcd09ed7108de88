"""Row builders shaped like Analytics Engine SQL API responses."""

# Substrings identifying each query in InMemoryTelemetryStore markers.
TOP_USERS = "AS apiKey"
TOP_ANONYMOUS = "AS indexKey"
TIMELINE = "AS timeBucket"


def user_record(
    api_key: str,
    status: int,
    weight: float,
    response_ms: float,
) -> dict[str, object]:
    """Top-users row as the SQL API returns it (numbers as strings)."""
    success = weight if 200 <= status < 300 else 0
    return {
        "apiKey": api_key,
        "statusCode": str(status),
        "requestCount": str(weight),
        "weightedResponseTime": str(response_ms * weight),
        "successCount": str(success),
    }


def anonymous_record(
    bucket_id: int,
    status: int,
    weight: float,
    response_ms: float,
    ip: str = "203.0.113.7",
) -> dict[str, object]:
    success = weight if 200 <= status < 300 else 0
    return {
        "indexKey": f"anon_{bucket_id}_{status}",
        "ipSample": ip,
        "statusCode": status,
        "requestCount": weight,
        "weightedResponseTime": response_ms * weight,
        "successCount": success,
    }


def timeline_record(
    time_bucket: str, weight: float, response_ms: float, status: int | None = None
) -> dict[str, object]:
    record: dict[str, object] = {
        "timeBucket": time_bucket,
        "requestCount": weight,
        "weightedResponseTime": response_ms * weight,
    }
    if status is not None:
        record["statusCode"] = status
    return record
