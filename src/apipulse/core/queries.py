"""Query expressions sent to the Analytics Engine SQL API.

Dataset columns written by the proxy:

- ``index1``: sampling index; the API key, or ``anon_{bucket}_{status}``
- ``blob1``: API key, empty for anonymous traffic
- ``blob2``: client IP sample
- ``double1``: response time in milliseconds
- ``double2``: HTTP status code
- ``_sample_interval``: how many real events the stored row stands for

Every count is ``SUM(_sample_interval)`` and every average is carried as the
un-divided weighted sum ``SUM(value * _sample_interval)``, so rows stay
composable when they are merged again in process.
"""

from apipulse.core.bucket_keys import range_for_bucket
from apipulse.core.models import QueryWindow
from apipulse.core.sql import interval_literal, quote_literal

# Upper bound on grouped rows pulled into memory for one request.
MAX_STORE_ROWS = 10000

_REQUEST_COUNT = "SUM(_sample_interval)"
_WEIGHTED_RESPONSE_TIME = "SUM(double1 * _sample_interval)"
_SUCCESS_COUNT = (
    "SUM(if(toUInt32(double2) >= 200 AND toUInt32(double2) < 300, "
    "_sample_interval, 0))"
)


def _since(window: QueryWindow) -> str:
    return f"timestamp > NOW() - {interval_literal(window.lookback)}"


def top_users_query(dataset: str, window: QueryWindow) -> str:
    """Authenticated traffic grouped by (API key, status code)."""
    return f"""
        SELECT
            blob1 AS apiKey,
            toUInt32(double2) AS statusCode,
            {_REQUEST_COUNT} AS requestCount,
            {_WEIGHTED_RESPONSE_TIME} AS weightedResponseTime,
            {_SUCCESS_COUNT} AS successCount
        FROM {dataset}
        WHERE
            {_since(window)}
            AND blob1 != ''
        GROUP BY blob1, double2
        ORDER BY requestCount DESC
        LIMIT {MAX_STORE_ROWS}
    """


def top_anonymous_query(dataset: str, window: QueryWindow) -> str:
    """Anonymous traffic grouped by (index key, IP sample, status code)."""
    return f"""
        SELECT
            index1 AS indexKey,
            blob2 AS ipSample,
            toUInt32(double2) AS statusCode,
            {_REQUEST_COUNT} AS requestCount,
            {_WEIGHTED_RESPONSE_TIME} AS weightedResponseTime,
            {_SUCCESS_COUNT} AS successCount
        FROM {dataset}
        WHERE
            {_since(window)}
            AND blob1 = ''
        GROUP BY index1, blob2, double2
        ORDER BY requestCount DESC
        LIMIT {MAX_STORE_ROWS}
    """


def timeline_query(dataset: str, window: QueryWindow, by_status: bool = False) -> str:
    """Weighted sums per time window, optionally split by status code.

    The window is computed in an inner query and grouped by name in the outer
    one, since the SQL API cannot group by a function expression directly.
    """
    granularity = interval_literal(window.granularity)
    status_select = ""
    status_column = ""
    if by_status:
        status_select = ",\n                toUInt32(double2) AS statusCode"
        status_column = ", statusCode"
    return f"""
        SELECT
            timeBucket{status_column},
            SUM(sampleInterval) AS requestCount,
            SUM(weightedResponseTime) AS weightedResponseTime
        FROM (
            SELECT
                toStartOfInterval(timestamp, {granularity}) AS timeBucket,
                _sample_interval AS sampleInterval,
                double1 * _sample_interval AS weightedResponseTime{status_select}
            FROM {dataset}
            WHERE {_since(window)}
        )
        GROUP BY timeBucket{status_column}
        ORDER BY timeBucket ASC{status_column}
        LIMIT {MAX_STORE_ROWS}
    """


def user_status_query(dataset: str, window: QueryWindow, api_key: str) -> str:
    """Request weight per status code for one API key."""
    return f"""
        SELECT
            toUInt32(double2) AS statusCode,
            {_REQUEST_COUNT} AS requestCount
        FROM {dataset}
        WHERE
            {_since(window)}
            AND blob1 = {quote_literal(api_key)}
        GROUP BY double2
        ORDER BY requestCount DESC
        LIMIT {MAX_STORE_ROWS}
    """


def bucket_status_query(dataset: str, window: QueryWindow, bucket_id: int) -> str:
    """Request weight per status code for one anonymous bucket."""
    key_range = range_for_bucket(bucket_id)
    return f"""
        SELECT
            toUInt32(double2) AS statusCode,
            {_REQUEST_COUNT} AS requestCount
        FROM {dataset}
        WHERE
            {_since(window)}
            AND blob1 = ''
            AND {key_range.predicate("index1")}
        GROUP BY double2
        ORDER BY requestCount DESC
        LIMIT {MAX_STORE_ROWS}
    """
