"""BDD step definitions for the dashboard API features."""

import pytest
from pytest_bdd import given, parsers, then, when
from tests.features.api.steps_helpers import (
    ApiScenarioContext,
    run_async,
    simulate_request,
)
from tests.helpers import (
    TOP_ANONYMOUS,
    TOP_USERS,
    anonymous_record,
    user_record,
)

from apipulse.core.errors import StoreQueryFailed
from apipulse.core.models import IdentityRecord


@pytest.fixture
def ctx() -> ApiScenarioContext:
    """Fresh scenario context for each test."""
    return ApiScenarioContext()


def _table(datatable: list[list[str]]) -> list[dict[str, str]]:
    header, *rows = datatable
    return [dict(zip(header, row, strict=True)) for row in rows]


# === Given ===
@given(parsers.parse('the identity store knows "{api_key}" as "{name}"'))
def step_known_identity(ctx: ApiScenarioContext, api_key: str, name: str) -> None:
    ctx.identities.add(api_key, IdentityRecord(name, None, None))


@given("the store holds user rows:")
def step_user_rows(ctx: ApiScenarioContext, datatable) -> None:
    rows = [
        user_record(
            row["apiKey"],
            int(row["status"]),
            float(row["weight"]),
            float(row["responseMs"]),
        )
        for row in _table(datatable)
    ]
    ctx.telemetry.add_rows(TOP_USERS, rows)


@given(parsers.parse("the store holds {count:d} users with distinct request counts"))
def step_many_users(ctx: ApiScenarioContext, count: int) -> None:
    rows = [user_record(f"key{i:02d}", 200, i + 1, 10) for i in range(count)]
    ctx.telemetry.add_rows(TOP_USERS, rows)


@given("the store holds anonymous rows:")
def step_anonymous_rows(ctx: ApiScenarioContext, datatable) -> None:
    rows = []
    for row in _table(datatable):
        _, bucket_id, status = row["indexKey"].split("_")
        rows.append(
            anonymous_record(int(bucket_id), int(status), float(row["weight"]), 10)
        )
    ctx.telemetry.add_rows(TOP_ANONYMOUS, rows)


@given(parsers.parse("the store fails every query with status {status:d}"))
def step_store_fails(ctx: ApiScenarioContext, status: int) -> None:
    ctx.telemetry.add_failure("SELECT", StoreQueryFailed("unavailable", status))


# === When ===
@when(parsers.parse('the dashboard requests "{path}"'))
def step_request(ctx: ApiScenarioContext, path: str) -> None:
    ctx.response = run_async(simulate_request(ctx, path))


# === Then ===
@then(parsers.parse("the response status is {status:d}"))
def step_status(ctx: ApiScenarioContext, status: int) -> None:
    assert ctx.response is not None
    assert ctx.response.status_code == status


@then(parsers.parse('the users are ranked "{keys}"'))
def step_ranked(ctx: ApiScenarioContext, keys: str) -> None:
    expected = [key.strip() for key in keys.split(",")]
    assert [item["apiKey"] for item in ctx.body["data"]] == expected


@then(
    parsers.parse(
        'user "{api_key}" has {requests:d} requests, {avg:f} ms average '
        "and {success:f} % success"
    )
)
def step_user_stats(
    ctx: ApiScenarioContext, api_key: str, requests: int, avg: float, success: float
) -> None:
    user = ctx.entry("apiKey", api_key)
    assert user["requestCount"] == requests
    assert user["avgResponseTime"] == avg
    assert user["successRate"] == success


@then(parsers.parse('user "{api_key}" is named "{name}"'))
def step_user_named(ctx: ApiScenarioContext, api_key: str, name: str) -> None:
    assert ctx.entry("apiKey", api_key)["name"] == name


@then(parsers.parse('user "{api_key}" has no name on file'))
def step_user_unknown(ctx: ApiScenarioContext, api_key: str) -> None:
    assert ctx.entry("apiKey", api_key)["name"] is None


@then(parsers.parse("{count:d} users are returned in descending order of requests"))
def step_truncated(ctx: ApiScenarioContext, count: int) -> None:
    counts = [item["requestCount"] for item in ctx.body["data"]]
    assert len(counts) == count
    assert counts == sorted(counts, reverse=True)
    assert counts[0] == 15


@then(parsers.parse('bucket "{bucket}" has {requests:d} requests'))
def step_bucket_requests(ctx: ApiScenarioContext, bucket: str, requests: int) -> None:
    assert ctx.entry("bucket", bucket)["requestCount"] == requests


@then(parsers.parse('the store was queried with "{fragment}"'))
def step_query_fragment(ctx: ApiScenarioContext, fragment: str) -> None:
    assert any(fragment in query for query in ctx.telemetry.queries)


@then("no store query used LIKE")
def step_no_like(ctx: ApiScenarioContext) -> None:
    assert all("LIKE" not in query.upper() for query in ctx.telemetry.queries)


@then("the store was not queried")
def step_not_queried(ctx: ApiScenarioContext) -> None:
    assert ctx.telemetry.queries == []


@then(parsers.parse('the error message is "{message}"'))
def step_error_message(ctx: ApiScenarioContext, message: str) -> None:
    assert ctx.body["error"] == message
