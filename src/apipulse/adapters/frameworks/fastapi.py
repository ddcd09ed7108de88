"""FastAPI adapter for the analytics API."""

from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse

from apipulse.adapters.frameworks.dashboard_html import DASHBOARD_HTML
from apipulse.adapters.frameworks.query_params import (
    parse_flag,
    parse_limit,
    parse_period,
    require,
)
from apipulse.core.encoding.response import encode_list, response_payload
from apipulse.core.errors import AnalyticsError, InvalidBucketFormat, ValidationFailed
from apipulse.core.logs import log_exception
from apipulse.core.ranking import DEFAULT_LIMIT
from apipulse.core.timeline import status_codes
from apipulse.service import AnalyticsService


async def analytics_error_handler(
    request: Request, exc: AnalyticsError
) -> JSONResponse:
    """Map analytics exceptions to JSON error responses.

    Register with ``app.add_exception_handler(AnalyticsError, ...)``.
    """
    if isinstance(exc, (ValidationFailed, InvalidBucketFormat)):
        return JSONResponse({"error": str(exc)}, status_code=400)
    log_exception("API error", path=request.url.path)
    return JSONResponse(
        {"error": "Internal server error", "message": str(exc)}, status_code=500
    )


def create_analytics_router(
    service: AnalyticsService,
    default_limit: int = DEFAULT_LIMIT,
) -> APIRouter:
    """Create a FastAPI router with the dashboard and its /api endpoints.

    Parameters are parsed with the same rules as the ASGI adapter. Include
    :func:`analytics_error_handler` on the app to get the same error bodies.

    Args:
        service: Analytics operations backing the endpoints.
        default_limit: Ranked entries returned when ``limit`` is absent.

    Returns:
        APIRouter with all analytics endpoints configured.
    """
    router = APIRouter()

    @router.get("/", response_class=HTMLResponse)
    async def dashboard() -> HTMLResponse:
        return HTMLResponse(DASHBOARD_HTML, headers={"Cache-Control": "no-cache"})

    @router.get("/api/top-users")
    async def top_users(
        period: str | None = Query(default=None),
        limit: str | None = Query(default=None),
    ) -> dict[str, Any]:
        parsed_period = parse_period(period)
        data = await service.top_users(parsed_period, parse_limit(limit, default_limit))
        return response_payload(parsed_period, encode_list(data))

    @router.get("/api/top-anonymous")
    async def top_anonymous(
        period: str | None = Query(default=None),
        limit: str | None = Query(default=None),
    ) -> dict[str, Any]:
        parsed_period = parse_period(period)
        data = await service.top_anonymous(
            parsed_period, parse_limit(limit, default_limit)
        )
        return response_payload(parsed_period, encode_list(data))

    @router.get("/api/usage-timeline")
    async def usage_timeline(
        period: str | None = Query(default=None),
        by_status: str | None = Query(default=None, alias="byStatus"),
    ) -> dict[str, Any]:
        parsed_period = parse_period(period)
        faceted = parse_flag(by_status, "byStatus")
        data = await service.usage_timeline(parsed_period, by_status=faceted)
        if faceted:
            return response_payload(
                parsed_period, encode_list(data), statusCodes=status_codes(data)
            )
        return response_payload(parsed_period, encode_list(data))

    @router.get("/api/user-status-breakdown")
    async def user_status_breakdown(
        period: str | None = Query(default=None),
        api_key: str | None = Query(default=None, alias="apiKey"),
    ) -> dict[str, Any]:
        parsed_period = parse_period(period)
        data = await service.user_status_breakdown(
            require(api_key, "apiKey"), parsed_period
        )
        return response_payload(parsed_period, encode_list(data))

    @router.get("/api/anonymous-status-breakdown")
    async def anonymous_status_breakdown(
        period: str | None = Query(default=None),
        bucket: str | None = Query(default=None),
    ) -> dict[str, Any]:
        parsed_period = parse_period(period)
        data = await service.anonymous_status_breakdown(
            require(bucket, "bucket"), parsed_period
        )
        return response_payload(parsed_period, encode_list(data))

    @router.get("/api/overview")
    async def overview(
        period: str | None = Query(default=None),
        limit: str | None = Query(default=None),
    ) -> dict[str, Any]:
        parsed_period = parse_period(period)
        limit_value = parse_limit(limit, default_limit)
        result = await service.overview(parsed_period, limit_value)
        return response_payload(
            parsed_period,
            {
                "topUsers": encode_list(result.top_users),
                "topAnonymous": encode_list(result.top_anonymous),
                "timeline": encode_list(result.timeline),
            },
        )

    return router
