"""ASGI adapter serving the analytics dashboard and its JSON API.

The app runs under any ASGI server (uvicorn, hypercorn, daphne) without
requiring FastAPI as a dependency.
"""

import fnmatch
import json
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any
from urllib.parse import parse_qs

from apipulse.adapters.frameworks.dashboard_html import DASHBOARD_HTML
from apipulse.adapters.frameworks.query_params import (
    _parse_flag_param,
    _parse_limit_param,
    _parse_period_param,
    _parse_required_param,
)
from apipulse.adapters.logging_context import clear_log_context, set_log_context
from apipulse.core.encoding.response import (
    encode_json,
    encode_list,
    response_payload,
)
from apipulse.core.errors import (
    AnalyticsError,
    InvalidBucketFormat,
    ValidationFailed,
)
from apipulse.core.logs import get_logger, log_exception
from apipulse.core.ranking import DEFAULT_LIMIT
from apipulse.core.timeline import status_codes
from apipulse.service import AnalyticsService

logger = get_logger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

Params = dict[str, list[str]]
Handler = Callable[[Params], Awaitable[dict[str, Any]]]


def _parse_query_params(scope: Scope) -> Params:
    """Parse query string from ASGI scope into parameter dictionary.

    Args:
        scope: ASGI scope dictionary containing request metadata.

    Returns:
        Dictionary mapping parameter names to lists of values.
        Returns empty dict if query_string is missing or empty.
    """
    query_string = scope.get("query_string", b"").decode(errors="replace")
    return parse_qs(query_string, keep_blank_values=True)


def _extract_request_id(scope: Scope, header_name: str = "X-Request-ID") -> str:
    """Extract or generate a request ID from ASGI scope headers.

    Searches for the specified header (case-insensitive). If not found,
    generates a new UUID.
    """
    header_bytes = header_name.lower().encode()
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    for name, value in headers:
        if name.lower() == header_bytes:
            return str(value.decode("utf-8", errors="replace"))
    return str(uuid.uuid4())


def _get_log_level_for_status(status_code: int) -> int:
    """Map 2xx to INFO, 4xx to WARNING, 5xx to ERROR, anything else to INFO."""
    if 400 <= status_code < 500:
        return logging.WARNING
    if 500 <= status_code < 600:
        return logging.ERROR
    return logging.INFO


def _cors_headers(allowed_origin: str) -> list[tuple[bytes, bytes]]:
    return [
        (b"access-control-allow-origin", allowed_origin.encode()),
        (b"access-control-allow-methods", b"GET, OPTIONS"),
        (b"access-control-allow-headers", b"Content-Type"),
    ]


async def _send_response(
    send: Send,
    status: int,
    content_type: str | None,
    body: str,
    extra_headers: list[tuple[bytes, bytes]] | None = None,
) -> None:
    """Send an HTTP response with headers and body.

    Args:
        send: ASGI send callable for writing response.
        status: HTTP status code.
        content_type: Content-Type header value, or None for no body type.
        body: Response body as string (will be encoded to bytes).
        extra_headers: Additional raw headers, e.g. CORS.
    """
    headers = list(extra_headers or [])
    if content_type is not None:
        headers.insert(0, (b"content-type", content_type.encode()))
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": body.encode()})


def _error_response(error: Exception) -> tuple[int, dict[str, Any]]:
    """Map an exception raised by an endpoint to a status and JSON body."""
    if isinstance(error, (ValidationFailed, InvalidBucketFormat)):
        return 400, {"error": str(error)}
    if isinstance(error, AnalyticsError):
        return 500, {"error": "Internal server error", "message": str(error)}
    return 500, {"error": "Internal server error"}


async def _handle_endpoint(
    send: Send,
    handler: Handler,
    params: Params,
    headers: list[tuple[bytes, bytes]],
    path: str,
) -> None:
    """Run an API handler and send its JSON payload or mapped error."""
    try:
        payload = await handler(params)
    except (ValidationFailed, InvalidBucketFormat) as e:
        status, body = _error_response(e)
    except Exception as e:
        log_exception("API error", path=path)
        status, body = _error_response(e)
    else:
        status, body = 200, payload
    await _send_response(send, status, "application/json", encode_json(body), headers)


async def _run_lifespan(
    receive: Receive,
    send: Send,
    on_shutdown: list[Callable[[], Awaitable[None]]],
) -> None:
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            for callback in on_shutdown:
                await callback()
            await send({"type": "lifespan.shutdown.complete"})
            return


class RequestLoggingMiddleware:
    """ASGI middleware logging one line per HTTP request.

    Binds a request id (from ``X-Request-ID`` or freshly generated) into the
    logging context for the duration of the request, then logs method, path,
    status and duration at a level chosen from the status code.
    """

    def __init__(
        self,
        app: ASGIApp,
        exclude_paths: list[str] | None = None,
        request_id_header: str = "X-Request-ID",
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            exclude_paths: Paths not to log. Supports exact matches and
                wildcard patterns (e.g., "/static/*").
            request_id_header: Header to read the request id from.
        """
        self.app = app
        self.exclude_paths = exclude_paths or []
        self.request_id_header = request_id_header

    def _path_excluded(self, path: str) -> bool:
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        request_id = _extract_request_id(scope, self.request_id_header)
        captured: dict[str, Any] = {"status": None}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
            await send(message)

        set_log_context(request_id=request_id)
        try:
            await self.app(scope, receive, wrapped_send)
        except Exception:
            captured["status"] = 500
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            if not self._path_excluded(scope["path"]):
                status = captured["status"] or 0
                logger.log(
                    _get_log_level_for_status(status),
                    "%s %s %d %.1fms",
                    scope["method"],
                    scope["path"],
                    status,
                    duration_ms,
                    extra={"status_code": status, "duration_ms": duration_ms},
                )
            clear_log_context()


def create_asgi_app(
    service: AnalyticsService,
    default_limit: int = DEFAULT_LIMIT,
    allowed_origin: str = "*",
    on_shutdown: list[Callable[[], Awaitable[None]]] | None = None,
) -> ASGIApp:
    """Create an ASGI app serving the dashboard at / and the API under /api/.

    Args:
        service: Analytics operations backing the endpoints.
        default_limit: Ranked entries returned when ``limit`` is absent.
        allowed_origin: Value for Access-Control-Allow-Origin.
        on_shutdown: Coroutines awaited on lifespan shutdown.

    Returns:
        ASGI application callable.
    """
    cors = _cors_headers(allowed_origin)
    shutdown_callbacks = list(on_shutdown or [])

    async def top_users(params: Params) -> dict[str, Any]:
        period = _parse_period_param(params)
        limit = _parse_limit_param(params, default_limit)
        data = await service.top_users(period, limit)
        return response_payload(period, encode_list(data))

    async def top_anonymous(params: Params) -> dict[str, Any]:
        period = _parse_period_param(params)
        limit = _parse_limit_param(params, default_limit)
        data = await service.top_anonymous(period, limit)
        return response_payload(period, encode_list(data))

    async def usage_timeline(params: Params) -> dict[str, Any]:
        period = _parse_period_param(params)
        by_status = _parse_flag_param(params, "byStatus")
        data = await service.usage_timeline(period, by_status=by_status)
        if by_status:
            return response_payload(
                period, encode_list(data), statusCodes=status_codes(data)
            )
        return response_payload(period, encode_list(data))

    async def user_status_breakdown(params: Params) -> dict[str, Any]:
        period = _parse_period_param(params)
        api_key = _parse_required_param(params, "apiKey")
        data = await service.user_status_breakdown(api_key, period)
        return response_payload(period, encode_list(data))

    async def anonymous_status_breakdown(params: Params) -> dict[str, Any]:
        period = _parse_period_param(params)
        bucket = _parse_required_param(params, "bucket")
        data = await service.anonymous_status_breakdown(bucket, period)
        return response_payload(period, encode_list(data))

    async def overview(params: Params) -> dict[str, Any]:
        period = _parse_period_param(params)
        limit = _parse_limit_param(params, default_limit)
        result = await service.overview(period, limit)
        return response_payload(
            period,
            {
                "topUsers": encode_list(result.top_users),
                "topAnonymous": encode_list(result.top_anonymous),
                "timeline": encode_list(result.timeline),
            },
        )

    routes: dict[str, Handler] = {
        "/api/top-users": top_users,
        "/api/top-anonymous": top_anonymous,
        "/api/usage-timeline": usage_timeline,
        "/api/user-status-breakdown": user_status_breakdown,
        "/api/anonymous-status-breakdown": anonymous_status_breakdown,
        "/api/overview": overview,
    }

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await _run_lifespan(receive, send, shutdown_callbacks)
            return
        if scope["type"] != "http":
            return

        path = scope["path"]
        method = scope.get("method", "GET")

        if method == "OPTIONS":
            await _send_response(send, 204, None, "", cors)
        elif path.startswith("/api/"):
            handler = routes.get(path)
            if handler is None:
                body = json.dumps({"error": "API endpoint not found"})
                await _send_response(send, 404, "application/json", body, cors)
            elif method not in ("GET", "HEAD"):
                body = json.dumps({"error": "Method not allowed"})
                await _send_response(send, 405, "application/json", body, cors)
            else:
                params = _parse_query_params(scope)
                await _handle_endpoint(send, handler, params, cors, path)
        elif path in ("/", "/index.html"):
            await _send_response(
                send,
                200,
                "text/html; charset=utf-8",
                DASHBOARD_HTML,
                [(b"cache-control", b"no-cache")],
            )
        else:
            await _send_response(send, 404, "text/plain", "Not Found")

    return app
