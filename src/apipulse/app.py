"""Application factories wiring settings, stores and the HTTP adapters.

Run the ASGI app with:
    uvicorn apipulse.app:create_app --factory
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apipulse.adapters.frameworks.asgi import (
    ASGIApp,
    RequestLoggingMiddleware,
    create_asgi_app,
)
from apipulse.adapters.frameworks.fastapi import (
    analytics_error_handler,
    create_analytics_router,
)
from apipulse.adapters.logging import configure_logging
from apipulse.adapters.storage.analytics_engine import AnalyticsEngineStore
from apipulse.adapters.storage.sqlite_identity import SQLiteIdentityStore
from apipulse.config import Settings, get_settings
from apipulse.core.cache import TTLCache
from apipulse.core.enrichment import IdentityCache
from apipulse.core.errors import AnalyticsError
from apipulse.core.logs import get_logger
from apipulse.service import AnalyticsService

logger = get_logger(__name__)


def build_service(settings: Settings) -> AnalyticsService:
    """Create the analytics service with production stores."""
    if not settings.account_id or not settings.api_token:
        logger.warning(
            "ACCOUNT_ID or API_TOKEN is not set; analytics queries will fail"
        )
    store = AnalyticsEngineStore(
        account_id=settings.account_id,
        api_token=settings.api_token,
        base_url=settings.api_base_url,
        timeout=settings.request_timeout,
    )
    identities = SQLiteIdentityStore(settings.identity_db_path)
    cache: IdentityCache | None = None
    if settings.identity_cache_ttl_seconds > 0:
        cache = TTLCache(settings.identity_cache_ttl_seconds)
    return AnalyticsService(
        store,
        identities,
        dataset=settings.dataset,
        request_timeout=settings.request_timeout,
        identity_cache=cache,
    )


def create_app(settings: Settings | None = None) -> ASGIApp:
    """Create the dashboard ASGI app with request logging.

    Args:
        settings: Service settings; loaded from the environment when omitted.

    Returns:
        ASGI application that closes its stores on lifespan shutdown.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    service = build_service(settings)
    logger.info(
        "Serving dataset %s with identities from %s",
        settings.dataset,
        settings.identity_db_path,
    )
    app = create_asgi_app(
        service,
        default_limit=settings.default_limit,
        allowed_origin=settings.allowed_origin,
        on_shutdown=[service.close],
    )
    return RequestLoggingMiddleware(app)


def create_fastapi_app(settings: Settings | None = None) -> FastAPI:
    """Create the same dashboard as a FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    service = build_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await service.close()

    app = FastAPI(title="API Usage Analytics", lifespan=lifespan)
    app.add_exception_handler(AnalyticsError, analytics_error_handler)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.include_router(create_analytics_router(service, settings.default_limit))
    return app
