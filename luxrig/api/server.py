"""FastAPI server — one configurable process for the port proxy and the LuxRig bridge.

Run with ``luxrig-bridge`` or ``uvicorn --factory luxrig.api.server:create_app``.
"""
import time
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.settings import Settings, get_settings
from luxrig.api import bridge, proxy
from luxrig.api.middleware import (
    AI_RATE_LIMIT_MESSAGE,
    CORS_HEADERS,
    CORSHeadersMiddleware,
    RateLimitMiddleware,
)
from luxrig.core.cache import TTLCache
from luxrig.core.datastore import DataStore
from luxrig.core.forwarder import StreamForwarder
from luxrig.core.health import ProviderHealthChecker
from luxrig.core.ratelimit import FixedWindowRateLimiter
from luxrig.core.router import ChatRouter
from luxrig.core.stats import UsageStats

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.settings
    log.info(
        "luxrig.api_startup",
        port=settings.listen_port,
        lm_studio=settings.lm_studio_url,
        environment=settings.node_env,
        providers=[f"{p.name}: {p.endpoint(settings.proxy_target_host)}" for p in settings.local_providers],
    )
    yield
    log.info("luxrig.api_shutdown")


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the app. ``transport`` replaces the network for every outbound call."""
    settings = settings or get_settings()

    app = FastAPI(
        title="LuxRig Bridge",
        description="Local-AI proxy and complexity-based chat router",
        version=settings.app_version,
        lifespan=lifespan,
    )

    started_at = time.monotonic()
    health_cache = TTLCache(settings.health_cache_ttl) if settings.health_cache_ttl > 0 else None

    app.state.settings = settings
    app.state.transport = transport
    app.state.uptime = lambda: time.monotonic() - started_at
    app.state.health_checker = ProviderHealthChecker(
        settings.local_providers,
        host=settings.proxy_target_host,
        timeout=settings.health_timeout,
        retries=settings.health_retries,
        cache=health_cache,
        transport=transport,
    )
    app.state.forwarder = StreamForwarder(
        timeout=settings.request_timeout,
        connect_timeout=settings.connect_timeout,
        retries=settings.proxy_retries,
        transport=transport,
    )
    app.state.chat_router = ChatRouter.from_settings(settings, transport=transport)
    app.state.stats = UsageStats()
    app.state.datastore = DataStore()

    app.include_router(proxy.router)
    app.include_router(bridge.router)

    # Last added runs first: CORS, then the /api/ window, then the tighter /api/ai/ window
    app.add_middleware(
        RateLimitMiddleware,
        limiter=FixedWindowRateLimiter(settings.ai_rate_limit_max, settings.ai_rate_limit_window_sec),
        prefix="/api/ai/",
        message=AI_RATE_LIMIT_MESSAGE,
    )
    app.add_middleware(
        RateLimitMiddleware,
        limiter=FixedWindowRateLimiter(settings.rate_limit_max, settings.rate_limit_window_sec),
    )
    app.add_middleware(CORSHeadersMiddleware)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            if request.url.path.startswith("/api/"):
                return bridge.endpoint_not_found_response()
            return proxy.proxy_usage_response()
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        log.exception("luxrig.server_error", path=request.url.path, error=str(exc))
        message = str(exc) if settings.is_development else "LuxRig bridge encountered an error"
        # Runs outside the middleware stack, so CORS is applied here
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "message": message},
            headers=CORS_HEADERS,
        )

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.bind_host,
        port=settings.listen_port,
        log_level="debug" if settings.is_development else "info",
    )


if __name__ == "__main__":
    main()
