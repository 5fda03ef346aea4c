"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from streamgate import __version__
from streamgate.domain.exceptions import StreamgateError
from streamgate.infrastructure.config import AppConfig
from streamgate.interfaces.api.middleware import CorsHeadersMiddleware, RateLimitMiddleware
from streamgate.interfaces.api.params import error_response
from streamgate.interfaces.app_state import AppState
from streamgate.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create FastAPI app: configuration only, no resource initialization.

    Resources (HTTP client, cache, provider registry) are created in lifespan().
    """
    app = FastAPI(
        title="Streamgate",
        description="Embed page media resolver and CORS-safe streaming proxy",
        version=__version__,
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    # API rate limiting (per-IP sliding window)
    if config.api_rate_limit_rpm > 0:
        app.add_middleware(
            RateLimitMiddleware, requests_per_minute=config.api_rate_limit_rpm
        )
    # Added last so it wraps the limiter and 429s carry CORS too.
    app.add_middleware(CorsHeadersMiddleware)

    from streamgate.interfaces.api.cache.router import router as cache_router
    from streamgate.interfaces.api.providers.router import router as providers_router
    from streamgate.interfaces.api.proxy.router import router as proxy_router
    from streamgate.interfaces.api.resolve.router import router as resolve_router

    app.include_router(resolve_router)
    app.include_router(proxy_router, prefix=config.proxy.path)
    app.include_router(cache_router)
    app.include_router(providers_router)

    @app.exception_handler(StreamgateError)
    async def streamgate_error_handler(
        request: Request, exc: StreamgateError
    ) -> JSONResponse:
        log.info(
            "request_rejected",
            path=request.url.path,
            status_code=exc.status_code,
            error=exc.message,
        )
        return error_response(exc)

    @app.get("/healthz")
    async def healthz() -> dict[str, str | int]:
        """Liveness probe: returns 200 as long as the process is running."""
        state = app.state
        providers = getattr(state, "providers", None)
        cache = getattr(state, "media_cache", None)
        return {
            "status": "ok",
            "providers": len(providers) if providers is not None else 0,
            "cache_entries": len(cache) if cache is not None else 0,
        }

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                query=str(request.url.query),
                status_code=response.status_code if response is not None else 500,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
