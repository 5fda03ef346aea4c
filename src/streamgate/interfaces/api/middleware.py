"""HTTP middleware: permissive CORS and per-IP rate limiting."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

log = structlog.get_logger(__name__)

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Expose-Headers": (
        "Content-Type, Content-Length, Accept-Ranges, Content-Range, X-Cache-Status"
    ),
}

# Dispatch cycles between sweeps of idle client entries.
_GC_INTERVAL = 256


def with_cors(headers: dict[str, str] | None = None) -> dict[str, str]:
    """*headers* plus the CORS headers every response carries."""
    merged = dict(headers or {})
    merged.update(CORS_HEADERS)
    return merged


class CorsHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp CORS headers on every response, errors included.

    Browser players call the proxy cross-origin from arbitrary pages, so
    there is no origin allow-list.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in CORS_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window rate limiter keyed by client IP.

    Args:
        app: ASGI application.
        requests_per_minute: Max requests per IP per window. 0 = unlimited.
        window_seconds: Length of the sliding window.
        clock: Monotonic time source.
    """

    def __init__(
        self,
        app: object,
        requests_per_minute: int = 120,
        *,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._limit = requests_per_minute
        self._window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._dispatch_count = 0

    def _record(self, client_ip: str, now: float) -> deque[float] | None:
        """Register a hit; None when the client is over its limit."""
        hits = self._hits.setdefault(client_ip, deque())
        cutoff = now - self._window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if len(hits) >= self._limit:
            return None
        hits.append(now)
        return hits

    def _collect_garbage(self, now: float) -> None:
        self._dispatch_count += 1
        if self._dispatch_count < _GC_INTERVAL:
            return
        self._dispatch_count = 0
        cutoff = now - self._window_seconds
        idle = [ip for ip, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for ip in idle:
            del self._hits[ip]

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if self._limit <= 0 or request.method == "OPTIONS":
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = self._clock()
        hits = self._record(client_ip, now)
        if hits is None:
            retry_after = int(self._window_seconds)
            log.warning("rate_limit_exceeded", client_ip=client_ip, rpm=self._limit)
            return JSONResponse(
                status_code=429,
                content={
                    "ok": False,
                    "message": "Rate limit exceeded",
                    "retry_after_seconds": retry_after,
                },
                headers={"Retry-After": str(retry_after)},
            )

        self._collect_garbage(now)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self._limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self._limit - len(hits)))
        return response
