"""httpx transport that refuses internal hosts on every hop, redirects included."""

from __future__ import annotations

import httpx
import structlog

from streamgate.domain.exceptions import BlockedTargetError
from streamgate.infrastructure.common.url_safety import is_blocked_host

log = structlog.get_logger(__name__)


class GuardedTransport(httpx.AsyncBaseTransport):
    """Wraps an httpx transport with the outbound target gate.

    Callers validate the URL they were handed, but httpx follows
    redirects itself; each hop reaches the transport as its own request,
    so checking here covers a public URL that redirects to ``127.0.0.1``.
    """

    def __init__(self, wrapped: httpx.AsyncBaseTransport) -> None:
        self._wrapped = wrapped

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        url = request.url
        if url.userinfo:
            log.warning("outbound_request_blocked", url=str(url), reason="credentials")
            raise BlockedTargetError("URLs with embedded credentials are not allowed")
        if is_blocked_host(url.host):
            log.warning("outbound_request_blocked", url=str(url), reason="host")
            raise BlockedTargetError(f"Blocked hostname: {url.host}")
        return await self._wrapped.handle_async_request(request)

    async def aclose(self) -> None:
        await self._wrapped.aclose()
