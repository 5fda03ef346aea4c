"""Streamed upstream fetches for the proxy (httpx ``send(stream=True)``)."""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import structlog

from streamgate.domain.entities.proxy import UpstreamResponse
from streamgate.domain.exceptions import UpstreamUnreachableError

log = structlog.get_logger(__name__)

CHUNK_SIZE = 65536


class HttpxUpstream:
    """Opens media responses without buffering them.

    Only connecting is time-bounded; a media body may legitimately take
    as long as the viewer keeps watching. The connection is released
    when the body iterator finishes or is closed (client disconnect).
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        connect_timeout: float = 10.0,
        follow_redirects: bool = True,
    ) -> None:
        self._http = http_client
        self._follow_redirects = follow_redirects
        self._timeout = httpx.Timeout(None, connect=connect_timeout)

    async def open(self, url: str, headers: dict[str, str]) -> UpstreamResponse:
        request = self._http.build_request(
            "GET", url, headers=headers, timeout=self._timeout
        )
        try:
            resp = await self._http.send(
                request, stream=True, follow_redirects=self._follow_redirects
            )
        except httpx.TimeoutException as exc:
            log.warning("upstream_timeout", url=url)
            raise UpstreamUnreachableError(f"Upstream timed out: {url}") from exc
        except httpx.HTTPError as exc:
            log.warning("upstream_fetch_failed", url=url, error=str(exc))
            raise UpstreamUnreachableError(
                f"Failed to fetch: {str(exc) or type(exc).__name__}"
            ) from exc

        async def _iter() -> AsyncIterator[bytes]:
            try:
                async for chunk in resp.aiter_bytes(chunk_size=CHUNK_SIZE):
                    yield chunk
            except httpx.HTTPError as exc:
                # A truncated body must not look like a finished one.
                log.warning("upstream_stream_interrupted", url=url, error=str(exc))
                raise UpstreamUnreachableError(
                    f"Upstream stream interrupted: {str(exc) or type(exc).__name__}"
                ) from exc
            finally:
                await resp.aclose()

        return UpstreamResponse(
            status=resp.status_code,
            headers={k.lower(): v for k, v in resp.headers.items()},
            url=str(resp.url),
            stream=_iter(),
            close=resp.aclose,
        )
