"""Streaming reverse proxy for resolved media URLs.

Security gate -> cache lookup -> upstream fetch -> (HLS rewrite | HTML
rejection | passthrough stream), with opportunistic caching of
playlists and small progressive files.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import structlog

from streamgate.domain.entities.proxy import ProxyRequest, ProxyResponse, UpstreamResponse
from streamgate.domain.exceptions import (
    UnexpectedContentError,
    UpstreamUnreachableError,
)
from streamgate.domain.ports.media_cache import MediaCachePort
from streamgate.domain.ports.media_upstream import MediaUpstreamPort
from streamgate.domain.ports.provider_registry import ProviderRegistryPort

log = structlog.get_logger(__name__)

# Query keys that steer the proxy itself; never merged into the target.
CONTROL_KEYS = frozenset({"url", "u64", "referer", "origin", "ua", "rewrite"})

FORWARDED_HEADERS = (
    "content-type",
    "content-length",
    "accept-ranges",
    "content-range",
    "cache-control",
    "last-modified",
    "etag",
)

HLS_ACCEPT = "application/vnd.apple.mpegurl,application/x-mpegURL,*/*"
HLS_CONTENT_TYPE = "application/vnd.apple.mpegurl"
HTML_REJECTED_MESSAGE = "Invalid media URL - received HTML instead of video content"

# Headers describing the upstream body that no longer apply after a rewrite.
_PLAYLIST_STALE_HEADERS = frozenset(
    {"Content-Length", "Content-Range", "Accept-Ranges", "Etag"}
)


class _ProxyConfig(Protocol):
    """Configuration values consumed by StreamMediaUseCase."""

    path: str
    default_user_agent: str
    max_buffered_bytes: int


class _RewriteFn(Protocol):
    def __call__(
        self,
        content: str,
        playlist_url: str,
        proxy_path: str,
        *,
        referer: str | None = None,
        origin: str | None = None,
        user_agent: str | None = None,
    ) -> str: ...


_CheckTargetFn = Callable[[str], str]
_IsHlsFn = Callable[[str, str], bool]
_CacheableFn = Callable[[str], bool]


def merge_extra_params(url: str, extra: tuple[tuple[str, str], ...]) -> str:
    """Fold params the caller forgot to encode back into *url*.

    ``/proxy?url=https://cdn/x.m3u8?a=1&token=abc`` arrives as
    ``url=https://cdn/x.m3u8?a=1`` plus a stray ``token=abc``.
    """
    parts = urlsplit(url)
    existing = {k for k, _ in parse_qsl(parts.query, keep_blank_values=True)}
    additions = [
        (k, v) for k, v in extra if k not in CONTROL_KEYS and k not in existing and v
    ]
    if not additions:
        return url
    query = parts.query + ("&" if parts.query else "") + urlencode(additions)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def _is_html(content_type: str) -> bool:
    ct = content_type.lower()
    return "text/html" in ct or "application/xhtml+xml" in ct


def _ensure_complete(url: str, resp: UpstreamResponse, data: bytes) -> None:
    """Raise if *data* is shorter or longer than the declared Content-Length."""
    length = resp.headers.get("content-length", "")
    if "content-encoding" in resp.headers or not length.isdigit():
        return
    if len(data) != int(length):
        log.warning(
            "upstream_body_incomplete", url=url, expected=int(length), received=len(data)
        )
        raise UpstreamUnreachableError(
            f"Upstream body incomplete: received {len(data)} of {length} bytes"
        )


class StreamMediaUseCase:
    def __init__(
        self,
        *,
        upstream: MediaUpstreamPort,
        cache: MediaCachePort,
        registry: ProviderRegistryPort,
        config: _ProxyConfig,
        check_target_fn: _CheckTargetFn,
        rewrite_fn: _RewriteFn,
        is_hls_fn: _IsHlsFn,
        cacheable_fn: _CacheableFn,
    ) -> None:
        self._upstream = upstream
        self._cache = cache
        self._registry = registry
        self._proxy_path = config.path
        self._default_ua = config.default_user_agent
        self._max_buffered = config.max_buffered_bytes
        self._check_target = check_target_fn
        self._rewrite = rewrite_fn
        self._is_hls = is_hls_fn
        self._cacheable = cacheable_fn

    def _upstream_headers(
        self, url: str, request: ProxyRequest, referer: str
    ) -> dict[str, str]:
        headers = {
            "User-Agent": request.user_agent
            or request.client_user_agent
            or self._default_ua,
            "Accept": HLS_ACCEPT if self._is_hls(url, "") else "*/*",
            "Accept-Language": "en-US,en;q=0.9",
            # Bodies are relayed byte for byte, so Content-Length must stay valid.
            "Accept-Encoding": "identity",
            "Referer": referer,
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Site": "cross-site",
            "Sec-Fetch-Dest": "empty",
        }
        if request.origin:
            headers["Origin"] = request.origin
        if request.range:
            headers["Range"] = request.range
        return headers

    def _reliability(self, url: str, referer: str) -> int:
        return max(self._registry.reliability(url), self._registry.reliability(referer))

    def _rewrite_playlist(
        self, text: str, playlist_url: str, request: ProxyRequest, referer: str
    ) -> bytes:
        rewritten = self._rewrite(
            text,
            playlist_url,
            self._proxy_path,
            referer=referer,
            origin=request.origin,
            user_agent=request.user_agent,
        )
        return rewritten.encode("utf-8")

    def _from_cache(
        self, url: str, request: ProxyRequest, referer: str
    ) -> ProxyResponse | None:
        try:
            cached = self._cache.get(url)
        except Exception:  # noqa: BLE001
            log.warning("proxy_cache_read_failed", url=url, exc_info=True)
            return None
        if cached is None:
            return None

        body = cached.data
        content_type = cached.content_type
        if request.rewrite and self._is_hls(url, content_type):
            text = body.decode("utf-8", errors="replace")
            body = self._rewrite_playlist(
                text, cached.source_url or url, request, referer
            )
            content_type = HLS_CONTENT_TYPE

        log.debug("proxy_cache_hit", url=url, size=len(body))
        return ProxyResponse(
            status=200,
            headers={"Content-Type": content_type, "Content-Length": str(len(body))},
            body=body,
            cache_status="HIT",
        )

    async def execute(self, request: ProxyRequest) -> ProxyResponse:
        """Proxy one media request.

        Raises:
            InvalidInputError / BlockedTargetError: target rejected before any I/O,
                or a redirect hop pointed at an internal host.
            UpstreamUnreachableError: origin timed out or refused the connection.
            UnexpectedContentError: origin answered with an HTML page.
        """
        url = self._check_target(request.url)
        url = merge_extra_params(url, request.extra_params)
        parts = urlsplit(url)
        referer = request.referer or f"{parts.scheme}://{parts.netloc}/"

        cacheable = self._cacheable(url)
        if cacheable and not request.range:
            hit = self._from_cache(url, request, referer)
            if hit is not None:
                return hit

        resp = await self._upstream.open(
            url, self._upstream_headers(url, request, referer)
        )
        content_type = resp.headers.get("content-type", "")
        headers = {
            name.title(): resp.headers[name]
            for name in FORWARDED_HEADERS
            if name in resp.headers
        }
        if "content-encoding" in resp.headers:
            headers.pop("Content-Length", None)

        is_hls = self._is_hls(url, content_type)
        if not is_hls and _is_html(content_type):
            await resp.close()
            log.warning(
                "proxy_html_instead_of_media",
                url=url,
                status=resp.status,
                content_type=content_type,
            )
            raise UnexpectedContentError(HTML_REJECTED_MESSAGE)

        if is_hls and request.rewrite and 200 <= resp.status < 300:
            return await self._serve_playlist(url, request, referer, resp, headers)

        if cacheable and not request.range and resp.status == 200:
            buffered = await self._try_buffer(url, referer, resp, headers)
            if buffered is not None:
                return buffered

        cache_status = None
        if cacheable:
            cache_status = "SKIP-RANGE" if request.range else "SKIP"
        log.debug("proxy_streaming", url=url, status=resp.status, range=request.range)
        return ProxyResponse(
            status=resp.status,
            headers=headers,
            body=resp.stream,
            cache_status=cache_status,
            close=resp.close,
        )

    async def _serve_playlist(
        self,
        url: str,
        request: ProxyRequest,
        referer: str,
        resp: UpstreamResponse,
        headers: dict[str, str],
    ) -> ProxyResponse:
        raw = await resp.read()
        _ensure_complete(url, resp, raw)
        playlist_url = resp.url or url
        content_type = resp.headers.get("content-type", "") or HLS_CONTENT_TYPE

        cache_status = None
        if not request.range:
            stored = self._cache.set(
                url,
                raw,
                content_type,
                reliability=self._reliability(url, referer),
                source_url=playlist_url,
            )
            cache_status = "MISS" if stored else "SKIP"

        text = raw.decode("utf-8", errors="replace")
        body = self._rewrite_playlist(text, playlist_url, request, referer)
        headers = {k: v for k, v in headers.items() if k not in _PLAYLIST_STALE_HEADERS}
        headers["Content-Type"] = HLS_CONTENT_TYPE
        headers["Content-Length"] = str(len(body))
        log.debug("proxy_playlist_rewritten", url=url, size=len(body))
        return ProxyResponse(
            status=resp.status,
            headers=headers,
            body=body,
            cache_status=cache_status,
        )

    async def _try_buffer(
        self,
        url: str,
        referer: str,
        resp: UpstreamResponse,
        headers: dict[str, str],
    ) -> ProxyResponse | None:
        """Read and cache a small complete body; None if it should be streamed."""
        length = resp.headers.get("content-length", "")
        if not length.isdigit() or int(length) > self._max_buffered:
            return None

        data = await resp.read()
        _ensure_complete(url, resp, data)
        stored = self._cache.set(
            url,
            data,
            resp.headers.get("content-type", ""),
            reliability=self._reliability(url, referer),
        )
        headers = dict(headers)
        headers["Content-Length"] = str(len(data))
        return ProxyResponse(
            status=resp.status,
            headers=headers,
            body=data,
            cache_status="MISS" if stored else "SKIP",
        )
