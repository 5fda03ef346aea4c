"""Embed page -> ranked, proxied media URLs.

Stages run strictly in order and stop at the first one that yields
candidates (unless the resolver is configured to be exhaustive):

page HTML -> inline scripts -> provider heuristics
-> iframes / external scripts -> provider-shaped API probes.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol
from urllib.parse import quote, urlsplit

import structlog

from streamgate.domain.entities.media import (
    MEDIA_TYPE_ORDER,
    CandidateMedia,
    FetchedPage,
    ResolvedMedia,
    ResolveFailure,
    ResolveResult,
    quality_rank,
)
from streamgate.domain.exceptions import PageFetchError
from streamgate.domain.ports.media_extractor import MediaExtractorPort
from streamgate.domain.ports.page_fetcher import PageFetcherPort
from streamgate.domain.ports.provider_registry import ProviderRegistryPort

log = structlog.get_logger(__name__)

_API_ACCEPT = "application/json, text/plain, */*"


class _ResolverConfig(Protocol):
    """Configuration values consumed by ResolveMediaUseCase."""

    exhaustive: bool
    max_iframes: int
    max_scripts: int
    api_probes_enabled: bool
    api_probe_concurrency: int


_Stage = Callable[[FetchedPage, str | None], Awaitable[list[CandidateMedia]]]


def build_proxied_url(proxy_path: str, url: str, referer: str | None = None) -> str:
    """``<proxy_path>?url=<enc>[&referer=<enc>]&rewrite=1``.

    >>> build_proxied_url("/proxy", "https://example.com/video.mp4")
    '/proxy?url=https%3A%2F%2Fexample.com%2Fvideo.mp4&rewrite=1'
    """
    query = f"url={quote(url, safe='')}"
    if referer:
        query += f"&referer={quote(referer, safe='')}"
    return f"{proxy_path}?{query}&rewrite=1"


def _has_http_scheme(url: str) -> bool:
    try:
        return urlsplit(url.strip()).scheme.lower() in ("http", "https")
    except ValueError:
        return False


class ResolveMediaUseCase:
    def __init__(
        self,
        *,
        fetcher: PageFetcherPort,
        extractor: MediaExtractorPort,
        registry: ProviderRegistryPort,
        config: _ResolverConfig,
        proxy_path: str = "/proxy",
    ) -> None:
        self._fetcher = fetcher
        self._extractor = extractor
        self._registry = registry
        self._config = config
        self._proxy_path = proxy_path

    async def execute(
        self,
        page_url: str,
        *,
        referer: str | None = None,
        user_agent: str | None = None,
    ) -> ResolveResult:
        """Resolve *page_url* to ranked candidates.

        Never raises for extraction or upstream problems; those come back
        as ``ok=False`` with a :class:`ResolveFailure` reason. Only a
        blocked (internal) target raises ``BlockedTargetError``.
        """
        page_url = page_url.strip()
        if not _has_http_scheme(page_url):
            log.info("resolve_invalid_scheme", url=page_url)
            return ResolveResult(
                ok=False,
                message="Invalid URL scheme. Only http and https are allowed.",
                reason=ResolveFailure.INVALID_SCHEME,
            )

        try:
            page = await self._fetcher.fetch_page(
                page_url, referer=referer, user_agent=user_agent
            )
        except PageFetchError as exc:
            return ResolveResult(
                ok=False,
                message=exc.message,
                reason=exc.reason,
                status=exc.status,
            )

        found: dict[str, CandidateMedia] = {}
        productive: list[str] = []
        stages: list[tuple[str, _Stage]] = [
            ("page", self._scan_page),
            ("inline_scripts", self._scan_inline_scripts),
            ("heuristics", self._apply_heuristics),
            ("embedded_resources", self._follow_embedded),
        ]
        if self._config.api_probes_enabled:
            stages.append(("api_probe", self._probe_apis))

        for name, stage in stages:
            items = await stage(page, user_agent)
            new = [c for c in items if c.normalized not in found]
            for candidate in new:
                found[candidate.normalized] = candidate
            if new:
                productive.append(name)
            log.debug("resolve_stage_done", stage=name, found=len(items), new=len(new))
            if found and not self._config.exhaustive:
                break

        if not found:
            log.info("resolve_no_media", url=page_url, bytes=len(page.text))
            return ResolveResult(
                ok=False,
                message=(
                    f"Fetched {len(page.text)} bytes. No playable media URLs found."
                ),
                reason=ResolveFailure.NO_MEDIA_FOUND,
            )

        ranked = self._rank(list(found.values()), page_url, referer)
        stage = "+".join(productive)
        log.info("resolve_success", url=page_url, count=len(ranked), stage=stage)
        return ResolveResult(
            ok=True,
            candidates=ranked,
            message=(
                f"Fetched {len(page.text)} bytes. "
                f"Found {len(ranked)} unique video URLs."
            ),
            stage=stage,
        )

    # -- stages ------------------------------------------------------------

    async def _scan_page(
        self, page: FetchedPage, user_agent: str | None
    ) -> list[CandidateMedia]:
        return self._extractor.scan(page.text, page.url)

    async def _scan_inline_scripts(
        self, page: FetchedPage, user_agent: str | None
    ) -> list[CandidateMedia]:
        return self._extractor.scan_inline_scripts(page.text, page.url)

    async def _apply_heuristics(
        self, page: FetchedPage, user_agent: str | None
    ) -> list[CandidateMedia]:
        return self._extractor.apply_heuristics(page.text, page.url)

    async def _follow_embedded(
        self, page: FetchedPage, user_agent: str | None
    ) -> list[CandidateMedia]:
        targets = self._extractor.follow_targets(
            page.text,
            page.url,
            max_iframes=self._config.max_iframes,
            max_scripts=self._config.max_scripts,
        )
        found: dict[str, CandidateMedia] = {}
        for target in targets:
            body = await self._fetcher.fetch_optional(
                target, referer=page.url, user_agent=user_agent
            )
            if body is None:
                continue
            items = self._extractor.scan(body.text, body.url)
            if not items:
                items = self._extractor.scan_inline_scripts(body.text, body.url)
            for candidate in items:
                found.setdefault(candidate.normalized, candidate)
            if items:
                log.debug("embedded_resource_hit", target=target, found=len(items))
                if not self._config.exhaustive:
                    break
        return list(found.values())

    async def _probe_apis(
        self, page: FetchedPage, user_agent: str | None
    ) -> list[CandidateMedia]:
        urls = self._extractor.api_probe_urls(page.url)
        if not urls:
            return []
        semaphore = asyncio.Semaphore(max(1, self._config.api_probe_concurrency))

        async def _probe(url: str) -> list[CandidateMedia]:
            async with semaphore:
                body = await self._fetcher.fetch_optional(
                    url,
                    referer=page.url,
                    user_agent=user_agent,
                    accept=_API_ACCEPT,
                )
            if body is None:
                return []
            return self._extractor.scan(body.text, page.url)

        results = await asyncio.gather(*(_probe(url) for url in urls))
        found: dict[str, CandidateMedia] = {}
        for items in results:
            for candidate in items:
                found.setdefault(candidate.normalized, candidate)
        return list(found.values())

    # -- ranking -----------------------------------------------------------

    def _rank(
        self,
        candidates: list[CandidateMedia],
        page_url: str,
        referer: str | None,
    ) -> list[ResolvedMedia]:
        """HLS, MP4, WebM, DASH, other; higher quality first; then provider
        reliability of the media host; then discovery order."""
        ordered = sorted(
            enumerate(candidates),
            key=lambda item: (
                MEDIA_TYPE_ORDER[item[1].type],
                -quality_rank(item[1].quality),
                -self._registry.reliability(item[1].url),
                item[0],
            ),
        )
        page_provider = self._registry.lookup(page_url)
        return [
            ResolvedMedia(
                type=candidate.type,
                url=candidate.url,
                proxied_url=build_proxied_url(self._proxy_path, candidate.url, referer),
                quality=candidate.quality,
                provider=self._registry.lookup(candidate.url) or page_provider,
            )
            for _, candidate in ordered
        ]
