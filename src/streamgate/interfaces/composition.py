"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from streamgate.application.use_cases import ResolveMediaUseCase, StreamMediaUseCase
from streamgate.infrastructure.cache import MediaCache, is_cacheable_url
from streamgate.infrastructure.common.guarded_transport import GuardedTransport
from streamgate.infrastructure.common.url_safety import check_target
from streamgate.infrastructure.config.schema import AppConfig
from streamgate.infrastructure.extraction.media_extractor import MediaExtractor
from streamgate.infrastructure.fetching.page_fetcher import PageFetcher
from streamgate.infrastructure.fetching.upstream import HttpxUpstream
from streamgate.infrastructure.hls.playlist import is_hls_response, rewrite_playlist
from streamgate.infrastructure.providers import ProviderRegistry
from streamgate.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def _build_media_cache(config: AppConfig, providers: ProviderRegistry) -> MediaCache:
    return MediaCache(
        max_size_bytes=config.cache.max_size_bytes,
        hls_ttl_seconds=config.cache.hls_ttl_seconds,
        binary_ttl_seconds=config.cache.binary_ttl_seconds,
        min_ttl_seconds=config.cache.min_ttl_seconds,
        max_object_bytes=config.cache.max_object_bytes,
        reliability_of=providers.reliability,
    )


def _wire_use_cases(state: AppState, config: AppConfig) -> None:
    """Build both use cases on top of the already initialized infrastructure."""
    fetcher = PageFetcher(
        state.http_client,
        page_timeout=config.resolver.page_timeout_seconds,
        aux_timeout=config.resolver.aux_timeout_seconds,
        user_agent=config.http_user_agent,
        follow_redirects=config.http_follow_redirects,
    )
    state.resolve_uc = ResolveMediaUseCase(
        fetcher=fetcher,
        extractor=MediaExtractor(),
        registry=state.providers,
        config=config.resolver,
        proxy_path=config.proxy.path,
    )
    state.stream_uc = StreamMediaUseCase(
        upstream=HttpxUpstream(
            state.http_client,
            connect_timeout=config.proxy.connect_timeout_seconds,
            follow_redirects=config.http_follow_redirects,
        ),
        cache=state.media_cache,
        registry=state.providers,
        config=config.proxy,
        check_target_fn=check_target,
        rewrite_fn=rewrite_playlist,
        is_hls_fn=is_hls_response,
        cacheable_fn=is_cacheable_url,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. Provider registry (cache TTLs depend on it)
        2. Media cache + background sweeper
        3. HTTP client (shared by page fetches and the proxy)
        4. Use cases
    """
    state = cast(AppState, app.state)
    config = state.config

    # 1) Provider registry
    state.providers = ProviderRegistry()
    log.info("provider_registry_initialized", providers=len(state.providers))

    # 2) Media cache
    state.media_cache = _build_media_cache(config, state.providers)
    state._sweeper_task = asyncio.create_task(
        state.media_cache.run_sweeper(config.cache.sweep_interval_seconds)
    )
    log.info(
        "media_cache_initialized",
        max_size_bytes=config.cache.max_size_bytes,
        sweep_interval_seconds=config.cache.sweep_interval_seconds,
    )

    # 3) HTTP client; every hop, redirects included, passes the target gate
    state.http_client = httpx.AsyncClient(
        transport=GuardedTransport(httpx.AsyncHTTPTransport()),
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=config.http_follow_redirects,
    )
    log.info("http_client_initialized", timeout=config.http_timeout_seconds)

    # 4) Use cases
    _wire_use_cases(state, config)
    log.info("app_startup_complete")

    try:
        yield
    finally:
        if state._sweeper_task is not None:
            state._sweeper_task.cancel()
            with suppress(asyncio.CancelledError):
                await state._sweeper_task
            state._sweeper_task = None
            log.info("cache_sweeper_stopped")

        await state.http_client.aclose()
        log.info("http_client_closed")

        state.media_cache.clear()
        log.info("app_shutdown_complete")
