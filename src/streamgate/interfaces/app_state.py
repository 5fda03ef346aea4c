"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from streamgate.infrastructure.config import AppConfig

if TYPE_CHECKING:
    import asyncio

    from streamgate.application.use_cases import (
        ResolveMediaUseCase,
        StreamMediaUseCase,
    )
    from streamgate.infrastructure.cache import MediaCache
    from streamgate.infrastructure.providers import ProviderRegistry


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    http_client: httpx.AsyncClient
    media_cache: MediaCache
    providers: ProviderRegistry

    # Application Services
    resolve_uc: ResolveMediaUseCase
    stream_uc: StreamMediaUseCase

    # Background expiry sweep of media_cache
    _sweeper_task: asyncio.Task | None
