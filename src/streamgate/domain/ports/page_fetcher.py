"""Port for fetching embed pages and their auxiliary resources."""

from __future__ import annotations

from typing import Protocol

from streamgate.domain.entities.media import FetchedPage


class PageFetcherPort(Protocol):
    async def fetch_page(
        self,
        url: str,
        *,
        referer: str | None = None,
        user_agent: str | None = None,
    ) -> FetchedPage:
        """Fetch the page being resolved.

        Raises ``PageFetchError`` (classified failure) or
        ``BlockedTargetError`` (internal host).
        """
        ...

    async def fetch_optional(
        self,
        url: str,
        *,
        referer: str | None = None,
        user_agent: str | None = None,
        accept: str = "*/*",
    ) -> FetchedPage | None:
        """Best-effort fetch; None on any failure."""
        ...
