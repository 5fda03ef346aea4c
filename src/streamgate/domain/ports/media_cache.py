"""Port for the in-process media cache used by the streaming proxy."""

from __future__ import annotations

from typing import Any, Protocol

from streamgate.domain.entities.media import CachedMedia


class MediaCachePort(Protocol):
    """Byte-budgeted, TTL-bound store for playlists and small media files.

    Implementations decide admission (what is worth caching) and TTL;
    callers only offer content and read it back.
    """

    def get(self, url: str) -> CachedMedia | None:
        """Return cached content, or None when missing or expired."""
        ...

    def set(
        self,
        url: str,
        data: bytes,
        content_type: str,
        *,
        reliability: int | None = None,
        source_url: str | None = None,
    ) -> bool:
        """Offer content for caching. False = rejected by admission/expiry.

        *source_url* is the post-redirect URL when it differs from *url*.
        """
        ...

    def has(self, url: str) -> bool: ...

    def delete(self, url: str) -> bool: ...

    def clear(self) -> None: ...

    def stats(self) -> dict[str, Any]: ...
