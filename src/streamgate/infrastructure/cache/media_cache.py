"""In-process media cache for the streaming proxy.

Byte-budgeted LRU over HLS playlists and small progressive files. TTLs
scale with provider reliability and never outlive an expiry timestamp
embedded in the media URL itself (``?expires=``, ``?exp=``, ``?e=``).
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl, urlsplit

import structlog

from streamgate.domain.entities.media import CachedMedia

log = structlog.get_logger(__name__)

DEFAULT_MAX_SIZE_BYTES = 1024 * 1024 * 1024  # 1 GiB
DEFAULT_MAX_OBJECT_BYTES = 50 * 1024 * 1024
DEFAULT_HLS_TTL_SECONDS = 300.0
DEFAULT_BINARY_TTL_SECONDS = 3600.0
DEFAULT_MIN_TTL_SECONDS = 60.0

# Embedded expiries further than this from "now" are not trusted.
_EXPIRY_WINDOW_SECONDS = 24 * 3600
# Share of the remaining time-to-expiry an entry may live.
_EXPIRY_SAFETY_FACTOR = 0.8
_EXPIRY_PARAMS = ("expires", "exp", "e")

_HLS_CONTENT_TYPES = ("mpegurl",)
_BINARY_EXTENSIONS = (".mp4", ".webm")
_BINARY_CONTENT_TYPES = ("video/mp4", "video/webm")


@dataclass
class CacheEntry:
    key: str
    data: bytes
    content_type: str
    size: int
    created_at: float
    ttl: float
    expires_at: float | None
    last_accessed_at: float
    access_count: int
    is_hls: bool
    provider_reliability: int
    source_url: str

    def is_expired(self, now: float) -> bool:
        if now >= self.created_at + self.ttl:
            return True
        return self.expires_at is not None and now >= self.expires_at

    def summary(self, now: float) -> dict[str, Any]:
        return {
            "key": self.key,
            "size": self.size,
            "contentType": self.content_type,
            "isHls": self.is_hls,
            "providerReliability": self.provider_reliability,
            "accessCount": self.access_count,
            "lastAccessed": self.last_accessed_at,
            "expiresAt": self.expires_at,
            "ttl": self.ttl,
            "age": round(now - self.created_at, 3),
        }


def _path(url: str) -> str:
    try:
        return urlsplit(url).path.lower()
    except ValueError:
        return ""


def is_hls_content(url: str, content_type: str = "") -> bool:
    ct = content_type.lower()
    return _path(url).endswith(".m3u8") or any(t in ct for t in _HLS_CONTENT_TYPES)


def is_cacheable_binary(url: str, content_type: str = "") -> bool:
    ct = content_type.lower()
    return _path(url).endswith(_BINARY_EXTENSIONS) or ct.startswith(_BINARY_CONTENT_TYPES)


def is_cacheable_url(url: str) -> bool:
    """URLs worth a cache lookup before going upstream (m3u8/mp4/webm)."""
    path = _path(url)
    return path.endswith(".m3u8") or path.endswith(_BINARY_EXTENSIONS)


def embedded_expiry(url: str, now: float) -> float | None:
    """Unix timestamp from an ``expires``/``exp``/``e`` query param.

    Millisecond values are accepted. Values outside +-24h of *now* are
    ignored (they are usually not timestamps at all).
    """
    try:
        params = parse_qsl(urlsplit(url).query, keep_blank_values=False)
    except ValueError:
        return None
    values = {k.lower(): v for k, v in params}
    for name in _EXPIRY_PARAMS:
        raw = values.get(name, "")
        if not raw.isdigit():
            continue
        ts = float(raw)
        if ts > 1e12:
            ts /= 1000.0
        if abs(ts - now) <= _EXPIRY_WINDOW_SECONDS:
            return ts
    return None


class MediaCache:
    """Byte-budgeted LRU keyed by source URL.

    Entries are kept in access order (least recently used first), so
    eviction pops from the front until the new entry fits.
    Invariant: ``current_size == sum(e.size for e in entries)``.
    """

    def __init__(
        self,
        *,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        hls_ttl_seconds: float = DEFAULT_HLS_TTL_SECONDS,
        binary_ttl_seconds: float = DEFAULT_BINARY_TTL_SECONDS,
        min_ttl_seconds: float = DEFAULT_MIN_TTL_SECONDS,
        max_object_bytes: int = DEFAULT_MAX_OBJECT_BYTES,
        reliability_of: Callable[[str], int] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._current_size = 0
        self._max_size = max_size_bytes
        self._hls_ttl = hls_ttl_seconds
        self._binary_ttl = binary_ttl_seconds
        self._min_ttl = min_ttl_seconds
        self._max_object = max_object_bytes
        self._reliability_of = reliability_of
        self._clock = clock

    @property
    def current_size(self) -> int:
        return self._current_size

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._entries)

    # -- reads -------------------------------------------------------------

    def get(self, url: str) -> CachedMedia | None:
        entry = self._entries.get(url)
        if entry is None:
            return None

        now = self._clock()
        if entry.is_expired(now):
            self._remove(url)
            log.debug("media_cache_expired", key=url)
            return None
        if not isinstance(entry.data, bytes) or len(entry.data) != entry.size:
            self._remove(url)
            log.warning("media_cache_corrupted_entry", key=url)
            return None

        entry.last_accessed_at = now
        entry.access_count += 1
        self._entries.move_to_end(url)
        return CachedMedia(
            data=entry.data,
            content_type=entry.content_type,
            source_url=entry.source_url,
        )

    def has(self, url: str) -> bool:
        entry = self._entries.get(url)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            self._remove(url)
            return False
        return True

    # -- writes ------------------------------------------------------------

    def _ttl_for(self, is_hls: bool, reliability: int) -> float:
        base = self._hls_ttl if is_hls else self._binary_ttl
        return base * max(0.5, reliability / 10)

    def set(
        self,
        url: str,
        data: bytes,
        content_type: str,
        *,
        reliability: int | None = None,
        source_url: str | None = None,
    ) -> bool:
        """Offer *data* for caching; returns False when not admitted.

        *source_url* records where the content was actually served from
        (after redirects); it defaults to *url*.
        """
        size = len(data)
        is_hls = is_hls_content(url, content_type)
        if not is_hls:
            if not is_cacheable_binary(url, content_type):
                log.debug("media_cache_rejected", key=url, reason="type")
                return False
            if size > self._max_object:
                log.debug("media_cache_rejected", key=url, reason="object_size", size=size)
                return False
        if size > self._max_size:
            log.debug("media_cache_rejected", key=url, reason="cache_size", size=size)
            return False

        if reliability is None:
            reliability = self._reliability_of(url) if self._reliability_of else 0
        now = self._clock()
        ttl = self._ttl_for(is_hls, reliability)

        expires_at = embedded_expiry(url, now)
        if expires_at is not None:
            remaining = expires_at - now
            if remaining <= 0:
                log.debug("media_cache_rejected", key=url, reason="already_expired")
                return False
            ttl = min(ttl, remaining * _EXPIRY_SAFETY_FACTOR)
        ttl = max(ttl, self._min_ttl)

        if url in self._entries:
            self._remove(url)
        self._evict_for(size)

        self._entries[url] = CacheEntry(
            key=url,
            data=data,
            content_type=content_type,
            size=size,
            created_at=now,
            ttl=ttl,
            expires_at=expires_at,
            last_accessed_at=now,
            access_count=0,
            is_hls=is_hls,
            provider_reliability=reliability,
            source_url=source_url or url,
        )
        self._current_size += size
        log.debug("media_cache_set", key=url, size=size, ttl=round(ttl, 1), hls=is_hls)
        return True

    def delete(self, url: str) -> bool:
        if url not in self._entries:
            return False
        self._remove(url)
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._current_size = 0

    def _remove(self, url: str) -> None:
        entry = self._entries.pop(url)
        self._current_size -= entry.size

    def _evict_for(self, size: int) -> None:
        evicted = 0
        while self._entries and self._current_size + size > self._max_size:
            key, _ = next(iter(self._entries.items()))
            self._remove(key)
            evicted += 1
        if evicted:
            log.debug("media_cache_evicted", count=evicted, needed=size)

    # -- maintenance -------------------------------------------------------

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            self._remove(key)
        return len(expired)

    async def run_sweeper(self, interval_seconds: float) -> None:
        """Purge expired entries every *interval_seconds* until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            purged = self.purge_expired()
            if purged:
                log.info(
                    "media_cache_swept",
                    purged=purged,
                    entries=len(self._entries),
                    size=self._current_size,
                )

    def stats(self) -> dict[str, Any]:
        utilization = (
            round(self._current_size / self._max_size * 100, 2) if self._max_size else 0.0
        )
        return {
            "entries": len(self._entries),
            "totalSize": self._current_size,
            "maxSize": self._max_size,
            "utilization": utilization,
        }

    def entries(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Entry summaries, most recently used first."""
        now = self._clock()
        items = list(reversed(self._entries.values()))
        if limit is not None:
            items = items[:limit]
        return [entry.summary(now) for entry in items]
