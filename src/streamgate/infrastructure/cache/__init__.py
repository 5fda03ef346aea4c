"""In-memory media cache."""

from __future__ import annotations

from .media_cache import CacheEntry, MediaCache, is_cacheable_url

__all__ = ["CacheEntry", "MediaCache", "is_cacheable_url"]
