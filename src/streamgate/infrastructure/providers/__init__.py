"""Provider table and hostname-specific extraction heuristics."""

from __future__ import annotations

from .heuristics import DEFAULT_HEURISTICS, select_heuristics
from .registry import DEFAULT_PROVIDERS, ProviderRegistry

__all__ = [
    "DEFAULT_HEURISTICS",
    "DEFAULT_PROVIDERS",
    "ProviderRegistry",
    "select_heuristics",
]
