"""Port for provider reliability lookups."""

from __future__ import annotations

from typing import Protocol

from streamgate.domain.entities.media import ProviderProfile


class ProviderRegistryPort(Protocol):
    """Read-only view over known hosting domains. Never raises."""

    def lookup(self, url: str) -> ProviderProfile | None: ...

    def reliability(self, url: str) -> int: ...

    def rank(self, urls: list[str]) -> list[str]: ...
