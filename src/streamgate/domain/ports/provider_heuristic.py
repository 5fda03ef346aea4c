"""Port for hostname-specific extraction heuristics."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from streamgate.domain.entities.media import CandidateMedia


@runtime_checkable
class ProviderHeuristicPort(Protocol):
    """Site-specific extraction applied when the generic scan finds nothing.

    Implementations handle one family of embed hosts (packed JWPlayer
    configs, token reassembly, ...). They operate on already-fetched
    HTML and must not perform I/O.
    """

    @property
    def name(self) -> str: ...

    def matches(self, hostname: str, html: str) -> bool:
        """Return True if this heuristic applies to *hostname* / *html*."""
        ...

    def extract(self, html: str, base_url: str) -> list[CandidateMedia]: ...
