"""Port for turning page text into media candidates."""

from __future__ import annotations

from typing import Protocol

from streamgate.domain.entities.media import CandidateMedia


class MediaExtractorPort(Protocol):
    """Textual extraction used by the resolver's fallback stages.

    Every method is best-effort: malformed input gives an empty list,
    never an exception.
    """

    def scan(self, text: str, base_url: str) -> list[CandidateMedia]:
        """Run the full pattern battery (plus atob/packed payloads) over *text*."""
        ...

    def scan_inline_scripts(self, html: str, base_url: str) -> list[CandidateMedia]:
        """Scan each inline ``<script>`` body on its own."""
        ...

    def apply_heuristics(self, html: str, page_url: str) -> list[CandidateMedia]:
        """Hostname/content-selected provider heuristics."""
        ...

    def follow_targets(
        self,
        html: str,
        base_url: str,
        *,
        max_iframes: int,
        max_scripts: int,
    ) -> list[str]:
        """Iframe then external script URLs worth fetching, safe targets only."""
        ...

    def api_probe_urls(self, page_url: str) -> list[str]:
        """Provider-shaped API endpoints derived from the page path."""
        ...
