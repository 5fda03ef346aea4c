"""Port for opening streamed upstream media responses."""

from __future__ import annotations

from typing import Protocol

from streamgate.domain.entities.proxy import UpstreamResponse


class MediaUpstreamPort(Protocol):
    async def open(self, url: str, headers: dict[str, str]) -> UpstreamResponse:
        """Send a GET and return once response headers arrive.

        The body is not read. Raises ``UpstreamUnreachableError`` on
        connect failure or timeout. Non-2xx statuses are returned, not
        raised.
        """
        ...
