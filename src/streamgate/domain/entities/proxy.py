"""Request/response value objects for the streaming proxy."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field


async def _noop() -> None:
    return None


@dataclass(frozen=True)
class ProxyRequest:
    url: str
    referer: str | None = None
    origin: str | None = None
    user_agent: str | None = None  # explicit ``ua`` query parameter
    client_user_agent: str | None = None  # User-Agent of the calling player
    rewrite: bool = True
    range: str | None = None
    # Top-level query params that belonged to the target URL.
    extra_params: tuple[tuple[str, str], ...] = ()


@dataclass
class UpstreamResponse:
    """An opened upstream response whose body has not been consumed yet."""

    status: int
    headers: dict[str, str]  # lowercased names
    url: str  # final URL after redirects
    stream: AsyncIterator[bytes]
    close: Callable[[], Awaitable[None]] = _noop

    async def read(self) -> bytes:
        """Consume the whole body, then release the connection."""
        try:
            chunks = [chunk async for chunk in self.stream]
        finally:
            await self.close()
        return b"".join(chunks)


@dataclass
class ProxyResponse:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | AsyncIterator[bytes] = b""
    cache_status: str | None = None
    close: Callable[[], Awaitable[None]] = _noop

    @property
    def is_streaming(self) -> bool:
        return not isinstance(self.body, bytes)

    async def aclose(self) -> None:
        await self.close()
