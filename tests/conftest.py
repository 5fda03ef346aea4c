"""Shared test fixtures for the streamgate test suite."""

from __future__ import annotations

import re
from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from streamgate.domain.entities.proxy import UpstreamResponse
from streamgate.infrastructure.cache import MediaCache
from streamgate.infrastructure.config.schema import ProxyConfig, ResolverConfig
from streamgate.infrastructure.extraction.unpacker import encode_base
from streamgate.infrastructure.providers import ProviderRegistry

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_WORD_RE = re.compile(r"\b\w+\b", re.ASCII)


def pack_js(source: str, radix: int = 36) -> str:
    """Produce a Dean Edwards style packed block for *source*."""
    words: list[str] = []
    for m in _WORD_RE.finditer(source):
        if m.group(0) not in words:
            words.append(m.group(0))
    index = {word: encode_base(i, radix) for i, word in enumerate(words)}
    payload = _WORD_RE.sub(lambda m: index[m.group(0)], source)
    return (
        "eval(function(p,a,c,k,e,d){return p}"
        f"('{payload}',{radix},{len(words)},'{'|'.join(words)}'.split('|'),0,{{}}))"
    )


class FakeClock:
    """Manually advanced time source for cache tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """MediaUpstreamPort test double serving canned responses by URL."""

    def __init__(self) -> None:
        self.responses: dict[
            str, tuple[int, dict[str, str], list[bytes], str, Exception | None]
        ] = {}
        self.calls: list[tuple[str, dict[str, str]]] = []
        self.closed: list[str] = []

    def add(
        self,
        url: str,
        body: bytes | list[bytes],
        *,
        status: int = 200,
        headers: dict[str, str] | None = None,
        final_url: str | None = None,
        fail_with: Exception | None = None,
    ) -> None:
        """Register a response; *fail_with* is raised after the last chunk."""
        chunks = body if isinstance(body, list) else [body]
        self.responses[url] = (
            status,
            {k.lower(): v for k, v in (headers or {}).items()},
            chunks,
            final_url or url,
            fail_with,
        )

    async def open(self, url: str, headers: dict[str, str]) -> UpstreamResponse:
        self.calls.append((url, headers))
        status, resp_headers, chunks, final_url, fail_with = self.responses[url]

        async def _stream() -> AsyncIterator[bytes]:
            for chunk in chunks:
                yield chunk
            if fail_with is not None:
                raise fail_with

        async def _close() -> None:
            self.closed.append(url)

        return UpstreamResponse(
            status=status,
            headers=dict(resp_headers),
            url=final_url,
            stream=_stream(),
            close=_close,
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def pack() -> Callable[..., str]:
    return pack_js


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def registry() -> ProviderRegistry:
    return ProviderRegistry()


@pytest.fixture()
def media_cache(clock: FakeClock, registry: ProviderRegistry) -> MediaCache:
    return MediaCache(clock=clock, reliability_of=registry.reliability)


@pytest.fixture()
def resolver_config() -> ResolverConfig:
    return ResolverConfig()


@pytest.fixture()
def proxy_config() -> ProxyConfig:
    return ProxyConfig()


@pytest.fixture()
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture()
async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    """Real httpx.AsyncClient for use with respx mocking."""
    async with httpx.AsyncClient() as client:
        yield client
