"""Tests for PageFetcher (respx-mocked HTTP)."""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
import respx

from streamgate.domain.entities.media import ResolveFailure
from streamgate.domain.exceptions import BlockedTargetError, PageFetchError
from streamgate.infrastructure.common.guarded_transport import GuardedTransport
from streamgate.infrastructure.fetching.page_fetcher import (
    DEFAULT_USER_AGENT,
    PageFetcher,
    browser_headers,
)

PAGE_URL = "https://example.com/embed/abc"


@pytest.fixture()
def fetcher(http_client: httpx.AsyncClient) -> PageFetcher:
    return PageFetcher(http_client, page_timeout=15.0, aux_timeout=8.0)


@pytest.fixture()
async def guarded_fetcher() -> AsyncIterator[PageFetcher]:
    transport = GuardedTransport(httpx.AsyncHTTPTransport())
    async with httpx.AsyncClient(transport=transport) as client:
        yield PageFetcher(client)


class TestFetchPage:
    @respx.mock
    async def test_success(self, fetcher: PageFetcher) -> None:
        route = respx.get(PAGE_URL).respond(
            200, text="<html>ok</html>", headers={"Content-Type": "text/html"}
        )
        page = await fetcher.fetch_page(PAGE_URL, referer="https://example.com/")

        assert page.url == PAGE_URL
        assert page.status == 200
        assert page.text == "<html>ok</html>"
        assert page.content_type.startswith("text/html")
        sent = route.calls.last.request
        assert sent.headers["User-Agent"] == DEFAULT_USER_AGENT
        assert sent.headers["Referer"] == "https://example.com/"
        assert sent.headers["Accept"].startswith("text/html")

    @respx.mock
    async def test_follows_redirects(self, fetcher: PageFetcher) -> None:
        respx.get(PAGE_URL).respond(302, headers={"Location": "https://mirror.example/e/abc"})
        respx.get("https://mirror.example/e/abc").respond(200, text="moved")
        page = await fetcher.fetch_page(PAGE_URL)
        assert page.url == "https://mirror.example/e/abc"
        assert page.text == "moved"

    @respx.mock
    async def test_caller_user_agent_wins(self, fetcher: PageFetcher) -> None:
        route = respx.get(PAGE_URL).respond(200, text="")
        await fetcher.fetch_page(PAGE_URL, user_agent="Custom/1.0")
        assert route.calls.last.request.headers["User-Agent"] == "Custom/1.0"

    @respx.mock
    async def test_http_error(self, fetcher: PageFetcher) -> None:
        respx.get(PAGE_URL).respond(404)
        with pytest.raises(PageFetchError) as exc_info:
            await fetcher.fetch_page(PAGE_URL)
        assert exc_info.value.reason is ResolveFailure.HTTP_ERROR
        assert exc_info.value.message == "Failed to fetch: 404 Not Found"
        assert exc_info.value.status == 404

    @respx.mock
    async def test_timeout(self, fetcher: PageFetcher) -> None:
        respx.get(PAGE_URL).mock(side_effect=httpx.ReadTimeout("timed out"))
        with pytest.raises(PageFetchError) as exc_info:
            await fetcher.fetch_page(PAGE_URL)
        assert exc_info.value.reason is ResolveFailure.FETCH_TIMEOUT
        assert exc_info.value.message == "Request timed out after 15 seconds"
        assert exc_info.value.status is None

    @respx.mock
    async def test_network_error(self, fetcher: PageFetcher) -> None:
        respx.get(PAGE_URL).mock(side_effect=httpx.ConnectError("connection refused"))
        with pytest.raises(PageFetchError) as exc_info:
            await fetcher.fetch_page(PAGE_URL)
        assert exc_info.value.reason is ResolveFailure.FETCH_NETWORK_ERROR
        assert exc_info.value.message == "Network error: connection refused"

    async def test_blocked_target(self, fetcher: PageFetcher) -> None:
        with pytest.raises(BlockedTargetError):
            await fetcher.fetch_page("http://127.0.0.1:8080/admin")

    @respx.mock
    async def test_redirect_not_followed_when_disabled(
        self, http_client: httpx.AsyncClient
    ) -> None:
        fetcher = PageFetcher(http_client, follow_redirects=False)
        respx.get(PAGE_URL).respond(302, headers={"Location": "https://mirror.example/e/abc"})
        with pytest.raises(PageFetchError) as exc_info:
            await fetcher.fetch_page(PAGE_URL)
        assert exc_info.value.reason is ResolveFailure.HTTP_ERROR
        assert exc_info.value.status == 302

    @respx.mock
    async def test_redirect_to_internal_host_blocked(
        self, guarded_fetcher: PageFetcher
    ) -> None:
        respx.get(PAGE_URL).respond(302, headers={"Location": "http://127.0.0.1:8080/admin"})
        with pytest.raises(BlockedTargetError) as exc_info:
            await guarded_fetcher.fetch_page(PAGE_URL)
        assert exc_info.value.message == "Blocked hostname: 127.0.0.1"


class TestFetchOptional:
    @respx.mock
    async def test_success(self, fetcher: PageFetcher) -> None:
        route = respx.get("https://example.com/player.js").respond(200, text="var a;")
        page = await fetcher.fetch_optional(
            "https://example.com/player.js", referer=PAGE_URL
        )
        assert page is not None
        assert page.text == "var a;"
        assert route.calls.last.request.headers["Accept"] == "*/*"

    @respx.mock
    @pytest.mark.parametrize(
        "side_effect",
        [httpx.ReadTimeout("slow"), httpx.ConnectError("down")],
    )
    async def test_transport_failures(
        self, fetcher: PageFetcher, side_effect: Exception
    ) -> None:
        respx.get("https://example.com/x.js").mock(side_effect=side_effect)
        assert await fetcher.fetch_optional("https://example.com/x.js") is None

    @respx.mock
    async def test_http_error(self, fetcher: PageFetcher) -> None:
        respx.get("https://example.com/x.js").respond(500)
        assert await fetcher.fetch_optional("https://example.com/x.js") is None

    async def test_blocked_target_is_not_fetched(self, fetcher: PageFetcher) -> None:
        assert await fetcher.fetch_optional("http://10.0.0.1/iframe") is None

    @respx.mock
    async def test_redirect_to_internal_host_is_dropped(
        self, guarded_fetcher: PageFetcher
    ) -> None:
        respx.get("https://example.com/api/source/abc").respond(
            302, headers={"Location": "http://10.0.0.1/secrets"}
        )
        page = await guarded_fetcher.fetch_optional("https://example.com/api/source/abc")
        assert page is None


def test_browser_headers() -> None:
    headers = browser_headers()
    assert headers["User-Agent"] == DEFAULT_USER_AGENT
    assert "Referer" not in headers
    assert browser_headers(referer="https://a.example/")["Referer"] == "https://a.example/"
