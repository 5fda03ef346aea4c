"""Tests for the streaming proxy endpoint."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import respx
from fastapi import FastAPI
from fastapi.testclient import TestClient

from streamgate.application.use_cases.stream_media import HTML_REJECTED_MESSAGE
from streamgate.domain.entities.proxy import ProxyRequest, ProxyResponse

PLAYLIST_URL = "https://cdn.example.com/hls/index.m3u8"
PLAYLIST = b"#EXTM3U\n#EXTINF:4.0,\nseg-1.ts\n#EXT-X-ENDLIST\n"


def _mock_use_case(app: FastAPI, result: ProxyResponse) -> AsyncMock:
    use_case = AsyncMock()
    use_case.execute = AsyncMock(return_value=result)
    app.state.stream_uc = use_case
    return use_case


class TestPreflight:
    def test_options(self, client: TestClient) -> None:
        resp = client.options("/proxy")
        assert resp.status_code == 204
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["access-control-allow-methods"] == "GET,HEAD,OPTIONS"
        assert "Range" in resp.headers["access-control-allow-headers"]


class TestRequestMapping:
    def test_query_and_headers(self, app: FastAPI, client: TestClient) -> None:
        use_case = _mock_use_case(
            app,
            ProxyResponse(
                status=200,
                headers={"Content-Type": "video/mp2t"},
                body=b"abc",
                cache_status="SKIP",
            ),
        )

        resp = client.get(
            "/proxy?url=https://cdn.example.com/x.m3u8?a=1&token=abc"
            "&referer=https%3A%2F%2Fexample.com%2F&origin=https%3A%2F%2Fexample.com"
            "&ua=Agent%2F1.0&rewrite=0",
            headers={"Range": "bytes=0-", "User-Agent": "Player/1.0"},
        )

        assert resp.status_code == 200
        assert resp.content == b"abc"
        assert resp.headers["x-cache-status"] == "SKIP"
        assert resp.headers["access-control-allow-origin"] == "*"
        assert "X-Cache-Status" in resp.headers["access-control-expose-headers"]

        request: ProxyRequest = use_case.execute.await_args.args[0]
        assert request.url == "https://cdn.example.com/x.m3u8?a=1"
        assert request.extra_params == (("token", "abc"),)
        assert request.referer == "https://example.com/"
        assert request.origin == "https://example.com"
        assert request.user_agent == "Agent/1.0"
        assert request.client_user_agent == "Player/1.0"
        assert request.range == "bytes=0-"
        assert request.rewrite is False

    def test_rewrite_defaults_on(self, app: FastAPI, client: TestClient) -> None:
        use_case = _mock_use_case(app, ProxyResponse(status=200, body=b""))
        client.get("/proxy", params={"url": PLAYLIST_URL, "rewrite": "false"})
        assert use_case.execute.await_args.args[0].rewrite is True

    def test_streaming_body_is_closed(self, app: FastAPI, client: TestClient) -> None:
        async def _body():
            yield b"ab"
            yield b"cd"

        close = AsyncMock()
        _mock_use_case(
            app,
            ProxyResponse(
                status=206,
                headers={"Content-Type": "video/mp4", "Content-Range": "bytes 0-3/10"},
                body=_body(),
                close=close,
            ),
        )

        resp = client.get("/proxy", params={"url": "https://cdn.example.com/v.mp4"})

        assert resp.status_code == 206
        assert resp.content == b"abcd"
        assert resp.headers["content-range"] == "bytes 0-3/10"
        assert "x-cache-status" not in resp.headers
        close.assert_awaited_once()


class TestHead:
    def test_buffered_body_reports_length(self, app: FastAPI, client: TestClient) -> None:
        _mock_use_case(
            app,
            ProxyResponse(
                status=200,
                headers={"Content-Type": "video/mp2t", "Content-Length": "4"},
                body=b"data",
                cache_status="HIT",
            ),
        )

        resp = client.head("/proxy", params={"url": "https://cdn.example.com/seg.ts"})

        assert resp.status_code == 200
        assert resp.content == b""
        assert resp.headers["content-length"] == "4"
        assert resp.headers["content-type"] == "video/mp2t"
        assert resp.headers["x-cache-status"] == "HIT"
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_stream_released_without_reading(
        self, app: FastAPI, client: TestClient
    ) -> None:
        read: list[bytes] = []

        async def _body():
            read.append(b"ab")
            yield b"ab"

        close = AsyncMock()
        use_case = _mock_use_case(
            app,
            ProxyResponse(
                status=206,
                headers={"Content-Type": "video/mp4", "Content-Range": "bytes 0-1/10"},
                body=_body(),
                close=close,
            ),
        )

        resp = client.head(
            "/proxy",
            params={"url": "https://cdn.example.com/v.mp4"},
            headers={"Range": "bytes=0-1"},
        )

        assert resp.status_code == 206
        assert resp.content == b""
        assert resp.headers["content-range"] == "bytes 0-1/10"
        assert "content-length" not in resp.headers
        assert read == []
        close.assert_awaited_once()
        assert use_case.execute.await_args.args[0].range == "bytes=0-1"

    def test_rejected_target(self, client: TestClient) -> None:
        resp = client.head("/proxy", params={"url": "http://127.0.0.1/admin"})
        assert resp.status_code == 400
        assert resp.headers["access-control-allow-origin"] == "*"


class TestErrors:
    def test_missing_url(self, client: TestClient) -> None:
        resp = client.get("/proxy")
        assert resp.status_code == 400
        assert resp.json() == {"ok": False, "message": "Missing url parameter"}
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_invalid_u64(self, client: TestClient) -> None:
        resp = client.get("/proxy", params={"u64": "%%%"})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid base64 in u64 parameter"

    def test_blocked_target(self, client: TestClient) -> None:
        resp = client.get("/proxy", params={"url": "http://169.254.169.254/latest/meta-data"})
        assert resp.status_code == 400
        assert resp.json()["ok"] is False

    @respx.mock
    def test_html_instead_of_media(self, client: TestClient) -> None:
        respx.get("https://cdn.example.com/v.mp4").respond(200, html="<html>blocked</html>")
        resp = client.get("/proxy", params={"url": "https://cdn.example.com/v.mp4"})
        assert resp.status_code == 502
        assert resp.json() == {"ok": False, "message": HTML_REJECTED_MESSAGE}

    @respx.mock
    def test_upstream_unreachable(self, client: TestClient) -> None:
        respx.get("https://cdn.example.com/v.mp4").mock(
            side_effect=httpx.ConnectError("refused")
        )
        resp = client.get("/proxy", params={"url": "https://cdn.example.com/v.mp4"})
        assert resp.status_code == 502
        assert resp.json() == {"ok": False, "message": "Failed to fetch: refused"}


@respx.mock
def test_playlist_end_to_end(client: TestClient) -> None:
    route = respx.get(PLAYLIST_URL).respond(
        200, content=PLAYLIST, headers={"Content-Type": "application/vnd.apple.mpegurl"}
    )

    first = client.get("/proxy", params={"url": PLAYLIST_URL})
    second = client.get("/proxy", params={"url": PLAYLIST_URL})

    assert first.status_code == 200
    assert first.headers["x-cache-status"] == "MISS"
    assert first.headers["content-type"] == "application/vnd.apple.mpegurl"
    assert "/proxy?url=https%3A%2F%2Fcdn.example.com%2Fhls%2Fseg-1.ts" in first.text
    assert second.headers["x-cache-status"] == "HIT"
    assert second.text == first.text
    assert route.call_count == 1
    sent = route.calls.last.request
    assert sent.headers["Referer"] == "https://cdn.example.com/"
    assert sent.headers["Accept-Encoding"] == "identity"
