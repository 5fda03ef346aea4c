"""Streaming media proxy endpoint (mounted at ``config.proxy.path``)."""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import Response, StreamingResponse
from starlette.background import BackgroundTask

from streamgate.application.use_cases.stream_media import CONTROL_KEYS
from streamgate.domain.entities.proxy import ProxyRequest, ProxyResponse
from streamgate.domain.exceptions import StreamgateError
from streamgate.interfaces.api.middleware import with_cors
from streamgate.interfaces.api.params import error_response, target_url
from streamgate.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["proxy"])

PREFLIGHT_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Methods": "GET,HEAD,OPTIONS",
    "Access-Control-Allow-Headers": (
        "Range,Content-Type,Accept,Origin,Referer,User-Agent"
    ),
    "Access-Control-Max-Age": "86400",
}


def build_proxy_request(request: Request) -> ProxyRequest:
    """Translate the incoming query string and headers into a ProxyRequest.

    Raises:
        InvalidInputError: missing ``url``/``u64`` or undecodable ``u64``.
    """
    params = request.query_params
    url = target_url(params.get("url"), params.get("u64"))
    extra = tuple(
        (key, value)
        for key, value in params.multi_items()
        if key not in CONTROL_KEYS
    )
    return ProxyRequest(
        url=url,
        referer=params.get("referer") or None,
        origin=params.get("origin") or None,
        user_agent=params.get("ua") or None,
        client_user_agent=request.headers.get("user-agent"),
        rewrite=params.get("rewrite", "1") != "0",
        range=request.headers.get("range"),
        extra_params=extra,
    )


def to_http_response(result: ProxyResponse) -> Response:
    headers = with_cors(result.headers)
    if result.cache_status:
        headers["X-Cache-Status"] = result.cache_status

    if isinstance(result.body, bytes):
        return Response(content=result.body, status_code=result.status, headers=headers)
    # The upstream is released once the body is sent or the client goes away.
    return StreamingResponse(
        result.body,
        status_code=result.status,
        headers=headers,
        background=BackgroundTask(result.aclose),
    )


async def to_head_response(result: ProxyResponse) -> Response:
    """Headers of the GET response without its body.

    A streamed upstream is released right away; Content-Length is only
    reported when the origin (or the buffered body) declared one.
    """
    headers = with_cors(result.headers)
    if result.cache_status:
        headers["X-Cache-Status"] = result.cache_status
    if result.is_streaming:
        await result.aclose()

    response = Response(status_code=result.status, headers=headers)
    declared = any(key.lower() == "content-length" for key in headers)
    if not declared and "content-length" in response.headers:
        del response.headers["content-length"]
    return response


@router.options("")
async def proxy_preflight() -> Response:
    return Response(status_code=204, headers=with_cors(PREFLIGHT_HEADERS))


async def _execute(request: Request) -> ProxyResponse | Response:
    state = cast(AppState, request.app.state)
    try:
        proxy_request = build_proxy_request(request)
        return await state.stream_uc.execute(proxy_request)
    except StreamgateError as exc:
        log.info(
            "proxy_rejected",
            error=exc.message,
            status_code=exc.status_code,
        )
        return error_response(exc)


@router.get("")
async def proxy(request: Request) -> Response:
    """Fetch the target and relay it, rewriting HLS playlists.

    Status codes of the origin are passed through; 400 means the target
    was rejected before any network access, 502 that the origin was
    unreachable or returned an HTML page.
    """
    result = await _execute(request)
    if isinstance(result, Response):
        return result
    return to_http_response(result)


@router.head("")
async def proxy_head(request: Request) -> Response:
    """Same target handling as GET; only the status and headers are sent."""
    result = await _execute(request)
    if isinstance(result, Response):
        return result
    return await to_head_response(result)
