"""Embed page resolution endpoint."""

from __future__ import annotations

from typing import Any, cast

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from streamgate.domain.exceptions import StreamgateError
from streamgate.interfaces.api.middleware import with_cors
from streamgate.interfaces.api.params import error_response, is_truthy, target_url
from streamgate.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["resolve"])


@router.get("/resolve")
async def resolve(
    request: Request,
    url: str | None = Query(default=None, description="Embed page URL."),
    u64: str | None = Query(default=None, description="Base64url of the page URL."),
    referer: str | None = Query(default=None),
    ua: str | None = Query(default=None, description="User-Agent for the page fetch."),
    debug: str | None = Query(default=None),
) -> JSONResponse:
    """Resolve an embed page to ranked, proxied media URLs.

    ``ok: false`` with status 200 means the page was reachable (or the
    failure was upstream) but produced no media; 400 is reserved for bad
    input and blocked targets.
    """
    state = cast(AppState, request.app.state)
    debug_on = is_truthy(debug)

    try:
        page_url = target_url(url, u64)
        result = await state.resolve_uc.execute(
            page_url, referer=referer or None, user_agent=ua or None
        )
    except StreamgateError as exc:
        log.info("resolve_rejected", url=url, error=exc.message)
        return error_response(exc, urls=[])

    content: dict[str, Any] = {
        "ok": result.ok,
        "urls": [c.to_dict(debug=debug_on) for c in result.candidates],
        "message": result.message,
    }
    if debug_on:
        content["reason"] = result.reason.value if result.reason else None
        content["stage"] = result.stage
        if result.status is not None:
            content["status"] = result.status

    return JSONResponse(content=content, headers=with_cors())
