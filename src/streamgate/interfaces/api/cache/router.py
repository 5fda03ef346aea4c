"""Media cache inspection and maintenance."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from streamgate.interfaces.api.middleware import with_cors
from streamgate.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/cache", tags=["cache"])

# Entry summaries returned by /cache/stats.
MAX_LISTED_ENTRIES = 100


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/stats")
async def cache_stats(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    cache = state.media_cache
    return JSONResponse(
        content={
            "cache": {
                **cache.stats(),
                "entries": cache.entries(limit=MAX_LISTED_ENTRIES),
                "totalEntries": len(cache),
            },
            "timestamp": _now_iso(),
        },
        headers=with_cors(),
    )


@router.post("/clear")
async def cache_clear(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    removed = len(state.media_cache)
    state.media_cache.clear()
    log.info("media_cache_cleared", removed=removed)
    return JSONResponse(
        content={
            "success": True,
            "message": "Video cache cleared successfully",
            "timestamp": _now_iso(),
        },
        headers=with_cors(),
    )
