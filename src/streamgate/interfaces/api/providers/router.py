"""Provider reliability table and URL ranking."""

from __future__ import annotations

from typing import Any, cast

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from streamgate.interfaces.api.middleware import with_cors
from streamgate.interfaces.app_state import AppState

router = APIRouter(tags=["providers"])

_USAGE = {
    "List all providers": "?action=list",
    "Get statistics": "?action=stats",
    "Sort URLs": "?action=sort&urls=url1&urls=url2",
    "Categorize URLs": "?action=categorize&urls=url1&urls=url2",
}


@router.get("/providers")
async def providers(
    request: Request,
    action: str | None = Query(default=None),
    urls: list[str] | None = Query(default=None),
) -> JSONResponse:
    """Inspect the provider table or rank caller-supplied URLs by it."""
    registry = cast(AppState, request.app.state).providers
    urls = urls or []
    content: dict[str, Any]

    if action == "list":
        content = {
            "providers": [p.to_dict() for p in registry.profiles],
            "stats": registry.stats(),
        }
    elif action == "stats":
        content = dict(registry.stats())
    elif action in ("sort", "categorize"):
        if not urls:
            return JSONResponse(
                status_code=400,
                content={
                    "error": "No URLs provided",
                    "message": f"Use ?action={action}&urls=url1&urls=url2",
                },
                headers=with_cors(),
            )
        content = {"originalUrls": urls, "categorizedUrls": registry.categorize(urls)}
        if action == "sort":
            content["sortedUrls"] = registry.rank(urls)
            content["message"] = f"Sorted {len(urls)} URLs by provider reliability"
    else:
        content = {
            "totalProviders": len(registry),
            "verifiedProviders": [
                {
                    "hostname": p.hostname_pattern,
                    "reliability": p.reliability,
                    "description": p.description,
                }
                for p in registry.profiles
            ],
            "usage": _USAGE,
        }

    return JSONResponse(content=content, headers=with_cors())
