"""Query parameter helpers shared by the resolve and proxy routers."""

from __future__ import annotations

import base64
import binascii

from fastapi.responses import JSONResponse

from streamgate.domain.exceptions import InvalidInputError, StreamgateError
from streamgate.interfaces.api.middleware import with_cors


def decode_u64(value: str) -> str:
    """Decode a base64url (padding optional) UTF-8 URL.

    Raises:
        InvalidInputError: not valid base64url, not UTF-8, or empty.
    """
    cleaned = value.strip()
    padded = cleaned + "=" * (-len(cleaned) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
        url = raw.decode("utf-8").strip()
    except (binascii.Error, ValueError) as exc:
        raise InvalidInputError("Invalid base64 in u64 parameter") from exc
    if not url:
        raise InvalidInputError("Invalid base64 in u64 parameter")
    return url


def target_url(url: str | None, u64: str | None) -> str:
    """The requested target: ``u64`` wins over ``url`` when both are given.

    Raises:
        InvalidInputError: neither parameter is usable.
    """
    if u64:
        return decode_u64(u64)
    if url and url.strip():
        return url.strip()
    raise InvalidInputError("Missing url parameter")


def is_truthy(value: str | None) -> bool:
    return value is not None and value.strip().lower() in ("1", "true", "yes", "on")


def error_response(exc: StreamgateError, **extra: object) -> JSONResponse:
    """``{ok: false, message}`` with the status code of *exc* and CORS headers."""
    content: dict[str, object] = {"ok": False, **extra, "message": exc.message}
    return JSONResponse(
        status_code=exc.status_code, content=content, headers=with_cors()
    )
