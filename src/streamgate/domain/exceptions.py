"""Boundary errors surfaced to API callers.

Extraction problems never raise; they degrade to "no candidates". Only
input validation, the SSRF gate and upstream transport failures end up
here.
"""

from __future__ import annotations

from streamgate.domain.entities.media import ResolveFailure


class StreamgateError(Exception):
    """Base class for all errors that map to an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(StreamgateError):
    """Missing or malformed url, unsupported scheme, undecodable base64."""

    status_code = 400


class BlockedTargetError(StreamgateError):
    """Target host is internal (loopback/private/link-local/...) or carries credentials."""

    status_code = 400


class UpstreamUnreachableError(StreamgateError):
    """Timeout or connection failure talking to the origin."""

    status_code = 502


class UnexpectedContentError(StreamgateError):
    """Origin answered with an HTML page where media was expected."""

    status_code = 502


class PageFetchError(Exception):
    """Primary page fetch failed; ``reason`` says how.

    Not a :class:`StreamgateError`: the resolver turns it into an
    ``ok=False`` result instead of an HTTP error.
    """

    def __init__(
        self,
        reason: ResolveFailure,
        message: str,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.status = status
