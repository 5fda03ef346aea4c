"""Media URL scanner over arbitrary HTML/JS/JSON text.

Runs the ordered pattern battery from ``patterns.py`` with one generic
loop, then digs into two kinds of embedded payloads:

- ``atob("...")`` literals: decoded and rescanned (depth-bounded).
- Dean Edwards packed blocks: unpacked textually and rescanned.

Every step is best-effort. Malformed input yields fewer candidates,
never an exception.
"""

from __future__ import annotations

import base64
import binascii
import re
from urllib.parse import urljoin, urlsplit

import structlog

from streamgate.domain.entities.media import CandidateMedia, MediaType
from streamgate.infrastructure.common.url_safety import ALLOWED_SCHEMES, is_blocked_host
from streamgate.infrastructure.extraction.media_urls import (
    classify_media_type,
    extract_quality,
    normalize_url,
)
from streamgate.infrastructure.extraction.patterns import (
    ATOB_RE,
    INNER_URL_RE,
    NON_MEDIA_EXTENSIONS,
    SCAN_PATTERNS,
    ExtractMode,
)
from streamgate.infrastructure.extraction.unpacker import (
    deobfuscate_packed,
    find_packed_blocks,
)

log = structlog.get_logger(__name__)

# atob() payloads are decoded at most this many levels deep.
MAX_ATOB_DEPTH = 1
# Unpacked output is scanned once; packed blocks inside it are not followed.
MAX_UNPACK_DEPTH = 1

MAX_URL_LENGTH = 2048
# Cap on text handed to the regex battery (larger pages are truncated).
MAX_SCAN_CHARS = 5 * 1024 * 1024

_ESCAPES: tuple[tuple[str, str], ...] = (
    ("\\/", "/"),
    ("\\u002F", "/"),
    ("\\u002f", "/"),
    ("\\u0026", "&"),
    ("&amp;", "&"),
)
_TRAILING_JUNK = ",;)]}"
_BASE64_CLEAN_RE = re.compile(r"[^A-Za-z0-9+/=]")


def _unescape(text: str) -> str:
    for needle, repl in _ESCAPES:
        if needle in text:
            text = text.replace(needle, repl)
    return text


def _b64decode(data: str) -> str | None:
    """Decode standard or url-safe base64, tolerating missing padding."""
    cleaned = _BASE64_CLEAN_RE.sub("", data.replace("-", "+").replace("_", "/"))
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        raw = base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError):
        return None
    return raw.decode("utf-8", errors="replace")


def resolve_reference(base_url: str, value: str) -> str:
    """Absolute URL for a reference found in page text.

    Bare relative paths (``video.mp4``, ``hls/master.m3u8``) in player
    configs are site-root paths, so they resolve against the origin.
    Explicit forms (``/x``, ``./x``, ``../x``, ``//host/x``) follow
    normal URL joining against *base_url*.
    """
    if not base_url or urlsplit(value).scheme:
        return value
    if value.startswith(("/", "./", "../", "?", "#")):
        return urljoin(base_url, value)
    return urljoin(base_url, "/" + value)


def make_candidate(
    raw: str,
    base_url: str,
    hint: MediaType = MediaType.UNKNOWN,
) -> CandidateMedia | None:
    """Turn a raw match into an absolute, scheme-validated candidate.

    Returns None when the URL cannot be resolved, is not http(s), points
    at an internal host, or is obviously not media (subtitles, images).
    """
    value = raw.strip().strip("\"'").rstrip(_TRAILING_JUNK).rstrip("\"'")
    if not value or len(value) > MAX_URL_LENGTH:
        return None
    try:
        absolute = resolve_reference(base_url, value)
        parts = urlsplit(absolute)
        hostname = parts.hostname or ""
        normalized = normalize_url(absolute)
    except ValueError:
        return None

    if parts.scheme.lower() not in ALLOWED_SCHEMES or not hostname:
        return None
    if parts.username is not None or is_blocked_host(hostname):
        return None

    media_type = classify_media_type(absolute)
    if media_type is MediaType.UNKNOWN:
        if parts.path.lower().endswith(NON_MEDIA_EXTENSIONS):
            return None
        media_type = hint

    return CandidateMedia(
        url=absolute,
        type=media_type,
        quality=extract_quality(absolute),
        normalized=normalized,
    )


def _raw_matches(text: str) -> list[tuple[str, MediaType]]:
    out: list[tuple[str, MediaType]] = []
    for pattern in SCAN_PATTERNS:
        for m in pattern.regex.finditer(text):
            if pattern.mode is ExtractMode.WHOLE:
                out.append((m.group(0), pattern.media_type))
            elif pattern.mode is ExtractMode.GROUP:
                out.append((m.group(1), pattern.media_type))
            else:
                for inner in INNER_URL_RE.finditer(m.group(1)):
                    value = inner.group(1) or inner.group(2)
                    if value:
                        out.append((value, pattern.media_type))
    return out


def _merge(into: dict[str, CandidateMedia], items: list[CandidateMedia]) -> None:
    for item in items:
        into.setdefault(item.normalized, item)


def scan_for_urls(
    text: str,
    base_url: str = "",
    *,
    atob_depth: int = 0,
    unpack_depth: int = 0,
) -> list[CandidateMedia]:
    """Find media URLs in *text*, resolving relative ones against *base_url*.

    Returns candidates deduplicated by normalized URL, in discovery order
    (pattern battery first, then atob payloads, then packed blocks).
    """
    if not text:
        return []
    if len(text) > MAX_SCAN_CHARS:
        log.debug("scan_text_truncated", length=len(text), limit=MAX_SCAN_CHARS)
        text = text[:MAX_SCAN_CHARS]

    text = _unescape(text)
    found: dict[str, CandidateMedia] = {}

    for raw, hint in _raw_matches(text):
        candidate = make_candidate(raw, base_url, hint)
        if candidate is not None:
            found.setdefault(candidate.normalized, candidate)

    if atob_depth < MAX_ATOB_DEPTH:
        for m in ATOB_RE.finditer(text):
            decoded = _b64decode(m.group(1))
            if not decoded:
                continue
            _merge(
                found,
                scan_for_urls(
                    decoded,
                    base_url,
                    atob_depth=atob_depth + 1,
                    unpack_depth=unpack_depth,
                ),
            )

    if unpack_depth < MAX_UNPACK_DEPTH:
        for block in find_packed_blocks(text):
            unpacked = deobfuscate_packed(block)
            if not unpacked:
                log.debug("packed_block_unmatched", length=len(block))
                continue
            _merge(
                found,
                scan_for_urls(
                    unpacked,
                    base_url,
                    atob_depth=atob_depth,
                    unpack_depth=unpack_depth + 1,
                ),
            )

    return list(found.values())


def extract_atob_payloads(text: str) -> list[str]:
    """Decoded contents of all ``atob("...")`` literals in *text*."""
    payloads: list[str] = []
    for m in ATOB_RE.finditer(text):
        decoded = _b64decode(m.group(1))
        if decoded:
            payloads.append(decoded)
    return payloads
