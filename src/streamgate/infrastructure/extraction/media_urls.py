"""Small pure helpers for media URLs: type, quality, normalization."""

from __future__ import annotations

import re
from urllib.parse import urlsplit, urlunsplit

from streamgate.domain.entities.media import MediaType

_TYPE_BY_EXTENSION: tuple[tuple[str, MediaType], ...] = (
    (".m3u8", MediaType.HLS),
    (".mp4", MediaType.MP4),
    (".webm", MediaType.WEBM),
    (".mkv", MediaType.MKV),
    (".avi", MediaType.MKV),
    (".mov", MediaType.MKV),
    (".mpd", MediaType.DASH),
)

# Extension anywhere in the URL, terminated by end/query/fragment/param separator.
# Catches "get?file=master.m3u8&t=1" style URLs whose path has no extension.
_EXTENSION_ANYWHERE_RE = re.compile(
    r"\.(m3u8|mp4|webm|mkv|avi|mov|mpd)(?=$|[?#&/])", re.IGNORECASE
)

_NUMERIC_QUALITY_RE = re.compile(r"(?<![0-9])([0-9]{3,4})p(?![a-z])", re.IGNORECASE)
_NAMED_QUALITY_RE = re.compile(r"(?<![a-z0-9])(4k|uhd|fhd|hd|sd)(?![a-z0-9])", re.IGNORECASE)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def classify_media_type(url: str) -> MediaType:
    """Classify a URL by its file extension.

    >>> classify_media_type("https://cdn.example.com/hls/master.m3u8?t=1")
    <MediaType.HLS: 'hls'>
    """
    try:
        path = urlsplit(url).path.lower()
    except ValueError:
        return MediaType.UNKNOWN
    for ext, media_type in _TYPE_BY_EXTENSION:
        if path.endswith(ext):
            return media_type

    m = _EXTENSION_ANYWHERE_RE.search(url)
    if m:
        ext = "." + m.group(1).lower()
        for known, media_type in _TYPE_BY_EXTENSION:
            if known == ext:
                return media_type
    return MediaType.UNKNOWN


def extract_quality(url: str) -> str | None:
    """Return a quality token (``"1080p"``, ``"hd"``) embedded in the URL."""
    m = _NUMERIC_QUALITY_RE.search(url)
    if m:
        return f"{m.group(1)}p"
    m = _NAMED_QUALITY_RE.search(url)
    if m:
        return m.group(1).lower()
    return None


def normalize_url(url: str) -> str:
    """Canonical form used for deduplication.

    Lowercases scheme and host, drops default ports and the fragment.
    Path and query are kept verbatim (CDN tokens are case-sensitive).
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    netloc = host
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"
    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path, parts.query, ""))
