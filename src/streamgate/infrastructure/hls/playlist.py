"""HLS playlist rewriting.

Every URI in a playlist (segments, variant playlists, keys, init
sections, renditions) is rewritten to go back through the proxy, so the
player never talks to the origin directly and the origin always sees
the spoofed ``Referer``/``Origin``/``User-Agent``.
"""

from __future__ import annotations

import re
from urllib.parse import quote, urljoin

import structlog

log = structlog.get_logger(__name__)

HLS_CONTENT_TYPE = "application/vnd.apple.mpegurl"

_URI_ATTR_RE = re.compile(r'URI="([^"]+)"', re.IGNORECASE)
_MPEGURL_CT_RE = re.compile(
    r"(?:application|audio)/(?:vnd\.apple\.mpegurl|x-mpegurl|mpegurl)", re.IGNORECASE
)
_M3U8_IN_URL_RE = re.compile(r"\.m3u8(?:$|[?#])", re.IGNORECASE)


def is_hls_url(url: str) -> bool:
    return bool(_M3U8_IN_URL_RE.search(url))


def is_hls_response(url: str, content_type: str) -> bool:
    """True for ``.m3u8`` URLs or an mpegurl content type."""
    return bool(_MPEGURL_CT_RE.search(content_type)) or is_hls_url(url)


def build_proxy_url(
    target: str,
    proxy_path: str,
    *,
    referer: str | None = None,
    origin: str | None = None,
    user_agent: str | None = None,
) -> str:
    """``<proxy_path>?url=<enc>[&referer=..][&origin=..][&ua=..]``."""
    parts = [f"url={quote(target, safe='')}"]
    if referer:
        parts.append(f"referer={quote(referer, safe='')}")
    if origin:
        parts.append(f"origin={quote(origin, safe='')}")
    if user_agent:
        parts.append(f"ua={quote(user_agent, safe='')}")
    return f"{proxy_path}?{'&'.join(parts)}"


def rewrite_playlist(
    content: str,
    playlist_url: str,
    proxy_path: str,
    *,
    referer: str | None = None,
    origin: str | None = None,
    user_agent: str | None = None,
) -> str:
    """Route every URI in *content* through the proxy.

    Tag lines keep their attributes; only ``URI="..."`` values change.
    Bare lines are segment or playlist URIs. Relative URIs resolve
    against *playlist_url*. Line order, blank lines and line endings
    are preserved.
    """

    def _proxied(uri: str) -> str:
        uri = uri.strip()
        try:
            absolute = urljoin(playlist_url, uri)
        except ValueError:
            log.debug("hls_uri_unresolvable", uri=uri)
            return uri
        return build_proxy_url(
            absolute,
            proxy_path,
            referer=referer,
            origin=origin,
            user_agent=user_agent,
        )

    lines: list[str] = []
    for line in content.splitlines(keepends=True):
        body = line.rstrip("\r\n")
        ending = line[len(body) :]
        if not body.strip():
            lines.append(line)
        elif body.startswith("#"):
            rewritten = _URI_ATTR_RE.sub(lambda m: f'URI="{_proxied(m.group(1))}"', body)
            lines.append(rewritten + ending)
        else:
            lines.append(_proxied(body) + ending)
    return "".join(lines)
