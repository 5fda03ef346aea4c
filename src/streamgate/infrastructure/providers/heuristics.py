"""Hostname-specific extraction heuristics.

Applied by the resolver when the generic scan of a page (and of its
inline scripts) finds nothing. Each heuristic implements
:class:`~streamgate.domain.ports.provider_heuristic.ProviderHeuristicPort`
and works on already-fetched HTML only; following ``/pass_md5/`` style
secondary requests is out of scope.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import urlsplit

import structlog

from streamgate.domain.entities.media import CandidateMedia, MediaType
from streamgate.domain.ports.provider_heuristic import ProviderHeuristicPort
from streamgate.infrastructure.extraction.extractor import make_candidate, scan_for_urls
from streamgate.infrastructure.extraction.unpacker import (
    deobfuscate_packed,
    find_packed_blocks,
)

log = structlog.get_logger(__name__)

# Thumbnails and subtitle tracks share the player config with real sources.
_ARTIFACT_MARKERS = ("thumbnail", "/track", "poster", "sprite")


def _label(hostname: str) -> str:
    parts = hostname.lower().split(".")
    return parts[-2] if len(parts) >= 2 else hostname.lower()


def _is_artifact(url: str) -> bool:
    lowered = url.lower()
    return any(marker in lowered for marker in _ARTIFACT_MARKERS)


def _collect(
    raw_urls: Iterable[str],
    base_url: str,
    hint: MediaType = MediaType.UNKNOWN,
) -> list[CandidateMedia]:
    found: dict[str, CandidateMedia] = {}
    for raw in raw_urls:
        candidate = make_candidate(raw, base_url, hint)
        if candidate is None or _is_artifact(candidate.url):
            continue
        found.setdefault(candidate.normalized, candidate)
    return list(found.values())


class PackedPlayerHeuristic:
    """Filemoon / StreamWish / VidHide / Mivalyo style players.

    The JWPlayer config lives inside a Dean Edwards packed block and
    exposes its streams under ``hls2`` / ``hls3`` / ``hls4`` keys.
    """

    _HOST_LABELS = frozenset(
        {
            "filemoon",
            "streamwish",
            "vidhide",
            "vidhidepro",
            "mivalyo",
            "filelions",
            "wishembed",
        }
    )
    _CONTENT_MARKERS = ("mivalyo", "vidhide", "eval(function(p,a,c,k,e,")
    _HLS_KEY_RE = re.compile(r"""["']?hls\d["']?\s*:\s*["'](https?://[^"']+)["']""")
    _SOURCE_FILE_RE = re.compile(
        r"""(?:file|source|src)\s*:\s*["'](https?://[^"']+\.(?:m3u8|mp4)[^"']*)["']"""
    )

    @property
    def name(self) -> str:
        return "packed_player"

    def matches(self, hostname: str, html: str) -> bool:
        if _label(hostname) in self._HOST_LABELS:
            return True
        return any(marker in html for marker in self._CONTENT_MARKERS)

    def _from_config(self, js: str) -> list[str]:
        normalized = js.replace("\\'", "'").replace('\\"', '"')
        urls = [m.group(1) for m in self._HLS_KEY_RE.finditer(normalized)]
        urls += [m.group(1) for m in self._SOURCE_FILE_RE.finditer(normalized)]
        return urls

    def extract(self, html: str, base_url: str) -> list[CandidateMedia]:
        raw_urls = self._from_config(html)
        unpacked_blocks = 0
        for block in find_packed_blocks(html):
            unpacked = deobfuscate_packed(block)
            if not unpacked:
                continue
            unpacked_blocks += 1
            raw_urls += self._from_config(unpacked)
            raw_urls += [c.url for c in scan_for_urls(unpacked, base_url)]

        result = _collect(raw_urls, base_url, MediaType.HLS)
        log.debug(
            "heuristic_packed_player",
            blocks=unpacked_blocks,
            found=len(result),
        )
        return result


class StreamtapeHeuristic:
    """Rebuild the ``/get_video`` link from Streamtape's robotlink parameters.

    The page carries ``id=..&expires=..&ip=..&token=..`` in markup and a
    corrected token in the ``document.getElementById(...)`` script line.
    """

    _HOST_LABELS = frozenset(
        {"streamtape", "streamta", "strtape", "strcloud", "tapecontent", "stape"}
    )
    _PARAMS_RE = re.compile(
        r"(id=[^\"'&]*&expires=\d+&ip=[^\"'&]*&token=[^\"'&]*?)([\"'<])"
    )
    _TOKEN_RE = re.compile(r"document\.getElementById[^<]*&token=([A-Za-z0-9\-_]+)")

    @property
    def name(self) -> str:
        return "streamtape"

    def matches(self, hostname: str, html: str) -> bool:
        return _label(hostname) in self._HOST_LABELS or "robotlink" in html

    def extract(self, html: str, base_url: str) -> list[CandidateMedia]:
        m = self._PARAMS_RE.search(html)
        if not m:
            log.debug("heuristic_streamtape_no_params")
            return []

        params = m.group(1)
        token = self._TOKEN_RE.search(html)
        if token:
            params = re.sub(r"token=[^&]*", f"token={token.group(1)}", params)

        try:
            host = urlsplit(base_url).hostname or "streamtape.com"
        except ValueError:
            host = "streamtape.com"
        return _collect(
            [f"https://{host}/get_video?{params}&stream=1"], base_url, MediaType.MP4
        )


class DoodstreamHeuristic:
    """DoodStream pages: direct media literals only.

    The real stream sits behind a ``/pass_md5/`` request plus a random
    suffix; that second request is not made here.
    """

    _HOST_LABELS = frozenset(
        {"doodstream", "dood", "dooood", "ds2play", "d0o0d", "do0od", "doods", "d000d"}
    )
    _LITERAL_RE = re.compile(
        r"""["'](https?://[^"'\s]+\.(?:mp4|m3u8)(?:\?[^"'\s]*)?)["']""", re.IGNORECASE
    )

    @property
    def name(self) -> str:
        return "doodstream"

    def matches(self, hostname: str, html: str) -> bool:
        return _label(hostname) in self._HOST_LABELS

    def extract(self, html: str, base_url: str) -> list[CandidateMedia]:
        if "/pass_md5/" in html:
            log.debug("heuristic_doodstream_pass_md5_skipped", url=base_url)
        return _collect(
            (m.group(1) for m in self._LITERAL_RE.finditer(html)), base_url
        )


class GenericAssignmentHeuristic:
    """Last-resort patterns for any host: plain ``var x = "...m3u8"`` style code."""

    _PATTERNS: tuple[re.Pattern[str], ...] = (
        re.compile(r"""var\s+\w+\s*=\s*["']([^"']*\.(?:m3u8|mp4)[^"']*)["']""", re.I),
        re.compile(r"""["'](https?://[^"']*\.(?:m3u8|mp4)[^"']*)["']""", re.I),
        re.compile(
            r"""(?:source|src|file|url)\s*:\s*["']([^"']*\.(?:m3u8|mp4)[^"']*)["']""",
            re.I,
        ),
    )

    @property
    def name(self) -> str:
        return "generic_assignment"

    def matches(self, hostname: str, html: str) -> bool:
        return ".m3u8" in html or ".mp4" in html

    def extract(self, html: str, base_url: str) -> list[CandidateMedia]:
        raw_urls = [m.group(1) for p in self._PATTERNS for m in p.finditer(html)]
        return _collect(raw_urls, base_url)


DEFAULT_HEURISTICS: tuple[ProviderHeuristicPort, ...] = (
    PackedPlayerHeuristic(),
    StreamtapeHeuristic(),
    DoodstreamHeuristic(),
    GenericAssignmentHeuristic(),
)


def select_heuristics(
    hostname: str,
    html: str,
    heuristics: Iterable[ProviderHeuristicPort] = DEFAULT_HEURISTICS,
) -> list[ProviderHeuristicPort]:
    """Heuristics that apply to *hostname* / *html*, in registration order."""
    return [h for h in heuristics if h.matches(hostname, html)]
