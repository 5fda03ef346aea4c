"""Ordered regex battery for media URL discovery.

Each entry is ``(name, regex, media_type hint, mode)``; the scanner in
``extractor.py`` walks the table with one generic loop. Order matters
only for which pattern claims a URL first (the type hint of the first
match is kept when the URL itself has no recognizable extension).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from streamgate.domain.entities.media import MediaType


class ExtractMode(str, Enum):
    WHOLE = "whole"  # the full match is the URL
    GROUP = "group"  # capture group 1 is the URL
    NESTED = "nested"  # group 1 is a config block; INNER_URL_RE finds URLs in it


@dataclass(frozen=True)
class ScanPattern:
    name: str
    regex: re.Pattern[str]
    media_type: MediaType
    mode: ExtractMode


_MEDIA_EXT = r"(?:m3u8|mp4|webm|mkv|mpd)"
_URL_CHARS = r"[^\s\"'<>\\`]"

# Quoted URL inside a player config block: keyed (file:/src:/hls2:) or a
# bare quoted string carrying a media extension.
INNER_URL_RE = re.compile(
    r"""(?:\b(?:file|src|source|url|hls\d?)["']?\s*:\s*["']([^"'\s]+)["'])"""
    r"""|(?:["']([^"'\s]+\.""" + _MEDIA_EXT + r"""(?:\?[^"'\s]*)?)["'])""",
    re.IGNORECASE,
)

SCAN_PATTERNS: tuple[ScanPattern, ...] = (
    ScanPattern(
        "hls_literal",
        re.compile(rf"https?://{_URL_CHARS}+?\.m3u8{_URL_CHARS}*", re.IGNORECASE),
        MediaType.HLS,
        ExtractMode.WHOLE,
    ),
    ScanPattern(
        "mp4_literal",
        re.compile(rf"https?://{_URL_CHARS}+?\.mp4{_URL_CHARS}*", re.IGNORECASE),
        MediaType.MP4,
        ExtractMode.WHOLE,
    ),
    ScanPattern(
        "video_literal",
        re.compile(
            rf"https?://{_URL_CHARS}+?\.(?:webm|mkv|mpd)(?![a-z0-9]){_URL_CHARS}*",
            re.IGNORECASE,
        ),
        MediaType.UNKNOWN,
        ExtractMode.WHOLE,
    ),
    ScanPattern(
        "quoted_assignment",
        re.compile(
            r"""\b(?:file|src|url|source)\s*[:=]\s*["']([^"'\s<>]+?\."""
            + _MEDIA_EXT
            + r"""(?:[?#][^"'\s<>]*)?)["']""",
            re.IGNORECASE,
        ),
        MediaType.UNKNOWN,
        ExtractMode.GROUP,
    ),
    ScanPattern(
        "json_media_field",
        re.compile(
            r'"(?:file|src|url|source|stream|playlist|hls\d?)"\s*:\s*"([^"\s]+?\.'
            + _MEDIA_EXT
            + r'(?:[?#][^"\s]*)?)"',
            re.IGNORECASE,
        ),
        MediaType.UNKNOWN,
        ExtractMode.GROUP,
    ),
    ScanPattern(
        "json_hls_field",
        re.compile(r'"hls\d?"\s*:\s*"(https?://[^"\s]+)"', re.IGNORECASE),
        MediaType.HLS,
        ExtractMode.GROUP,
    ),
    ScanPattern(
        "js_variable",
        re.compile(
            r"""(?:var|const|let)\s+\w+\s*=\s*["']([^"'\s]+?\."""
            + _MEDIA_EXT
            + r"""(?:[?#][^"'\s]*)?)["']""",
            re.IGNORECASE,
        ),
        MediaType.UNKNOWN,
        ExtractMode.GROUP,
    ),
    ScanPattern(
        "sources_array",
        re.compile(r"\bsources\s*[:=]\s*(\[.*?\])", re.IGNORECASE | re.DOTALL),
        MediaType.UNKNOWN,
        ExtractMode.NESTED,
    ),
    ScanPattern(
        "videojs_src",
        re.compile(
            r"videojs\s*\([^)]*\)\s*\.src\s*\(\s*(\{.*?\}|\[.*?\]|[\"'][^\"']+[\"'])\s*\)",
            re.IGNORECASE | re.DOTALL,
        ),
        MediaType.UNKNOWN,
        ExtractMode.NESTED,
    ),
    ScanPattern(
        "jwplayer_setup",
        re.compile(
            r"jwplayer\s*\([^)]*\)\s*\.setup\s*\(\s*(\{.*?\})\s*\)",
            re.IGNORECASE | re.DOTALL,
        ),
        MediaType.UNKNOWN,
        ExtractMode.NESTED,
    ),
)

# atob("...") literals; the decoded text is scanned again.
ATOB_RE = re.compile(r"""atob\(\s*["']([A-Za-z0-9+/_-]{8,}={0,2})["']\s*\)""")

# Extensions that are never media even when found in a player config.
NON_MEDIA_EXTENSIONS = (
    ".vtt",
    ".srt",
    ".ass",
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".svg",
    ".ico",
    ".css",
    ".js",
    ".html",
    ".htm",
    ".php",
    ".woff",
    ".woff2",
)
