"""Domain entities for media resolution and proxying.

Pure value objects. No framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MediaType(str, Enum):
    """Container/delivery format of a media URL, classified by extension."""

    HLS = "hls"
    MP4 = "mp4"
    WEBM = "webm"
    MKV = "mkv"
    DASH = "dash"
    UNKNOWN = "unknown"


class ResolveFailure(str, Enum):
    """Why a resolve call produced no candidates."""

    INVALID_SCHEME = "invalid-scheme"
    FETCH_TIMEOUT = "fetch-timeout"
    FETCH_NETWORK_ERROR = "fetch-network-error"
    HTTP_ERROR = "http-error"
    NO_MEDIA_FOUND = "no-media-found"


@dataclass(frozen=True)
class ProviderProfile:
    """Static knowledge about a video hosting domain."""

    hostname_pattern: str  # "vidmoly.to", matched exact/suffix/registered-domain
    reliability: int  # 0-10, 10 = extraction and playback almost always work
    description: str = ""
    known_patterns: tuple[str, ...] = ()
    known_issues: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname_pattern,
            "reliability": self.reliability,
            "description": self.description,
            "knownPatterns": list(self.known_patterns),
            "knownIssues": list(self.known_issues),
        }


@dataclass(frozen=True)
class CandidateMedia:
    """A media URL recovered from page text.

    Identity is the normalized absolute URL: two candidates found by
    different patterns compare equal and collapse to one entry.
    """

    url: str = field(compare=False)
    type: MediaType = field(default=MediaType.UNKNOWN, compare=False)
    quality: str | None = field(default=None, compare=False)
    normalized: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        if not self.normalized:
            object.__setattr__(self, "normalized", self.url)


@dataclass(frozen=True)
class ResolvedMedia:
    """A candidate joined with its provider profile and proxy URL."""

    type: MediaType
    url: str
    proxied_url: str
    quality: str | None = None
    provider: ProviderProfile | None = None

    def to_dict(self, *, debug: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type.value,
            "url": self.url,
            "proxiedUrl": self.proxied_url,
        }
        if self.quality:
            data["quality"] = self.quality
        if debug:
            data["provider"] = (
                {
                    "hostname": self.provider.hostname_pattern,
                    "reliability": self.provider.reliability,
                }
                if self.provider
                else None
            )
        return data


@dataclass(frozen=True)
class ResolveResult:
    """Outcome of one resolve call.

    ``ok=False`` is a normal outcome, not an exception: ``reason``
    distinguishes "no source" from transport failures.
    """

    ok: bool
    candidates: list[ResolvedMedia] = field(default_factory=list)
    message: str = ""
    reason: ResolveFailure | None = None
    status: int | None = None  # upstream HTTP status for HTTP_ERROR
    stage: str | None = None  # extraction stage that produced candidates


@dataclass(frozen=True)
class CachedMedia:
    """Payload returned by a media cache hit."""

    data: bytes
    content_type: str
    # Final URL the content was served from; relative playlist URIs resolve here.
    source_url: str | None = None


@dataclass(frozen=True)
class FetchedPage:
    """Body of a fetched page or auxiliary resource."""

    url: str  # final URL after redirects
    status: int
    text: str
    content_type: str = ""


# Resolver output order by media type (lower = earlier).
MEDIA_TYPE_ORDER: dict[MediaType, int] = {
    MediaType.HLS: 0,
    MediaType.MP4: 1,
    MediaType.WEBM: 2,
    MediaType.DASH: 3,
    MediaType.MKV: 4,
    MediaType.UNKNOWN: 5,
}

_NAMED_QUALITY_RANK = {
    "4k": 2160,
    "uhd": 2160,
    "fhd": 1080,
    "hd": 720,
    "sd": 480,
}


def quality_rank(quality: str | None) -> int:
    """Map a quality token to a comparable vertical resolution (0 = unknown).

    >>> quality_rank("1080p"), quality_rank("hd"), quality_rank(None)
    (1080, 720, 0)
    """
    if not quality:
        return 0
    quality = quality.lower()
    if quality.endswith("p") and quality[:-1].isdigit():
        return int(quality[:-1])
    return _NAMED_QUALITY_RANK.get(quality, 0)
