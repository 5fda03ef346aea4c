"""Static table of known video hosts and their extraction reliability."""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import urlsplit

import structlog

from streamgate.domain.entities.media import ProviderProfile

log = structlog.get_logger(__name__)

DEFAULT_PROVIDERS: tuple[ProviderProfile, ...] = (
    ProviderProfile(
        "vidmoly.to",
        10,
        "VidMoly - highest priority, fast and stable playback",
        ("MP4/M3U8 in script tags",),
    ),
    ProviderProfile(
        "streamtape.com",
        8,
        "StreamTape - good MP4 extraction",
        ("MP4 via JavaScript variables", "robotlink token reassembly"),
        ("Sometimes requires referer header",),
    ),
    ProviderProfile(
        "video.sibnet.ru",
        7,
        "SibNet - good MP4, reduced priority",
        ("MP4 relative paths in JavaScript",),
        ("Requires relative-to-absolute URL conversion",),
    ),
    ProviderProfile(
        "www.mp4upload.com",
        6,
        "MP4Upload - good for MP4 files",
        ("Direct MP4 links",),
    ),
    ProviderProfile(
        "filemoon.sx",
        6,
        "Filemoon - packed JWPlayer config",
        ("Packed eval(function(p,a,c,k,e,d)) player setup",),
        ("HLS URLs are short-lived",),
    ),
    ProviderProfile(
        "streamwish.to",
        6,
        "StreamWish - packed JWPlayer config",
        ("Packed eval(function(p,a,c,k,e,d)) player setup", "hls2/hls4 source keys"),
    ),
    ProviderProfile(
        "uqload.com",
        5,
        "UQLoad - standard extraction patterns",
        ("MP4 in JavaScript",),
        ("Variable extraction success",),
    ),
    ProviderProfile(
        "www.fembed.com",
        5,
        "Fembed - standard video hosting",
        ("MP4/M3U8 extraction",),
        ("May require API calls",),
    ),
    ProviderProfile(
        "vidhide.com",
        5,
        "VidHide - packed JWPlayer config",
        ("Packed eval(function(p,a,c,k,e,d)) player setup", "hls2/hls4 source keys"),
    ),
    ProviderProfile(
        "mivalyo.com",
        5,
        "Mivalyo - VidHide mirror with packed player",
        ("Packed eval(function(p,a,c,k,e,d)) player setup", "hls2/hls4 source keys"),
        ("Falls back to plain var assignments when unpacked",),
    ),
    ProviderProfile(
        "doodstream.com",
        4,
        "DoodStream - medium reliability",
        ("Obfuscated JavaScript",),
        ("Often requires token-based access",),
    ),
    ProviderProfile(
        "www.mixdrop.co",
        4,
        "MixDrop - medium reliability",
        ("JavaScript-based extraction",),
        ("Sometimes slow loading",),
    ),
    ProviderProfile(
        "www.myvi.tv",
        3,
        "MyVi - requires advanced JavaScript extraction",
        ("Dynamic JavaScript loading",),
        ("Complex obfuscation", "Anti-bot protection"),
    ),
    ProviderProfile(
        "www.vidlox.tv",
        3,
        "VidLox - basic video hosting",
        ("Standard patterns",),
        ("Lower reliability",),
    ),
    ProviderProfile(
        "sendvid.com",
        1,
        "SendVid - frequently returns 404 errors",
        ("MP4 direct links in HTML",),
        ("Many URLs returning 404 Not Found", "Poor reliability"),
    ),
)

# Reliability buckets used by categorize(), checked top-down.
CATEGORY_THRESHOLDS: tuple[tuple[str, int], ...] = (
    ("excellent", 9),
    ("good", 7),
    ("medium", 4),
    ("poor", 1),
)


def _hostname(url: str) -> str:
    """Lowercased hostname of *url* (bare hostnames accepted), ``""`` if unparsable."""
    try:
        if "://" not in url:
            url = f"//{url}"
        return (urlsplit(url).hostname or "").rstrip(".")
    except ValueError:
        return ""


def _registered_domain(hostname: str) -> str:
    return ".".join(hostname.split(".")[-2:])


def _second_level_label(hostname: str) -> str:
    parts = hostname.split(".")
    return parts[-2] if len(parts) >= 2 else ""


def _strip_www(hostname: str) -> str:
    return hostname[4:] if hostname.startswith("www.") else hostname


class ProviderRegistry:
    """Hostname -> :class:`ProviderProfile` lookups. Pure and never raising.

    Matching order for a URL's hostname:

    1. exact (``www.`` ignored on both sides),
    2. suffix (``cdn.streamtape.com`` -> ``streamtape.com``),
    3. registered domain (``mp4upload.com`` -> ``www.mp4upload.com``),
    4. second-level label (``vidmoly.me`` -> ``vidmoly.to``).
    """

    def __init__(self, profiles: Iterable[ProviderProfile] = DEFAULT_PROVIDERS) -> None:
        self._profiles: tuple[ProviderProfile, ...] = tuple(profiles)
        self._exact: dict[str, ProviderProfile] = {}
        for profile in self._profiles:
            key = _strip_www(profile.hostname_pattern.lower())
            if key in self._exact:
                log.warning("provider_profile_duplicate", hostname=key)
                continue
            self._exact[key] = profile

    @property
    def profiles(self) -> tuple[ProviderProfile, ...]:
        return self._profiles

    def __len__(self) -> int:
        return len(self._profiles)

    def lookup(self, url: str) -> ProviderProfile | None:
        hostname = _strip_www(_hostname(url))
        if not hostname:
            return None

        profile = self._exact.get(hostname)
        if profile is not None:
            return profile

        for pattern, candidate in self._exact.items():
            if hostname.endswith("." + pattern):
                return candidate

        registered = _registered_domain(hostname)
        for pattern, candidate in self._exact.items():
            if _registered_domain(pattern) == registered:
                return candidate

        label = _second_level_label(hostname)
        if not label:
            return None
        for pattern, candidate in self._exact.items():
            if _second_level_label(pattern) == label:
                return candidate
        return None

    def reliability(self, url: str) -> int:
        """Reliability 0-10 of the host serving *url* (0 = unknown)."""
        profile = self.lookup(url)
        return profile.reliability if profile else 0

    def rank(self, urls: list[str]) -> list[str]:
        """Stable sort, most reliable provider first."""
        return sorted(urls, key=self.reliability, reverse=True)

    def categorize(self, urls: list[str]) -> dict[str, list[str]]:
        """Bucket *urls* into excellent/good/medium/poor/unknown."""
        buckets: dict[str, list[str]] = {name: [] for name, _ in CATEGORY_THRESHOLDS}
        buckets["unknown"] = []
        for url in urls:
            score = self.reliability(url)
            for name, threshold in CATEGORY_THRESHOLDS:
                if score >= threshold:
                    buckets[name].append(url)
                    break
            else:
                buckets["unknown"].append(url)
        return buckets

    def stats(self) -> dict[str, object]:
        """Summary of the table for the providers endpoint."""
        total = len(self._profiles)
        by_category = {
            name: len(urls)
            for name, urls in self.categorize(
                [p.hostname_pattern for p in self._profiles]
            ).items()
        }
        average = (
            round(sum(p.reliability for p in self._profiles) / total, 2) if total else 0.0
        )
        return {
            "total": total,
            "averageReliability": average,
            "byCategory": by_category,
        }
