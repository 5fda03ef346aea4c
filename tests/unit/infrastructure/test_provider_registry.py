"""Tests for the provider reliability table."""

from __future__ import annotations

import pytest

from streamgate.domain.entities.media import ProviderProfile
from streamgate.infrastructure.providers import DEFAULT_PROVIDERS, ProviderRegistry


class TestLookup:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("https://vidmoly.to/embed-abc.html", "vidmoly.to"),
            ("https://www.vidmoly.to/embed-abc.html", "vidmoly.to"),
            ("https://mp4upload.com/embed-1.html", "www.mp4upload.com"),
            ("https://cdn.streamtape.com/v.mp4", "streamtape.com"),
            ("https://sibnet.ru/shell.php?videoid=1", "video.sibnet.ru"),
            ("https://vidmoly.me/embed-abc.html", "vidmoly.to"),
            ("streamtape.com", "streamtape.com"),
            ("https://STREAMTAPE.COM/e/1", "streamtape.com"),
        ],
    )
    def test_matches(self, registry: ProviderRegistry, url: str, expected: str) -> None:
        profile = registry.lookup(url)
        assert profile is not None
        assert profile.hostname_pattern == expected

    @pytest.mark.parametrize(
        "url", ["https://example.com/video.mp4", "", "http://[::1", "localhost"]
    )
    def test_unknown(self, registry: ProviderRegistry, url: str) -> None:
        assert registry.lookup(url) is None
        assert registry.reliability(url) == 0

    def test_reliability(self, registry: ProviderRegistry) -> None:
        assert registry.reliability("https://vidmoly.to/x") == 10
        assert registry.reliability("https://sendvid.com/x") == 1

    def test_duplicate_profiles_keep_first(self) -> None:
        registry = ProviderRegistry(
            [ProviderProfile("host.example", 3, "a"), ProviderProfile("www.host.example", 9, "b")]
        )
        assert registry.reliability("https://host.example/") == 3
        assert len(registry) == 2


def test_rank_is_stable(registry: ProviderRegistry) -> None:
    urls = [
        "https://example.com/a",
        "https://sendvid.com/b",
        "https://vidmoly.to/c",
        "https://other.example/d",
        "https://streamtape.com/e",
    ]
    assert registry.rank(urls) == [
        "https://vidmoly.to/c",
        "https://streamtape.com/e",
        "https://sendvid.com/b",
        "https://example.com/a",
        "https://other.example/d",
    ]


def test_categorize(registry: ProviderRegistry) -> None:
    buckets = registry.categorize(
        [
            "https://vidmoly.to/a",
            "https://streamtape.com/b",
            "https://uqload.com/c",
            "https://sendvid.com/d",
            "https://example.com/e",
        ]
    )
    assert buckets == {
        "excellent": ["https://vidmoly.to/a"],
        "good": ["https://streamtape.com/b"],
        "medium": ["https://uqload.com/c"],
        "poor": ["https://sendvid.com/d"],
        "unknown": ["https://example.com/e"],
    }


def test_stats(registry: ProviderRegistry) -> None:
    stats = registry.stats()
    assert stats["total"] == len(DEFAULT_PROVIDERS) == 15
    assert stats["averageReliability"] == 5.2
    assert stats["byCategory"] == {
        "excellent": 1,
        "good": 2,
        "medium": 9,
        "poor": 3,
        "unknown": 0,
    }


def test_empty_registry_stats() -> None:
    stats = ProviderRegistry([]).stats()
    assert stats["total"] == 0
    assert stats["averageReliability"] == 0.0
