"""CSS-selector-based HTML extraction for embed pages.

Thin helpers over BeautifulSoup used by the resolver's fallback stages:
inline ``<script>`` bodies are scanned one by one, and ``<iframe>`` /
``<script src>`` targets are followed when the page itself yields no
media.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

# Script names that usually carry the player setup; fetched first.
_PLAYER_SCRIPT_RE = re.compile(r"player|video|stream|embed", re.IGNORECASE)

# Inline scripts with these types never contain player code.
_SKIPPED_SCRIPT_TYPES = frozenset(
    {"application/ld+json", "text/template", "text/x-template", "importmap"}
)


def parse_html(html: str) -> BeautifulSoup:
    """Parse an HTML string into a BeautifulSoup tree (``lxml`` parser)."""
    return BeautifulSoup(html, "lxml")


def extract_all_attrs(
    element: BeautifulSoup | Tag,
    selector: str,
    attr: str,
    *fallback_selectors: str,
) -> list[str]:
    """Extract an attribute from **all** matching elements."""
    for sel in (selector, *fallback_selectors):
        matches = element.select(sel)
        if matches:
            return [str(m[attr]).strip() for m in matches if m.get(attr)]
    return []


def inline_scripts(soup: BeautifulSoup) -> list[str]:
    """Bodies of inline ``<script>`` elements, in document order."""
    bodies: list[str] = []
    for tag in soup.find_all("script"):
        if tag.get("src"):
            continue
        script_type = str(tag.get("type") or "").lower()
        if script_type in _SKIPPED_SCRIPT_TYPES:
            continue
        body = tag.string if tag.string is not None else tag.get_text()
        if body and body.strip():
            bodies.append(str(body))
    return bodies


def _absolute(base_url: str, values: list[str]) -> list[str]:
    out: list[str] = []
    for value in values:
        if not value or value.startswith(("javascript:", "data:", "about:")):
            continue
        try:
            url = urljoin(base_url, value)
        except ValueError:
            continue
        if url not in out:
            out.append(url)
    return out


def iframe_sources(soup: BeautifulSoup, base_url: str, limit: int) -> list[str]:
    """Absolute ``<iframe src>`` URLs (``data-src`` for lazy players), first *limit*."""
    values = extract_all_attrs(soup, "iframe[src]", "src")
    values += extract_all_attrs(soup, "iframe[data-src]", "data-src")
    return _absolute(base_url, values)[:limit]


def script_sources(soup: BeautifulSoup, base_url: str, limit: int) -> list[str]:
    """Absolute external script URLs, player-looking names first, first *limit*."""
    urls = _absolute(base_url, extract_all_attrs(soup, "script[src]", "src"))
    preferred = [u for u in urls if _PLAYER_SCRIPT_RE.search(u.rsplit("/", 1)[-1])]
    rest = [u for u in urls if u not in preferred]
    return (preferred + rest)[:limit]
