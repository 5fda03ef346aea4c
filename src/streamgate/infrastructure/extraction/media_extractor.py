"""Default :class:`MediaExtractorPort` implementation.

Bundles the regex scanner, BeautifulSoup selection of scripts/iframes,
the provider heuristics and API-probe URL derivation behind the port the
resolver depends on.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import quote, urlsplit

import structlog

from streamgate.domain.entities.media import CandidateMedia
from streamgate.domain.ports.provider_heuristic import ProviderHeuristicPort
from streamgate.infrastructure.common.html_selectors import (
    iframe_sources,
    inline_scripts,
    parse_html,
    script_sources,
)
from streamgate.infrastructure.common.url_safety import is_safe_target
from streamgate.infrastructure.extraction.extractor import scan_for_urls
from streamgate.infrastructure.providers.heuristics import (
    DEFAULT_HEURISTICS,
    select_heuristics,
)

log = structlog.get_logger(__name__)

# Paths tried against the page origin, ``{id}`` being the embed id.
API_PROBE_TEMPLATES: tuple[str, ...] = (
    "/api/source/{id}",
    "/api/video/{id}",
    "/api/file/{id}",
    "/ajax/embed/sources?id={id}",
)

_EMBED_ID_RE = re.compile(r"^[A-Za-z0-9_-]{4,64}$")
_PAGE_SUFFIX_RE = re.compile(r"\.(?:html?|php|aspx?)$", re.IGNORECASE)


def _merge(into: dict[str, CandidateMedia], items: Iterable[CandidateMedia]) -> None:
    for item in items:
        into.setdefault(item.normalized, item)


def embed_id(page_url: str) -> str | None:
    """Last path segment of an embed URL, if it looks like a media id.

    >>> embed_id("https://www.fembed.com/v/abc123xyz")
    'abc123xyz'
    """
    try:
        path = urlsplit(page_url).path
    except ValueError:
        return None
    segments = [s for s in path.split("/") if s]
    if not segments:
        return None
    candidate = _PAGE_SUFFIX_RE.sub("", segments[-1])
    return candidate if _EMBED_ID_RE.match(candidate) else None


class MediaExtractor:
    def __init__(
        self,
        heuristics: Iterable[ProviderHeuristicPort] = DEFAULT_HEURISTICS,
        *,
        api_templates: Iterable[str] = API_PROBE_TEMPLATES,
    ) -> None:
        self._heuristics = tuple(heuristics)
        self._api_templates = tuple(api_templates)

    def scan(self, text: str, base_url: str) -> list[CandidateMedia]:
        return scan_for_urls(text, base_url)

    def scan_inline_scripts(self, html: str, base_url: str) -> list[CandidateMedia]:
        found: dict[str, CandidateMedia] = {}
        scripts = inline_scripts(parse_html(html))
        for body in scripts:
            _merge(found, scan_for_urls(body, base_url))
        log.debug("inline_scripts_scanned", scripts=len(scripts), found=len(found))
        return list(found.values())

    def apply_heuristics(self, html: str, page_url: str) -> list[CandidateMedia]:
        try:
            hostname = urlsplit(page_url).hostname or ""
        except ValueError:
            hostname = ""

        found: dict[str, CandidateMedia] = {}
        for heuristic in select_heuristics(hostname, html, self._heuristics):
            items = heuristic.extract(html, page_url)
            log.debug(
                "heuristic_applied",
                heuristic=heuristic.name,
                hostname=hostname,
                found=len(items),
            )
            _merge(found, items)
        return list(found.values())

    def follow_targets(
        self,
        html: str,
        base_url: str,
        *,
        max_iframes: int,
        max_scripts: int,
    ) -> list[str]:
        soup = parse_html(html)
        targets = iframe_sources(soup, base_url, max_iframes)
        targets += script_sources(soup, base_url, max_scripts)
        return [url for url in targets if is_safe_target(url)]

    def api_probe_urls(self, page_url: str) -> list[str]:
        media_id = embed_id(page_url)
        if media_id is None:
            return []
        parts = urlsplit(page_url)
        origin = f"{parts.scheme}://{parts.netloc}"
        return [
            origin + template.format(id=quote(media_id, safe=""))
            for template in self._api_templates
        ]
