"""Browser-like page fetching for the resolver.

The primary fetch classifies failures so the resolver can report why a
page produced nothing; auxiliary fetches (iframes, scripts, API probes)
are best-effort and just return None.
"""

from __future__ import annotations

import httpx
import structlog

from streamgate.domain.entities.media import FetchedPage, ResolveFailure
from streamgate.domain.exceptions import BlockedTargetError, PageFetchError
from streamgate.infrastructure.common.url_safety import check_target, is_safe_target

log = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

PAGE_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/avif,image/webp,*/*;q=0.8"
)

# Auxiliary bodies larger than this are not scanned.
MAX_AUX_BODY_BYTES = 2 * 1024 * 1024


def browser_headers(
    *,
    user_agent: str | None = None,
    referer: str | None = None,
    accept: str = PAGE_ACCEPT,
) -> dict[str, str]:
    """Headers that make a request look like a desktop browser navigation."""
    headers = {
        "User-Agent": user_agent or DEFAULT_USER_AGENT,
        "Accept": accept,
        "Accept-Language": "en-US,en;q=0.5",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
    }
    if referer:
        headers["Referer"] = referer
    return headers


class PageFetcher:
    """Fetches embed pages and their auxiliary resources via a shared client."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        page_timeout: float = 15.0,
        aux_timeout: float = 8.0,
        user_agent: str = DEFAULT_USER_AGENT,
        follow_redirects: bool = True,
    ) -> None:
        self._http = http_client
        self._follow_redirects = follow_redirects
        self._page_timeout = page_timeout
        self._aux_timeout = aux_timeout
        self._user_agent = user_agent

    async def fetch_page(
        self,
        url: str,
        *,
        referer: str | None = None,
        user_agent: str | None = None,
    ) -> FetchedPage:
        """Fetch the page being resolved.

        Raises:
            BlockedTargetError: *url*, or a redirect hop, points at an internal host.
            PageFetchError: on timeout, transport failure or non-2xx status.
        """
        check_target(url)
        headers = browser_headers(
            user_agent=user_agent or self._user_agent, referer=referer
        )
        try:
            resp = await self._http.get(
                url,
                headers=headers,
                follow_redirects=self._follow_redirects,
                timeout=self._page_timeout,
            )
        except httpx.TimeoutException as exc:
            log.warning("page_fetch_timeout", url=url, timeout=self._page_timeout)
            raise PageFetchError(
                ResolveFailure.FETCH_TIMEOUT,
                f"Request timed out after {self._page_timeout:g} seconds",
            ) from exc
        except httpx.HTTPError as exc:
            log.warning("page_fetch_failed", url=url, error=str(exc))
            raise PageFetchError(
                ResolveFailure.FETCH_NETWORK_ERROR,
                f"Network error: {exc}",
            ) from exc

        if not resp.is_success:
            log.warning("page_fetch_http_error", url=url, status=resp.status_code)
            raise PageFetchError(
                ResolveFailure.HTTP_ERROR,
                f"Failed to fetch: {resp.status_code} {resp.reason_phrase}".rstrip(),
                status=resp.status_code,
            )

        return FetchedPage(
            url=str(resp.url),
            status=resp.status_code,
            text=resp.text,
            content_type=resp.headers.get("content-type", ""),
        )

    async def fetch_optional(
        self,
        url: str,
        *,
        referer: str | None = None,
        user_agent: str | None = None,
        accept: str = "*/*",
    ) -> FetchedPage | None:
        """Best-effort fetch for iframes, scripts and API probes."""
        if not is_safe_target(url):
            log.debug("aux_fetch_blocked", url=url)
            return None
        headers = browser_headers(
            user_agent=user_agent or self._user_agent,
            referer=referer,
            accept=accept,
        )
        try:
            resp = await self._http.get(
                url,
                headers=headers,
                follow_redirects=self._follow_redirects,
                timeout=self._aux_timeout,
            )
        except BlockedTargetError:
            log.debug("aux_fetch_redirect_blocked", url=url)
            return None
        except httpx.TimeoutException:
            log.debug("aux_fetch_timeout", url=url)
            return None
        except httpx.HTTPError as exc:
            log.debug("aux_fetch_failed", url=url, error=str(exc))
            return None

        if not resp.is_success:
            log.debug("aux_fetch_http_error", url=url, status=resp.status_code)
            return None
        if len(resp.content) > MAX_AUX_BODY_BYTES:
            log.debug("aux_fetch_too_large", url=url, size=len(resp.content))
            return None

        return FetchedPage(
            url=str(resp.url),
            status=resp.status_code,
            text=resp.text,
            content_type=resp.headers.get("content-type", ""),
        )
