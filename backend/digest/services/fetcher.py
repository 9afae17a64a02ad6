import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx

from digest.services.http_client import BROWSER_HEADERS

# Statuses that mean the page is gone; rendering it would only show the error page.
GONE_STATUSES = frozenset({404, 410})


@dataclass
class FetchedPage:
    url: str
    status_code: int
    content_type: str
    body: str

    @property
    def is_html(self) -> bool:
        return "html" in self.content_type.lower()


class FetchError(Exception):
    """The page could not be retrieved (network failure or error status).

    ``permanent`` marks failures no retry or browser render can fix: an
    unparseable URL or a page that no longer exists.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        permanent: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.permanent = permanent


class HttpFetcher:
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    async def fetch(
        self, url: str, timeout: float, max_redirects: int
    ) -> FetchedPage:
        """GET ``url``; ``timeout`` bounds the whole request, redirects included."""
        try:
            response = await asyncio.wait_for(
                self._get(url, timeout, max_redirects), timeout=timeout
            )
        except asyncio.TimeoutError as exc:
            raise FetchError(f"timed out after {timeout:g}s fetching {url}") from exc
        except httpx.InvalidURL as exc:
            raise FetchError(f"invalid URL: {exc}", permanent=True) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"{type(exc).__name__}: {exc}") from exc
        if response.status_code >= 400:
            raise FetchError(
                f"HTTP {response.status_code} from {url}",
                status_code=response.status_code,
                permanent=response.status_code in GONE_STATUSES,
            )
        return FetchedPage(
            url=str(response.url),
            status_code=response.status_code,
            content_type=response.headers.get("content-type", ""),
            body=response.text,
        )

    async def _get(self, url: str, timeout: float, max_redirects: int) -> httpx.Response:
        async with httpx.AsyncClient(
            headers=BROWSER_HEADERS,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            max_redirects=max_redirects,
            transport=self._transport,
        ) as client:
            return await client.get(url)
