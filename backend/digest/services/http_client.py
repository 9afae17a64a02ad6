import asyncio
from typing import Any, Dict, Optional

import httpx

from digest.core.errors import UpstreamError

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
BROWSER_HEADERS = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


def parse_retry_after(response: httpx.Response) -> Optional[float]:
    retry_after = response.headers.get("Retry-After")
    if retry_after and retry_after.strip().isdigit():
        return float(retry_after.strip())
    return None


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: Dict[str, str],
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
    retries: int = 0,
) -> Any:
    """Send a request and decode its JSON body.

    Server errors are retried ``retries`` times with a short linear backoff.
    Any remaining status >= 400 raises ``UpstreamError``; callers decide what
    a 429 means for them.
    """
    attempt = 0
    while True:
        response = await client.request(
            method,
            url,
            headers=headers,
            params=params,
            json=json_body,
        )
        if response.status_code >= 500 and attempt < retries:
            await asyncio.sleep(0.5 * (attempt + 1))
            attempt += 1
            continue
        if response.status_code >= 400:
            detail = response.text.strip() or response.reason_phrase
            raise UpstreamError(
                response.status_code, detail, parse_retry_after(response)
            )
        if not response.content:
            return None
        return response.json()
