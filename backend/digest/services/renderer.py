import asyncio

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from digest.core.logging import logger
from digest.services.http_client import BROWSER_USER_AGENT


class RenderError(Exception):
    """The headless browser could not produce markup for the page."""


class PlaywrightRenderer:
    """Renders script-heavy pages in headless Chromium.

    A fresh browser is launched per render and always closed afterwards; the
    semaphore caps how many run at once.
    """

    def __init__(self, timeout_sec: float = 20.0, concurrency: int = 2) -> None:
        self.timeout_ms = int(timeout_sec * 1000)
        self._semaphore = asyncio.Semaphore(max(1, concurrency))

    async def render(self, url: str) -> str:
        async with self._semaphore:
            try:
                async with async_playwright() as playwright:
                    browser = await playwright.chromium.launch(
                        headless=True,
                        args=["--no-sandbox", "--disable-setuid-sandbox"],
                    )
                    try:
                        context = await browser.new_context(
                            user_agent=BROWSER_USER_AGENT,
                            extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
                        )
                        page = await context.new_page()
                        await page.goto(
                            url, wait_until="networkidle", timeout=self.timeout_ms
                        )
                        html = await page.content()
                    finally:
                        await browser.close()
            except PlaywrightError as exc:
                raise RenderError(str(exc)) from exc
        logger.info(f"rendered {url} ({len(html)} bytes)")
        return html
