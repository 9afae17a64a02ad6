"""Best-effort article text extraction.

Markup goes through an ordered list of strategies; the first one that yields
enough text wins:

1. ``ReadabilityStrategy``  - trafilatura main-content detection
2. ``SelectorStrategy``     - well-known article/content containers
3. ``DocumentTextStrategy`` - whole ``<body>`` minus scripts and styles

In full mode a page that defeats every static strategy (or could not be
fetched at all) is rendered in a headless browser and the chain runs again on
the rendered markup. Fast mode never renders, and neither mode renders a page
the server reports as gone (404, 410).
"""

import asyncio
import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence
from urllib.parse import urlparse

import trafilatura
from bs4 import BeautifulSoup

from digest.core.config import (
    FAST_FETCH_TIMEOUT_SEC,
    FULL_FETCH_TIMEOUT_SEC,
    RENDER_TIMEOUT_SEC,
)
from digest.core.errors import ExtractionError
from digest.core.logging import logger
from digest.services.fetcher import FetchError, FetchedPage, HttpFetcher

CONTENT_SELECTORS = (
    "article",
    "main",
    "#content",
    ".main-content",
    ".post-content",
    ".entry-content",
)
STRIP_TAGS = ("script", "style", "noscript")

_WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


class ExtractionMode(str, Enum):
    FAST = "fast"
    FULL = "full"


@dataclass(frozen=True)
class ExtractionProfile:
    fetch_timeout: float
    max_redirects: int
    readability_min_chars: int
    min_chars: int
    rendered_min_chars: int
    use_renderer: bool


DEFAULT_PROFILES: Dict[ExtractionMode, ExtractionProfile] = {
    ExtractionMode.FAST: ExtractionProfile(
        fetch_timeout=FAST_FETCH_TIMEOUT_SEC,
        max_redirects=3,
        readability_min_chars=120,
        min_chars=120,
        rendered_min_chars=120,
        use_renderer=False,
    ),
    ExtractionMode.FULL: ExtractionProfile(
        fetch_timeout=FULL_FETCH_TIMEOUT_SEC,
        max_redirects=5,
        readability_min_chars=200,
        min_chars=100,
        rendered_min_chars=100,
        use_renderer=True,
    ),
}


@dataclass
class ExtractedText:
    body: str
    title: Optional[str] = None
    strategy: str = ""

    def render(self) -> str:
        if self.title:
            return f"{self.title}\n\n{self.body}"
        return self.body


@dataclass
class HtmlDocument:
    url: str
    html: str
    _soup: Optional[BeautifulSoup] = field(default=None, init=False, repr=False)

    def soup(self) -> BeautifulSoup:
        """Parsed markup with script-like elements removed (parsed once)."""
        if self._soup is None:
            soup = BeautifulSoup(self.html, "lxml")
            for tag in soup(list(STRIP_TAGS)):
                tag.decompose()
            self._soup = soup
        return self._soup

    @property
    def title(self) -> Optional[str]:
        node = self.soup().find("title")
        if node is None:
            return None
        return normalize_whitespace(node.get_text(" ")) or None


class ExtractionStrategy(Protocol):
    name: str

    def attempt(self, document: HtmlDocument) -> Optional[ExtractedText]:
        ...


class Renderer(Protocol):
    async def render(self, url: str) -> str:
        ...


class ReadabilityStrategy:
    name = "readability"

    def __init__(self, min_chars: int) -> None:
        self.min_chars = min_chars

    def attempt(self, document: HtmlDocument) -> Optional[ExtractedText]:
        raw = trafilatura.extract(
            document.html,
            url=document.url,
            output_format="json",
            with_metadata=True,
            include_comments=False,
            include_tables=True,
        )
        if not raw:
            return None
        data = json.loads(raw)
        body = normalize_whitespace(data.get("text") or "")
        if len(body) < self.min_chars:
            return None
        title = normalize_whitespace(data.get("title") or "") or None
        return ExtractedText(body=body, title=title, strategy=self.name)


class SelectorStrategy:
    name = "selector"

    def __init__(
        self, min_chars: int, selectors: Sequence[str] = CONTENT_SELECTORS
    ) -> None:
        self.min_chars = min_chars
        self.selectors = tuple(selectors)

    def attempt(self, document: HtmlDocument) -> Optional[ExtractedText]:
        soup = document.soup()
        for selector in self.selectors:
            node = soup.select_one(selector)
            if node is None:
                continue
            body = normalize_whitespace(node.get_text(" "))
            if len(body) >= self.min_chars:
                return ExtractedText(
                    body=body,
                    title=document.title,
                    strategy=f"{self.name}:{selector}",
                )
        return None


class DocumentTextStrategy:
    name = "document"

    def __init__(self, min_chars: int) -> None:
        self.min_chars = min_chars

    def attempt(self, document: HtmlDocument) -> Optional[ExtractedText]:
        soup = document.soup()
        root = soup.body or soup
        body = normalize_whitespace(root.get_text(" "))
        if len(body) < self.min_chars:
            return None
        return ExtractedText(body=body, title=document.title, strategy=self.name)


def build_strategies(
    readability_min_chars: int, min_chars: int
) -> List[ExtractionStrategy]:
    return [
        ReadabilityStrategy(readability_min_chars),
        SelectorStrategy(min_chars),
        DocumentTextStrategy(min_chars),
    ]


def run_strategies(
    document: HtmlDocument, strategies: Sequence[ExtractionStrategy]
) -> Optional[ExtractedText]:
    for strategy in strategies:
        try:
            extracted = strategy.attempt(document)
        except Exception as exc:
            logger.warning(
                f"{strategy.name} extraction failed for {document.url}: {exc}"
            )
            continue
        if extracted is not None:
            return extracted
    return None


def _require_absolute_url(url: str) -> None:
    try:
        parsed = urlparse(url)
    except ValueError as exc:
        raise ExtractionError(f"Not a valid URL: {url!r} ({exc})") from exc
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ExtractionError(f"Not an absolute http(s) URL: {url!r}")


class TextExtractor:
    def __init__(
        self,
        fetcher: Optional[HttpFetcher] = None,
        renderer: Optional[Renderer] = None,
        profiles: Optional[Dict[ExtractionMode, ExtractionProfile]] = None,
        render_timeout: float = RENDER_TIMEOUT_SEC,
    ) -> None:
        self.fetcher = fetcher or HttpFetcher()
        self.renderer = renderer
        self.profiles = profiles or DEFAULT_PROFILES
        # Outer bound on browser launch + navigation.
        self.render_timeout = render_timeout + 10.0

    async def extract(
        self, url: str, mode: ExtractionMode = ExtractionMode.FULL
    ) -> str:
        profile = self.profiles[mode]
        _require_absolute_url(url)

        page: Optional[FetchedPage] = None
        fetch_error: Optional[FetchError] = None
        try:
            page = await self.fetcher.fetch(
                url, profile.fetch_timeout, profile.max_redirects
            )
        except FetchError as exc:
            fetch_error = exc
            logger.warning(f"fetch failed ({mode.value}) for {url}: {exc}")
            if exc.permanent:
                raise ExtractionError(f"Could not fetch the article: {exc}") from exc

        if page is not None:
            if not page.is_html:
                raise ExtractionError(
                    "Only web articles (HTML) are supported for summarization "
                    f"(got {page.content_type or 'no content type'})."
                )
            extracted = await asyncio.to_thread(
                run_strategies,
                HtmlDocument(page.url, page.body),
                build_strategies(profile.readability_min_chars, profile.min_chars),
            )
            if extracted is not None:
                logger.info(f"extracted {url} via {extracted.strategy} ({mode.value})")
                return extracted.render()

        if profile.use_renderer and self.renderer is not None:
            extracted = await self._extract_rendered(url, profile)
            if extracted is not None:
                logger.info(f"extracted {url} via rendered {extracted.strategy}")
                return extracted.render()

        if page is None:
            raise ExtractionError(f"Could not fetch the article: {fetch_error}")
        raise ExtractionError(
            "Could not extract sufficient text from the article (insufficient text)."
        )

    async def _extract_rendered(
        self, url: str, profile: ExtractionProfile
    ) -> Optional[ExtractedText]:
        try:
            html = await asyncio.wait_for(
                self.renderer.render(url), timeout=self.render_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"render timed out for {url}")
            return None
        except Exception as exc:
            logger.warning(f"render failed for {url}: {exc}")
            return None
        return await asyncio.to_thread(
            run_strategies,
            HtmlDocument(url, html),
            build_strategies(profile.rendered_min_chars, profile.rendered_min_chars),
        )
