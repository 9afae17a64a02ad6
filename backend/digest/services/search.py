"""Paper search against the Semantic Scholar graph API."""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List

import httpx

from digest.core.config import (
    SEARCH_RETRIES,
    SEARCH_TIMEOUT_SEC,
    SEMANTIC_SCHOLAR_URL,
)
from digest.core.errors import DigestError, RateLimitedError, UpstreamError
from digest.core.logging import logger
from digest.schemas.papers import KeywordPapers, Paper
from digest.services.http_client import request_json
from digest.services.rate_limiter import RateLimiter

USER_AGENT = "AstroBioNavigator/1.0"
SEARCH_FIELDS = "title,authors,year,abstract,url,openAccessPdf"
TRENDING_FIELDS = "title,authors,year,abstract,url,citationCount,openAccessPdf"
DEFAULT_RETRY_AFTER_SEC = 300.0

TRENDING_TOPICS: List[Dict[str, Any]] = [
    {
        "topic": "Microgravity Effects on Biology",
        "queries": [
            "cell biology microgravity",
            "tissue organ response space",
            "fluid dynamics microgravity",
        ],
    },
    {
        "topic": "Origin of Life & Prebiotic Chemistry",
        "queries": [
            "abiogenesis",
            "organic molecules space",
            "planetary conditions for life",
        ],
    },
    {
        "topic": "Microbial Life in Space",
        "queries": [
            "extremophiles space",
            "microbiome spacecraft",
            "planetary protection contamination",
        ],
    },
    {
        "topic": "Human Physiology in Space",
        "queries": [
            "musculoskeletal degradation space",
            "cardiovascular changes space",
            "immune system space",
            "neurovestibular effects space",
        ],
    },
    {
        "topic": "Space Agriculture & Synthetic Biology",
        "queries": [
            "plant growth space",
            "bioregenerative life support",
            "engineered microbes life support",
        ],
    },
    {
        "topic": "Neuroscience & Behavior in Space",
        "queries": [
            "cognitive function space",
            "sleep circadian rhythms space",
            "stress response astronauts",
        ],
    },
    {
        "topic": "Planetary Environments & Habitability",
        "queries": [
            "mars europa analog",
            "atmospheric composition planets",
            "radiation environments planets",
        ],
    },
    {
        "topic": "Space Radiation Biology",
        "queries": [
            "DNA damage repair space",
            "shielding techniques space",
            "radiation effects reproduction",
        ],
    },
    {
        "topic": "Omics in Space (Genomics, Proteomics, etc.)",
        "queries": [
            "transcriptomic response spaceflight",
            "epigenetics microgravity",
            "microbial gene expression ISS",
        ],
    },
    {
        "topic": "Experimental Platforms",
        "queries": [
            "ISS-based experiments",
            "ground-based analogs space",
            "CubeSats biosatellites",
        ],
    },
    {
        "topic": "Bioinformatics & Modeling in Space Biology",
        "queries": [
            "predictive models physiological change space",
            "simulation life-detection missions",
            "AI omics data space",
        ],
    },
    {
        "topic": "Earth Analogs for Astrobiology",
        "queries": [
            "hydrothermal vents astrobiology",
            "Atacama desert astrobiology",
            "Antarctic dry valleys astrobiology",
        ],
    },
    {
        "topic": "Spaceflight Hazards & Mitigation",
        "queries": [
            "fire safety toxicity space",
            "contamination control space",
            "biosecurity space labs",
        ],
    },
    {
        "topic": "Life Detection & Biosignatures",
        "queries": [
            "remote sensing biosignatures",
            "non-Earth-centric biology",
            "spectral analysis exoplanets",
        ],
    },
    {
        "topic": "In-situ Resource Utilization (ISRU) Biology",
        "queries": [
            "bioleaching asteroids",
            "biomining space",
            "bioconcrete space construction",
        ],
    },
]


def to_paper(record: Dict[str, Any]) -> Paper:
    authors = record.get("authors") or []
    names = [author.get("name") for author in authors if author.get("name")]
    open_access = record.get("openAccessPdf") or {}
    return Paper(
        title=record.get("title") or "No title",
        link=record.get("url") or "Not available",
        abstract=record.get("abstract") or "No abstract available",
        authors=", ".join(names) if names else "N/A",
        publish_year=record.get("year") or "N/A",
        citation_count=record.get("citationCount") or 0,
        pdf_link=open_access.get("url") or None,
    )


class SemanticScholarClient:
    def __init__(
        self,
        rate_limiter: RateLimiter,
        base_url: str = SEMANTIC_SCHOLAR_URL,
        retries: int = SEARCH_RETRIES,
        timeout: float = SEARCH_TIMEOUT_SEC,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.base_url = base_url
        self.retries = max(1, retries)
        self.timeout_sec = timeout
        self.timeout = httpx.Timeout(timeout, connect=10.0)
        self._transport = transport
        self._sleep = sleep

    async def _query(self, keyword: str, limit: int, fields: str) -> List[Dict[str, Any]]:
        await self.rate_limiter.wait()
        try:
            data = await asyncio.wait_for(
                self._get(keyword, limit, fields), timeout=self.timeout_sec
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamError(
                504, f"no response within {self.timeout_sec:g}s"
            ) from exc
        if not isinstance(data, dict) or not data.get("data"):
            return []
        return data["data"]

    async def _get(self, keyword: str, limit: int, fields: str) -> Any:
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            return await request_json(
                client,
                "GET",
                self.base_url,
                {"User-Agent": USER_AGENT},
                params={"query": keyword, "limit": limit, "fields": fields},
            )

    async def search(self, keyword: str, limit: int = 10) -> List[Paper]:
        """Search papers, retrying up to ``retries`` times.

        A 429 waits 4s, then 8s, doubling per attempt; a 429 on the last
        attempt raises ``RateLimitedError`` without sleeping.
        """
        for attempt in range(1, self.retries + 1):
            try:
                records = await self._query(keyword, limit, SEARCH_FIELDS)
                return [to_paper(record) for record in records]
            except UpstreamError as exc:
                logger.warning(f"search attempt {attempt} failed: {exc}")
                if exc.status_code == 429:
                    if attempt == self.retries:
                        raise RateLimitedError(
                            "Rate limit exceeded. Please wait a few minutes "
                            "before trying again.",
                            retry_after=exc.retry_after or DEFAULT_RETRY_AFTER_SEC,
                        ) from exc
                    backoff = (2**attempt) * 2.0
                    logger.warning(f"rate limited, waiting {backoff:.0f}s before retry")
                    await self._sleep(backoff)
                    continue
                if attempt == self.retries:
                    raise
            except httpx.HTTPError as exc:
                logger.warning(f"search attempt {attempt} failed: {exc}")
                if attempt == self.retries:
                    raise UpstreamError(502, str(exc) or type(exc).__name__) from exc
            await self._sleep(1.0 * attempt)
        return []

    async def trending(
        self, query: str, limit: int = 9, year_from: int = 2000
    ) -> List[Paper]:
        """Most-cited papers for ``query`` published in or after ``year_from``.

        Throttling surfaces as ``RateLimitedError``; any other failure yields
        an empty list.
        """
        try:
            records = await self._query(query, limit, TRENDING_FIELDS)
        except UpstreamError as exc:
            if exc.status_code == 429:
                raise RateLimitedError(
                    "Rate limit exceeded for trending papers",
                    retry_after=exc.retry_after or DEFAULT_RETRY_AFTER_SEC,
                ) from exc
            logger.error(f"trending fetch error: {exc}")
            return []
        except httpx.HTTPError as exc:
            logger.error(f"trending fetch error: {exc}")
            return []
        recent = [
            record
            for record in records
            if record.get("year") and record["year"] >= year_from
        ]
        recent.sort(key=lambda record: record.get("citationCount") or 0, reverse=True)
        return [to_paper(record) for record in recent[:limit]]

    async def trending_for_keywords(
        self, keywords: List[str], limit: int, year_from: int
    ) -> List[KeywordPapers]:
        async def one(keyword: str) -> KeywordPapers:
            try:
                papers = await self.trending(keyword, limit, year_from)
            except DigestError as exc:
                return KeywordPapers(keyword=keyword, error=str(exc))
            return KeywordPapers(keyword=keyword, papers=papers)

        return list(await asyncio.gather(*(one(keyword) for keyword in keywords)))


def trending_topics() -> List[Dict[str, Any]]:
    return [dict(topic, queries=list(topic["queries"])) for topic in TRENDING_TOPICS]
