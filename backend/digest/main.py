from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from digest.api import health, papers, status, summaries
from digest.core.config import (
    BACKEND_HOST,
    BACKEND_PORT,
    BACKEND_WORKERS,
    CORS_ORIGINS,
    LOG_LEVEL,
    RENDER_CONCURRENCY,
    RENDER_ENABLED,
    RENDER_TIMEOUT_SEC,
    SEARCH_MIN_INTERVAL_SEC,
)
from digest.core.logging import logger
from digest.services.extraction import TextExtractor
from digest.services.fetcher import HttpFetcher
from digest.services.jobs import JobRegistry, SummarizationOrchestrator
from digest.services.rate_limiter import RateLimiter
from digest.services.renderer import PlaywrightRenderer
from digest.services.search import SemanticScholarClient
from digest.services.summarizer import ArticleSummarizer, OpenRouterClient


def build_orchestrator() -> SummarizationOrchestrator:
    renderer = (
        PlaywrightRenderer(RENDER_TIMEOUT_SEC, RENDER_CONCURRENCY)
        if RENDER_ENABLED
        else None
    )
    extractor = TextExtractor(HttpFetcher(), renderer)
    summarizer = ArticleSummarizer(OpenRouterClient())
    return SummarizationOrchestrator(
        JobRegistry(), extractor, summarizer, workers=BACKEND_WORKERS
    )


def create_app(
    orchestrator: Optional[SummarizationOrchestrator] = None,
    search_client: Optional[SemanticScholarClient] = None,
) -> FastAPI:
    app = FastAPI(title="Article Digest Backend", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    app.state.orchestrator = orchestrator or build_orchestrator()
    app.state.search_client = search_client or SemanticScholarClient(
        RateLimiter(SEARCH_MIN_INTERVAL_SEC)
    )

    app.include_router(health.router)
    app.include_router(status.router)
    app.include_router(summaries.router)
    app.include_router(papers.router)

    @app.on_event("startup")
    async def on_startup() -> None:
        await app.state.orchestrator.start()
        logger.info("backend started")

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await app.state.orchestrator.stop()
        logger.info("backend stopped")

    return app


def run() -> None:
    import uvicorn

    uvicorn.run(
        "digest.main:create_app",
        factory=True,
        host=BACKEND_HOST,
        port=BACKEND_PORT,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
