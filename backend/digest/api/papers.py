from fastapi import APIRouter, Depends, HTTPException

from digest.api.deps import get_search_client
from digest.core.errors import RateLimitedError, UpstreamError
from digest.core.logging import logger
from digest.schemas.papers import (
    SearchRequest,
    SearchResponse,
    TrendingRequest,
    TrendingResponse,
    TrendingTopic,
    TrendingTopicsResponse,
)
from digest.services.search import (
    DEFAULT_RETRY_AFTER_SEC,
    SemanticScholarClient,
    trending_topics,
)

router = APIRouter(prefix="/api")


@router.post("/search-papers", response_model=SearchResponse)
async def search_papers(
    request: SearchRequest,
    client: SemanticScholarClient = Depends(get_search_client),
) -> SearchResponse:
    keyword = request.keyword.strip()
    if not keyword:
        raise HTTPException(
            status_code=400,
            detail="Keyword is required and must be a non-empty string.",
        )
    if request.limit < 1:
        raise HTTPException(
            status_code=400, detail="Limit must be a number greater than 0."
        )

    logger.info(f'searching for "{keyword}" with limit {request.limit}')
    try:
        papers = await client.search(keyword, request.limit)
    except RateLimitedError as exc:
        retry_after = int(exc.retry_after or DEFAULT_RETRY_AFTER_SEC)
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please wait a few minutes before trying again.",
            headers={"Retry-After": str(retry_after)},
        ) from exc
    except UpstreamError as exc:
        raise HTTPException(
            status_code=502, detail=f"Failed to search papers: {exc.detail}"
        ) from exc
    except Exception as exc:
        logger.error(f"search failed: {exc}")
        raise HTTPException(
            status_code=500, detail=f"Failed to search papers: {exc}"
        ) from exc

    if not papers:
        return SearchResponse(
            keyword=keyword,
            total_results=0,
            papers=[],
            message="No papers found. Try a different keyword.",
        )
    return SearchResponse(keyword=keyword, total_results=len(papers), papers=papers)


@router.post("/trending-papers", response_model=TrendingResponse)
@router.post("/trending-papers-by-keywords", response_model=TrendingResponse)
async def trending_papers(
    request: TrendingRequest,
    client: SemanticScholarClient = Depends(get_search_client),
) -> TrendingResponse:
    keywords = [keyword.strip() for keyword in request.keywords if keyword.strip()]
    if not keywords:
        raise HTTPException(
            status_code=400,
            detail='Request body must include a non-empty "keywords" array.',
        )
    limit = request.limit if request.limit > 0 else 3
    try:
        results = await client.trending_for_keywords(
            keywords, limit, request.year_from
        )
    except Exception as exc:
        logger.error(f"trending papers failed: {exc}")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return TrendingResponse(year_from=request.year_from, limit=limit, results=results)


@router.get("/trending-topics", response_model=TrendingTopicsResponse)
async def list_trending_topics() -> TrendingTopicsResponse:
    return TrendingTopicsResponse(
        topics=[TrendingTopic(**topic) for topic in trending_topics()]
    )
