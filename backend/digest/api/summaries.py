import json
from typing import Any, Optional
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, HTTPException, Request

from digest.api.deps import get_orchestrator
from digest.core.errors import ExtractionError, NotFoundError, ValidationError
from digest.core.logging import logger
from digest.schemas.jobs import JobListResponse, JobStatusResponse, SummarizeResponse
from digest.services.jobs import SummarizationOrchestrator

router = APIRouter(prefix="/api")

BAD_BODY_MESSAGE = (
    'Missing or invalid "url" in request body. Send JSON {"url": "https://..."} '
    "or a raw text body with the URL."
)


async def read_submitted_url(request: Request) -> Optional[Any]:
    """Pull the URL out of a JSON object, a form, or a raw text body."""
    content_type = request.headers.get("content-type", "").lower()
    raw = await request.body()
    text = raw.decode("utf-8", errors="replace").strip()
    if not text:
        return None
    if "application/x-www-form-urlencoded" in content_type:
        values = parse_qs(text).get("url")
        return values[0] if values else None
    if "application/json" in content_type or text.startswith(("{", '"')):
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise HTTPException(
                status_code=400, detail="Malformed JSON in request body."
            ) from exc
        if isinstance(payload, dict):
            return payload.get("url")
        return payload
    if text.startswith("http"):
        return text
    return None


@router.post("/summarize-article", response_model=SummarizeResponse)
async def summarize_article(
    request: Request,
    orchestrator: SummarizationOrchestrator = Depends(get_orchestrator),
) -> SummarizeResponse:
    url = await read_submitted_url(request)
    try:
        submission = await orchestrator.submit(url)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=BAD_BODY_MESSAGE) from exc
    except ExtractionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.error(f"submission failed: {exc}")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return SummarizeResponse(
        url=submission.url,
        job_id=submission.job_id,
        fast_summary=submission.fast_summary,
        message=(
            "Fast summary returned. Full summary is being generated in background; "
            f"poll /api/summarize-status/{submission.job_id}"
        ),
    )


@router.get("/summarize-status/{job_id}", response_model=JobStatusResponse)
async def summarize_status(
    job_id: str,
    orchestrator: SummarizationOrchestrator = Depends(get_orchestrator),
) -> JobStatusResponse:
    try:
        job = await orchestrator.get_status(job_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc
    return JobStatusResponse(job=job)


@router.get("/jobs", response_model=JobListResponse)
async def list_jobs(
    limit: int = 200,
    orchestrator: SummarizationOrchestrator = Depends(get_orchestrator),
) -> JobListResponse:
    jobs = await orchestrator.list_jobs(max(1, min(limit, 1000)))
    return JobListResponse(jobs=jobs)
