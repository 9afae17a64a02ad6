from typing import Any, Dict

from fastapi import APIRouter, Depends

from digest.api.deps import get_orchestrator
from digest.services.jobs import SummarizationOrchestrator

router = APIRouter(prefix="/api")


@router.get("/status")
async def status(
    orchestrator: SummarizationOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    return await orchestrator.status_snapshot()
