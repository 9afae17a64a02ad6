from typing import Any, Dict

from fastapi import APIRouter

from digest.utils.time import utc_now

router = APIRouter(prefix="/api")


@router.get("/health")
async def health() -> Dict[str, Any]:
    return {"success": True, "status": "API is running", "timestamp": utc_now()}
