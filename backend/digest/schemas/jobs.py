from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.DONE, JobStatus.FAILED})


class JobRecord(BaseModel):
    job_id: str
    status: JobStatus
    created_at: str
    updated_at: str
    url: str
    fast_summary: Optional[str] = None
    result: Optional[Union[str, Dict[str, Any]]] = None
    error: Optional[str] = None


class SummarizeResponse(BaseModel):
    success: bool = True
    url: str
    job_id: str
    fast_summary: str
    message: str


class JobStatusResponse(BaseModel):
    success: bool = True
    job: JobRecord


class JobListResponse(BaseModel):
    success: bool = True
    jobs: List[JobRecord] = Field(default_factory=list)
