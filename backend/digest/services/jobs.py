import asyncio
import re
import secrets
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from digest.core.config import (
    BACKEND_WORKERS,
    JOB_MAX_RECORDS,
    JOB_RETENTION_SEC,
    PREVIEW_SENTENCES,
)
from digest.core.errors import (
    ExtractionError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from digest.core.logging import logger
from digest.schemas.jobs import TERMINAL_STATUSES, JobRecord, JobStatus
from digest.services.extraction import ExtractionMode
from digest.services.preview import extractive_summary
from digest.services.summarizer import Summary
from digest.utils.time import utc_now

_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)

_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.PROCESSING},
    JobStatus.PROCESSING: {JobStatus.DONE, JobStatus.FAILED},
    JobStatus.DONE: set(),
    JobStatus.FAILED: set(),
}


class Extractor(Protocol):
    async def extract(self, url: str, mode: ExtractionMode = ...) -> str:
        ...


class Summarizer(Protocol):
    async def summarize(self, text: str) -> Summary:
        ...


def validate_url(url: Any) -> str:
    if not isinstance(url, str) or not url.strip():
        raise ValidationError('Missing or invalid "url": expected a non-empty string.')
    url = url.strip()
    if not _HTTP_URL.match(url):
        raise ValidationError(
            'Missing or invalid "url": it must start with http:// or https://.'
        )
    return url


class JobRegistry:
    """In-memory store of summarization jobs.

    The registry is the only writer of job records; callers always receive
    copies. Terminal jobs are kept for ``retention_sec`` seconds and at most
    ``max_records`` of them are retained, oldest evicted first.
    """

    def __init__(
        self,
        retention_sec: float = JOB_RETENTION_SEC,
        max_records: int = JOB_MAX_RECORDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.retention_sec = retention_sec
        self.max_records = max_records
        self._clock = clock
        self._jobs: Dict[str, JobRecord] = {}
        self._finished_at: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def new_job_id() -> str:
        return f"job_{int(time.time() * 1000)}_{secrets.token_hex(4)}"

    def __len__(self) -> int:
        return len(self._jobs)

    async def create(self, url: str, fast_summary: Optional[str] = None) -> JobRecord:
        async with self._lock:
            self._prune_locked()
            job_id = self.new_job_id()
            while job_id in self._jobs:
                job_id = self.new_job_id()
            now = utc_now()
            job = JobRecord(
                job_id=job_id,
                status=JobStatus.PENDING,
                created_at=now,
                updated_at=now,
                url=url,
                fast_summary=fast_summary,
            )
            self._jobs[job_id] = job
            return job.model_copy(deep=True)

    async def get(self, job_id: str) -> JobRecord:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError(f"job {job_id} not found")
            return job.model_copy(deep=True)

    async def list(self, limit: int = 200) -> List[JobRecord]:
        async with self._lock:
            jobs = sorted(
                self._jobs.values(), key=lambda job: job.created_at, reverse=True
            )
            return [job.model_copy(deep=True) for job in jobs[:limit]]

    async def counts(self) -> Dict[str, int]:
        async with self._lock:
            counter = Counter(job.status.value for job in self._jobs.values())
        return {status.value: counter.get(status.value, 0) for status in JobStatus}

    async def mark_processing(self, job_id: str) -> JobRecord:
        return await self._transition(job_id, JobStatus.PROCESSING)

    async def mark_done(self, job_id: str, result: Summary) -> JobRecord:
        return await self._transition(job_id, JobStatus.DONE, result=result)

    async def mark_failed(self, job_id: str, error: str) -> JobRecord:
        return await self._transition(job_id, JobStatus.FAILED, error=error)

    async def prune(self) -> int:
        async with self._lock:
            return self._prune_locked()

    async def _transition(
        self, job_id: str, status: JobStatus, **fields: Any
    ) -> JobRecord:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError(f"job {job_id} not found")
            if status not in _TRANSITIONS[job.status]:
                raise InvalidTransitionError(
                    f"job {job_id} cannot move from {job.status.value} to {status.value}"
                )
            # ISO strings of one format order chronologically.
            fields["updated_at"] = max(utc_now(), job.updated_at)
            fields["status"] = status
            updated = job.model_copy(update=fields)
            self._jobs[job_id] = updated
            if status in TERMINAL_STATUSES:
                self._finished_at[job_id] = self._clock()
            return updated.model_copy(deep=True)

    def _prune_locked(self) -> int:
        now = self._clock()
        expired = [
            job_id
            for job_id, finished in self._finished_at.items()
            if now - finished >= self.retention_sec
        ]
        overflow = len(self._finished_at) - len(expired) - self.max_records
        if overflow > 0:
            already = set(expired)
            remaining = sorted(
                (finished, job_id)
                for job_id, finished in self._finished_at.items()
                if job_id not in already
            )
            expired.extend(job_id for _, job_id in remaining[:overflow])
        for job_id in expired:
            self._jobs.pop(job_id, None)
            self._finished_at.pop(job_id, None)
        if expired:
            logger.info(f"evicted {len(expired)} finished jobs")
        return len(expired)


@dataclass
class SubmissionResult:
    job_id: str
    url: str
    fast_summary: str


class SummarizationOrchestrator:
    """Runs the submit → background summarize → poll workflow.

    Submissions do the fast extraction inline and hand the job id to a pool
    of worker tasks; each worker owns a job from ``processing`` until it is
    ``done`` or ``failed``.
    """

    def __init__(
        self,
        registry: JobRegistry,
        extractor: Extractor,
        summarizer: Summarizer,
        workers: int = BACKEND_WORKERS,
        preview_sentences: int = PREVIEW_SENTENCES,
    ) -> None:
        self.registry = registry
        self.extractor = extractor
        self.summarizer = summarizer
        self.workers = max(1, workers)
        self.preview_sentences = preview_sentences
        self.job_queue: asyncio.Queue[str] = asyncio.Queue()
        self.active_jobs: set[str] = set()
        self.started_at = time.time()
        self._worker_tasks: List[asyncio.Task] = []

    async def start(self) -> None:
        if self._worker_tasks:
            return
        for worker_id in range(self.workers):
            self._worker_tasks.append(asyncio.create_task(self.worker_loop(worker_id)))

    async def stop(self) -> None:
        for task in self._worker_tasks:
            task.cancel()
        await asyncio.gather(*self._worker_tasks, return_exceptions=True)
        self._worker_tasks = []

    async def join(self) -> None:
        await self.job_queue.join()

    async def submit(self, url: Any) -> SubmissionResult:
        url = validate_url(url)
        try:
            text = await self.extractor.extract(url, ExtractionMode.FAST)
        except ExtractionError as fast_exc:
            logger.warning(f"fast extraction failed for {url}: {fast_exc}")
            try:
                text = await self.extractor.extract(url, ExtractionMode.FULL)
            except ExtractionError as full_exc:
                logger.error(f"full extraction also failed for {url}: {full_exc}")
                raise ExtractionError(
                    f"Could not extract sufficient text from the article. {full_exc}"
                ) from full_exc

        fast_summary = extractive_summary(text, self.preview_sentences)
        job = await self.registry.create(url, fast_summary)
        self.job_queue.put_nowait(job.job_id)
        logger.info(f"job queued {job.job_id} ({url})")
        return SubmissionResult(job_id=job.job_id, url=url, fast_summary=fast_summary)

    async def get_status(self, job_id: str) -> JobRecord:
        return await self.registry.get(job_id)

    async def list_jobs(self, limit: int = 200) -> List[JobRecord]:
        return await self.registry.list(limit)

    async def process_job(self, job_id: str) -> None:
        try:
            job = await self.registry.mark_processing(job_id)
        except (NotFoundError, InvalidTransitionError) as exc:
            logger.warning(f"job {job_id} skipped: {exc}")
            return

        try:
            text = await self._extract_for_summary(job.url)
            result = await self.summarizer.summarize(text)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error(f"job {job_id} failed: {message}")
            await self.registry.mark_failed(job_id, message)
            return

        await self.registry.mark_done(job_id, result)
        logger.info(f"job {job_id} completed")

    async def _extract_for_summary(self, url: str) -> str:
        try:
            return await self.extractor.extract(url, ExtractionMode.FULL)
        except ExtractionError as exc:
            logger.warning(f"full extraction failed for {url}, trying fast path: {exc}")
            return await self.extractor.extract(url, ExtractionMode.FAST)

    async def worker_loop(self, worker_id: int) -> None:
        logger.info(f"worker {worker_id} ready")
        while True:
            job_id = await self.job_queue.get()
            self.active_jobs.add(job_id)
            try:
                await self.process_job(job_id)
            finally:
                self.active_jobs.discard(job_id)
                self.job_queue.task_done()

    async def status_snapshot(self) -> Dict[str, Any]:
        return {
            "uptime_sec": int(time.time() - self.started_at),
            "queue_depth": self.job_queue.qsize(),
            "workers": {
                "active": len(self.active_jobs),
                "idle": max(self.workers - len(self.active_jobs), 0),
            },
            "jobs": await self.registry.counts(),
        }
