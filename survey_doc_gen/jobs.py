"""Background job runner for concurrent pipeline runs."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import Event, Lock
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from .config import JOB_WORKERS
from .pipeline import PipelineOutcome, PipelineRequest, PipelineState, SurveyPipeline

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


_OUTCOME_STATES = {
    PipelineState.DONE: JobState.SUCCESS,
    PipelineState.FAILED: JobState.FAILED,
    PipelineState.CANCELLED: JobState.CANCELLED,
}


@dataclass
class JobStatus:
    id: UUID
    status: JobState = JobState.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    outcome: Optional[PipelineOutcome] = None
    error: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.status in (JobState.SUCCESS, JobState.FAILED, JobState.CANCELLED)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "status": self.status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "state": self.outcome.state.value if self.outcome else None,
            "retained": list(self.outcome.retained) if self.outcome else [],
            "error": self.error,
        }


class JobRegistry:
    """In-memory job tracker backed by a thread pool executor."""

    def __init__(self, pipeline: SurveyPipeline, max_workers: int = JOB_WORKERS) -> None:
        self._pipeline = pipeline
        self._jobs: Dict[UUID, JobStatus] = {}
        self._events: Dict[UUID, Event] = {}
        self._futures: Dict[UUID, Future] = {}
        self._lock = Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers)

    def submit(self, request: PipelineRequest) -> JobStatus:
        job_id = uuid4()
        job = JobStatus(id=job_id)
        with self._lock:
            self._jobs[job_id] = job
            self._events[job_id] = Event()
            self._futures[job_id] = self._executor.submit(self._execute_job, job_id, request)
        LOGGER.info("Queued job %s", job_id)
        return job

    def get(self, job_id: UUID) -> Optional[JobStatus]:
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> List[JobStatus]:
        with self._lock:
            return list(self._jobs.values())

    def cancel(self, job_id: UUID) -> bool:
        """Request cancellation; returns False when the job is unknown or already finished."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.finished:
                return False
            self._events[job_id].set()
            future = self._futures[job_id]
            if future.cancel():
                # Never started; the worker will not run it.
                job.status = JobState.CANCELLED
                job.finished_at = _utcnow()
                self._release(job_id)
        LOGGER.info("Cancellation requested for job %s", job_id)
        return True

    def wait(self, job_id: UUID, timeout: Optional[float] = None) -> Optional[JobStatus]:
        with self._lock:
            future = self._futures.get(job_id)
        if future is None:
            return self.get(job_id)
        wait_futures([future], timeout=timeout)
        return self.get(job_id)

    def pop(self, job_id: UUID) -> Optional[JobStatus]:
        """Hand a finished job over to the caller and forget it.

        Returns None when the job is unknown or still pending or running.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or not job.finished:
                return None
            del self._jobs[job_id]
        LOGGER.debug("Released job %s", job_id)
        return job

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _execute_job(self, job_id: UUID, request: PipelineRequest) -> None:
        with self._lock:
            job = self._jobs[job_id]
            event = self._events[job_id]
            job.status = JobState.RUNNING
            job.started_at = _utcnow()

        try:
            outcome = self._pipeline.run(request, cancel_event=event, run_id=job_id.hex)
        except Exception as exc:
            LOGGER.exception("Job %s crashed", job_id)
            with self._lock:
                job.status = JobState.FAILED
                job.error = str(exc) or exc.__class__.__name__
                job.finished_at = _utcnow()
                self._release(job_id)
            return

        with self._lock:
            job.outcome = outcome
            job.status = _OUTCOME_STATES[outcome.state]
            if outcome.failure is not None:
                job.error = outcome.failure.describe()
            job.finished_at = _utcnow()
            self._release(job_id)
        LOGGER.info("Job %s finished: %s", job_id, job.status.value)

    def _release(self, job_id: UUID) -> None:
        # Caller holds the lock.
        self._events.pop(job_id, None)
        self._futures.pop(job_id, None)
