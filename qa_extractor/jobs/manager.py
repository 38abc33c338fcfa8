"""
In-memory Job Manager

Owns the registry of background jobs and drives each job's runner as an
asyncio task on the current event loop.

Design Decisions:
- One JobManager instance per process, injected into callers (no module state)
- Runners get an update callback and a JobControl for cooperative cancellation
- Terminal states are absorbing; late updates are dropped
- Expired jobs are removed lazily on every call, no background timer
- Callers always receive deep copies, never the live record
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import structlog

from qa_extractor.errors import JobCancelledError
from qa_extractor.models import JobProgress, JobRecord, JobState

logger = structlog.get_logger(__name__)

CANCELLED_MESSAGE = "Cancelled by user."
DEFAULT_TTL_SECONDS = 30 * 60


class UpdateCallback(Protocol):
    def __call__(
        self,
        message: str,
        partial_result: Any = None,
        progress: JobProgress | dict | None = None,
    ) -> None: ...


Runner = Callable[[UpdateCallback, "JobControl"], Awaitable[Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobControl:
    """Cancellation handle handed to a running job."""

    def __init__(self, manager: "JobManager", job_id: str):
        self._manager = manager
        self._job_id = job_id

    @property
    def job_id(self) -> str:
        return self._job_id

    def is_cancelled(self) -> bool:
        job = self._manager._jobs.get(self._job_id)
        if job is None:
            return True
        return job.cancel_requested or job.state == JobState.CANCELLED

    def throw_if_cancelled(self) -> None:
        if self.is_cancelled():
            raise JobCancelledError()


class JobManager:
    """Registry of background jobs with lazy TTL cleanup."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._jobs: dict[str, JobRecord] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    # =========================================================================
    # Public API
    # =========================================================================

    def create_job(self, runner: Runner) -> JobRecord:
        """Register a queued job and schedule its runner.

        Must be called from a running event loop.
        """
        self._cleanup_expired()
        now = self._clock()
        job = JobRecord(
            id=str(uuid.uuid4()),
            state=JobState.QUEUED,
            message="Queued...",
            created_at=now,
            updated_at=now,
        )
        self._jobs[job.id] = job
        snapshot = job.model_copy(deep=True)

        task = asyncio.get_running_loop().create_task(self._run(job.id, runner))
        self._tasks[job.id] = task
        task.add_done_callback(lambda _t, job_id=job.id: self._tasks.pop(job_id, None))

        logger.info("job_created", job_id=job.id)
        return snapshot

    def get_job(self, job_id: str) -> JobRecord | None:
        """Return a snapshot of the job, or None if unknown or expired."""
        self._cleanup_expired()
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    def cancel_job(self, job_id: str) -> JobRecord | None:
        """Request cancellation. Idempotent; terminal jobs are returned unchanged."""
        self._cleanup_expired()
        job = self._jobs.get(job_id)
        if job is None:
            return None
        if job.state.is_terminal:
            return job.model_copy(deep=True)

        job.cancel_requested = True
        self._mark_cancelled(job)
        logger.info("job_cancel_requested", job_id=job_id)
        return job.model_copy(deep=True)

    async def shutdown(self) -> None:
        """Cancel still-running tasks and wait for them to finish."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # =========================================================================
    # Internals
    # =========================================================================

    def _cleanup_expired(self) -> None:
        now = self._clock()
        expired = [
            job_id for job_id, job in self._jobs.items()
            if job.state.is_terminal and now - job.updated_at > self._ttl
        ]
        for job_id in expired:
            del self._jobs[job_id]
        if expired:
            logger.debug("jobs_expired", count=len(expired))

    def _touch(self, job: JobRecord) -> None:
        job.updated_at = self._clock()

    def _mark_cancelled(self, job: JobRecord) -> None:
        job.state = JobState.CANCELLED
        job.message = CANCELLED_MESSAGE
        self._touch(job)

    def _make_update(self, job_id: str) -> UpdateCallback:
        def update(
            message: str,
            partial_result: Any = None,
            progress: JobProgress | dict | None = None,
        ) -> None:
            job = self._jobs.get(job_id)
            if job is None or job.state.is_terminal:
                return

            job.message = message
            if partial_result is not None:
                job.partial_result = partial_result
            if progress is not None:
                job.progress = (
                    progress if isinstance(progress, JobProgress)
                    else JobProgress.model_validate(progress)
                )
            if job.state == JobState.QUEUED:
                job.state = JobState.RUNNING
            self._touch(job)

        return update

    async def _run(self, job_id: str, runner: Runner) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            return
        if job.cancel_requested:
            self._mark_cancelled(job)
            return

        job.state = JobState.RUNNING
        job.message = "Started..."
        self._touch(job)

        try:
            result = await runner(self._make_update(job_id), JobControl(self, job_id))
        except JobCancelledError:
            self._finish_cancelled(job_id)
            return
        except asyncio.CancelledError:
            self._finish_cancelled(job_id)
            raise
        except Exception as e:
            job = self._jobs.get(job_id)
            if job is None or job.state.is_terminal:
                return
            if job.cancel_requested:
                self._finish_cancelled(job_id)
                return
            error_msg = f"{type(e).__name__}: {str(e)}"
            logger.error("job_failed", job_id=job_id, error=error_msg, exc_info=True)
            job.state = JobState.ERROR
            job.error = error_msg
            job.message = error_msg
            self._touch(job)
            return

        job = self._jobs.get(job_id)
        if job is None or job.state.is_terminal:
            return
        if job.cancel_requested:
            self._finish_cancelled(job_id)
            return

        job.state = JobState.SUCCESS
        job.result = result
        job.partial_result = result
        job.message = "Completed."
        self._touch(job)
        logger.info("job_completed", job_id=job_id)

    def _finish_cancelled(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is None or job.state.is_terminal:
            return
        self._mark_cancelled(job)
        logger.info("job_cancelled", job_id=job_id)
