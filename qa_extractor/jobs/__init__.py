"""Background job lifecycle and polling."""

from qa_extractor.jobs.manager import JobControl, JobManager, UpdateCallback
from qa_extractor.jobs.polling import (
    JobCancelledByUserError,
    JobFailedError,
    wait_for_job_completion,
)

__all__ = [
    "JobCancelledByUserError",
    "JobControl",
    "JobFailedError",
    "JobManager",
    "UpdateCallback",
    "wait_for_job_completion",
]
