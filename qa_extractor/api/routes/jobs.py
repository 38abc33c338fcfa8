"""
Jobs Route

Status polling and cancellation for background workflow jobs.
"""

from fastapi import APIRouter, Depends, HTTPException

from qa_extractor.api.deps import get_job_manager
from qa_extractor.jobs import JobManager
from qa_extractor.models import JobRecord

router = APIRouter(prefix="/jobs")


@router.get("/{job_id}", response_model=JobRecord)
async def get_job(job_id: str, jobs: JobManager = Depends(get_job_manager)) -> JobRecord:
    """Current snapshot of a job. Expired and unknown ids are 404."""
    job = jobs.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found.")
    return job


@router.post("/{job_id}/cancel", response_model=JobRecord)
async def cancel_job(job_id: str, jobs: JobManager = Depends(get_job_manager)) -> JobRecord:
    """
    Request cancellation of a job.

    Idempotent: cancelling a finished job returns it unchanged.
    """
    job = jobs.cancel_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found.")
    return job
