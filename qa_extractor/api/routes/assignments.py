"""Assignments Route"""

from fastapi import APIRouter, Depends

from qa_extractor.api.deps import get_job_manager, get_services
from qa_extractor.api.schemas import AssignmentsRequest, JobStartResponse
from qa_extractor.jobs import JobManager
from qa_extractor.pipeline import PipelineServices, run_assignments

router = APIRouter(prefix="/assignments")


@router.post("/analyze/start", response_model=JobStartResponse)
async def start_assignments(
    request: AssignmentsRequest,
    jobs: JobManager = Depends(get_job_manager),
    services: PipelineServices = Depends(get_services),
) -> JobStartResponse:
    job = jobs.create_job(
        lambda update, control: run_assignments(
            services, request.rows, request.product, request.provider, update, control
        )
    )
    return JobStartResponse(job_id=job.id)
