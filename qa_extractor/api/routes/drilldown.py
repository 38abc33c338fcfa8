"""
Drilldown Route

Starts drilldown jobs and serves the CSV upload template.
"""

from fastapi import APIRouter, Depends, Response

from qa_extractor.api.deps import get_job_manager, get_services
from qa_extractor.api.schemas import DrilldownRequest, JobStartResponse
from qa_extractor.jobs import JobManager
from qa_extractor.pipeline import PipelineServices, run_drilldown, sample_csv

router = APIRouter(prefix="/drilldown")


@router.post("/analyze/start", response_model=JobStartResponse)
async def start_drilldown(
    request: DrilldownRequest,
    jobs: JobManager = Depends(get_job_manager),
    services: PipelineServices = Depends(get_services),
) -> JobStartResponse:
    job = jobs.create_job(
        lambda update, control: run_drilldown(
            services, request.rows, request.product, request.provider, update, control
        )
    )
    return JobStartResponse(job_id=job.id)


@router.get("/sample-template")
async def sample_template() -> Response:
    """CSV with the expected drilldown columns and one example row."""
    return Response(
        content=sample_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="drilldown_sample.csv"'},
    )
