"""
Interview Route

Starts interview analyzer jobs (Drive recordings) and video uploader jobs
(multipart upload of one recording).
"""

import json

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from qa_extractor.api.deps import get_job_manager, get_services
from qa_extractor.api.schemas import InterviewAnalyzerRequest, JobStartResponse
from qa_extractor.jobs import JobManager
from qa_extractor.models import VideoUploaderMetadata
from qa_extractor.pipeline import PipelineServices, run_interview_analyzer, run_video_uploader

router = APIRouter(prefix="/interview")


@router.post("/analyzer/start", response_model=JobStartResponse)
async def start_interview_analyzer(
    request: InterviewAnalyzerRequest,
    jobs: JobManager = Depends(get_job_manager),
    services: PipelineServices = Depends(get_services),
) -> JobStartResponse:
    """Queue analysis of Drive-hosted interview recordings."""
    job = jobs.create_job(
        lambda update, control: run_interview_analyzer(
            services, request.rows, request.product, request.provider, update, control
        )
    )
    return JobStartResponse(job_id=job.id)


@router.post("/video-uploader/start", response_model=JobStartResponse)
async def start_video_uploader(
    video: UploadFile | None = File(None),
    metadata: str = Form("{}"),
    product: str = Form("N/A"),
    provider: str | None = Form(None),
    jobs: JobManager = Depends(get_job_manager),
    services: PipelineServices = Depends(get_services),
) -> JobStartResponse:
    """Queue analysis of one uploaded interview recording."""
    if video is None or not video.filename:
        raise HTTPException(status_code=400, detail="Missing uploaded file.")

    try:
        parsed = VideoUploaderMetadata.model_validate(json.loads(metadata or "{}"))
    except (json.JSONDecodeError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid metadata: {e}")

    content = await video.read()
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    filename = video.filename

    job = jobs.create_job(
        lambda update, control: run_video_uploader(
            services, parsed, content, filename, product, provider, update, control
        )
    )
    return JobStartResponse(job_id=job.id)
