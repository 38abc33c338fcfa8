"""
Assessments Route

Multipart endpoints: a ``rows`` JSON string whose entries name the form field
(``fileField``) carrying each uploaded file or ZIP archive.
"""

import json

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from starlette.datastructures import UploadFile as StarletteUploadFile

from qa_extractor.api.deps import get_job_manager, get_services
from qa_extractor.api.schemas import JobStartResponse
from qa_extractor.jobs import JobManager
from qa_extractor.models import AssessmentInput
from qa_extractor.pipeline import (
    PipelineServices,
    UploadedFile,
    run_assessment_individual,
    run_assessment_zip,
)

router = APIRouter(prefix="/assessments")


async def _read_form(request: Request) -> tuple[list[AssessmentInput], dict[str, UploadedFile], str, str | None]:
    form = await request.form()
    try:
        raw_rows = json.loads(form.get("rows") or "[]")
        rows = [AssessmentInput.model_validate(row) for row in raw_rows]
    except (json.JSONDecodeError, TypeError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid rows: {e}")

    files: dict[str, UploadedFile] = {}
    for field, value in form.multi_items():
        if isinstance(value, StarletteUploadFile):
            files[field] = UploadedFile(
                filename=value.filename or field,
                content=await value.read(),
                content_type=value.content_type,
            )

    product = str(form.get("product") or "N/A")
    provider = form.get("provider")
    return rows, files, product, provider if isinstance(provider, str) else None


@router.post("/individual/start", response_model=JobStartResponse)
async def start_individual(
    request: Request,
    jobs: JobManager = Depends(get_job_manager),
    services: PipelineServices = Depends(get_services),
) -> JobStartResponse:
    """Queue analysis of individually uploaded assessment files."""
    rows, files, product, provider = await _read_form(request)
    job = jobs.create_job(
        lambda update, control: run_assessment_individual(
            services, rows, files, product, provider, update, control
        )
    )
    return JobStartResponse(job_id=job.id)


@router.post("/zip/start", response_model=JobStartResponse)
async def start_zip(
    request: Request,
    jobs: JobManager = Depends(get_job_manager),
    services: PipelineServices = Depends(get_services),
) -> JobStartResponse:
    """Queue analysis of ZIP archives of assessment scans."""
    rows, files, product, provider = await _read_form(request)
    job = jobs.create_job(
        lambda update, control: run_assessment_zip(
            services, rows, files, product, provider, update, control
        )
    )
    return JobStartResponse(job_id=job.id)
