"""FastAPI dependencies resolving the per-app job manager and services."""

from fastapi import Request

from qa_extractor.jobs import JobManager
from qa_extractor.pipeline import PipelineServices


def get_job_manager(request: Request) -> JobManager:
    return request.app.state.jobs


def get_services(request: Request) -> PipelineServices:
    return request.app.state.services
