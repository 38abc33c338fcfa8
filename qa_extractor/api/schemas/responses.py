"""Response schemas for the API."""

from pydantic import Field

from qa_extractor.models.jobs import CamelModel


class JobStartResponse(CamelModel):
    """Returned by every ``*/start`` endpoint; poll ``/api/jobs/{jobId}``."""
    job_id: str = Field(..., description="Identifier of the queued job")


class AppConfigResponse(CamelModel):
    product_options: list[str]
    pages: list[str]

