"""Job record models exposed to pollers."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .enums import JobState


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobProgress(CamelModel):
    """Progress of the current job stage."""

    percent: float = Field(0, ge=0, le=100, description="Completion percentage")
    loaded_bytes: int | None = Field(None, description="Bytes downloaded so far")
    total_bytes: int | None = Field(None, description="Total bytes when known")


class JobRecord(CamelModel):
    """Snapshot of a background job."""

    id: str = Field(..., description="Opaque job identifier")
    state: JobState = Field(JobState.QUEUED, description="Lifecycle state")
    message: str = Field("", description="Latest human-readable status")
    result: Any = Field(None, description="Final result on success")
    partial_result: Any = Field(None, description="Rows produced so far")
    progress: JobProgress | None = Field(None, description="Stage progress")
    error: str | None = Field(None, description="Failure description on error")
    cancel_requested: bool = Field(False, description="Cancellation was requested")
    created_at: datetime = Field(..., description="Creation time (UTC)")
    updated_at: datetime = Field(..., description="Last mutation time (UTC)")
