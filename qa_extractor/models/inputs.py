"""Input row models accepted by the workflows.

Field names mirror the upstream spreadsheet columns, so a few are aliased.
"""

from pydantic import BaseModel, ConfigDict, Field


class InputRow(BaseModel):
    """Lenient base: unknown columns kept, numbers coerced to strings."""

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


class InterviewInputRow(InputRow):
    user_id: str | None = None
    full_name: str | None = Field(None, alias="fullName")
    mobile_number: str | None = Field(None, alias="MobileNumber")
    interview_round: str | None = None
    drive_file_id: str | None = None
    job_id: str | None = None
    company_name: str | None = None
    interview_date: str | None = None
    clip_start_time: str | None = None
    clip_end_time: str | None = None


class VideoUploaderMetadata(InterviewInputRow):
    pass


class AssessmentInput(InputRow):
    company_name: str | None = None
    job_id: str | None = None
    assessment_date: str | None = None
    file_field: str = Field(..., alias="fileField")


class AssignmentInputRow(InputRow):
    job_id: str | None = None
    company_name: str | None = None
    assignment_link: str | None = None
    assignment_date: str | None = None
