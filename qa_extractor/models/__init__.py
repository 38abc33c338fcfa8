"""Data models for jobs, extracted items, inputs and output rows."""

from .enums import AiProvider, JobState
from .inputs import (
    AssessmentInput,
    AssignmentInputRow,
    InterviewInputRow,
    VideoUploaderMetadata,
)
from .items import TAXONOMY_FIELDS, ExtractedItem, Taxonomy
from .jobs import JobProgress, JobRecord
from .rows import (
    ASSESSMENT_SCHEMA,
    ASSIGNMENT_SCHEMA,
    DRILLDOWN_SCHEMA,
    INTERVIEW_SCHEMA,
    NOT_AVAILABLE,
    OutputRow,
    RowSchema,
    WorkflowResult,
)

__all__ = [
    # Enums
    "AiProvider",
    "JobState",
    # Jobs
    "JobProgress",
    "JobRecord",
    # Items
    "TAXONOMY_FIELDS",
    "ExtractedItem",
    "Taxonomy",
    # Inputs
    "AssessmentInput",
    "AssignmentInputRow",
    "InterviewInputRow",
    "VideoUploaderMetadata",
    # Rows
    "ASSESSMENT_SCHEMA",
    "ASSIGNMENT_SCHEMA",
    "DRILLDOWN_SCHEMA",
    "INTERVIEW_SCHEMA",
    "NOT_AVAILABLE",
    "OutputRow",
    "RowSchema",
    "WorkflowResult",
]
