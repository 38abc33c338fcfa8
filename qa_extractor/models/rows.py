"""Output row schemas and workflow results."""

from dataclasses import dataclass

from pydantic import Field

from .jobs import CamelModel

NOT_AVAILABLE = "N/A"

OutputRow = dict[str, str]


@dataclass(frozen=True)
class RowSchema:
    """Fixed ordered header list for one destination sheet."""

    sheet_name: str
    headers: tuple[str, ...]

    def order(self, row: dict[str, str]) -> OutputRow:
        """Project a row onto the headers, filling gaps with N/A."""
        return {header: row.get(header) or NOT_AVAILABLE for header in self.headers}

    def order_all(self, rows: list[dict[str, str]]) -> list[OutputRow]:
        return [self.order(row) for row in rows]


INTERVIEW_SCHEMA = RowSchema(
    sheet_name="interview_Q&A",
    headers=(
        "user_id",
        "full_name",
        "mobile_number",
        "job_id",
        "company_name",
        "question_text",
        "answer_text",
        "relevancy_score",
        "question_type",
        "tech_stacks",
        "topic",
        "sub_topic",
        "difficulty",
        "interview_round",
        "clip_start_time",
        "clip_end_time",
        "video_link",
        "transcript_link",
        "drive_file_id",
        "curriculum_coverage",
        "question_uid",
        "interview_date",
        "question_creation_datetime",
        "source_type",
        "product",
    ),
)

DRILLDOWN_SCHEMA = RowSchema(
    sheet_name="Drill_Q&A",
    headers=(
        "job_id",
        "company_name",
        "user_id",
        "full_name",
        "mobile_number",
        "interview_round",
        "questions",
        "question_type",
        "tech_stacks",
        "topic",
        "sub_topic",
        "difficulty_level",
        "curriculum_coverage",
        "question_uid",
        "interview_date",
        "question_creation_datetime",
        "product",
    ),
)

ASSESSMENT_SCHEMA = RowSchema(
    sheet_name="Assess_Q&A",
    headers=(
        "job_id",
        "company_name",
        "questions",
        "question_type",
        "tech_stacks",
        "topic",
        "sub_topic",
        "difficulty_level",
        "curriculum_coverage",
        "question_uid",
        "assessment_date",
        "question_creation_datetime",
        "product",
    ),
)

ASSIGNMENT_SCHEMA = RowSchema(
    sheet_name="Assign_Q&A",
    headers=(
        "job_id",
        "company_name",
        "question_text",
        "question_type",
        "tech_stacks",
        "difficulty_level",
        "curriculum_coverage",
        "question_uid",
        "assignment_date",
        "question_creation_datetime",
        "assignment_link",
        "product",
    ),
)


class WorkflowResult(CamelModel):
    """Rows produced by a workflow run and whether they reached the sheet."""

    rows: list[OutputRow] = Field(default_factory=list)
    saved_to_sheet: bool = False
    skipped: list[str] = Field(default_factory=list)
