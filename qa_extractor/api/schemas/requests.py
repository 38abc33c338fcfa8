"""
Request schemas for the API.

Workflow start requests share the ``{rows, product, provider}`` shape; rows
are validated per workflow. Multipart endpoints carry the same fields as
form values.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from qa_extractor.models import AssignmentInputRow, InterviewInputRow


class WorkflowRequest(BaseModel):
    """Common fields for starting a workflow job."""
    product: str = Field(default="N/A", description="Product label written to every row")
    provider: Optional[str] = Field(default=None, description="mistral (default) or openai")


class InterviewAnalyzerRequest(WorkflowRequest):
    """Drive-hosted interview recordings, one candidate per row."""
    rows: list[InterviewInputRow] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "rows": [
                        {
                            "user_id": "U1",
                            "fullName": "Candidate",
                            "drive_file_id": "1AbCdEfGhIjKlMn",
                            "interview_date": "2024-05-01",
                            "clip_start_time": "0",
                            "clip_end_time": "",
                        }
                    ],
                    "product": "Intensive",
                    "provider": "mistral",
                }
            ]
        }
    }


class DrilldownRequest(WorkflowRequest):
    """Spreadsheet rows keyed by the drilldown template's column names."""
    rows: list[dict[str, Any]] = Field(default_factory=list)


class AssignmentsRequest(WorkflowRequest):
    """One assignment link per row."""
    rows: list[AssignmentInputRow] = Field(default_factory=list)
