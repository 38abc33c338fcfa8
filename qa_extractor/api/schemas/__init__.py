"""API schemas package."""

from .requests import AssignmentsRequest, DrilldownRequest, InterviewAnalyzerRequest, WorkflowRequest
from .responses import AppConfigResponse, JobStartResponse

__all__ = [
    # Requests
    "WorkflowRequest",
    "InterviewAnalyzerRequest",
    "DrilldownRequest",
    "AssignmentsRequest",
    # Responses
    "JobStartResponse",
    "AppConfigResponse",
]
