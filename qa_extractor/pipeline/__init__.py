"""
Workflow executors

Each ``run_*`` coroutine is a job runner body: it receives the shared
services, its inputs, the job's update callback and its cancellation control,
and returns a ``WorkflowResult``.
"""

from .assessments import UploadedFile, run_assessment_individual, run_assessment_zip
from .assignments import run_assignments
from .common import PipelineServices, RunTracker, build_services
from .drilldown import run_drilldown, sample_csv
from .interview import run_interview_analyzer, run_video_uploader

__all__ = [
    "PipelineServices",
    "RunTracker",
    "UploadedFile",
    "build_services",
    "run_assessment_individual",
    "run_assessment_zip",
    "run_assignments",
    "run_drilldown",
    "run_interview_analyzer",
    "run_video_uploader",
    "sample_csv",
]
