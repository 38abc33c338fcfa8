"""API routes package."""

from . import assessments, assignments, drilldown, interview, jobs, meta, settings

__all__ = ["assessments", "assignments", "drilldown", "interview", "jobs", "meta", "settings"]
