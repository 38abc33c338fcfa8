"""
FastAPI Backend for the Q&A Extraction Service

Entry point for the API server. Endpoints start long-running workflow jobs
(interview recordings, drilldown notes, assessments, assignments) and return a
job id immediately; clients poll ``/api/jobs/{id}`` for progress, partial rows
and the final result.

Architecture Decision:
- Jobs live in an in-process registry; nothing survives a restart
- One shared httpx client per app, closed on shutdown
- Collaborators (sheet sink, Drive, gists, provider store) hang off app.state
  so tests can swap in fakes
"""

# Load .env BEFORE any application imports that read os.environ
from dotenv import load_dotenv
load_dotenv()

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from qa_extractor import __version__
from qa_extractor.api.routes import assessments, assignments, drilldown, interview, jobs, meta, settings
from qa_extractor.config import get_settings
from qa_extractor.config.logging_setup import configure_logging
from qa_extractor.jobs import JobManager
from qa_extractor.pipeline import PipelineServices, build_services

logger = structlog.get_logger(__name__)


def create_app(
    services: PipelineServices | None = None,
    job_manager: JobManager | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        services: Pre-built collaborators; production wiring is used when None.
        job_manager: Job registry; a fresh one is created when None.
    """
    app_settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Wire collaborators on startup and stop running jobs on shutdown."""
        http: httpx.AsyncClient | None = None
        if services is None:
            http = httpx.AsyncClient()
            app.state.services = build_services(app_settings, http)
        else:
            app.state.services = services
        app.state.jobs = job_manager or JobManager(ttl_seconds=app_settings.job_ttl_seconds)
        app.state.services.staging_dir("videos")
        logger.info("app_started", version=__version__)

        yield

        await app.state.jobs.shutdown()
        if http is not None:
            await http.aclose()
        logger.info("app_stopped")

    app = FastAPI(
        title="Q&A Extraction API",
        description="Extracts and classifies interview, assessment and assignment questions",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # API routes - mounted under /api prefix
    # =========================================================================

    app.include_router(meta.router, prefix="/api", tags=["Meta"])
    app.include_router(settings.router, prefix="/api", tags=["Settings"])
    app.include_router(jobs.router, prefix="/api", tags=["Jobs"])
    app.include_router(interview.router, prefix="/api", tags=["Interview"])
    app.include_router(drilldown.router, prefix="/api", tags=["Drilldown"])
    app.include_router(assessments.router, prefix="/api", tags=["Assessments"])
    app.include_router(assignments.router, prefix="/api", tags=["Assignments"])

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


# =============================================================================
# Run with: python -m qa_extractor.api.main
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    configure_logging(get_settings().log_level)
    port = int(os.environ.get("PORT", 4000))
    uvicorn.run(
        "qa_extractor.api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=port,
        reload=False,
    )
