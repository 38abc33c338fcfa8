"""Meta Route: static options the frontend needs at startup."""

from fastapi import APIRouter

from qa_extractor.api.schemas import AppConfigResponse
from qa_extractor.config.settings import PRODUCT_OPTIONS

router = APIRouter()

PAGES = ["Interview analyser", "Drilldown", "Assessments", "Assignments"]


@router.get("/app-config", response_model=AppConfigResponse)
async def app_config() -> AppConfigResponse:
    return AppConfigResponse(product_options=list(PRODUCT_OPTIONS), pages=list(PAGES))
