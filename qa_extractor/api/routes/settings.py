"""
Settings Route

Read and update the persisted provider configuration (keys, endpoints,
models). Updates merge into the stored file; omitted fields keep their value.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends

from qa_extractor.api.deps import get_services
from qa_extractor.pipeline import PipelineServices
from qa_extractor.services.provider_settings import ProviderSettings

router = APIRouter(prefix="/settings")


@router.get("/provider-config", response_model=ProviderSettings)
async def get_provider_config(services: PipelineServices = Depends(get_services)) -> ProviderSettings:
    return await services.provider_store.load()


@router.put("/provider-config", response_model=ProviderSettings)
async def put_provider_config(
    payload: dict[str, Any] = Body(...),
    services: PipelineServices = Depends(get_services),
) -> ProviderSettings:
    return await services.provider_store.save(payload)
