"""
Provider Settings Store

Persists the user-editable provider configuration (keys, endpoints, models)
as a JSON file. Environment settings supply the defaults for any field the
file does not define.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

import aiofiles
import structlog
from pydantic import Field, ValidationError, field_validator

from qa_extractor.config.settings import Settings
from qa_extractor.models.jobs import CamelModel

logger = structlog.get_logger(__name__)


class ProviderSettingsEntry(CamelModel):
    """Credentials, endpoints and models for one provider."""

    api_key: str = ""
    api_key2: str = ""
    api_key3: str = ""
    api_key4: str = ""
    transcribe_api_key: str = ""
    chat_endpoint: str = ""
    ocr_endpoint: str = ""
    transcribe_endpoint: str = ""
    chat_model: str = ""
    ocr_model: str = ""
    transcribe_model: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


class ProviderSettings(CamelModel):
    """Settings for every provider plus the last save time."""

    mistral: ProviderSettingsEntry
    openai: ProviderSettingsEntry
    updated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def default_provider_settings(settings: Settings) -> ProviderSettings:
    """Build provider settings from environment configuration."""
    mistral = ProviderSettingsEntry(
        api_key=settings.mistral_api_key or settings.mistral_api_key_1 or "",
        api_key2=settings.mistral_api_key_2 or "",
        api_key3=settings.mistral_api_key_3 or "",
        api_key4=settings.mistral_api_key_4 or "",
        transcribe_api_key=settings.mistral_transcribe_api_key or "",
        chat_endpoint=settings.mistral_chat_url,
        ocr_endpoint=settings.mistral_ocr_url,
        transcribe_endpoint=settings.mistral_transcribe_url,
        chat_model=settings.mistral_chat_model,
        ocr_model=settings.mistral_ocr_model,
        transcribe_model=settings.mistral_transcribe_model,
    )
    openai = ProviderSettingsEntry(
        api_key=settings.openai_api_key or "",
        transcribe_api_key=settings.openai_transcribe_api_key or "",
        chat_endpoint=settings.openai_chat_url,
        ocr_endpoint=settings.openai_ocr_url,
        transcribe_endpoint=settings.openai_transcribe_url,
        chat_model=settings.openai_chat_model,
        ocr_model=settings.openai_ocr_model,
        transcribe_model=settings.openai_transcribe_model,
    )
    return ProviderSettings(mistral=mistral, openai=openai)


def _merge_entry(current: ProviderSettingsEntry, incoming: dict | None) -> ProviderSettingsEntry:
    """Overlay string fields from ``incoming`` onto ``current``."""
    if not isinstance(incoming, dict):
        return current
    merged = current.model_dump(by_alias=True)
    for key, value in incoming.items():
        if isinstance(value, str):
            merged[key] = value
    return ProviderSettingsEntry.model_validate(merged)


class ProviderSettingsStore:
    """JSON-file backed provider settings."""

    def __init__(self, path: Path, defaults: ProviderSettings):
        self.path = path
        self.defaults = defaults
        self._lock = asyncio.Lock()

    async def load(self) -> ProviderSettings:
        """Read saved settings, filling gaps from defaults."""
        if not self.path.exists():
            return self.defaults.model_copy(deep=True)

        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            content = await f.read()

        try:
            raw = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning("provider_settings_corrupt", path=str(self.path), error=str(e))
            return self.defaults.model_copy(deep=True)

        return self._merge(self.defaults, raw)

    async def save(self, incoming: dict) -> ProviderSettings:
        """Merge ``incoming`` (camelCase) into the stored settings and persist."""
        async with self._lock:
            current = await self.load()
            merged = self._merge(current, incoming)
            merged.updated_at = datetime.now(timezone.utc).isoformat()

            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(merged.model_dump(by_alias=True), indent=2))

        logger.info("provider_settings_saved", path=str(self.path))
        return merged

    @staticmethod
    def _merge(base: ProviderSettings, raw: dict) -> ProviderSettings:
        if not isinstance(raw, dict):
            return base.model_copy(deep=True)
        try:
            return ProviderSettings(
                mistral=_merge_entry(base.mistral, raw.get("mistral")),
                openai=_merge_entry(base.openai, raw.get("openai")),
                updated_at=raw.get("updatedAt") or base.updated_at,
            )
        except ValidationError as e:
            logger.warning("provider_settings_invalid", error=str(e))
            return base.model_copy(deep=True)
