"""Pytest configuration and fixtures."""

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from helpers import FakeControl, FakeSheetSink, UpdateRecorder, no_sleep
from qa_extractor.config.curriculum import clear_curriculum_cache
from qa_extractor.config.settings import Settings
from qa_extractor.integrations.gist import GistPublisher
from qa_extractor.integrations.google import DriveClient
from qa_extractor.pipeline.common import MediaTools, PipelineServices
from qa_extractor.services.provider_settings import ProviderSettingsStore, default_provider_settings


@pytest.fixture(autouse=True)
def _reset_curriculum_cache():
    clear_curriculum_cache()
    yield
    clear_curriculum_cache()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated to a temp directory with two Mistral keys and no throttle."""
    return Settings(
        _env_file=None,
        data_dir=tmp_path / "data",
        provider_settings_file=tmp_path / "data" / "provider_settings.json",
        curriculum_path=tmp_path / "curriculum.txt",
        prompts_dir=tmp_path / "prompts",
        mistral_api_key="key-1",
        mistral_api_key_2="key-2",
        mistral_chat_min_interval_seconds=0,
        openai_api_key=None,
        gsheet_id=None,
        github_gist_token=None,
    )


@pytest.fixture
def make_services(settings: Settings) -> Callable[..., PipelineServices]:
    """Factory building PipelineServices around a given HTTP client."""

    def _make(
        http: httpx.AsyncClient,
        sink: FakeSheetSink | None = None,
        media: MediaTools | None = None,
        gist_token: str | None = None,
    ) -> PipelineServices:
        return PipelineServices(
            settings=settings,
            http=http,
            provider_store=ProviderSettingsStore(
                settings.provider_settings_file, default_provider_settings(settings)
            ),
            sheet_sink=sink or FakeSheetSink(),
            drive=DriveClient(http, None),
            gists=GistPublisher(http, gist_token),
            media=media or MediaTools(),
            sleep=no_sleep,
        )

    return _make


@pytest.fixture
def update_recorder() -> UpdateRecorder:
    return UpdateRecorder()


@pytest.fixture
def control() -> FakeControl:
    return FakeControl()
