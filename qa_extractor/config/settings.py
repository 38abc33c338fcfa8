"""Application settings using Pydantic."""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict


PRODUCT_OPTIONS = [
    "Intensive",
    "Academy",
    "External",
    "Academy Edge",
    "Nxtwave Edge",
    "NIAT",
    "Intensive Offline",
    "Experienced Hiring",
]

# Staging directory names under the data dir
DOWNLOADED_VIDEOS_DIR = "DownloadedVideos"
GENERATED_TRANSCRIPTS_DIR = "GeneratedTranscripts"
QA_DIR = "Q&A"
AUDIO_CHUNKS_DIR = "AudioChunks"

_INLINE_SERVICE_ACCOUNT_FIELDS = [
    "type",
    "project_id",
    "private_key_id",
    "private_key",
    "client_email",
    "client_id",
    "auth_uri",
    "token_uri",
    "auth_provider_x509_cert_url",
    "client_x509_cert_url",
    "universe_domain",
]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Integrated Analyst Tool"
    app_version: str = "Integrated Pipeline v2.0"

    # Mistral
    mistral_api_key: str | None = None
    mistral_api_key_1: str | None = None
    mistral_api_key_2: str | None = None
    mistral_api_key_3: str | None = None
    mistral_api_key_4: str | None = None
    mistral_transcribe_api_key: str | None = None
    mistral_chat_url: str = "https://api.mistral.ai/v1/chat/completions"
    mistral_ocr_url: str = "https://api.mistral.ai/v1/ocr"
    mistral_transcribe_url: str = "https://api.mistral.ai/v1/audio/transcriptions"
    mistral_chat_model: str = "mistral-large-latest"
    mistral_ocr_model: str = "mistral-ocr-latest"
    mistral_transcribe_model: str = "voxtral-mini-latest"
    mistral_chat_min_interval_seconds: float = 1.2
    mistral_chat_max_retries_per_key: int = 4

    # OpenAI
    openai_api_key: str | None = None
    openai_transcribe_api_key: str | None = None
    openai_chat_url: str = "https://api.openai.com/v1/chat/completions"
    openai_ocr_url: str = "https://api.openai.com/v1/chat/completions"
    openai_transcribe_url: str = "https://api.openai.com/v1/audio/transcriptions"
    openai_chat_model: str = "gpt-4.1-mini"
    openai_ocr_model: str = "gpt-4.1-mini"
    openai_transcribe_model: str = "gpt-4o-mini-transcribe"
    openai_chat_min_interval_seconds: float = 0.0
    openai_chat_max_retries_per_key: int = 4

    # Retry Configuration
    retry_max_wait_seconds: float = 30.0

    # Chunking Configuration
    qna_chunk_size: int = 18000
    qna_chunk_overlap: int = 1200
    qna_newline_snap: int = 200
    interview_classify_batch_size: int = 12
    assessment_classify_batch_size: int = 10

    # Curriculum and prompts
    curriculum_path: Path = Path("curriculum.txt")
    curriculum_snippet_chars: int = 15000
    prompts_dir: Path = Path("prompts")

    # Storage
    data_dir: Path = Path("data")
    provider_settings_file: Path = Path("data/provider_settings.json")

    # Media
    audio_chunk_seconds: int = 600
    min_video_bytes: int = 100 * 1024

    # Google
    gsheet_id: str | None = None
    gcp_service_account_json: str | None = None
    gcp_service_account_file: Path | None = None
    gcp_type: str | None = None
    gcp_project_id: str | None = None
    gcp_private_key_id: str | None = None
    gcp_private_key: str | None = None
    gcp_client_email: str | None = None
    gcp_client_id: str | None = None
    gcp_auth_uri: str | None = None
    gcp_token_uri: str | None = None
    gcp_auth_provider_x509_cert_url: str | None = None
    gcp_client_x509_cert_url: str | None = None
    gcp_universe_domain: str | None = None

    # GitHub gist publishing
    github_gist_token: str | None = None

    # Jobs
    job_ttl_seconds: float = 30 * 60
    drilldown_worker_count: int = 1
    job_poll_interval_seconds: float = 1.2

    # Logging
    log_level: str = "INFO"

    def staging_dirs(self) -> dict[str, Path]:
        """Return the local staging directories keyed by purpose."""
        return {
            "videos": self.data_dir / DOWNLOADED_VIDEOS_DIR,
            "transcripts": self.data_dir / GENERATED_TRANSCRIPTS_DIR,
            "qa": self.data_dir / QA_DIR,
            "audio_chunks": self.data_dir / AUDIO_CHUNKS_DIR,
        }

    def service_account_info(self) -> dict[str, Any] | None:
        """Resolve service-account credentials.

        Checked in order: inline JSON, JSON file, individual GCP_* fields.
        Returns None when nothing usable is configured.
        """
        if self.gcp_service_account_json:
            try:
                return json.loads(self.gcp_service_account_json)
            except json.JSONDecodeError:
                return None

        if self.gcp_service_account_file and self.gcp_service_account_file.exists():
            try:
                return json.loads(self.gcp_service_account_file.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                return None

        info = {
            field: getattr(self, f"gcp_{field}")
            for field in _INLINE_SERVICE_ACCOUNT_FIELDS
            if getattr(self, f"gcp_{field}")
        }
        if not info.get("client_email") or not info.get("private_key"):
            return None
        # Keys pasted into .env usually carry escaped newlines
        info["private_key"] = info["private_key"].replace("\\n", "\n")
        info.setdefault("type", "service_account")
        info.setdefault("token_uri", "https://oauth2.googleapis.com/token")
        return info


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
