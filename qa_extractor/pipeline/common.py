"""
Shared pipeline plumbing

Holds the service container every workflow receives and the tracker that
turns per-item outcomes into job progress, partial results and the final
error policy.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import httpx
import structlog

from qa_extractor.config.curriculum import get_curriculum_snippet
from qa_extractor.config.settings import Settings
from qa_extractor.errors import ConfigurationError, JobCancelledError, PipelineError
from qa_extractor.integrations.gist import GistPublisher
from qa_extractor.integrations.google import (
    DRIVE_SCOPES,
    SHEETS_SCOPES,
    DriveClient,
    GoogleSheetsSink,
    ServiceAccountTokens,
    SheetSink,
)
from qa_extractor.jobs.manager import JobControl, UpdateCallback
from qa_extractor.llm.client import AIClient
from qa_extractor.llm.runtime import ProviderRuntimeConfig, build_runtime_config
from qa_extractor.media import ffmpeg
from qa_extractor.models import AiProvider, JobProgress, OutputRow, RowSchema, WorkflowResult
from qa_extractor.services.provider_settings import (
    ProviderSettingsStore,
    default_provider_settings,
)

logger = structlog.get_logger(__name__)

MAX_REPORTED_SKIPS = 3


def now_date() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def now_datetime() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def new_uid() -> str:
    return uuid.uuid4().hex


def text_or(value: object, default: str = "N/A") -> str:
    """Trimmed string form of ``value``, or ``default`` when blank."""
    text = str(value).strip() if value is not None else ""
    return text or default


class MediaTools:
    """Async facade over the synchronous ffmpeg wrappers."""

    def __init__(self, min_video_bytes: int = ffmpeg.MIN_VIDEO_BYTES, chunk_seconds: int = 600):
        self.min_video_bytes = min_video_bytes
        self.chunk_seconds = chunk_seconds

    async def check_installed(self) -> bool:
        return await asyncio.to_thread(ffmpeg.check_ffmpeg_installed)

    async def duration(self, path: Path) -> float | None:
        return await asyncio.to_thread(ffmpeg.get_media_duration, path)

    async def validate_video(self, path: Path) -> ffmpeg.VideoValidation:
        return await asyncio.to_thread(ffmpeg.validate_video_file, path, self.min_video_bytes)

    async def extract_segment(self, video: Path, audio: Path, start: float, end: float) -> None:
        await asyncio.to_thread(ffmpeg.extract_audio_segment, video, audio, start, end)

    async def extract_audio(self, video: Path, audio: Path) -> None:
        await asyncio.to_thread(ffmpeg.extract_audio_file, video, audio)

    async def split(self, audio: Path, output_dir: Path | None = None) -> list[Path]:
        return await asyncio.to_thread(
            ffmpeg.split_audio_into_chunks, audio, self.chunk_seconds, output_dir
        )


@dataclass
class PipelineServices:
    """Collaborators shared by every workflow run."""

    settings: Settings
    http: httpx.AsyncClient
    provider_store: ProviderSettingsStore
    sheet_sink: SheetSink
    drive: DriveClient
    gists: GistPublisher
    media: MediaTools = field(default_factory=MediaTools)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def runtime_for(self, provider: AiProvider | str) -> ProviderRuntimeConfig:
        """Fresh runtime config from the current provider settings."""
        provider_settings = await self.provider_store.load()
        return build_runtime_config(provider, provider_settings, self.settings)

    def ai_client(self, runtime: ProviderRuntimeConfig) -> AIClient:
        return AIClient(
            runtime,
            self.http,
            sleep=self.sleep,
            max_wait=self.settings.retry_max_wait_seconds,
        )

    async def curriculum(self, max_chars: int | None = None) -> str:
        return await get_curriculum_snippet(
            self.settings.curriculum_path,
            max_chars or self.settings.curriculum_snippet_chars,
        )

    def staging_dir(self, name: str) -> Path:
        path = self.settings.staging_dirs()[name]
        path.mkdir(parents=True, exist_ok=True)
        return path


def build_services(settings: Settings, http: httpx.AsyncClient) -> PipelineServices:
    """Wire production collaborators from settings."""
    info = settings.service_account_info()
    if info is None:
        logger.warning("google_credentials_missing")

    try:
        sheet_tokens = ServiceAccountTokens(info, SHEETS_SCOPES) if info else None
        drive_tokens = ServiceAccountTokens(info, DRIVE_SCOPES) if info else None
    except ValueError as e:
        logger.error("google_credentials_invalid", error=str(e))
        sheet_tokens = drive_tokens = None

    return PipelineServices(
        settings=settings,
        http=http,
        provider_store=ProviderSettingsStore(
            settings.provider_settings_file, default_provider_settings(settings)
        ),
        sheet_sink=GoogleSheetsSink(http, settings.gsheet_id, sheet_tokens),
        drive=DriveClient(http, drive_tokens),
        gists=GistPublisher(http, settings.github_gist_token),
        media=MediaTools(settings.min_video_bytes, settings.audio_chunk_seconds),
    )


class RunTracker:
    """Collects rows and skip reasons for one workflow run.

    Rows are stored per input item so the flattened output keeps input order
    no matter which item finished first.
    """

    def __init__(
        self,
        schema: RowSchema,
        total: int,
        update: UpdateCallback,
        control: JobControl,
    ):
        self.schema = schema
        self.total = total
        self.update = update
        self.control = control
        self._rows: list[list[OutputRow]] = [[] for _ in range(total)]
        self._done: list[bool] = [False] * total
        self.skipped: list[str] = []

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 100.0
        return round(sum(self._done) / self.total * 100, 1)

    def rows(self) -> list[OutputRow]:
        flattened = [row for item_rows in self._rows for row in item_rows]
        return self.schema.order_all(flattened)

    def snapshot(self, saved_to_sheet: bool = False) -> WorkflowResult:
        return WorkflowResult(rows=self.rows(), saved_to_sheet=saved_to_sheet, skipped=list(self.skipped))

    def push(self, message: str, loaded_bytes: int | None = None, total_bytes: int | None = None) -> None:
        """Report a status message with the rows accumulated so far."""
        self.update(
            message,
            partial_result=self.snapshot(),
            progress=JobProgress(percent=self.percent, loaded_bytes=loaded_bytes, total_bytes=total_bytes),
        )

    def status(self, message: str) -> None:
        """Report a status message without touching progress or rows."""
        self.update(message)

    def add_rows(self, index: int, rows: Sequence[OutputRow]) -> None:
        self._rows[index].extend(rows)

    def skip(self, label: str, error: BaseException | str) -> str:
        reason = f"{label}: {error}"
        self.skipped.append(reason)
        logger.warning("item_skipped", reason=reason)
        return reason

    def complete(self, index: int, message: str) -> None:
        self._done[index] = True
        self.push(message)

    async def run_item(self, index: int, label: str, work: Callable[[], Awaitable[Sequence[OutputRow]]]) -> None:
        """Run one item; failures become skip reasons, cancellation propagates."""
        try:
            rows = await work()
        except (JobCancelledError, ConfigurationError):
            raise
        except Exception as e:
            reason = self.skip(label, e)
            self.complete(index, reason)
            return
        self.add_rows(index, rows)
        self.complete(index, f"{label}: completed.")

    def ensure_rows(self, submitted: int | None = None) -> list[OutputRow]:
        """Raise when items were submitted but no rows were produced."""
        submitted = self.total if submitted is None else submitted
        rows = self.rows()
        if submitted > 0 and not rows:
            reasons = self.skipped[:MAX_REPORTED_SKIPS]
            detail = f" First issues: {' | '.join(reasons)}" if reasons else ""
            raise PipelineError(f"No rows were produced from {submitted} input item(s).{detail}")
        return rows

    async def finish(self, sink: SheetSink, label: str) -> WorkflowResult:
        """Apply the zero-row policy, write to the sink and build the result."""
        rows = self.ensure_rows()
        self.control.throw_if_cancelled()
        self.update(
            f"Saving {label} results to sheet...",
            partial_result=self.snapshot(),
            progress=JobProgress(percent=100),
        )
        saved = await sink.append_rows(self.schema, rows)
        if not saved:
            self.status(f"{label.capitalize()} completed, but sheet save failed.")
        if self.skipped:
            self.status(f"Skipped {len(self.skipped)}/{self.total} item(s).")
        logger.info("workflow_finished", workflow=label, rows=len(rows), saved=saved, skipped=len(self.skipped))
        return WorkflowResult(rows=rows, saved_to_sheet=saved, skipped=list(self.skipped))
