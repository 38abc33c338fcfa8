"""
Interview Workflows

Interview analyzer: Drive-hosted recordings, one candidate per input row.
Video uploader: a single locally uploaded recording.

Both share transcription, gist publishing and the Q&A pipeline, and write to
the interview sheet.

Design Decisions:
- Cached videos are reused only if they validate; otherwise re-downloaded
- Public Drive download first, authenticated Drive API as fallback
- Long audio is transcribed in fixed-length chunks with offset timestamps
- Staged audio/transcripts/CSVs are removed only after the sheet write succeeded
"""

from dataclasses import dataclass, field
from pathlib import Path

import structlog

from qa_extractor.config.prompts import load_classify_template, load_qna_prompt, with_curriculum
from qa_extractor.errors import ConfigurationError, ItemProcessingError
from qa_extractor.extraction.chunker import ChunkingConfig
from qa_extractor.integrations.downloads import clean_drive_id, download_public_drive_file, remove_quietly
from qa_extractor.jobs.manager import JobControl, UpdateCallback
from qa_extractor.llm.client import AIClient
from qa_extractor.media.transcript import clean_transcript_hallucinations, segments_to_clean_text
from qa_extractor.models import (
    INTERVIEW_SCHEMA,
    AiProvider,
    ExtractedItem,
    InterviewInputRow,
    OutputRow,
    VideoUploaderMetadata,
    WorkflowResult,
)
from qa_extractor.pipeline.common import (
    PipelineServices,
    RunTracker,
    new_uid,
    now_datetime,
    text_or,
)
from qa_extractor.pipeline.qna import run_qna_pipeline
from qa_extractor.processing.enum_format import format_enum
from qa_extractor.services import storage

logger = structlog.get_logger(__name__)

SOURCE_INTERVIEW_ANALYSER = "Interview analyser"
SOURCE_VIDEO_UPLOADER = "Video uploader"


@dataclass
class InterviewMeta:
    """Per-recording values copied onto every output row."""

    user_id: str
    full_name: str
    mobile_number: str
    job_id: str
    company_name: str
    interview_round: str
    interview_date: str
    clip_start: float
    clip_end: float
    video_link: str
    transcript_link: str
    drive_file_id: str
    source_type: str
    product: str


def parse_time(value: str | float | None) -> float | None:
    """Seconds from a sheet cell; blank or N/A means unset."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.upper() == "N/A":
        return None
    try:
        return float(text)
    except ValueError:
        return None


def format_seconds(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def build_interview_rows(items: list[ExtractedItem], meta: InterviewMeta) -> list[OutputRow]:
    """Map classified items to interview sheet rows."""
    rows = []
    for item in items:
        taxonomy = item.taxonomy
        rows.append({
            "user_id": meta.user_id,
            "full_name": meta.full_name,
            "mobile_number": meta.mobile_number,
            "job_id": meta.job_id,
            "company_name": meta.company_name,
            "question_text": item.question_text,
            "answer_text": item.answer_text or "",
            "relevancy_score": text_or(taxonomy.relevancy_score),
            "question_type": format_enum(taxonomy.question_type),
            "tech_stacks": format_enum(taxonomy.question_concept),
            "topic": format_enum(taxonomy.topic),
            "sub_topic": format_enum(taxonomy.sub_topic),
            "difficulty": format_enum(taxonomy.difficulty),
            "interview_round": format_enum(meta.interview_round),
            "clip_start_time": format_seconds(meta.clip_start),
            "clip_end_time": format_seconds(meta.clip_end),
            "video_link": meta.video_link,
            "transcript_link": meta.transcript_link,
            "drive_file_id": meta.drive_file_id,
            "curriculum_coverage": format_enum(taxonomy.curriculum_coverage),
            "question_uid": new_uid(),
            "interview_date": meta.interview_date,
            "question_creation_datetime": now_datetime(),
            "source_type": meta.source_type,
            "product": meta.product,
        })
    return rows


@dataclass
class InterviewRun:
    """State shared by every candidate in one run."""

    services: PipelineServices
    client: AIClient
    tracker: RunTracker
    control: JobControl
    product: str
    qna_prompt: str
    classify_prompt: str
    chunking: ChunkingConfig
    run_token: str = field(default_factory=storage.generate_token)
    cleanup_paths: list[Path] = field(default_factory=list)

    @property
    def media(self):
        return self.services.media

    async def transcribe(self, audio_path: Path, transcript_path: Path, label: str) -> str:
        """Transcribe audio chunk by chunk and write the cleaned transcript."""
        chunks = await self.media.split(audio_path, self.services.staging_dir("audio_chunks"))
        offset = 0.0
        parts: list[str] = []

        for number, chunk in enumerate(chunks, start=1):
            self.control.throw_if_cancelled()
            self.tracker.status(f"{label}: generating transcript chunk {number}/{len(chunks)}...")
            segments = await self.client.transcribe(chunk)
            self.control.throw_if_cancelled()
            parts.append(segments_to_clean_text(segments, offset))
            offset += await self.media.duration(chunk) or 0.0
            if chunk != audio_path:
                await remove_quietly(chunk)

        transcript = clean_transcript_hallucinations("\n".join(parts).strip())
        await storage.write_text(transcript_path, transcript)
        return transcript

    async def publish_transcript(self, name: str, transcript: str, label: str) -> str:
        if not transcript.strip():
            return "N/A"
        self.control.throw_if_cancelled()
        self.tracker.status(f"{label}: creating transcript gist...")
        link = await self.services.gists.publish(name, transcript)
        self.control.throw_if_cancelled()
        return link

    async def extract_items(self, transcript: str, label: str) -> list[ExtractedItem]:
        self.control.throw_if_cancelled()
        self.tracker.status(f"{label}: extracting Q&A...")
        return await run_qna_pipeline(
            self.client,
            transcript,
            self.qna_prompt,
            self.classify_prompt,
            self.chunking,
            self.services.settings.interview_classify_batch_size,
            self.control,
        )

    async def finish(self) -> WorkflowResult:
        result = await self.tracker.finish(self.services.sheet_sink, "interview")
        if result.saved_to_sheet:
            self.tracker.status("Cleaning up local interview artifacts...")
            await storage.cleanup_files(self.cleanup_paths)
        return result


async def _prepare_run(
    services: PipelineServices,
    provider: AiProvider | str,
    product: str,
    total: int,
    update: UpdateCallback,
    control: JobControl,
) -> InterviewRun:
    """Resolve provider, check ffmpeg and load prompts; failures here are fatal."""
    control.throw_if_cancelled()
    runtime = await services.runtime_for(provider)
    if not await services.media.check_installed():
        raise ConfigurationError("FFmpeg is not installed.")
    for name in ("videos", "transcripts", "qa", "audio_chunks"):
        services.staging_dir(name)

    update("Loading curriculum and prompts...")
    settings = services.settings
    curriculum = await services.curriculum()
    control.throw_if_cancelled()

    return InterviewRun(
        services=services,
        client=services.ai_client(runtime),
        tracker=RunTracker(INTERVIEW_SCHEMA, total, update, control),
        control=control,
        product=product,
        qna_prompt=load_qna_prompt(settings.prompts_dir),
        classify_prompt=with_curriculum(load_classify_template(settings.prompts_dir), curriculum),
        chunking=ChunkingConfig(
            chunk_size=settings.qna_chunk_size,
            overlap=settings.qna_chunk_overlap,
            newline_snap=settings.qna_newline_snap,
        ),
    )


# =============================================================================
# Interview analyzer
# =============================================================================

async def _acquire_video(run: InterviewRun, file_id: str, video_path: Path, label: str) -> None:
    """Make sure ``video_path`` holds a valid copy of the Drive file."""
    media = run.media
    validation = await media.validate_video(video_path)
    if validation.ok:
        logger.info("video_cache_hit", file_id=file_id)
        return
    await remove_quietly(video_path)

    def on_progress(loaded: int, total: int | None) -> None:
        run.tracker.push(f"{label}: downloading video...", loaded_bytes=loaded, total_bytes=total)

    run.control.throw_if_cancelled()
    run.tracker.status(f"{label}: downloading video...")
    downloaded = await download_public_drive_file(
        run.services.http, file_id, video_path, on_progress, run.control
    )
    run.control.throw_if_cancelled()

    if downloaded:
        validation = await media.validate_video(video_path)
        if validation.ok:
            return
        reason = f"downloaded file invalid ({validation.reason})"
    else:
        reason = "public download request failed"

    await remove_quietly(video_path)
    run.tracker.status(f"{label}: public download failed ({reason}), switching to Drive API...")
    await run.services.drive.download_file(file_id, video_path, on_progress, run.control)
    run.control.throw_if_cancelled()

    validation = await media.validate_video(video_path)
    if not validation.ok:
        await remove_quietly(video_path)
        raise ItemProcessingError(f"Drive API file invalid ({validation.reason}).")


async def _process_interview_row(
    run: InterviewRun, row: InterviewInputRow, number: int, total: int
) -> list[OutputRow]:
    label = f"Candidate {number}/{total}"
    interview_date = (row.interview_date or "").strip()
    if not interview_date:
        raise ItemProcessingError("Missing interview_date for interview analyzer row.")

    file_id = clean_drive_id(row.drive_file_id)
    if not file_id:
        raise ItemProcessingError("Missing drive_file_id.")

    start = parse_time(row.clip_start_time) or 0.0
    end = parse_time(row.clip_end_time) or 0.0

    videos_dir = run.services.staging_dir("videos")
    video_path = videos_dir / f"{file_id}.mp4"
    run.tracker.status(f"{label}: validating cached video...")
    await _acquire_video(run, file_id, video_path, label)

    if end == 0:
        run.control.throw_if_cancelled()
        run.tracker.status(f"{label}: determining clip duration...")
        duration = await run.media.duration(video_path)
        if not duration:
            raise ItemProcessingError("Could not determine video duration.")
        end = duration

    base_name = f"{file_id}_{int(start)}_{int(end)}_{run.run_token}_{number}"
    audio_path = videos_dir / f"{base_name}.mp3"
    transcript_path = run.services.staging_dir("transcripts") / f"{base_name}.txt"
    csv_path = run.services.staging_dir("qa") / f"{base_name}_consolidated.csv"
    run.cleanup_paths.extend([audio_path, transcript_path, csv_path])

    if not audio_path.exists():
        run.control.throw_if_cancelled()
        run.tracker.status(f"{label}: extracting audio...")
        await run.media.extract_segment(video_path, audio_path, start, end)

    if transcript_path.exists():
        transcript = await storage.read_text_if_exists(transcript_path)
    else:
        run.control.throw_if_cancelled()
        transcript = await run.transcribe(audio_path, transcript_path, label)

    transcript_link = await run.publish_transcript(f"transcript_{base_name}.txt", transcript, label)
    items = await run.extract_items(transcript, label)

    rows = build_interview_rows(items, InterviewMeta(
        user_id=text_or(row.user_id),
        full_name=text_or(row.full_name),
        mobile_number=text_or(row.mobile_number),
        job_id=text_or(row.job_id),
        company_name=text_or(row.company_name),
        interview_round=text_or(row.interview_round),
        interview_date=interview_date,
        clip_start=start,
        clip_end=end,
        video_link=f"https://drive.google.com/file/d/{file_id}/view",
        transcript_link=transcript_link,
        drive_file_id=file_id,
        source_type=SOURCE_INTERVIEW_ANALYSER,
        product=run.product,
    ))

    run.control.throw_if_cancelled()
    await storage.write_rows_csv(csv_path, INTERVIEW_SCHEMA.order_all(rows))
    return rows


async def run_interview_analyzer(
    services: PipelineServices,
    rows: list[InterviewInputRow],
    product: str,
    provider: AiProvider | str,
    update: UpdateCallback,
    control: JobControl,
) -> WorkflowResult:
    """Analyze Drive-hosted interview recordings, one candidate per row."""
    update("Preparing interview analyzer...")
    run = await _prepare_run(services, provider, product, len(rows), update, control)
    total = len(rows)

    for index, row in enumerate(rows):
        control.throw_if_cancelled()
        number = index + 1
        await run.tracker.run_item(
            index,
            f"Candidate {number}/{total}",
            lambda row=row, number=number: _process_interview_row(run, row, number, total),
        )

    return await run.finish()


# =============================================================================
# Video uploader
# =============================================================================

async def run_video_uploader(
    services: PipelineServices,
    metadata: VideoUploaderMetadata,
    video: bytes,
    filename: str,
    product: str,
    provider: AiProvider | str,
    update: UpdateCallback,
    control: JobControl,
) -> WorkflowResult:
    """Analyze one uploaded interview recording."""
    update("Preparing local video uploader...")
    interview_date = (metadata.interview_date or "").strip()
    if not interview_date:
        raise ItemProcessingError("Missing interview_date in video uploader metadata.")

    run = await _prepare_run(services, provider, product, 1, update, control)
    label = "Uploaded video"

    async def process() -> list[OutputRow]:
        token = storage.generate_token(8)
        stamp = now_datetime().replace("-", "").replace(":", "").replace(" ", "")
        ext = Path(filename).suffix or ".mp4"
        videos_dir = services.staging_dir("videos")

        run.control.throw_if_cancelled()
        run.tracker.status("Saving uploaded video...")
        video_path = await storage.save_bytes(videos_dir / f"uploaded_{stamp}_{token}{ext}", video)

        base_name = f"{metadata.user_id or 'candidate'}_{stamp}_{token}"
        audio_path = videos_dir / f"{base_name}.mp3"
        transcript_path = services.staging_dir("transcripts") / f"{base_name}.txt"
        run.cleanup_paths.extend([video_path, audio_path, transcript_path])

        run.control.throw_if_cancelled()
        run.tracker.status("Extracting audio...")
        await run.media.extract_audio(video_path, audio_path)

        run.control.throw_if_cancelled()
        transcript = await run.transcribe(audio_path, transcript_path, label)
        transcript_link = await run.publish_transcript(f"trans_{base_name}.txt", transcript, label)
        items = await run.extract_items(transcript, label)
        clip_end = await run.media.duration(video_path) or 0.0

        return build_interview_rows(items, InterviewMeta(
            user_id=text_or(metadata.user_id),
            full_name=text_or(metadata.full_name),
            mobile_number=text_or(metadata.mobile_number),
            job_id=text_or(metadata.job_id),
            company_name=text_or(metadata.company_name),
            interview_round=text_or(metadata.interview_round),
            interview_date=interview_date,
            clip_start=0.0,
            clip_end=clip_end,
            video_link="Local Upload",
            transcript_link=transcript_link,
            drive_file_id="Local",
            source_type=SOURCE_VIDEO_UPLOADER,
            product=product,
        ))

    await run.tracker.run_item(0, label, process)
    return await run.finish()
