"""
Assessment Workflows

Question papers arrive either as individual uploads or as ZIP archives of
scans. Every file goes through OCR, question extraction and batch
classification, and lands on the assessment sheet.
"""

import asyncio
import io
import zipfile
from dataclasses import dataclass
from pathlib import PurePosixPath

import structlog

from qa_extractor.config.prompts import (
    ASSESSMENT_CLASSIFY_PROMPT_TEMPLATE,
    ASSESSMENT_EXTRACTION_PROMPT,
    with_curriculum,
)
from qa_extractor.errors import ItemProcessingError
from qa_extractor.jobs.manager import JobControl, UpdateCallback
from qa_extractor.llm.client import AIClient
from qa_extractor.models import (
    ASSESSMENT_SCHEMA,
    AiProvider,
    AssessmentInput,
    ExtractedItem,
    OutputRow,
    Taxonomy,
    WorkflowResult,
)
from qa_extractor.pipeline.common import (
    PipelineServices,
    RunTracker,
    new_uid,
    now_date,
    now_datetime,
    text_or,
)
from qa_extractor.processing.classification import classify_items
from qa_extractor.processing.enum_format import format_enum

logger = structlog.get_logger(__name__)

VALID_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".webp", ".pdf", ".tiff", ".bmp"})
ASSESSMENT_CHAT_TIMEOUT = 90.0
MAX_RAW_TEXT_CHARS = 100_000
MIN_RAW_TEXT_CHARS = 5


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class AssessmentFile:
    """One document to analyze plus the row metadata it inherits."""

    name: str
    content: bytes
    mime_type: str | None
    job_id: str
    company_name: str
    assessment_date: str


def _from_row(row: AssessmentInput, name: str, content: bytes, mime_type: str | None) -> AssessmentFile:
    return AssessmentFile(
        name=name,
        content=content,
        mime_type=mime_type,
        job_id=text_or(row.job_id),
        company_name=text_or(row.company_name),
        assessment_date=text_or(row.assessment_date, now_date()),
    )


def read_zip_entries(data: bytes) -> list[tuple[str, bytes]]:
    """Supported files inside a ZIP archive, directories skipped.

    Raises:
        ItemProcessingError: The upload is not a readable ZIP archive.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            entries = []
            for info in archive.infolist():
                if info.is_dir():
                    continue
                path = PurePosixPath(info.filename)
                if path.suffix.lower() not in VALID_EXTENSIONS:
                    continue
                entries.append((path.name, archive.read(info)))
            return entries
    except zipfile.BadZipFile as e:
        raise ItemProcessingError(f"Invalid ZIP archive: {e}") from e


async def extract_assessment_questions(client: AIClient, raw_text: str) -> list[ExtractedItem]:
    """Ask the model for the questions contained in OCR text."""
    if not raw_text or len(raw_text.strip()) < MIN_RAW_TEXT_CHARS:
        return []

    prompt = ASSESSMENT_EXTRACTION_PROMPT.replace("{raw_text}", raw_text[:MAX_RAW_TEXT_CHARS])
    response = await client.chat_json(
        [{"role": "user", "content": prompt}],
        json_mode=True,
        temperature=0.1,
        timeout=ASSESSMENT_CHAT_TIMEOUT,
    )
    if not isinstance(response, dict):
        return []

    questions = response.get("questions")
    if not isinstance(questions, list):
        return []

    items = []
    for entry in questions:
        if not isinstance(entry, dict):
            continue
        text = str(entry.get("question_text") or "").strip()
        if not text:
            continue
        difficulty = entry.get("difficulty")
        items.append(ExtractedItem(
            question_text=text,
            category=str(entry["category"]) if entry.get("category") is not None else None,
            taxonomy=Taxonomy(difficulty=str(difficulty) if difficulty is not None else None),
        ))
    return items


def build_assessment_rows(items: list[ExtractedItem], source: AssessmentFile, product: str) -> list[OutputRow]:
    rows = []
    for item in items:
        taxonomy = item.taxonomy
        rows.append({
            "job_id": source.job_id,
            "company_name": source.company_name,
            "questions": item.question_text,
            "question_type": format_enum(taxonomy.question_type or "ASSESSMENT"),
            "tech_stacks": format_enum(taxonomy.question_concept or item.category or "Uncategorized"),
            "topic": format_enum(taxonomy.topic),
            "sub_topic": format_enum(taxonomy.sub_topic),
            "difficulty_level": format_enum(taxonomy.difficulty or "MEDIUM"),
            "curriculum_coverage": format_enum(taxonomy.curriculum_coverage),
            "question_uid": new_uid(),
            "assessment_date": source.assessment_date,
            "question_creation_datetime": now_datetime(),
            "product": product,
        })
    return rows


class AssessmentProcessor:
    """OCR, extraction and classification for one assessment file at a time."""

    def __init__(
        self,
        client: AIClient,
        classify_prompt: str,
        batch_size: int,
        product: str,
        tracker: RunTracker,
        control: JobControl,
    ):
        self.client = client
        self.classify_prompt = classify_prompt
        self.batch_size = batch_size
        self.product = product
        self.tracker = tracker
        self.control = control

    async def process(self, source: AssessmentFile) -> list[OutputRow]:
        self.control.throw_if_cancelled()
        self.tracker.status(f"Running OCR for {source.name}...")
        text = await self.client.ocr(source.name, source.content, source.mime_type)
        self.control.throw_if_cancelled()
        if not text:
            raise ItemProcessingError("OCR returned no text.")

        self.tracker.status(f"Extracting questions from {source.name}...")
        items = await extract_assessment_questions(self.client, text)
        self.control.throw_if_cancelled()
        if not items:
            logger.info("assessment_no_questions", file=source.name)
            return []

        self.tracker.status(f"Classifying questions from {source.name}...")
        classified = await classify_items(
            self.client,
            items,
            self.classify_prompt,
            self.batch_size,
            self.control,
            json_mode=True,
            timeout=ASSESSMENT_CHAT_TIMEOUT,
        )
        self.control.throw_if_cancelled()
        return build_assessment_rows(classified, source, self.product)


async def _prepare(
    services: PipelineServices,
    provider: AiProvider | str,
    product: str,
    total: int,
    update: UpdateCallback,
    control: JobControl,
) -> tuple[AssessmentProcessor, RunTracker]:
    control.throw_if_cancelled()
    update("Loading curriculum context...")
    curriculum = await services.curriculum()
    control.throw_if_cancelled()
    runtime = await services.runtime_for(provider)
    tracker = RunTracker(ASSESSMENT_SCHEMA, total, update, control)
    processor = AssessmentProcessor(
        services.ai_client(runtime),
        with_curriculum(ASSESSMENT_CLASSIFY_PROMPT_TEMPLATE, curriculum),
        services.settings.assessment_classify_batch_size,
        product,
        tracker,
        control,
    )
    return processor, tracker


def _raiser(error: Exception):
    async def fail() -> list[OutputRow]:
        raise error
    return fail


def _missing_upload(row: AssessmentInput) -> ItemProcessingError:
    return ItemProcessingError(f"No uploaded file for field '{row.file_field}'.")


async def run_assessment_individual(
    services: PipelineServices,
    rows: list[AssessmentInput],
    files: dict[str, UploadedFile],
    product: str,
    provider: AiProvider | str,
    update: UpdateCallback,
    control: JobControl,
) -> WorkflowResult:
    """Analyze individually uploaded assessment files, one per row."""
    total = len(rows)
    processor, tracker = await _prepare(services, provider, product, total, update, control)

    for index, row in enumerate(rows):
        control.throw_if_cancelled()
        label = f"Assessment file {index + 1}/{total}"
        upload = files.get(row.file_field)
        if upload is None:
            await tracker.run_item(index, label, _raiser(_missing_upload(row)))
            continue

        source = _from_row(row, upload.filename, upload.content, upload.content_type)
        tracker.status(f"Processing assessment file {index + 1}/{total}...")
        await tracker.run_item(index, f"{label} ({upload.filename})", lambda source=source: processor.process(source))

    return await tracker.finish(services.sheet_sink, "assessment")


async def run_assessment_zip(
    services: PipelineServices,
    rows: list[AssessmentInput],
    files: dict[str, UploadedFile],
    product: str,
    provider: AiProvider | str,
    update: UpdateCallback,
    control: JobControl,
) -> WorkflowResult:
    """Analyze every supported file inside each uploaded ZIP archive.

    Archives are expanded up front so each entry counts as one item for
    progress and skip reporting. A row whose archive is missing or corrupt
    counts as a single skipped item.
    """
    control.throw_if_cancelled()
    update("Reading ZIP archives...")
    units: list[tuple[str, AssessmentFile | ItemProcessingError]] = []

    for zip_number, row in enumerate(rows, start=1):
        upload = files.get(row.file_field)
        if upload is None:
            units.append((f"ZIP {zip_number}", _missing_upload(row)))
            continue
        try:
            entries = await asyncio.to_thread(read_zip_entries, upload.content)
        except ItemProcessingError as e:
            units.append((f"ZIP {zip_number} ({upload.filename})", e))
            continue
        logger.info("zip_expanded", archive=upload.filename, entries=len(entries))
        for name, content in entries:
            units.append((f"ZIP {zip_number}: {name}", _from_row(row, name, content, None)))

    processor, tracker = await _prepare(services, provider, product, len(units), update, control)

    for index, (label, unit) in enumerate(units):
        control.throw_if_cancelled()
        if isinstance(unit, ItemProcessingError):
            await tracker.run_item(index, label, _raiser(unit))
            continue
        tracker.status(f"Processing ZIP file {index + 1}/{len(units)}: {unit.name}...")
        await tracker.run_item(index, label, lambda unit=unit: processor.process(unit))

    return await tracker.finish(services.sheet_sink, "assessment")
