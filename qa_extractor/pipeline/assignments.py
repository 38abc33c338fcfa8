"""Assignment link workflow: fetch each linked brief, summarize and classify it."""

from typing import Any

import structlog

from qa_extractor.config.prompts import ASSIGNMENT_PROMPT_TEMPLATE, with_curriculum
from qa_extractor.errors import ItemProcessingError
from qa_extractor.extraction.content import MIN_TEXT_CHARS, ContentFetcher
from qa_extractor.jobs.manager import JobControl, UpdateCallback
from qa_extractor.llm.client import AIClient
from qa_extractor.models import ASSIGNMENT_SCHEMA, AiProvider, AssignmentInputRow, OutputRow, WorkflowResult
from qa_extractor.pipeline.common import PipelineServices, RunTracker, new_uid, now_date, now_datetime, text_or
from qa_extractor.processing.enum_format import format_enum

logger = structlog.get_logger(__name__)

ASSIGNMENT_CHAT_TIMEOUT = 60.0
ASSIGNMENT_CURRICULUM_CHARS = 10_000
MAX_CONTENT_CHARS = 20_000


async def analyze_assignment(client: AIClient, system_prompt: str, content: str) -> dict[str, Any]:
    """One JSON-mode chat call summarizing the assignment text.

    Raises:
        ItemProcessingError: The reply is not a JSON object.
    """
    user_prompt = f"Analyze this assignment text:\n---\n{content[:MAX_CONTENT_CHARS]}\n---"
    parsed = await client.chat_json(
        [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        json_mode=True,
        temperature=0.1,
        timeout=ASSIGNMENT_CHAT_TIMEOUT,
    )
    if not isinstance(parsed, dict):
        raise ItemProcessingError("Model did not return a JSON object.")
    return parsed


def build_assignment_row(
    analysis: dict[str, Any], row: AssignmentInputRow, link: str, product: str
) -> OutputRow:
    def pick(key: str, default: Any) -> Any:
        value = analysis.get(key)
        return default if value is None else value

    return {
        "job_id": text_or(row.job_id),
        "company_name": text_or(row.company_name, "Unknown"),
        "question_text": str(pick("question_text", "N/A")),
        "question_type": format_enum(pick("question_type", "ASSIGNMENT")),
        "tech_stacks": format_enum(pick("tech_stacks", "GENERAL")),
        "difficulty_level": format_enum(pick("difficulty_level", "MEDIUM")),
        "curriculum_coverage": format_enum(pick("curriculum_coverage", "N/A")),
        "question_uid": new_uid(),
        "assignment_date": text_or(row.assignment_date, now_date()),
        "question_creation_datetime": now_datetime(),
        "assignment_link": link,
        "product": product,
    }


async def run_assignments(
    services: PipelineServices,
    rows: list[AssignmentInputRow],
    product: str,
    provider: AiProvider | str,
    update: UpdateCallback,
    control: JobControl,
) -> WorkflowResult:
    """Analyze one assignment link per row."""
    control.throw_if_cancelled()
    runtime = await services.runtime_for(provider)
    client = services.ai_client(runtime)
    fetcher = ContentFetcher(services.http, client.ocr)

    update("Loading curriculum context...")
    curriculum = await services.curriculum(ASSIGNMENT_CURRICULUM_CHARS)
    system_prompt = with_curriculum(ASSIGNMENT_PROMPT_TEMPLATE, curriculum)
    control.throw_if_cancelled()

    total = len(rows)
    tracker = RunTracker(ASSIGNMENT_SCHEMA, total, update, control)

    async def process(row: AssignmentInputRow, number: int) -> list[OutputRow]:
        link = (row.assignment_link or "").strip()
        if not link:
            raise ItemProcessingError("Missing assignment_link.")

        tracker.status(f"Fetching assignment content {number}/{total}...")
        content = await fetcher.fetch_text(link)
        control.throw_if_cancelled()
        if len(content.strip()) < MIN_TEXT_CHARS:
            raise ItemProcessingError("Content empty or unrecognizable.")

        tracker.status(f"Analyzing assignment {number}/{total}...")
        analysis = await analyze_assignment(client, system_prompt, content)
        control.throw_if_cancelled()
        return [build_assignment_row(analysis, row, link, product)]

    for index, row in enumerate(rows):
        control.throw_if_cancelled()
        number = index + 1
        await tracker.run_item(
            index,
            f"Assignment {number}/{total}",
            lambda row=row, number=number: process(row, number),
        )

    return await tracker.finish(services.sheet_sink, "assignment")
