"""
Drilldown Workflow

Turns raw per-round interview notes (one spreadsheet row per candidate) into
formatted, classified questions.

Design Decisions:
- Each non-placeholder round cell is one LLM call
- Every round call pins its own key, taken round-robin from the pool
- Workers claim candidates from a shared cursor; output keeps input order
"""

import asyncio
import json
import re
from collections.abc import Mapping
from typing import Any

import structlog

from qa_extractor.config.prompts import DRILLDOWN_PROMPT_TEMPLATE, with_curriculum
from qa_extractor.errors import ConfigurationError, ItemProcessingError, JobCancelledError
from qa_extractor.jobs.manager import JobControl, UpdateCallback
from qa_extractor.llm.client import AIClient
from qa_extractor.llm.runtime import ProviderRuntimeConfig
from qa_extractor.models import DRILLDOWN_SCHEMA, AiProvider, OutputRow, WorkflowResult
from qa_extractor.pipeline.common import PipelineServices, RunTracker, new_uid, now_date, now_datetime
from qa_extractor.processing.enum_format import format_enum
from qa_extractor.services.storage import rows_to_csv

logger = structlog.get_logger(__name__)

ROUND_COLUMNS = {
    "Screening Questions": "Screening Round",
    "Assessment questions": "Assessment",
    "Technical round Questions": "Technical Round 1",
    "Technical2 round Questions": "Technical Round 2",
    "H.R Questions": "HR Round",
    "Cultural fit Round Questions": "Cultural Fit Round",
    "Managerial Round questions": "Managerial Round",
    "CEO/Founder/Director Round Questions": "CEO/Director Round",
}

PLACEHOLDER_VALUES = frozenset({
    "nan", "no", "yes", "na", "n/a", "#n/a", "none", "null", "nil",
    "-", "--", "---", "not available", "not applicable",
})
PLACEHOLDER_COMPACT = frozenset({
    "nan", "no", "yes", "na", "none", "null", "nil", "notavailable", "notapplicable",
})

QUESTION_KEYS = ("question_text", "questionText", "question", "text", "prompt", "formatted_question")

MAX_ROUND_ISSUES = 4

SAMPLE_ROWS = (
    ("Interview Date", "2023-01-01"),
    ("User ID", "U123"),
    ("User Name", "John"),
    ("Mobile Number", "9999"),
    ("Job ID", "J1"),
    ("Company Name", "Google"),
    ("Screening Questions", "Intro?"),
    ("Assessment questions", "Test Link"),
    ("Technical round Questions", "Java Basics"),
    ("Technical2 round Questions", "System Design"),
    ("H.R Questions", "Why us?"),
    ("Cultural fit Round Questions", "Values?"),
    ("Managerial Round questions", "Manage Team?"),
    ("CEO/Founder/Director Round Questions", "Future goals?"),
)


def sample_csv() -> str:
    """Header plus one example row for the drilldown upload template."""
    return rows_to_csv([dict(SAMPLE_ROWS)]).rstrip("\n")


def is_valid_round_text(value: Any) -> bool:
    """False for blanks and spreadsheet placeholders like ``N/A`` or ``--``."""
    if value is None:
        return False
    text = str(value).strip()
    if not text:
        return False
    normalized = re.sub(r"\s+", " ", text.lower()).strip()
    compact = re.sub(r"[^a-z0-9]", "", normalized)
    return normalized not in PLACEHOLDER_VALUES and compact not in PLACEHOLDER_COMPACT


def extract_question_text(item: Mapping[str, Any]) -> str:
    """First non-blank question field, searching a nested ``questions`` list last."""
    for key in QUESTION_KEYS:
        value = item.get(key)
        text = str(value).strip() if value is not None else ""
        if text:
            return text

    nested = item.get("questions")
    if isinstance(nested, list):
        for entry in nested:
            if isinstance(entry, str) and entry.strip():
                return entry.strip()
            if isinstance(entry, Mapping):
                text = extract_question_text(entry)
                if text:
                    return text
    return ""


def _first(item: Mapping[str, Any], *keys: str, default: str = "N/A") -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return default


def _cell(row: Mapping[str, Any], *keys: str, default: str = "N/A") -> str:
    for key in keys:
        value = row.get(key)
        text = str(value).strip() if value is not None else ""
        if text:
            return text
    return default


class DrilldownAnalyzer:
    """Analyzes candidate rows round by round."""

    def __init__(
        self,
        client: AIClient,
        runtime: ProviderRuntimeConfig,
        system_prompt: str,
        product: str,
        control: JobControl,
        tracker: RunTracker,
    ):
        self.client = client
        self.runtime = runtime
        self.system_prompt = system_prompt
        self.product = product
        self.control = control
        self.tracker = tracker

    async def analyze_round(self, round_name: str, round_text: str) -> list[dict[str, Any]]:
        payload = json.dumps({"interview_round": round_name, "round_text": round_text}, ensure_ascii=False)
        user_content = (
            f"ROUND INPUT (JSON):\n{payload}\n\n"
            "Convert raw notes into formatted interview questions and classify each question."
        )
        return await self.client.chat_object_list(
            [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": user_content},
            ],
            json_mode=True,
            temperature=0.1,
            pinned_key=self.runtime.rotator.take(),
        )

    async def analyze_candidate(self, row: Mapping[str, Any], number: int, total: int) -> list[OutputRow]:
        self.tracker.status(f"Analyzing candidate {number}/{total}...")
        base = {
            "job_id": _cell(row, "Job ID", "job_id"),
            "company_name": _cell(row, "Company Name", "company_name"),
            "user_id": _cell(row, "User ID", "user_id"),
            "full_name": _cell(row, "User Name", "user_name"),
            "mobile_number": _cell(row, "Mobile Number", "mobile_number"),
            "interview_date": _cell(row, "Interview Date", "interview_date", default=now_date()),
        }

        rows: list[OutputRow] = []
        issues: list[str] = []
        analyzed = 0

        for column, round_name in ROUND_COLUMNS.items():
            self.control.throw_if_cancelled()
            raw = row.get(column)
            if not is_valid_round_text(raw):
                continue

            analyzed += 1
            self.tracker.status(f"Classifying {round_name} for candidate {number}/{total}...")
            try:
                items = await self.analyze_round(round_name, str(raw))
            except (JobCancelledError, ConfigurationError):
                raise
            except Exception as e:
                issues.append(f"{round_name}: {e}")
                logger.warning("drilldown_round_failed", round=round_name, candidate=number, error=str(e))
                continue
            if not items:
                issues.append(f"{round_name}: model returned no parseable questions")
                continue

            self.control.throw_if_cancelled()
            added = 0
            for item in items:
                question = extract_question_text(item)
                if not question:
                    continue
                added += 1
                rows.append({
                    **base,
                    "interview_round": format_enum(round_name),
                    "questions": question,
                    "question_type": format_enum(_first(item, "question_type", "questionType", "type", default="GENERAL")),
                    "tech_stacks": format_enum(
                        _first(item, "question_concept", "tech_stacks", "techStacks", "category", default="GENERAL")
                    ),
                    "topic": format_enum(_first(item, "topic", "main_topic")),
                    "sub_topic": format_enum(_first(item, "sub_topic", "subTopic")),
                    "difficulty_level": format_enum(_first(item, "difficulty", "difficulty_level", default="MEDIUM")),
                    "curriculum_coverage": format_enum(_first(item, "curriculum_coverage", "coverage")),
                    "question_uid": new_uid(),
                    "question_creation_datetime": now_datetime(),
                    "product": self.product,
                })
            if added == 0:
                issues.append(f"{round_name}: model output missing question_text")

        if analyzed > 0 and not rows:
            reason = " | ".join(issues[:MAX_ROUND_ISSUES]) or "Model returned empty output for all rounds"
            raise ItemProcessingError(f"No questions extracted for candidate {number}/{total}. {reason}")
        return rows


async def run_drilldown(
    services: PipelineServices,
    rows: list[dict[str, Any]],
    product: str,
    provider: AiProvider | str,
    update: UpdateCallback,
    control: JobControl,
) -> WorkflowResult:
    """Analyze drilldown rows with a small pool of workers."""
    control.throw_if_cancelled()
    update("Loading curriculum context for drilldown...")
    curriculum = await services.curriculum()
    control.throw_if_cancelled()

    runtime = await services.runtime_for(provider)
    total = len(rows)
    tracker = RunTracker(DRILLDOWN_SCHEMA, total, update, control)
    analyzer = DrilldownAnalyzer(
        services.ai_client(runtime),
        runtime,
        with_curriculum(DRILLDOWN_PROMPT_TEMPLATE, curriculum),
        product,
        control,
        tracker,
    )

    worker_count = max(1, min(services.settings.drilldown_worker_count, total or 1))
    cursor = 0

    def claim() -> int | None:
        nonlocal cursor
        if cursor >= total:
            return None
        index = cursor
        cursor += 1
        return index

    async def worker(worker_number: int) -> None:
        while True:
            control.throw_if_cancelled()
            index = claim()
            if index is None:
                return
            number = index + 1
            tracker.status(f"Worker {worker_number}/{worker_count}: analyzing candidate {number}/{total}...")
            await tracker.run_item(
                index,
                f"Candidate {number}/{total}",
                lambda index=index, number=number: analyzer.analyze_candidate(rows[index], number, total),
            )

    tracker.push(f"Starting drilldown analysis with {worker_count} worker(s)...")
    tasks = [asyncio.create_task(worker(n + 1)) for n in range(worker_count)]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    logger.info("drilldown_analyzed", candidates=total, skipped=len(tracker.skipped))
    return await tracker.finish(services.sheet_sink, "drilldown")
