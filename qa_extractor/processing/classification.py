"""Batch classification of extracted items and merge of the results."""

import json
from collections.abc import Sequence
from typing import Any

import structlog

from qa_extractor.jobs.manager import JobControl
from qa_extractor.llm.client import CHAT_TIMEOUT, AIClient
from qa_extractor.models import TAXONOMY_FIELDS, ExtractedItem

logger = structlog.get_logger(__name__)


def _field_value(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(part) for part in value if part is not None)
    return str(value)


def merge_classification(
    items: Sequence[ExtractedItem],
    classified: Sequence[dict[str, Any]],
) -> list[ExtractedItem]:
    """Attach classifier output to the source items.

    A classified entry matches a source item when their trimmed
    ``question_text`` values are equal; the first entry wins. Matched items
    take every taxonomy field the entry supplies. Unmatched items keep their
    taxonomy as-is.
    """
    index: dict[str, dict[str, Any]] = {}
    for entry in classified:
        key = str(entry.get("question_text") or "").strip()
        if key and key not in index:
            index[key] = entry

    merged: list[ExtractedItem] = []
    for item in items:
        match = index.get(item.key)
        if match is None:
            merged.append(item)
            continue

        updates = {
            field: _field_value(match[field])
            for field in TAXONOMY_FIELDS
            if match.get(field) is not None
        }
        taxonomy = item.taxonomy.model_copy(update=updates)
        merged.append(item.model_copy(update={"taxonomy": taxonomy}))

    return merged


async def classify_items(
    client: AIClient,
    items: Sequence[ExtractedItem],
    system_prompt: str,
    batch_size: int,
    control: JobControl | None = None,
    *,
    json_mode: bool = False,
    timeout: float = CHAT_TIMEOUT,
) -> list[ExtractedItem]:
    """Classify items in fixed-size batches.

    Each batch is sent as a JSON array of ``{question_text, answer_text}``.
    A batch whose reply cannot be parsed leaves its items unclassified.
    """
    if not items:
        return []
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    results: list[ExtractedItem] = []
    total_batches = (len(items) + batch_size - 1) // batch_size

    for batch_index, offset in enumerate(range(0, len(items), batch_size)):
        if control:
            control.throw_if_cancelled()
        batch = list(items[offset:offset + batch_size])
        content = json.dumps([item.prompt_payload() for item in batch], ensure_ascii=False)

        classified = await client.chat_object_list(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": content},
            ],
            json_mode=json_mode,
            timeout=timeout,
        )
        if control:
            control.throw_if_cancelled()

        merged = merge_classification(batch, classified)
        matched = sum(1 for before, after in zip(batch, merged) if before is not after)
        logger.info(
            "classification_batch_done",
            batch=batch_index + 1,
            total_batches=total_batches,
            items=len(batch),
            matched=matched,
        )
        results.extend(merged)

    return results
