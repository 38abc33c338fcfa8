"""Transcript to classified Q&A items: chunked extraction, dedupe, classification."""

import structlog

from qa_extractor.config.prompts import JSON_ONLY_SUFFIX
from qa_extractor.extraction.chunker import ChunkingConfig, chunk_text, dedupe_items
from qa_extractor.jobs.manager import JobControl
from qa_extractor.llm.client import AIClient
from qa_extractor.models import ExtractedItem
from qa_extractor.processing.classification import classify_items

logger = structlog.get_logger(__name__)

SEGMENT_PREFIX = "Analyze this interview segment:\n\n"


async def extract_items_from_transcript(
    client: AIClient,
    transcript: str,
    prompt: str,
    chunking: ChunkingConfig,
    control: JobControl | None = None,
) -> list[ExtractedItem]:
    """Run the extraction prompt over every window and concatenate the items."""
    system_prompt = f"{prompt}{JSON_ONLY_SUFFIX}"
    extracted: list[ExtractedItem] = []
    windows = chunk_text(transcript, chunking)

    for window in windows:
        if control:
            control.throw_if_cancelled()
        entries = await client.chat_object_list([
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": f"{SEGMENT_PREFIX}{window.text}"},
        ])
        if control:
            control.throw_if_cancelled()

        for entry in entries:
            extracted.append(ExtractedItem(
                question_text=str(entry.get("question_text") or ""),
                answer_text=str(entry.get("answer_text") or ""),
            ))
        logger.info("window_extracted", window=window.index + 1, total=len(windows), items=len(entries))

    return extracted


async def run_qna_pipeline(
    client: AIClient,
    transcript: str,
    qna_prompt: str,
    classify_prompt: str,
    chunking: ChunkingConfig,
    batch_size: int = 12,
    control: JobControl | None = None,
) -> list[ExtractedItem]:
    """Extract, dedupe and classify Q&A items from a transcript."""
    raw = await extract_items_from_transcript(client, transcript, qna_prompt, chunking, control)
    unique = dedupe_items(raw)
    logger.info("qna_deduplicated", raw=len(raw), unique=len(unique))
    return await classify_items(
        client,
        unique,
        f"{classify_prompt}{JSON_ONLY_SUFFIX}",
        batch_size,
        control,
    )
