"""Overlapping character windows for chunked LLM extraction."""

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from qa_extractor.models import ExtractedItem

logger = structlog.get_logger(__name__)


@dataclass
class ChunkingConfig:
    """Configuration for transcript chunking."""

    chunk_size: int = 18000
    overlap: int = 1200
    newline_snap: int = 200  # newline must lie strictly closer than this past the cut


@dataclass(frozen=True)
class TextWindow:
    """One slice of the source text submitted to the model."""

    index: int
    start: int
    end: int
    text: str


def chunk_text(text: str, config: ChunkingConfig | None = None) -> list[TextWindow]:
    """Split text into overlapping windows.

    Each window covers ``chunk_size`` characters, extended to the next newline
    when it lies fewer than ``newline_snap`` characters past the cut. The cursor
    advances by ``chunk_size - overlap``; when the overlap is not smaller than
    the chunk size the step falls back to ``chunk_size`` so the loop always
    terminates.

    Args:
        text: Full source text.
        config: Chunking configuration.

    Returns:
        Windows in source order. Empty text yields no windows.
    """
    config = config or ChunkingConfig()
    if config.chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {config.chunk_size}")

    step = config.chunk_size - max(config.overlap, 0)
    if step <= 0:
        logger.warning(
            "chunk_overlap_too_large",
            chunk_size=config.chunk_size,
            overlap=config.overlap,
        )
        step = config.chunk_size

    windows: list[TextWindow] = []
    start = 0
    length = len(text)

    while start < length:
        end = min(start + config.chunk_size, length)
        if end < length:
            next_newline = text.find("\n", end)
            if next_newline != -1 and next_newline - end < config.newline_snap:
                end = next_newline

        windows.append(TextWindow(index=len(windows), start=start, end=end, text=text[start:end]))
        start += step

    logger.info("chunking_complete", total_chars=length, num_chunks=len(windows))
    return windows


def dedupe_items(items: Iterable[ExtractedItem]) -> list[ExtractedItem]:
    """Drop empty and repeated questions, keeping first occurrence order."""
    seen: set[str] = set()
    unique: list[ExtractedItem] = []

    for item in items:
        key = item.key
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(item)

    return unique
