"""Transcript formatting and cleanup."""

import re
from collections.abc import Iterable

from qa_extractor.llm.client import TranscriptionSegment

_TIMESTAMPED_LINE = re.compile(r"(\[.*?\]|\d{2}:\d{2}:\d{2}.*?)\s*(.*)")
_NON_WORD = re.compile(r"[^\w]")

MAX_REPEATS = 2


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS``; negatives clamp to zero."""
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def segments_to_clean_text(segments: Iterable[TranscriptionSegment], offset: float = 0.0) -> str:
    """Render segments as ``[HH:MM:SS]  text`` lines shifted by ``offset``."""
    return "\n".join(
        f"[{format_timestamp(segment.start + offset)}]  {segment.text.strip()}"
        for segment in segments
    )


def clean_transcript_hallucinations(transcript: str) -> str:
    """Drop runs of the same line repeated more than twice.

    Speech models sometimes loop on silence and emit one phrase many times.
    Lines are compared on lower-cased word characters only.
    """
    cleaned: list[str] = []
    last_norm = ""
    repeat_count = 0

    for raw_line in transcript.split("\n"):
        line = raw_line.strip()
        if not line:
            continue

        match = _TIMESTAMPED_LINE.search(line)
        if not match:
            cleaned.append(line)
            continue

        text_norm = _NON_WORD.sub("", (match.group(2) or "").strip().lower())
        if not text_norm:
            continue

        if text_norm == last_norm:
            repeat_count += 1
        else:
            repeat_count = 0
            last_norm = text_norm

        if repeat_count < MAX_REPEATS:
            cleaned.append(line)

    return "\n".join(cleaned)
