"""
Local Staging Storage

File I/O for downloaded videos, generated transcripts and per-candidate CSV
snapshots.

Design Decisions:
- Everything lives under the configured data dir in fixed subdirectories
- File operations are async-friendly using aiofiles
- Staged artifacts are only removed after the sheet write succeeded
"""

import csv
import io
import uuid
from collections.abc import Iterable, Sequence
from pathlib import Path

import aiofiles
import aiofiles.os
import structlog

logger = structlog.get_logger(__name__)


def generate_token(length: int = 12) -> str:
    """Short random hex token for run and upload file names."""
    return uuid.uuid4().hex[:length]


def ensure_dirs(paths: Iterable[Path]) -> None:
    for path in paths:
        path.mkdir(parents=True, exist_ok=True)


# =============================================================================
# Read / Write
# =============================================================================

async def save_bytes(path: Path, content: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, "wb") as f:
        await f.write(content)
    return path


async def write_text(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(text)
    return path


async def read_text_if_exists(path: Path) -> str:
    if not path.exists():
        return ""
    async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
        return await f.read()


def rows_to_csv(rows: Sequence[dict[str, str]]) -> str:
    """CSV text with the first row's keys as the header."""
    if not rows:
        return ""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(rows[0].keys()), lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


async def write_rows_csv(path: Path, rows: Sequence[dict[str, str]]) -> Path | None:
    """Write a CSV snapshot; nothing is written for an empty row list."""
    if not rows:
        return None
    return await write_text(path, rows_to_csv(rows))


# =============================================================================
# Cleanup
# =============================================================================

async def cleanup_files(paths: Iterable[Path]) -> int:
    """Remove staged files, ignoring ones that are already gone."""
    removed = 0
    for path in dict.fromkeys(paths):
        try:
            await aiofiles.os.remove(path)
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("cleanup_failed", path=str(path), error=str(e))
    logger.info("staging_cleanup", removed=removed)
    return removed
