"""Curriculum context loader."""

from pathlib import Path

import aiofiles
import structlog

logger = structlog.get_logger(__name__)

_cache: dict[Path, str] = {}


async def load_curriculum(path: Path) -> str:
    """Read the curriculum text once per path; missing file yields ''."""
    if path in _cache:
        return _cache[path]

    if not path.exists():
        logger.warning("curriculum_missing", path=str(path))
        text = ""
    else:
        async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
            text = await f.read()
        logger.info("curriculum_loaded", path=str(path), chars=len(text))

    _cache[path] = text
    return text


async def get_curriculum_snippet(path: Path, max_chars: int = 15000) -> str:
    """Return at most ``max_chars`` characters of curriculum text."""
    text = await load_curriculum(path)
    return text[:max_chars]


def clear_curriculum_cache() -> None:
    _cache.clear()
