"""Streaming downloads with progress reporting and cancellation."""

import re
from collections.abc import Callable
from pathlib import Path

import aiofiles
import aiofiles.os
import httpx
import structlog

from qa_extractor.jobs.manager import JobControl

logger = structlog.get_logger(__name__)

DOWNLOAD_TIMEOUT = 300.0
PUBLIC_DRIVE_URL = "https://drive.google.com/uc"

_CONFIRM_TOKEN = re.compile(r"confirm=([0-9A-Za-z_\-]+)")
_DRIVE_ID = re.compile(r"(?:id=|/d/)([a-zA-Z0-9_-]{10,})")

ProgressCallback = Callable[[int, int | None], None]


def clean_drive_id(value: str | None) -> str:
    """Extract a Drive file id from a share URL, or return the trimmed input."""
    text = str(value or "").strip()
    match = _DRIVE_ID.search(text)
    return match.group(1) if match else text


def positive_int(value: str | None) -> int | None:
    try:
        parsed = int(value) if value is not None else None
    except ValueError:
        return None
    return parsed if parsed and parsed > 0 else None


async def remove_quietly(path: Path) -> None:
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        pass


async def stream_response_to_file(
    response: httpx.Response,
    dest: Path,
    on_progress: ProgressCallback | None = None,
    control: JobControl | None = None,
    total_bytes: int | None = None,
) -> None:
    """Write a streamed response body to ``dest``.

    Cancellation is checked per chunk. The partial file is removed when
    anything goes wrong, including cancellation.
    """
    total = total_bytes or positive_int(response.headers.get("content-length"))
    loaded = 0
    dest.parent.mkdir(parents=True, exist_ok=True)

    if on_progress:
        on_progress(0, total)

    try:
        async with aiofiles.open(dest, "wb") as f:
            async for chunk in response.aiter_bytes():
                if control:
                    control.throw_if_cancelled()
                if not chunk:
                    continue
                await f.write(chunk)
                loaded += len(chunk)
                if on_progress:
                    on_progress(loaded, total)
    except BaseException:
        await remove_quietly(dest)
        raise

    if on_progress:
        on_progress(max(loaded, total or 0), total)
    logger.info("download_complete", path=str(dest), bytes=loaded)


async def download_public_drive_file(
    http: httpx.AsyncClient,
    file_id: str,
    dest: Path,
    on_progress: ProgressCallback | None = None,
    control: JobControl | None = None,
) -> bool:
    """Download a publicly shared Drive file.

    Large files answer with an HTML interstitial carrying a confirm token;
    the request is repeated with that token.

    Returns:
        True when the body was written to ``dest``; False on any HTTP or
        transport failure (nothing is left on disk).
    """
    params = {"export": "download", "id": file_id}
    try:
        async with http.stream(
            "GET", PUBLIC_DRIVE_URL, params=params, timeout=DOWNLOAD_TIMEOUT, follow_redirects=True
        ) as response:
            if not response.is_success:
                logger.warning("public_download_failed", file_id=file_id, status=response.status_code)
                return False

            if "text/html" not in response.headers.get("content-type", ""):
                await stream_response_to_file(response, dest, on_progress, control)
                return True

            html = (await response.aread()).decode("utf-8", errors="replace")

        token = _CONFIRM_TOKEN.search(html)
        if not token:
            logger.warning("public_download_no_confirm_token", file_id=file_id)
            return False

        params = {"export": "download", "confirm": token.group(1), "id": file_id}
        async with http.stream(
            "GET", PUBLIC_DRIVE_URL, params=params, timeout=DOWNLOAD_TIMEOUT, follow_redirects=True
        ) as response:
            if not response.is_success:
                logger.warning("public_download_failed", file_id=file_id, status=response.status_code)
                return False
            await stream_response_to_file(response, dest, on_progress, control)
            return True
    except httpx.HTTPError as e:
        logger.warning("public_download_error", file_id=file_id, error=str(e))
        await remove_quietly(dest)
        return False
