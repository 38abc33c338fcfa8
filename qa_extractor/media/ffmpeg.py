"""
Media Staging

Thin synchronous wrappers over the ffmpeg and ffprobe binaries. Callers on
the event loop run these through ``asyncio.to_thread``.
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path

import structlog

from qa_extractor.errors import ItemProcessingError

logger = structlog.get_logger(__name__)

FFMPEG = "ffmpeg"
FFPROBE = "ffprobe"
MIN_VIDEO_BYTES = 100 * 1024
DEFAULT_CHUNK_SECONDS = 600

_MP3_ARGS = ["-vn", "-acodec", "libmp3lame", "-q:a", "2"]
_QUIET_ARGS = ["-hide_banner", "-loglevel", "error", "-y"]


class MediaError(ItemProcessingError):
    """ffmpeg could not produce the requested output."""

    pass


@dataclass(frozen=True)
class VideoValidation:
    ok: bool
    reason: str = ""


def _run(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(args, capture_output=True, text=True, check=False)


def _run_ffmpeg(args: list[str]) -> tuple[bool, str]:
    try:
        result = _run([FFMPEG, *_QUIET_ARGS, *args])
    except FileNotFoundError:
        return False, "ffmpeg not found"
    if result.returncode == 0:
        return True, ""
    error_text = (result.stderr or result.stdout or f"ffmpeg exit code {result.returncode}").strip()
    return False, error_text


def _non_empty(path: Path) -> bool:
    return path.exists() and path.stat().st_size > 0


def check_ffmpeg_installed() -> bool:
    """True when both ffmpeg and ffprobe run."""
    for binary in (FFMPEG, FFPROBE):
        try:
            if _run([binary, "-version"]).returncode != 0:
                return False
        except FileNotFoundError:
            return False
    return True


def get_media_duration(path: Path) -> float | None:
    """Duration in seconds as reported by ffprobe, or None."""
    try:
        result = _run([
            FFPROBE,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ])
    except FileNotFoundError:
        return None
    if result.returncode != 0:
        return None
    try:
        return float(result.stdout.strip())
    except ValueError:
        return None


def validate_video_file(path: Path, min_size_bytes: int = MIN_VIDEO_BYTES) -> VideoValidation:
    """Check that a downloaded video exists, is large enough and probes."""
    if not path.exists():
        return VideoValidation(False, "File not found")

    size = path.stat().st_size
    if size < min_size_bytes:
        return VideoValidation(False, f"File too small ({size / 1024:.2f} KB)")

    duration = get_media_duration(path)
    if not duration or duration <= 0:
        return VideoValidation(False, "Unreadable video (ffprobe failed)")

    return VideoValidation(True)


def extract_audio_segment(video_path: Path, audio_path: Path, start: float, end: float) -> None:
    """Extract ``[start, end)`` of the video's audio track to mp3.

    Fast input seeking is tried first, then output seeking.

    Raises:
        MediaError: Invalid window, or both command variants failed.
    """
    if end <= start:
        raise MediaError(f"Invalid segment window: start={start} end={end}")

    duration = end - start
    variants = [
        ["-ss", str(start), "-i", str(video_path), "-t", str(duration), *_MP3_ARGS, str(audio_path)],
        ["-i", str(video_path), "-ss", str(start), "-to", str(end), *_MP3_ARGS, str(audio_path)],
    ]

    last_error = "Unknown ffmpeg error"
    for args in variants:
        ok, error_text = _run_ffmpeg(args)
        if ok and _non_empty(audio_path):
            logger.info("audio_segment_extracted", path=str(audio_path), start=start, end=end)
            return
        last_error = error_text or last_error

    raise MediaError(f"FFmpeg extraction failed: {last_error}")


def extract_audio_file(video_path: Path, audio_path: Path) -> None:
    """Extract the full audio track to mp3."""
    ok, error_text = _run_ffmpeg(["-i", str(video_path), *_MP3_ARGS, str(audio_path)])
    if not ok:
        raise MediaError(f"FFmpeg full audio extraction failed: {error_text}")


def split_audio_into_chunks(
    audio_path: Path,
    chunk_seconds: int = DEFAULT_CHUNK_SECONDS,
    output_dir: Path | None = None,
) -> list[Path]:
    """Split long audio into fixed-length parts.

    Returns ``[audio_path]`` when the audio is no longer than one chunk or
    its duration cannot be read.
    """
    duration = get_media_duration(audio_path)
    if not duration or duration <= chunk_seconds:
        return [audio_path]

    output_dir = output_dir or audio_path.parent
    output_dir.mkdir(parents=True, exist_ok=True)
    chunks: list[Path] = []
    start = 0
    index = 0

    while start < duration:
        chunk_path = output_dir / f"{audio_path.stem}_part_{index}.mp3"
        ok, error_text = _run_ffmpeg([
            "-i", str(audio_path),
            "-ss", str(start),
            "-t", str(chunk_seconds),
            "-c", "copy",
            str(chunk_path),
        ])
        if not ok:
            raise MediaError(f"Chunking failed at index {index}: {error_text}")
        if _non_empty(chunk_path):
            chunks.append(chunk_path)
        start += chunk_seconds
        index += 1

    logger.info("audio_split", path=str(audio_path), chunks=len(chunks))
    return chunks or [audio_path]
