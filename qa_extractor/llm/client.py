"""
LLM Provider Client

Chat, OCR and transcription calls against OpenAI-compatible endpoints
(Mistral or OpenAI), routed through the retry and key-rotation layer.
"""

import asyncio
import base64
import mimetypes
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiofiles
import httpx
import structlog

from qa_extractor.config.prompts import OCR_PROMPT
from qa_extractor.errors import ProviderHTTPError
from qa_extractor.llm.parsing import parse_json_response, parse_object_list
from qa_extractor.llm.retry import MinIntervalThrottle, call_with_retry, get_throttle
from qa_extractor.llm.runtime import ProviderRuntimeConfig
from qa_extractor.models import AiProvider

logger = structlog.get_logger(__name__)

CHAT_TIMEOUT = 120.0
OCR_TIMEOUT = 180.0
TRANSCRIBE_TIMEOUT = 300.0

_MIME_BY_EXTENSION = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".tiff": "image/tiff",
    ".bmp": "image/bmp",
}


@dataclass(frozen=True)
class TranscriptionSegment:
    start: float
    end: float
    text: str


def mime_from_filename(file_name: str) -> str:
    ext = Path(file_name).suffix.lower()
    if ext in _MIME_BY_EXTENSION:
        return _MIME_BY_EXTENSION[ext]
    return mimetypes.guess_type(file_name)[0] or "application/octet-stream"


def extract_chat_content(payload: dict) -> str:
    """Text of ``choices[0].message.content``; list content is joined."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [part.get("text", "") for part in content if isinstance(part, dict)]
        return "\n".join(part for part in parts if isinstance(part, str) and part)
    return ""


def parse_transcription_segments(payload: dict) -> list[TranscriptionSegment]:
    """Segments from a verbose_json transcription, or one segment of plain text."""
    segments = payload.get("segments") or []
    if segments:
        parsed = [
            TranscriptionSegment(
                start=float(segment.get("start") or 0),
                end=float(segment.get("end") or 0),
                text=str(segment.get("text") or "").strip(),
            )
            for segment in segments
            if isinstance(segment, dict)
        ]
        return [segment for segment in parsed if segment.text]

    text = str(payload.get("text") or "").strip()
    return [TranscriptionSegment(start=0.0, end=0.0, text=text)] if text else []


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    raise ProviderHTTPError(
        response.status_code,
        response.text,
        retry_after=response.headers.get("Retry-After"),
    )


class AIClient:
    """Provider client bound to one job's runtime configuration."""

    def __init__(
        self,
        runtime: ProviderRuntimeConfig,
        http: httpx.AsyncClient,
        *,
        throttle: MinIntervalThrottle | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
        max_wait: float = 30.0,
    ):
        self.runtime = runtime
        self.http = http
        self.throttle = throttle or get_throttle(runtime.provider.value, runtime.min_interval)
        self._sleep = sleep
        self._rand = rand
        self._max_wait = max_wait

    @property
    def provider(self) -> AiProvider:
        return self.runtime.provider

    async def _with_retry(self, send, keys: list[str], throttled: bool = False):
        return await call_with_retry(
            send,
            keys,
            provider=self.provider.value,
            max_attempts_per_key=self.runtime.max_attempts_per_key,
            throttle=self.throttle if throttled else None,
            sleep=self._sleep,
            max_wait=self._max_wait,
            rand=self._rand,
        )

    # =========================================================================
    # Chat
    # =========================================================================

    async def chat(
        self,
        messages: list[dict[str, Any]],
        *,
        json_mode: bool = False,
        temperature: float = 0.1,
        timeout: float = CHAT_TIMEOUT,
        pinned_key: str | None = None,
    ) -> str:
        """Run a chat completion and return the message text."""
        payload: dict[str, Any] = {
            "model": self.runtime.chat_model,
            "messages": messages,
            "temperature": temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        async def send(key: str) -> str:
            response = await self.http.post(
                self.runtime.chat_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {key}",
                    "Accept": "application/json",
                },
                timeout=timeout,
            )
            _raise_for_status(response)
            return extract_chat_content(response.json())

        keys = self.runtime.rotator.ordered_keys(pinned=pinned_key)
        content = await self._with_retry(send, keys, throttled=True)
        logger.debug("chat_completed", provider=self.provider.value, chars=len(content))
        return content

    async def chat_json(self, messages: list[dict[str, Any]], **kwargs) -> Any:
        """Chat in JSON mode and parse the reply.

        Raises:
            JSONParseError: The reply is not JSON.
        """
        kwargs.setdefault("json_mode", True)
        return parse_json_response(await self.chat(messages, **kwargs))

    async def chat_object_list(self, messages: list[dict[str, Any]], **kwargs) -> list[dict[str, Any]]:
        """Chat and coerce the reply into a list of objects ([] if unparseable)."""
        return parse_object_list(await self.chat(messages, **kwargs))

    # =========================================================================
    # OCR
    # =========================================================================

    async def ocr(
        self,
        file_name: str,
        data: bytes,
        mime_type: str | None = None,
        timeout: float = OCR_TIMEOUT,
    ) -> str:
        """Extract text from a document or image."""
        mime_type = mime_type or mime_from_filename(file_name)
        data_url = f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"

        if self.provider == AiProvider.MISTRAL:
            payload: dict[str, Any] = {
                "model": self.runtime.ocr_model,
                "document": {"type": "image_url", "image_url": data_url},
                "include_image_base64": False,
            }
        else:
            payload = {
                "model": self.runtime.ocr_model,
                "temperature": 0,
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": OCR_PROMPT},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    }
                ],
            }

        async def send(key: str) -> str:
            response = await self.http.post(
                self.runtime.ocr_url,
                json=payload,
                headers={"Authorization": f"Bearer {key}"},
                timeout=timeout,
            )
            _raise_for_status(response)
            body = response.json()
            if self.provider == AiProvider.MISTRAL:
                pages = body.get("pages") or []
                return "\n\n".join(str(page.get("markdown") or "") for page in pages).strip()
            return extract_chat_content(body).strip()

        text = await self._with_retry(send, self.runtime.rotator.ordered_keys())
        logger.info("ocr_completed", file_name=file_name, chars=len(text))
        return text

    # =========================================================================
    # Transcription
    # =========================================================================

    async def transcribe(
        self, audio_path: Path, timeout: float = TRANSCRIBE_TIMEOUT
    ) -> list[TranscriptionSegment]:
        """Transcribe an audio file into timestamped segments.

        Segment timestamps are requested first; if the endpoint rejects that
        the request is repeated once without them.
        """
        async with aiofiles.open(audio_path, "rb") as f:
            audio = await f.read()

        async def post(with_segments: bool, key: str) -> httpx.Response:
            data: dict[str, Any] = {
                "model": self.runtime.transcribe_model,
                "response_format": "verbose_json",
            }
            if with_segments:
                data["timestamp_granularities[]"] = "segment"
            return await self.http.post(
                self.runtime.transcribe_url,
                data=data,
                files={"file": (audio_path.name, audio, "audio/mpeg")},
                headers={"Authorization": f"Bearer {key}"},
                timeout=timeout,
            )

        async def send(key: str) -> list[TranscriptionSegment]:
            response = await post(True, key)
            if not response.is_success:
                logger.info("transcription_retry_without_segments", status=response.status_code)
                response = await post(False, key)
            _raise_for_status(response)
            return parse_transcription_segments(response.json())

        segments = await self._with_retry(send, [self.runtime.transcribe_api_key])
        logger.info("transcription_completed", path=str(audio_path), segments=len(segments))
        return segments
