"""Fetch assignment links and turn them into plain text.

Google Docs are exported as PDF, Drive files downloaded directly and
SharePoint/OneDrive links forced to download. The response is then decoded
by content type: PDF through pdfplumber with an OCR fallback, images through
OCR, HTML stripped to visible text, anything else read as UTF-8.
"""

import asyncio
import io
import re
from collections.abc import Awaitable, Callable
from html.parser import HTMLParser

import httpx
import pdfplumber
import structlog

from qa_extractor.errors import ContentFetchError

logger = structlog.get_logger(__name__)

FETCH_TIMEOUT = 60.0
MIN_TEXT_CHARS = 50

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
}

_GOOGLE_FILE_ID = re.compile(r"(?:/d/|id=)([a-zA-Z0-9_-]+)")
_SKIPPED_TAGS = {"script", "style", "nav", "footer", "noscript"}

OcrFunc = Callable[[str, bytes, str | None], Awaitable[str]]


class _TextExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__()
        self._chunks: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs) -> None:  # type: ignore[override]
        if tag in _SKIPPED_TAGS:
            self._skip_depth += 1

    def handle_endtag(self, tag: str) -> None:  # type: ignore[override]
        if tag in _SKIPPED_TAGS and self._skip_depth > 0:
            self._skip_depth -= 1

    def handle_data(self, data: str) -> None:  # type: ignore[override]
        if self._skip_depth == 0 and data.strip():
            self._chunks.append(data.strip())

    def text(self) -> str:
        return re.sub(r"\s+", " ", " ".join(self._chunks)).strip()


def strip_html(html: str) -> str:
    parser = _TextExtractor()
    parser.feed(html)
    parser.close()
    return parser.text()


def pdf_text(data: bytes) -> str:
    """Text of every page joined by newlines; '' when the PDF is unreadable."""
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        logger.warning("pdf_parse_failed", error=str(e))
        return ""
    return "\n".join(pages).strip()


def resolve_download_url(url: str) -> str:
    """Map share links to a URL that returns the file itself.

    Raises:
        ContentFetchError: Empty URL, Drive folder, or unparseable Google link.
    """
    url = url.strip()
    if not url:
        raise ContentFetchError("Empty URL")

    lower = url.lower()
    if "docs.google.com/document" in lower or "drive.google.com" in lower:
        if "/folders/" in lower:
            raise ContentFetchError("Drive Folders not supported.")
        match = _GOOGLE_FILE_ID.search(url)
        if not match:
            raise ContentFetchError("Bad Google URL")
        file_id = match.group(1)
        if "document/d/" in lower:
            return f"https://docs.google.com/document/d/{file_id}/export?format=pdf"
        return f"https://drive.google.com/uc?id={file_id}&export=download"

    if "sharepoint.com" in lower or "1drv.ms" in lower:
        return f"{url.split('?')[0]}?download=1"

    return url


class ContentFetcher:
    """Downloads a link and extracts its text."""

    def __init__(self, http: httpx.AsyncClient, ocr: OcrFunc):
        self.http = http
        self.ocr = ocr

    async def fetch_text(self, url: str) -> str:
        """Fetch ``url`` and return its text content.

        Raises:
            ContentFetchError: The link cannot be resolved or fetched.
        """
        download_url = resolve_download_url(url)
        try:
            response = await self.http.get(
                download_url,
                headers=BROWSER_HEADERS,
                timeout=FETCH_TIMEOUT,
                follow_redirects=True,
            )
        except httpx.HTTPError as e:
            raise ContentFetchError(f"Web Error: {e}") from e

        if not response.is_success:
            raise ContentFetchError(f"Web Error: {response.status_code} {response.reason_phrase}")

        content_type = response.headers.get("content-type", "").lower()
        body = response.content
        logger.info("content_fetched", url=download_url, content_type=content_type, bytes=len(body))
        return await self.decode(body, content_type)

    async def decode(self, body: bytes, content_type: str) -> str:
        if "pdf" in content_type:
            text = await asyncio.to_thread(pdf_text, body)
            if len(text) >= MIN_TEXT_CHARS:
                return text
            logger.info("pdf_text_sparse_using_ocr", chars=len(text))
            return await self.ocr("assignment.pdf", body, "application/pdf")

        if "image" in content_type:
            mime = content_type.split(";")[0].strip() or None
            return await self.ocr("assignment.png", body, mime)

        text = body.decode("utf-8", errors="replace")
        if "html" in content_type:
            return strip_html(text)
        return text
