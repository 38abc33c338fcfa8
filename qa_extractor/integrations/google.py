"""
Google Sheets and Drive over REST

A service-account access token is minted with google-auth; the Sheets and
Drive calls themselves go through the shared httpx client.
"""

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import google.auth.transport.requests
import httpx
import structlog
from google.oauth2 import service_account

from qa_extractor.errors import ItemProcessingError
from qa_extractor.integrations.downloads import (
    DOWNLOAD_TIMEOUT,
    ProgressCallback,
    positive_int,
    stream_response_to_file,
)
from qa_extractor.jobs.manager import JobControl
from qa_extractor.models import NOT_AVAILABLE, RowSchema

logger = structlog.get_logger(__name__)

SHEETS_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.readonly",
]
DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.readonly"]

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
DRIVE_API = "https://www.googleapis.com/drive/v3/files"
SHEETS_TIMEOUT = 60.0


class SheetSink(Protocol):
    """Destination for finished workflow rows."""

    async def append_rows(self, schema: RowSchema, rows: Sequence[dict[str, str]]) -> bool: ...


class ServiceAccountTokens:
    """Caches and refreshes a service-account access token."""

    def __init__(self, info: dict[str, Any], scopes: list[str]):
        self._credentials = service_account.Credentials.from_service_account_info(info, scopes=scopes)

    async def token(self) -> str:
        if not self._credentials.valid:
            request = google.auth.transport.requests.Request()
            await asyncio.to_thread(self._credentials.refresh, request)
        return self._credentials.token


class GoogleSheetsSink:
    """Appends rows to a named tab, creating it and fixing headers as needed."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        spreadsheet_id: str | None,
        tokens: ServiceAccountTokens | None,
    ):
        self.http = http
        self.spreadsheet_id = spreadsheet_id
        self.tokens = tokens

    async def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {await self.tokens.token()}"}

    def _values_url(self, range_: str, suffix: str = "") -> str:
        return f"{SHEETS_API}/{self.spreadsheet_id}/values/{quote(range_, safe='')}{suffix}"

    async def _ensure_sheet(self, sheet_name: str, headers: dict[str, str]) -> None:
        response = await self.http.get(
            f"{SHEETS_API}/{self.spreadsheet_id}",
            params={"fields": "sheets.properties.title"},
            headers=headers,
            timeout=SHEETS_TIMEOUT,
        )
        response.raise_for_status()
        titles = {
            sheet.get("properties", {}).get("title")
            for sheet in response.json().get("sheets", [])
        }
        if sheet_name in titles:
            return

        response = await self.http.post(
            f"{SHEETS_API}/{self.spreadsheet_id}:batchUpdate",
            json={"requests": [{"addSheet": {"properties": {"title": sheet_name}}}]},
            headers=headers,
            timeout=SHEETS_TIMEOUT,
        )
        response.raise_for_status()
        logger.info("sheet_created", sheet=sheet_name)

    async def _ensure_headers(self, schema: RowSchema, headers: dict[str, str]) -> None:
        response = await self.http.get(
            self._values_url(f"{schema.sheet_name}!1:1"),
            headers=headers,
            timeout=SHEETS_TIMEOUT,
        )
        response.raise_for_status()
        values = response.json().get("values") or [[]]
        if list(values[0]) == list(schema.headers):
            return

        response = await self.http.put(
            self._values_url(f"{schema.sheet_name}!A1"),
            params={"valueInputOption": "RAW"},
            json={"values": [list(schema.headers)]},
            headers=headers,
            timeout=SHEETS_TIMEOUT,
        )
        response.raise_for_status()
        logger.info("sheet_headers_rewritten", sheet=schema.sheet_name)

    async def append_rows(self, schema: RowSchema, rows: Sequence[dict[str, str]]) -> bool:
        """Append rows under the schema's headers.

        Returns:
            True on success or when there is nothing to write; False when
            credentials are missing or any Sheets call fails.
        """
        if not rows:
            return True
        if not self.tokens or not self.spreadsheet_id:
            logger.warning("sheet_credentials_missing", sheet=schema.sheet_name)
            return False

        try:
            headers = await self._headers()
            await self._ensure_sheet(schema.sheet_name, headers)
            await self._ensure_headers(schema, headers)

            values = [
                [str(row.get(header) or NOT_AVAILABLE) for header in schema.headers]
                for row in rows
            ]
            response = await self.http.post(
                self._values_url(f"{schema.sheet_name}!A2", ":append"),
                params={"valueInputOption": "RAW"},
                json={"values": values},
                headers=headers,
                timeout=SHEETS_TIMEOUT,
            )
            response.raise_for_status()
        except Exception as e:
            logger.error("sheet_append_failed", sheet=schema.sheet_name, error=str(e))
            return False

        logger.info("sheet_rows_appended", sheet=schema.sheet_name, rows=len(rows))
        return True


class DriveClient:
    """Authenticated Drive file download."""

    def __init__(self, http: httpx.AsyncClient, tokens: ServiceAccountTokens | None):
        self.http = http
        self.tokens = tokens

    async def download_file(
        self,
        file_id: str,
        dest: Path,
        on_progress: ProgressCallback | None = None,
        control: JobControl | None = None,
    ) -> None:
        """Download a Drive file via ``files.get?alt=media``.

        Raises:
            ItemProcessingError: Missing credentials or a failed request.
        """
        if not self.tokens:
            raise ItemProcessingError("Drive API Download failed (Credentials Error).")

        headers = {"Authorization": f"Bearer {await self.tokens.token()}"}
        url = f"{DRIVE_API}/{file_id}"

        total_bytes = None
        try:
            meta = await self.http.get(
                url,
                params={"fields": "size", "supportsAllDrives": "true"},
                headers=headers,
                timeout=SHEETS_TIMEOUT,
            )
            if meta.is_success:
                total_bytes = positive_int(str(meta.json().get("size")))
        except httpx.HTTPError:
            total_bytes = None

        try:
            async with self.http.stream(
                "GET",
                url,
                params={"alt": "media", "supportsAllDrives": "true"},
                headers=headers,
                timeout=DOWNLOAD_TIMEOUT,
                follow_redirects=True,
            ) as response:
                if response.status_code == 404:
                    raise ItemProcessingError("Drive API Download failed (File Not Found (Check Sharing)).")
                if not response.is_success:
                    raise ItemProcessingError(f"Drive API Download failed (HTTP {response.status_code}).")
                await stream_response_to_file(response, dest, on_progress, control, total_bytes=total_bytes)
        except httpx.HTTPError as e:
            raise ItemProcessingError(f"Drive API Download failed ({e}).") from e
