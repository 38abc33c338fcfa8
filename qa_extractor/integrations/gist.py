"""Publishes transcripts as public GitHub gists."""

import httpx
import structlog

logger = structlog.get_logger(__name__)

GIST_API_URL = "https://api.github.com/gists"
GIST_TIMEOUT = 60.0


class GistPublisher:
    def __init__(self, http: httpx.AsyncClient, token: str | None):
        self.http = http
        self.token = token

    async def publish(self, file_name: str, content: str) -> str:
        """Create a public gist.

        Returns:
            The gist's HTML URL, or a short error string that is stored in
            the transcript_link column instead.
        """
        if not self.token:
            return "Gist Token Missing"

        try:
            response = await self.http.post(
                GIST_API_URL,
                json={
                    "description": f"Transcript for {file_name}",
                    "public": True,
                    "files": {file_name: {"content": content}},
                },
                headers={
                    "Authorization": f"token {self.token}",
                    "Accept": "application/vnd.github.v3+json",
                },
                timeout=GIST_TIMEOUT,
            )
        except httpx.HTTPError as e:
            logger.warning("gist_upload_failed", file_name=file_name, error=str(e))
            return f"Upload Failed: {e}"

        if response.status_code == 201:
            return str(response.json().get("html_url") or "Error retrieving URL")

        logger.warning("gist_upload_rejected", file_name=file_name, status=response.status_code)
        return f"Error: {response.status_code}"
