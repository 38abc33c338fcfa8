"""Unit tests for Google Sheets, Drive downloads and gist publishing."""

import asyncio
import json

import httpx
import pytest

from helpers import FakeControl
from qa_extractor.errors import ItemProcessingError, JobCancelledError
from qa_extractor.integrations.downloads import (
    clean_drive_id,
    download_public_drive_file,
    positive_int,
    stream_response_to_file,
)
from qa_extractor.integrations.gist import GistPublisher
from qa_extractor.integrations.google import DriveClient, GoogleSheetsSink
from qa_extractor.models import ASSIGNMENT_SCHEMA


class FakeTokens:
    async def token(self) -> str:
        return "access-token"


def with_client(handler, work):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await work(http)

    return asyncio.run(run())


class TestDriveIds:
    """Tests for Drive id and size helpers."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("https://drive.google.com/file/d/1AbCdEfGhIjK/view", "1AbCdEfGhIjK"),
            ("https://drive.google.com/open?id=1AbCdEfGhIjK", "1AbCdEfGhIjK"),
            ("  1AbCdEfGhIjK ", "1AbCdEfGhIjK"),
            (None, ""),
        ],
    )
    def test_clean_drive_id(self, value, expected):
        assert clean_drive_id(value) == expected

    @pytest.mark.parametrize("value,expected", [("10", 10), ("0", None), ("-1", None), ("x", None), (None, None)])
    def test_positive_int(self, value, expected):
        assert positive_int(value) == expected


class TestGoogleSheetsSink:
    """Tests for the Sheets REST sink."""

    def test_missing_credentials_returns_false(self):
        async def work(http):
            sink = GoogleSheetsSink(http, "sheet-id", None)
            return await sink.append_rows(ASSIGNMENT_SCHEMA, [{"question_text": "Q"}])

        assert with_client(lambda request: httpx.Response(500), work) is False

    def test_empty_rows_is_success(self):
        async def work(http):
            return await GoogleSheetsSink(http, None, None).append_rows(ASSIGNMENT_SCHEMA, [])

        assert with_client(lambda request: httpx.Response(500), work) is True

    def test_creates_tab_rewrites_headers_and_appends(self):
        requests = []

        def handler(request):
            requests.append(request)
            path = request.url.path
            if request.method == "GET" and path.endswith("/sheet-id"):
                return httpx.Response(200, json={"sheets": [{"properties": {"title": "Other"}}]})
            if path.endswith(":batchUpdate"):
                return httpx.Response(200, json={})
            if request.method == "GET":
                return httpx.Response(200, json={"values": [["old", "headers"]]})
            return httpx.Response(200, json={})

        async def work(http):
            sink = GoogleSheetsSink(http, "sheet-id", FakeTokens())
            return await sink.append_rows(ASSIGNMENT_SCHEMA, [{"question_text": "Build an API", "product": ""}])

        assert with_client(handler, work) is True
        methods = [(r.method, r.url.path.rsplit("/", 1)[-1]) for r in requests]
        assert methods[0] == ("GET", "sheet-id")
        assert methods[1] == ("POST", "sheet-id:batchUpdate")
        assert requests[3].method == "PUT"
        assert json.loads(requests[3].content) == {"values": [list(ASSIGNMENT_SCHEMA.headers)]}

        appended = json.loads(requests[4].content)["values"][0]
        assert appended[ASSIGNMENT_SCHEMA.headers.index("question_text")] == "Build an API"
        assert appended[ASSIGNMENT_SCHEMA.headers.index("product")] == "N/A"
        assert all(r.headers["Authorization"] == "Bearer access-token" for r in requests)

    def test_api_failure_returns_false(self):
        async def work(http):
            sink = GoogleSheetsSink(http, "sheet-id", FakeTokens())
            return await sink.append_rows(ASSIGNMENT_SCHEMA, [{"question_text": "Q"}])

        assert with_client(lambda request: httpx.Response(403, json={}), work) is False


class TestGistPublisher:
    """Tests for gist publishing."""

    def test_missing_token(self):
        async def work(http):
            return await GistPublisher(http, None).publish("t.txt", "text")

        assert with_client(lambda request: httpx.Response(500), work) == "Gist Token Missing"

    def test_created(self):
        def handler(request):
            body = json.loads(request.content)
            assert body["public"] is True
            assert body["files"] == {"t.txt": {"content": "hello"}}
            assert request.headers["Authorization"] == "token gh-token"
            return httpx.Response(201, json={"html_url": "https://gist.github.com/abc"})

        async def work(http):
            return await GistPublisher(http, "gh-token").publish("t.txt", "hello")

        assert with_client(handler, work) == "https://gist.github.com/abc"

    def test_rejected(self):
        async def work(http):
            return await GistPublisher(http, "gh-token").publish("t.txt", "hello")

        assert with_client(lambda request: httpx.Response(422), work) == "Error: 422"


class TestPublicDriveDownload:
    """Tests for public Drive downloads."""

    def test_direct_download(self, tmp_path):
        progress = []

        def handler(request):
            return httpx.Response(200, headers={"content-type": "video/mp4"}, content=b"video-bytes")

        async def work(http):
            return await download_public_drive_file(
                http, "FILE", tmp_path / "v.mp4", on_progress=lambda a, b: progress.append(a)
            )

        assert with_client(handler, work) is True
        assert (tmp_path / "v.mp4").read_bytes() == b"video-bytes"
        assert progress[0] == 0
        assert progress[-1] == len(b"video-bytes")

    def test_confirm_token_interstitial(self, tmp_path):
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            if "confirm" not in request.url.params:
                html = '<a href="/uc?export=download&amp;confirm=t0K-en_1&amp;id=FILE">Download anyway</a>'
                return httpx.Response(200, headers={"content-type": "text/html"}, text=html)
            return httpx.Response(200, headers={"content-type": "application/octet-stream"}, content=b"big")

        async def work(http):
            return await download_public_drive_file(http, "FILE", tmp_path / "v.mp4")

        assert with_client(handler, work) is True
        assert seen[1]["confirm"] == "t0K-en_1"
        assert (tmp_path / "v.mp4").read_bytes() == b"big"

    def test_html_without_token_fails(self, tmp_path):
        def handler(request):
            return httpx.Response(200, headers={"content-type": "text/html"}, text="<p>Sign in</p>")

        async def work(http):
            return await download_public_drive_file(http, "FILE", tmp_path / "v.mp4")

        assert with_client(handler, work) is False
        assert not (tmp_path / "v.mp4").exists()

    def test_http_failure(self, tmp_path):
        async def work(http):
            return await download_public_drive_file(http, "FILE", tmp_path / "v.mp4")

        assert with_client(lambda request: httpx.Response(403), work) is False


class TestStreamResponseToFile:
    """Tests for cancellable streaming."""

    def test_partial_file_removed_on_cancel(self, tmp_path):
        control = FakeControl()
        dest = tmp_path / "partial.bin"

        async def body():
            yield b"first"
            control.cancelled = True
            yield b"second"

        def handler(request):
            return httpx.Response(200, content=body())

        async def work(http):
            async with http.stream("GET", "https://files.example/x") as response:
                await stream_response_to_file(response, dest, control=control)

        with pytest.raises(JobCancelledError):
            with_client(handler, work)
        assert not dest.exists()


class TestDriveClient:
    """Tests for authenticated Drive downloads."""

    def test_missing_credentials(self, tmp_path):
        async def work(http):
            await DriveClient(http, None).download_file("FILE", tmp_path / "v.mp4")

        with pytest.raises(ItemProcessingError, match="Credentials Error"):
            with_client(lambda request: httpx.Response(200), work)

    def test_not_found(self, tmp_path):
        async def work(http):
            await DriveClient(http, FakeTokens()).download_file("FILE", tmp_path / "v.mp4")

        with pytest.raises(ItemProcessingError, match="File Not Found"):
            with_client(lambda request: httpx.Response(404, json={}), work)

    def test_download_with_size(self, tmp_path):
        totals = []

        def handler(request):
            if request.url.params.get("alt") == "media":
                return httpx.Response(200, content=b"12345")
            return httpx.Response(200, json={"size": "5"})

        async def work(http):
            await DriveClient(http, FakeTokens()).download_file(
                "FILE", tmp_path / "v.mp4", on_progress=lambda loaded, total: totals.append(total)
            )

        with_client(handler, work)
        assert (tmp_path / "v.mp4").read_bytes() == b"12345"
        assert set(totals) == {5}
