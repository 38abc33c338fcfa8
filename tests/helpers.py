"""Fakes and response builders shared by the unit tests."""

import json

import httpx

from qa_extractor.errors import JobCancelledError


class FakeSheetSink:
    """Records appended rows instead of calling Google Sheets."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.calls: list[tuple[str, list[dict[str, str]]]] = []

    async def append_rows(self, schema, rows) -> bool:
        self.calls.append((schema.sheet_name, list(rows)))
        return self.succeed


class FakeControl:
    """Stand-in for JobControl with a settable cancellation flag."""

    def __init__(self):
        self.cancelled = False
        self.job_id = "test-job"

    def is_cancelled(self) -> bool:
        return self.cancelled

    def throw_if_cancelled(self) -> None:
        if self.cancelled:
            raise JobCancelledError()


class UpdateRecorder:
    """Collects update callback invocations."""

    def __init__(self):
        self.calls: list[dict] = []

    def __call__(self, message, partial_result=None, progress=None) -> None:
        self.calls.append({"message": message, "partial_result": partial_result, "progress": progress})

    @property
    def messages(self) -> list[str]:
        return [call["message"] for call in self.calls]

    @property
    def percents(self) -> list[float]:
        return [call["progress"].percent for call in self.calls if call["progress"] is not None]


class SleepRecorder:
    """Async sleep replacement that only records requested delays."""

    def __init__(self):
        self.waits: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


async def no_sleep(_seconds: float) -> None:
    return None


def chat_response(content, status: int = 200) -> httpx.Response:
    """OpenAI-compatible chat completion response."""
    if not isinstance(content, str):
        content = json.dumps(content)
    return httpx.Response(status, json={"choices": [{"message": {"content": content}}]})


def request_messages(request: httpx.Request) -> list[dict]:
    return json.loads(request.content)["messages"]
