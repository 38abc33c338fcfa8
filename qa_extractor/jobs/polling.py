"""Reference poller that waits for a job to reach a terminal state."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

from qa_extractor.models import JobRecord, JobState

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL = 1.2
MAX_TRANSIENT_FAILURES = 10

_GATEWAY_MARKERS = (
    "504 Gateway Time-out",
    "504 Gateway Timeout",
    "502 Bad Gateway",
    "upstream timed out",
)


class JobFailedError(Exception):
    """The polled job ended in the error state."""

    pass


class JobCancelledByUserError(Exception):
    """The polled job ended in the cancelled state."""

    def __init__(self, message: str = "Job cancelled by user."):
        super().__init__(message)


def is_transient_gateway_error(error: BaseException) -> bool:
    """Gateway timeouts from a proxy in front of the API are worth retrying."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in (502, 504)
    if isinstance(error, httpx.TimeoutException):
        return True
    message = str(error)
    return any(marker in message for marker in _GATEWAY_MARKERS)


async def wait_for_job_completion(
    fetch_status: Callable[[], Awaitable[JobRecord | dict | None]],
    on_update: Callable[[JobRecord], None] | None = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    """Poll until the job is terminal.

    Args:
        fetch_status: Returns the current job snapshot (record or camelCase dict).
        on_update: Receives every snapshot that was read successfully.
        poll_interval: Seconds between polls.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        The job result on success.

    Raises:
        JobFailedError: The job ended in error.
        JobCancelledByUserError: The job was cancelled.
    """
    transient_failures = 0

    while True:
        try:
            raw = await fetch_status()
            transient_failures = 0
        except Exception as e:
            if is_transient_gateway_error(e) and transient_failures < MAX_TRANSIENT_FAILURES:
                transient_failures += 1
                logger.warning("job_poll_transient_error", attempt=transient_failures, error=str(e))
                await sleep(poll_interval)
                continue
            raise

        if raw is None:
            raise JobFailedError("Job not found.")
        status = raw if isinstance(raw, JobRecord) else JobRecord.model_validate(raw)

        if on_update:
            on_update(status)

        if status.state == JobState.SUCCESS:
            if status.result is None:
                raise JobFailedError("Job completed without result.")
            return status.result
        if status.state == JobState.ERROR:
            raise JobFailedError(status.error or status.message or "Job failed.")
        if status.state == JobState.CANCELLED:
            raise JobCancelledByUserError(status.message or "Job cancelled by user.")

        await sleep(poll_interval)


def http_status_fetcher(
    client: httpx.AsyncClient, job_id: str
) -> Callable[[], Awaitable[dict | None]]:
    """Build a fetch_status callable that reads ``GET /api/jobs/{id}``."""

    async def fetch() -> dict | None:
        response = await client.get(f"/api/jobs/{job_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    return fetch
