"""Unit tests for the in-memory job manager and the reference poller."""

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from helpers import SleepRecorder
from qa_extractor.jobs.manager import CANCELLED_MESSAGE, JobManager
from qa_extractor.jobs.polling import (
    JobCancelledByUserError,
    JobFailedError,
    is_transient_gateway_error,
    wait_for_job_completion,
)
from qa_extractor.models import JobProgress, JobState


async def settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class TestJobLifecycle:
    """Tests for job state transitions."""

    def test_success(self):
        async def run():
            manager = JobManager()

            async def runner(update, control):
                update("Halfway", partial_result={"rows": [1]}, progress={"percent": 50})
                return {"rows": [1, 2]}

            created = manager.create_job(runner)
            assert created.state == JobState.QUEUED
            assert created.message == "Queued..."
            await settle()
            return manager.get_job(created.id)

        job = asyncio.run(run())
        assert job.state == JobState.SUCCESS
        assert job.message == "Completed."
        assert job.result == {"rows": [1, 2]}
        assert job.partial_result == {"rows": [1, 2]}
        assert job.progress.percent == 50

    def test_running_updates_visible(self):
        async def run():
            manager = JobManager()
            release = asyncio.Event()

            async def runner(update, control):
                update("Working", progress=JobProgress(percent=25))
                await release.wait()
                return "done"

            job_id = manager.create_job(runner).id
            await settle()
            running = manager.get_job(job_id)
            release.set()
            await settle()
            return running, manager.get_job(job_id)

        running, finished = asyncio.run(run())
        assert running.state == JobState.RUNNING
        assert running.message == "Working"
        assert running.progress.percent == 25
        assert finished.state == JobState.SUCCESS

    def test_error_message_includes_type(self):
        async def run():
            manager = JobManager()

            async def runner(update, control):
                raise ValueError("bad input")

            job_id = manager.create_job(runner).id
            await settle()
            return manager.get_job(job_id)

        job = asyncio.run(run())
        assert job.state == JobState.ERROR
        assert job.error == "ValueError: bad input"
        assert job.message == "ValueError: bad input"

    def test_snapshots_are_copies(self):
        async def run():
            manager = JobManager()
            release = asyncio.Event()

            async def runner(update, control):
                await release.wait()

            job_id = manager.create_job(runner).id
            snapshot = manager.get_job(job_id)
            snapshot.message = "tampered"
            release.set()
            await settle()
            return manager.get_job(job_id)

        assert asyncio.run(run()).message != "tampered"

    def test_unknown_job(self):
        manager = JobManager()
        assert manager.get_job("missing") is None
        assert manager.cancel_job("missing") is None


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancel_running_job(self):
        async def run():
            manager = JobManager()
            checkpoint = asyncio.Event()
            observed = []

            async def runner(update, control):
                await checkpoint.wait()
                observed.append(control.is_cancelled())
                update("late update")
                control.throw_if_cancelled()
                return "never"

            job_id = manager.create_job(runner).id
            await settle()
            cancelled = manager.cancel_job(job_id)
            checkpoint.set()
            await settle()
            return cancelled, manager.get_job(job_id), observed

        cancelled, final, observed = asyncio.run(run())
        assert cancelled.state == JobState.CANCELLED
        assert cancelled.cancel_requested is True
        assert observed == [True]
        assert final.state == JobState.CANCELLED
        assert final.message == CANCELLED_MESSAGE
        assert final.result is None

    def test_cancel_is_idempotent(self):
        async def run():
            manager = JobManager()

            async def runner(update, control):
                await asyncio.sleep(10)

            job_id = manager.create_job(runner).id
            await settle()
            first = manager.cancel_job(job_id)
            second = manager.cancel_job(job_id)
            await manager.shutdown()
            return first, second

        first, second = asyncio.run(run())
        assert first.state == second.state == JobState.CANCELLED

    def test_cancel_finished_job_is_noop(self):
        async def run():
            manager = JobManager()

            async def runner(update, control):
                return "ok"

            job_id = manager.create_job(runner).id
            await settle()
            return manager.cancel_job(job_id)

        job = asyncio.run(run())
        assert job.state == JobState.SUCCESS
        assert job.cancel_requested is False

    def test_cancel_before_start(self):
        async def run():
            manager = JobManager()
            calls = []

            async def runner(update, control):
                calls.append(True)
                return "ok"

            job_id = manager.create_job(runner).id
            manager.cancel_job(job_id)
            await settle()
            return manager.get_job(job_id), calls

        job, calls = asyncio.run(run())
        assert job.state == JobState.CANCELLED
        assert calls == []

    def test_error_after_cancel_stays_cancelled(self):
        async def run():
            manager = JobManager()
            checkpoint = asyncio.Event()

            async def runner(update, control):
                await checkpoint.wait()
                raise RuntimeError("boom")

            job_id = manager.create_job(runner).id
            await settle()
            manager.cancel_job(job_id)
            checkpoint.set()
            await settle()
            return manager.get_job(job_id)

        job = asyncio.run(run())
        assert job.state == JobState.CANCELLED
        assert job.error is None


class TestExpiry:
    """Tests for lazy TTL cleanup."""

    def test_jobs_expire_after_ttl(self):
        clock = FakeClock()

        async def run():
            manager = JobManager(ttl_seconds=60, clock=clock)

            async def runner(update, control):
                return "ok"

            job_id = manager.create_job(runner).id
            await settle()
            clock.now += timedelta(seconds=30)
            still_there = manager.get_job(job_id)
            clock.now += timedelta(seconds=61)
            return still_there, manager.get_job(job_id)

        still_there, gone = asyncio.run(run())
        assert still_there is not None
        assert gone is None

    def test_running_job_survives_ttl(self):
        clock = FakeClock()

        async def run():
            manager = JobManager(ttl_seconds=60, clock=clock)
            release = asyncio.Event()

            async def runner(update, control):
                await release.wait()
                control.throw_if_cancelled()
                return "done"

            job_id = manager.create_job(runner).id
            await settle()
            clock.now += timedelta(seconds=120)
            while_running = manager.get_job(job_id)
            release.set()
            await settle()
            return while_running, manager.get_job(job_id)

        while_running, finished = asyncio.run(run())
        assert while_running is not None
        assert while_running.state == JobState.RUNNING
        assert finished.state == JobState.SUCCESS
        assert finished.result == "done"


class TestTransientGatewayErrors:
    """Tests for is_transient_gateway_error."""

    def _status_error(self, status):
        request = httpx.Request("GET", "http://test/api/jobs/1")
        response = httpx.Response(status, request=request)
        return httpx.HTTPStatusError("failed", request=request, response=response)

    def test_gateway_statuses(self):
        assert is_transient_gateway_error(self._status_error(504))
        assert is_transient_gateway_error(self._status_error(502))
        assert not is_transient_gateway_error(self._status_error(500))

    def test_timeouts_and_messages(self):
        assert is_transient_gateway_error(httpx.ReadTimeout("slow"))
        assert is_transient_gateway_error(RuntimeError("<html>502 Bad Gateway</html>"))
        assert not is_transient_gateway_error(RuntimeError("boom"))


class TestWaitForJobCompletion:
    """Tests for the reference poller."""

    def _record(self, state, **extra):
        return {
            "id": "job-1",
            "state": state,
            "message": extra.pop("message", ""),
            "createdAt": "2024-01-01T00:00:00Z",
            "updatedAt": "2024-01-01T00:00:00Z",
            **extra,
        }

    def test_returns_result_and_reports_updates(self):
        responses = iter([
            RuntimeError("504 Gateway Time-out"),
            self._record("running", message="Working"),
            self._record("success", result={"rows": []}),
        ])
        seen = []
        sleeper = SleepRecorder()

        async def fetch():
            value = next(responses)
            if isinstance(value, Exception):
                raise value
            return value

        result = asyncio.run(
            wait_for_job_completion(fetch, on_update=lambda s: seen.append(s.state), poll_interval=0.5, sleep=sleeper)
        )

        assert result == {"rows": []}
        assert seen == [JobState.RUNNING, JobState.SUCCESS]
        assert sleeper.waits == [0.5, 0.5]

    def test_error_state_raises(self):
        async def fetch():
            return self._record("error", error="ValueError: nope")

        with pytest.raises(JobFailedError, match="ValueError: nope"):
            asyncio.run(wait_for_job_completion(fetch, sleep=SleepRecorder()))

    def test_cancelled_state_raises(self):
        async def fetch():
            return self._record("cancelled", message="Cancelled by user.")

        with pytest.raises(JobCancelledByUserError):
            asyncio.run(wait_for_job_completion(fetch, sleep=SleepRecorder()))

    def test_missing_job(self):
        async def fetch():
            return None

        with pytest.raises(JobFailedError, match="not found"):
            asyncio.run(wait_for_job_completion(fetch, sleep=SleepRecorder()))

    def test_non_transient_error_propagates(self):
        async def fetch():
            raise RuntimeError("connection refused")

        with pytest.raises(RuntimeError):
            asyncio.run(wait_for_job_completion(fetch, sleep=SleepRecorder()))
