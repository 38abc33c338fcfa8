"""API tests using FastAPI's TestClient with fake collaborators."""

import json
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from helpers import FakeSheetSink, chat_response
from qa_extractor.api.main import create_app
from qa_extractor.jobs import JobManager


def drilldown_provider(request: httpx.Request) -> httpx.Response:
    return chat_response({"questions": [{"question_text": "Explain HashMap internals", "difficulty": "hard"}]})


@pytest.fixture
def sink():
    return FakeSheetSink()


@pytest.fixture
def client(make_services, sink):
    http = httpx.AsyncClient(transport=httpx.MockTransport(drilldown_provider))
    app = create_app(services=make_services(http, sink), job_manager=JobManager())
    with TestClient(app) as test_client:
        yield test_client


def wait_for_terminal(client: TestClient, job_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        job = client.get(f"/api/jobs/{job_id}").json()
        if job["state"] in ("success", "error", "cancelled"):
            return job
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} did not finish")


class TestMeta:
    """Tests for health and static config endpoints."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data

    def test_app_config(self, client):
        data = client.get("/api/app-config").json()
        assert "Intensive" in data["productOptions"]
        assert data["pages"][0] == "Interview analyser"


class TestJobsRoute:
    """Tests for job polling and cancellation."""

    def test_unknown_job(self, client):
        response = client.get("/api/jobs/nope")
        assert response.status_code == 404
        assert response.json()["detail"] == "Job not found."
        assert client.post("/api/jobs/nope/cancel").status_code == 404

    def test_drilldown_job_runs_to_success(self, client, sink):
        response = client.post(
            "/api/drilldown/analyze/start",
            json={"rows": [{"Job ID": "J1", "Technical round Questions": "hashmap"}], "product": "NIAT"},
        )
        assert response.status_code == 200
        job_id = response.json()["jobId"]

        job = wait_for_terminal(client, job_id)

        assert job["state"] == "success"
        assert job["message"] == "Completed."
        result = job["result"]
        assert result["savedToSheet"] is True
        assert result["skipped"] == []
        assert result["rows"][0]["questions"] == "Explain HashMap internals"
        assert result["rows"][0]["interview_round"] == "TECHNICAL_ROUND_1"
        assert result["rows"][0]["product"] == "NIAT"
        assert sink.calls[0][0] == "Drill_Q&A"

        again = client.post(f"/api/jobs/{job_id}/cancel").json()
        assert again["state"] == "success"

    def test_failed_job_reports_error(self, client):
        response = client.post("/api/drilldown/analyze/start", json={"rows": [{"Job ID": "J1"}], "provider": "openai"})
        job = wait_for_terminal(client, response.json()["jobId"])

        assert job["state"] == "error"
        assert job["error"] == "ConfigurationError: Missing OPENAI API key in settings."


class TestWorkflowValidation:
    """Tests for request validation on start endpoints."""

    def test_assignments_rows_must_be_list(self, client):
        response = client.post("/api/assignments/analyze/start", json={"rows": "not-a-list"})
        assert response.status_code == 422

    def test_video_uploader_requires_file(self, client):
        response = client.post("/api/interview/video-uploader/start", data={"metadata": "{}"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing uploaded file."

    def test_video_uploader_rejects_empty_file(self, client):
        response = client.post(
            "/api/interview/video-uploader/start",
            data={"metadata": json.dumps({"interview_date": "2024-01-01"})},
            files={"video": ("clip.mp4", b"", "video/mp4")},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Empty file"

    def test_video_uploader_rejects_bad_metadata(self, client):
        response = client.post(
            "/api/interview/video-uploader/start",
            data={"metadata": "{broken"},
            files={"video": ("clip.mp4", b"data", "video/mp4")},
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Invalid metadata")

    def test_assessment_rows_must_name_file_field(self, client):
        response = client.post(
            "/api/assessments/individual/start",
            data={"rows": json.dumps([{"company_name": "Acme"}])},
            files={"file_0": ("paper.png", b"img", "image/png")},
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Invalid rows")

    def test_assessment_job_started(self, client):
        response = client.post(
            "/api/assessments/zip/start",
            data={"rows": json.dumps([{"fileField": "zip_0"}]), "product": "Academy"},
            files={"zip_0": ("batch.zip", b"not a zip", "application/zip")},
        )
        assert response.status_code == 200

        job = wait_for_terminal(client, response.json()["jobId"])
        assert job["state"] == "error"
        assert "Invalid ZIP archive" in job["error"]


class TestDrilldownTemplate:
    """Tests for the CSV template download."""

    def test_sample_template(self, client):
        response = client.get("/api/drilldown/sample-template")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="drilldown_sample.csv"' in response.headers["content-disposition"]
        assert response.text.startswith("Interview Date,User ID")


class TestProviderConfig:
    """Tests for provider settings endpoints."""

    def test_get_and_put(self, client, settings):
        current = client.get("/api/settings/provider-config").json()
        assert current["mistral"]["apiKey"] == "key-1"

        updated = client.put("/api/settings/provider-config", json={"openai": {"apiKey": "sk-test"}}).json()
        assert updated["openai"]["apiKey"] == "sk-test"
        assert updated["mistral"]["apiKey"] == "key-1"
        assert settings.provider_settings_file.exists()
