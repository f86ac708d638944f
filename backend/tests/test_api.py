import uuid
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from meritdraft.api.v1.deps import get_draft_service, get_job_dispatcher, get_petition_service
from meritdraft.db.database import get_db
from meritdraft.db.models import GenerationJobStatus
from meritdraft.main import app
from meritdraft.services.petition_service import PetitionService


class RecordingDispatcher:
    def __init__(self, error=None):
        self.error = error
        self.job_ids = []

    def __call__(self, job_id):
        self.job_ids.append(job_id)
        if self.error is not None:
            raise self.error
        return True


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def client(petition_store, draft_service, dispatcher):
    app.dependency_overrides[get_petition_service] = lambda: PetitionService(petition_store)
    app.dependency_overrides[get_draft_service] = lambda: draft_service
    app.dependency_overrides[get_job_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


def _ready_petition(client):
    user_id = str(uuid.uuid4())
    petition = client.post("/api/v1/petitions", json={"user_id": user_id}).json()
    response = client.patch(
        f"/api/v1/petitions/{petition['id']}",
        json={
            "client_name": "Dr. Jane Doe",
            "field_of_expertise": "Artificial Intelligence",
            "selected_criteria": ["awards", "judging", "awards"],
            "criteria_details": {
                "awards": {"awards": [{"name": "Best Paper Award"}]},
                "judging": {"venue": "ICML 2024", "papers_reviewed": 40},
            },
        },
    )
    assert response.status_code == 200
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_create_and_update_petition(client):
    user_id = str(uuid.uuid4())

    created = client.post("/api/v1/petitions", json={"user_id": user_id})
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "draft"
    assert body["visa_type"] == "O-1A"
    assert body["selected_criteria"] == []

    petition = _ready_petition(client)
    assert petition["selected_criteria"] == ["awards", "judging"]

    listed = client.get("/api/v1/petitions", params={"user_id": user_id})
    assert listed.status_code == 200
    assert [p["id"] for p in listed.json()] == [body["id"]]


def test_update_rejects_fractional_citation_count(client):
    petition = client.post("/api/v1/petitions", json={"user_id": str(uuid.uuid4())}).json()

    response = client.patch(
        f"/api/v1/petitions/{petition['id']}",
        json={"criteria_details": {"authorship": {"publications": [{"title": "A", "citations": 89.5}]}}},
    )

    assert response.status_code == 422


def test_unknown_petition_is_404(client):
    response = client.get(f"/api/v1/petitions/{uuid.uuid4()}")
    assert response.status_code == 404


def test_generate_accepts_and_dispatches(client, dispatcher, job_store):
    petition = _ready_petition(client)

    response = client.post(
        f"/api/v1/petitions/{petition['id']}/generate",
        json={"refine_instructions": "Keep it short."},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "pending"
    assert [str(j) for j in dispatcher.job_ids] == [body["job_id"]]
    assert job_store.get(body["job_id"]).refine_instructions == "Keep it short."


def test_generate_without_body(client, dispatcher):
    petition = _ready_petition(client)

    response = client.post(f"/api/v1/petitions/{petition['id']}/generate")

    assert response.status_code == 202
    assert len(dispatcher.job_ids) == 1


def test_generate_with_missing_data_is_422(client, dispatcher, job_store):
    petition = client.post("/api/v1/petitions", json={"user_id": str(uuid.uuid4())}).json()

    response = client.post(f"/api/v1/petitions/{petition['id']}/generate")

    assert response.status_code == 422
    assert "client_name" in response.json()["detail"]
    assert dispatcher.job_ids == []
    assert job_store.rows == {}


def test_generate_unknown_petition_is_404(client):
    response = client.post(f"/api/v1/petitions/{uuid.uuid4()}/generate")
    assert response.status_code == 404


def test_generate_fails_job_when_scheduler_is_down(client, dispatcher, job_store):
    dispatcher.error = RuntimeError("Background scheduler is not running")
    petition = _ready_petition(client)

    response = client.post(f"/api/v1/petitions/{petition['id']}/generate")

    assert response.status_code == 503
    (job,) = job_store.rows.values()
    assert job.status == GenerationJobStatus.failed
    assert job.error_message == "could not schedule draft generation"


def test_job_status_reports_steps(client, draft_service):
    petition = _ready_petition(client)
    job_id = client.post(f"/api/v1/petitions/{petition['id']}/generate").json()["job_id"]

    pending = client.get(f"/api/v1/jobs/{job_id}").json()
    assert pending["status"] == "pending"
    assert [s["name"] for s in pending["steps"]] == [
        "Drafting Awards Criterion",
        "Drafting Judging Criterion",
        "Final Merits Determination",
        "Assembling Document",
    ]

    draft_service.process_job(job_id)

    done = client.get(f"/api/v1/jobs/{job_id}").json()
    assert done["status"] == "completed"
    assert all(s["status"] == "completed" for s in done["steps"])
    assert done["error_message"] is None

    latest = client.get(f"/api/v1/petitions/{petition['id']}/jobs/latest").json()
    assert latest["id"] == job_id

    generated = client.get(f"/api/v1/petitions/{petition['id']}").json()["generated_content"]
    assert generated.startswith("PETITION FOR O-1A VISA")


def test_unknown_job_is_404(client):
    response = client.get(f"/api/v1/jobs/{uuid.uuid4()}")
    assert response.status_code == 404


def test_latest_job_without_jobs_is_404(client):
    petition = client.post("/api/v1/petitions", json={"user_id": str(uuid.uuid4())}).json()

    response = client.get(f"/api/v1/petitions/{petition['id']}/jobs/latest")

    assert response.status_code == 404


def test_readiness_reports_each_dependency(client):
    db = MagicMock()
    db.execute.return_value.first.return_value = (1,)
    app.dependency_overrides[get_db] = lambda: db

    body = client.get("/api/v1/health/ready").json()

    assert body["status"] == "healthy"
    assert body["database"]["status"] == "ok"
    assert body["gemini"]["status"] == "ok"


def test_readiness_flags_missing_pgvector(client):
    db = MagicMock()
    db.execute.return_value.first.return_value = None
    app.dependency_overrides[get_db] = lambda: db

    body = client.get("/api/v1/health/ready").json()

    assert body["status"] == "degraded"
    assert body["database"]["detail"] == "pgvector extension not installed"
