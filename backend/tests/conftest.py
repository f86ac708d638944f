"""
Shared fixtures: in-memory stores and fake model clients.

The fakes hold real ORM instances so the service code sees the same
attribute shapes it gets from SQLAlchemy.
"""

import json
import os
import uuid
from datetime import datetime, timedelta

os.environ.setdefault("GEMINI_API_KEY", "test-key")

import httpx
import pytest

from meritdraft.db.models import EMBEDDING_DIMENSIONS, GenerationJob, GenerationJobStatus, Petition, PetitionStatus
from meritdraft.services.criteria import DEFAULT_CATALOG
from meritdraft.services.draft_service import DraftService, DraftServiceConfig
from meritdraft.services.legal_context_retriever import LegalContextRetriever
from meritdraft.services.section_generator import SectionGenerator


# ============================================================================
# Stores
# ============================================================================

class FakePetitionStore:
    def __init__(self):
        self.rows = {}
        self.content_writes = 0

    def get(self, petition_id):
        return self.rows.get(str(petition_id))

    def create(self, petition):
        petition.id = petition.id or uuid.uuid4()
        now = datetime.utcnow()
        petition.created_at = petition.created_at or now
        petition.updated_at = now
        self.rows[str(petition.id)] = petition
        return petition

    def update(self, petition):
        petition.updated_at = datetime.utcnow()
        self.rows[str(petition.id)] = petition
        return petition

    def set_generated_content(self, petition_id, content):
        self.content_writes += 1
        self.rows[str(petition_id)].generated_content = content

    def list_by_user(self, user_id, status=None, limit=50, offset=0):
        rows = [p for p in self.rows.values() if str(p.user_id) == str(user_id)]
        if status is not None:
            rows = [p for p in rows if p.status == status]
        return rows[offset:offset + limit]


class FakeJobStore:
    def __init__(self):
        self.rows = {}
        self._clock = datetime(2026, 1, 1)

    def create(self, job):
        job.id = job.id or uuid.uuid4()
        self._clock += timedelta(seconds=1)
        job.created_at = self._clock
        job.updated_at = self._clock
        self.rows[str(job.id)] = job
        return job

    def get(self, job_id):
        return self.rows.get(str(job_id))

    def get_latest_for_petition(self, petition_id):
        jobs = [j for j in self.rows.values() if str(j.petition_id) == str(petition_id)]
        return max(jobs, key=lambda j: j.created_at) if jobs else None

    def update_status(self, job_id, status):
        self.rows[str(job_id)].status = status

    def update_progress(self, job_id, current_step, steps):
        job = self.rows[str(job_id)]
        job.current_step = current_step
        job.steps = [dict(s) for s in steps]

    def mark_failed(self, job_id, message):
        job = self.rows[str(job_id)]
        job.status = GenerationJobStatus.failed
        job.error_message = message

    def mark_completed(self, job_id):
        job = self.rows[str(job_id)]
        job.status = GenerationJobStatus.completed
        job.completed_at = datetime.utcnow()


class FakeChunkStore:
    """Returns the chunks registered per source type, or raises if told to."""

    def __init__(self, chunks=None, failing_types=()):
        self.chunks = chunks or {}
        self.failing_types = set(failing_types)
        self.calls = []

    def search_by_criterion(self, embedding, criterion_tag, source_type, limit, enforce_purity=True):
        source = getattr(source_type, "value", source_type)
        self.calls.append((criterion_tag, source, limit))
        if source in self.failing_types:
            raise RuntimeError(f"{source} search failed")
        return list(self.chunks.get(source, []))[:limit]


# ============================================================================
# Model clients
# ============================================================================

class FakeEmbeddingClient:
    def __init__(self, error=None):
        self.error = error
        self.queries = []

    def embed(self, text, task_type="RETRIEVAL_QUERY"):
        self.queries.append(text)
        if self.error is not None:
            raise self.error
        return [1.0] + [0.0] * (EMBEDDING_DIMENSIONS - 1)


class FakeCompletionClient:
    def __init__(self, text="Placeholder section text.", fail_when=None, error=None):
        self.text = text
        self.fail_when = fail_when
        self.error = error
        self.prompts = []

    def complete(self, prompt, temperature):
        self.prompts.append((prompt, temperature))
        if self.fail_when is not None and self.fail_when(prompt):
            raise self.error
        return self.text


def gemini_text_response(text):
    return httpx.Response(
        200,
        json={"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}]},
    )


def prompt_of(request: httpx.Request) -> str:
    return json.loads(request.content)["contents"][0]["parts"][0]["text"]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def petition_store():
    return FakePetitionStore()


@pytest.fixture
def job_store():
    return FakeJobStore()


@pytest.fixture
def chunk_store():
    return FakeChunkStore()


@pytest.fixture
def embedding_client():
    return FakeEmbeddingClient()


@pytest.fixture
def completion_client():
    return FakeCompletionClient()


@pytest.fixture
def make_petition(petition_store):
    def _make(**overrides):
        values = dict(
            user_id=uuid.uuid4(),
            status=PetitionStatus.draft,
            client_name="Dr. Jane Doe",
            visa_type="O-1A",
            petitioner_name="Acme Research Labs",
            field_of_expertise="Artificial Intelligence",
            selected_criteria=["awards", "judging"],
            criteria_details={
                "awards": {
                    "awards": [
                        {"name": "Best Paper Award, NeurIPS", "date": "2023-12-10", "description": "Top paper of 3,500"}
                    ]
                },
                "judging": {"venue": "ICML 2024", "role": "Senior Area Chair", "papers_reviewed": 40},
            },
            generated_content=None,
        )
        values.update(overrides)
        return petition_store.create(Petition(**values))

    return _make


@pytest.fixture
def build_service(petition_store, job_store, chunk_store, embedding_client):
    def _build(completion=None, retriever_chunk_store=None, embedder=None):
        retriever = LegalContextRetriever(retriever_chunk_store or chunk_store, embedder or embedding_client)
        config = DraftServiceConfig(
            petitions=petition_store,
            jobs=job_store,
            retriever=retriever,
            generator=SectionGenerator(completion or FakeCompletionClient(), DEFAULT_CATALOG),
            catalog=DEFAULT_CATALOG,
        )
        return DraftService(config)

    return _build


@pytest.fixture
def draft_service(build_service, completion_client):
    return build_service(completion=completion_client)
