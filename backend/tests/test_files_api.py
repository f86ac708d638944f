import uuid
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from meritdraft.api.v1.deps import get_file_repository, get_petition_service, get_storage
from meritdraft.api.v1.endpoints.files import resolve_content_type
from meritdraft.main import app
from meritdraft.services.file_storage import FileStorage
from meritdraft.services.petition_service import PetitionService

PDF = "application/pdf"


class FakeFileRepository:
    def __init__(self, error=None):
        self.error = error
        self.rows = {}

    def create(self, record):
        if self.error is not None:
            raise self.error
        record.created_at = datetime.utcnow()
        self.rows[str(record.id)] = record
        return record

    def get(self, file_id):
        return self.rows.get(str(file_id))

    def delete(self, record):
        self.rows.pop(str(record.id), None)


class MemoryStorage(FileStorage):
    def __init__(self):
        self.objects = {}
        self.deleted = []

    def upload(self, path, data, content_type):
        self.objects[path] = data
        return path

    def download(self, path):
        if path not in self.objects:
            raise FileNotFoundError(path)
        return self.objects[path]

    def delete(self, path):
        self.deleted.append(path)
        self.objects.pop(path, None)


@pytest.fixture
def file_repository():
    return FakeFileRepository()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def client(petition_store, file_repository, storage):
    app.dependency_overrides[get_petition_service] = lambda: PetitionService(petition_store)
    app.dependency_overrides[get_file_repository] = lambda: file_repository
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def _upload(client, data, name="cv.pdf", content=b"%PDF-1.7 resume", content_type=PDF):
    return client.post("/api/v1/files", data=data, files={"file": (name, content, content_type)})


def test_upload_for_user_then_download_and_delete(client, storage):
    user_id = str(uuid.uuid4())

    response = _upload(client, {"user_id": user_id})

    assert response.status_code == 201
    body = response.json()
    assert body["user_id"] == user_id
    assert body["petition_id"] is None
    assert body["content_type"] == PDF
    assert body["size_bytes"] == len(b"%PDF-1.7 resume")

    downloaded = client.get(f"/api/v1/files/{body['id']}")
    assert downloaded.status_code == 200
    assert downloaded.content == b"%PDF-1.7 resume"
    assert 'filename="cv.pdf"' in downloaded.headers["content-disposition"]

    assert client.delete(f"/api/v1/files/{body['id']}").status_code == 204
    assert storage.objects == {}
    assert client.get(f"/api/v1/files/{body['id']}").status_code == 404


def test_upload_for_petition_takes_owner_and_sets_cv(client, make_petition, petition_store):
    petition = make_petition()

    response = _upload(client, {"petition_id": str(petition.id)})

    assert response.status_code == 201
    body = response.json()
    assert body["user_id"] == str(petition.user_id)
    assert body["petition_id"] == str(petition.id)
    assert str(petition_store.get(petition.id).cv_file_id) == body["id"]


def test_second_petition_upload_keeps_existing_cv(client, make_petition, petition_store):
    petition = make_petition()
    first = _upload(client, {"petition_id": str(petition.id)}).json()

    second = _upload(client, {"petition_id": str(petition.id)}, name="offer.pdf")

    assert second.status_code == 201
    assert str(petition_store.get(petition.id).cv_file_id) == first["id"]


def test_upload_for_unknown_petition_is_rejected(client, storage):
    response = _upload(client, {"petition_id": str(uuid.uuid4())})

    assert response.status_code == 400
    assert storage.objects == {}


def test_upload_requires_an_owner(client, storage):
    response = _upload(client, {})

    assert response.status_code == 400
    assert storage.objects == {}


@pytest.mark.parametrize(
    "name, content_type",
    [("photo.png", "image/png"), ("tool.exe", "application/x-msdownload"), ("blob.bin", "application/octet-stream")],
)
def test_disallowed_types_are_rejected(client, storage, name, content_type):
    response = _upload(client, {"user_id": str(uuid.uuid4())}, name=name, content_type=content_type)

    assert response.status_code == 400
    assert "File type not allowed" in response.json()["detail"]
    assert storage.objects == {}


def test_empty_upload_is_rejected(client):
    response = _upload(client, {"user_id": str(uuid.uuid4())}, content=b"")
    assert response.status_code == 400


def test_failed_record_insert_removes_stored_bytes(client, storage, file_repository):
    file_repository.error = RuntimeError("insert failed")

    response = _upload(client, {"user_id": str(uuid.uuid4())})

    assert response.status_code == 500
    assert storage.objects == {}
    assert len(storage.deleted) == 1


@pytest.mark.parametrize(
    "declared, filename, expected",
    [
        ("application/pdf", "cv", "application/pdf"),
        ("", "resume.DOCX", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
        ("application/octet-stream", "notes.txt", "text/plain"),
        (None, "cv.doc", "application/msword"),
        ("text/markdown; charset=utf-8", "cv.md", "text/markdown"),
        (None, "archive.zip", "application/octet-stream"),
    ],
)
def test_resolve_content_type(declared, filename, expected):
    assert resolve_content_type(declared, filename) == expected
