# meritdraft/api/v1/endpoints/files.py

"""
File Endpoints

Uploads for supporting documents (CV, job offer). Petitions reference the
returned id; the generation pipeline never reads the bytes.

An upload names its owner either directly (``user_id``) or through a
petition (``petition_id``). A petition upload becomes the petition's CV
when it has none yet.
"""

import os
from typing import Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status

from meritdraft.api.v1.deps import get_file_repository, get_petition_service, get_storage
from meritdraft.core.config import settings
from meritdraft.core.logger import logger
from meritdraft.db.models import UploadedFile
from meritdraft.db.repositories import UploadedFileRepository
from meritdraft.db.schemas import FileOut
from meritdraft.services.file_storage import FileStorage, generate_storage_path
from meritdraft.services.petition_service import PetitionService
from meritdraft.utils.exceptions import FileNotFoundInStorageError, PetitionNotFoundError, UploadFailedError

router = APIRouter()

GENERIC_CONTENT_TYPE = "application/octet-stream"

ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

_CONTENT_TYPES_BY_EXTENSION = {
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def resolve_content_type(declared: Optional[str], filename: str) -> str:
    """Declared type, or one inferred from the extension when the client sent none."""
    content_type = (declared or "").split(";")[0].strip().lower()
    if content_type and content_type != GENERIC_CONTENT_TYPE:
        return content_type
    ext = os.path.splitext(filename)[1].lower()
    return _CONTENT_TYPES_BY_EXTENSION.get(ext, GENERIC_CONTENT_TYPE)


def is_allowed_content_type(content_type: str) -> bool:
    return content_type in ALLOWED_CONTENT_TYPES or content_type.startswith("text/")


@router.post("", response_model=FileOut, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    user_id: Optional[UUID] = Form(None),
    petition_id: Optional[UUID] = Form(None),
    files: UploadedFileRepository = Depends(get_file_repository),
    storage: FileStorage = Depends(get_storage),
    petitions: PetitionService = Depends(get_petition_service),
):
    petition = None
    if petition_id is not None:
        try:
            petition = petitions.get_petition(petition_id)
        except PetitionNotFoundError:
            raise HTTPException(status_code=400, detail="Petition not found.")
        user_id = petition.user_id
    elif user_id is None:
        raise HTTPException(status_code=400, detail="Either petition_id or user_id is required.")

    original_name = file.filename or "upload"
    content_type = resolve_content_type(file.content_type, original_name)
    if not is_allowed_content_type(content_type):
        raise HTTPException(
            status_code=400,
            detail="File type not allowed. Allowed types: PDF, TXT, DOC, DOCX.",
        )

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    if len(data) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.MAX_UPLOAD_SIZE} byte limit.",
        )

    file_id = uuid4()
    storage_path = generate_storage_path(file_id, original_name)

    try:
        storage.upload(storage_path, data, content_type)
    except Exception as e:
        logger.exception("Storage upload failed for %s", original_name)
        raise UploadFailedError("could not store file") from e

    record = UploadedFile(
        id=file_id,
        user_id=user_id,
        petition_id=petition.id if petition is not None else None,
        original_name=original_name,
        content_type=content_type,
        size_bytes=len(data),
        storage_path=storage_path,
    )
    try:
        record = files.create(record)
    except Exception as e:
        logger.exception("Failed to save file record %s; removing stored bytes", file_id)
        try:
            storage.delete(storage_path)
        except Exception:
            logger.exception("Could not remove orphaned object %s", storage_path)
        raise UploadFailedError("could not save file record") from e

    if petition is not None:
        try:
            petitions.attach_cv_file(petition, record.id)
        except Exception:
            logger.exception("Failed to link file %s to petition %s", record.id, petition.id)

    return record


@router.get("/{file_id}")
def download_file(
    file_id: UUID,
    files: UploadedFileRepository = Depends(get_file_repository),
    storage: FileStorage = Depends(get_storage),
):
    record = files.get(file_id)
    if record is None:
        raise FileNotFoundInStorageError(str(file_id))
    try:
        data = storage.download(record.storage_path)
    except FileNotFoundError:
        raise FileNotFoundInStorageError(str(file_id))

    return Response(
        content=data,
        media_type=record.content_type,
        headers={"Content-Disposition": f'attachment; filename="{record.original_name}"'},
    )


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    file_id: UUID,
    files: UploadedFileRepository = Depends(get_file_repository),
    storage: FileStorage = Depends(get_storage),
):
    record = files.get(file_id)
    if record is None:
        raise FileNotFoundInStorageError(str(file_id))
    storage.delete(record.storage_path)
    files.delete(record)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
