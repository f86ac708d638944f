# meritdraft/api/v1/deps.py

from typing import Callable
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from meritdraft.core.logger import logger
from meritdraft.db.database import get_db
from meritdraft.db.repositories import PetitionRepository, UploadedFileRepository
from meritdraft.services.background_jobs import submit_draft_job
from meritdraft.services.draft_service import DraftService, build_draft_service
from meritdraft.services.file_storage import FileStorage, get_file_storage
from meritdraft.services.petition_service import PetitionService

# ============================================================================
# Service dependencies (overridden in tests)
# ============================================================================

def get_petition_service(db: Session = Depends(get_db)) -> PetitionService:
    return PetitionService(PetitionRepository(db))


def get_draft_service(db: Session = Depends(get_db)) -> DraftService:
    try:
        return build_draft_service(db)
    except ValueError as e:
        logger.error("Draft service unavailable: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Draft generation is not configured",
        )


def get_job_dispatcher() -> Callable[[UUID], bool]:
    """Hands a created job to the background scheduler."""
    return submit_draft_job


def get_file_repository(db: Session = Depends(get_db)) -> UploadedFileRepository:
    return UploadedFileRepository(db)


def get_storage() -> FileStorage:
    return get_file_storage()
