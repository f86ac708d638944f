"""
Session-bound data access for petitions, generation jobs, legal chunks
and uploaded files.

Every method does a whole-record read or a whole-record write and commits
immediately; there is no compare-and-swap. Callers that mutate one job from
two places at once will race.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from meritdraft.core.config import settings
from meritdraft.db.models import (
    EMBEDDING_DIMENSIONS,
    GenerationJob,
    GenerationJobStatus,
    LegalChunk,
    LegalSourceType,
    Petition,
    PetitionStatus,
    StepStatus,
    UploadedFile,
)

logger = logging.getLogger(__name__)


class PetitionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, petition_id: UUID | str) -> Optional[Petition]:
        return self.db.query(Petition).filter(Petition.id == petition_id).first()

    def create(self, petition: Petition) -> Petition:
        self.db.add(petition)
        self.db.commit()
        self.db.refresh(petition)
        return petition

    def update(self, petition: Petition) -> Petition:
        petition.updated_at = datetime.utcnow()
        self.db.add(petition)
        self.db.commit()
        self.db.refresh(petition)
        return petition

    def set_generated_content(self, petition_id: UUID | str, content: str) -> None:
        petition = self.get(petition_id)
        if petition is None:
            raise LookupError(f"Petition {petition_id} not found")
        petition.generated_content = content
        petition.updated_at = datetime.utcnow()
        self.db.commit()

    def list_by_user(
        self,
        user_id: UUID | str,
        status: Optional[PetitionStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Petition]:
        query = self.db.query(Petition).filter(Petition.user_id == user_id)
        if status is not None:
            query = query.filter(Petition.status == status)
        return (
            query.order_by(Petition.updated_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )


class GenerationJobRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, job: GenerationJob) -> GenerationJob:
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        return job

    def get(self, job_id: UUID | str) -> Optional[GenerationJob]:
        job = self.db.query(GenerationJob).filter(GenerationJob.id == job_id).first()
        if job is not None:
            # Reload so a long-running worker sees writes from other sessions.
            self.db.refresh(job)
            if job.steps is None:
                job.steps = []
        return job

    def get_latest_for_petition(self, petition_id: UUID | str) -> Optional[GenerationJob]:
        return (
            self.db.query(GenerationJob)
            .filter(GenerationJob.petition_id == petition_id)
            .order_by(GenerationJob.created_at.desc())
            .first()
        )

    def _require(self, job_id: UUID | str) -> GenerationJob:
        job = self.get(job_id)
        if job is None:
            raise LookupError(f"Generation job {job_id} not found")
        return job

    def update_status(self, job_id: UUID | str, status: GenerationJobStatus) -> None:
        job = self._require(job_id)
        job.status = status
        job.updated_at = datetime.utcnow()
        self.db.commit()

    def update_progress(self, job_id: UUID | str, current_step: Optional[str], steps: Sequence[dict]) -> None:
        job = self._require(job_id)
        job.current_step = current_step
        # Reassign a fresh list so the JSONB column is flagged dirty.
        job.steps = [dict(step) for step in steps]
        job.updated_at = datetime.utcnow()
        self.db.commit()

    def mark_failed(self, job_id: UUID | str, message: str) -> None:
        job = self._require(job_id)
        job.status = GenerationJobStatus.failed
        job.error_message = message
        job.updated_at = datetime.utcnow()
        self.db.commit()

    def mark_completed(self, job_id: UUID | str) -> None:
        job = self._require(job_id)
        now = datetime.utcnow()
        job.status = GenerationJobStatus.completed
        job.completed_at = now
        job.updated_at = now
        self.db.commit()

    def fail_stale_unfinished(self, older_than: datetime, message: str) -> int:
        """
        Fail pending or in-progress jobs last updated before ``older_than``.

        These are runs whose worker went away (process restart). The step
        that was running is marked failed too. Returns the number of jobs.
        """
        stale = (
            self.db.query(GenerationJob)
            .filter(
                GenerationJob.status.in_([GenerationJobStatus.pending, GenerationJobStatus.in_progress]),
                GenerationJob.updated_at < older_than,
            )
            .all()
        )
        now = datetime.utcnow()
        for job in stale:
            job.steps = [
                dict(step, status=StepStatus.failed.value)
                if step.get("status") == StepStatus.in_progress.value
                else dict(step)
                for step in (job.steps or [])
            ]
            job.status = GenerationJobStatus.failed
            job.error_message = message
            job.updated_at = now
        if stale:
            self.db.commit()
        return len(stale)


class LegalChunkRepository:
    """Similarity search over the legal knowledge base (pgvector, cosine)."""

    def __init__(self, db: Session, visa_type: str = settings.LEGAL_CHUNK_VISA_TYPE):
        self.db = db
        self.visa_type = visa_type

    def search_by_criterion(
        self,
        embedding: Sequence[float],
        criterion_tag: Optional[str],
        source_type: LegalSourceType | str,
        limit: int,
        enforce_purity: bool = True,
    ) -> list[LegalChunk]:
        """
        Return the ``limit`` chunks nearest to ``embedding``.

        An empty ``criterion_tag`` matches chunks with no tag (merits pass).
        With ``enforce_purity`` appeal chunks must be winning arguments and
        precedent chunks must be holdings.
        """
        if len(embedding) != EMBEDDING_DIMENSIONS:
            raise ValueError(
                f"embedding must be {EMBEDDING_DIMENSIONS} dimensions, got {len(embedding)}"
            )

        source_value = LegalSourceType(source_type).value
        distance = LegalChunk.embedding.cosine_distance(list(embedding))

        query = self.db.query(LegalChunk, distance.label("distance")).filter(
            LegalChunk.source_type == source_value,
            LegalChunk.visa_type == self.visa_type,
        )
        if criterion_tag:
            query = query.filter(LegalChunk.criterion_tag == criterion_tag)
        else:
            query = query.filter(LegalChunk.criterion_tag.is_(None))

        if enforce_purity:
            if source_value == LegalSourceType.appeal_decision.value:
                query = query.filter(LegalChunk.is_winning_argument.is_(True))
            elif source_value == LegalSourceType.precedent_case.value:
                query = query.filter(LegalChunk.is_holding.is_(True))

        try:
            rows = query.order_by(distance).limit(limit).all()
        except SQLAlchemyError:
            # Leave the session usable for the job updates that follow.
            self.db.rollback()
            raise

        chunks: list[LegalChunk] = []
        for chunk, dist in rows:
            chunk.distance = float(dist) if dist is not None else None
            chunks.append(chunk)
        logger.debug(
            "search_by_criterion: tag=%s type=%s limit=%d -> %d rows",
            criterion_tag or "<none>", source_value, limit, len(chunks),
        )
        return chunks


class UploadedFileRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, record: UploadedFile) -> UploadedFile:
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def get(self, file_id: UUID | str) -> Optional[UploadedFile]:
        return self.db.query(UploadedFile).filter(UploadedFile.id == file_id).first()

    def delete(self, record: UploadedFile) -> None:
        self.db.delete(record)
        self.db.commit()
