"""
SQLAlchemy ORM Models
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Boolean,
    Column,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import relationship

from meritdraft.db.database import Base

EMBEDDING_DIMENSIONS = 768

# ============================================================================
# Enums
# ============================================================================

class PetitionStatus(str, enum.Enum):
    """Petition lifecycle"""
    draft = "draft"
    in_progress = "in_progress"
    completed = "completed"
    archived = "archived"


class VisaType(str, enum.Enum):
    """Visa classification sought"""
    o1a = "O-1A"
    eb1a = "EB-1A"
    eb2_niw = "EB-2 NIW"


class GenerationJobStatus(str, enum.Enum):
    """
    Status lifecycle for a draft generation job.

        pending → in_progress → completed | failed
    """
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"


class StepStatus(str, enum.Enum):
    """Status of a single named step inside a generation job."""
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    failed = "failed"


class LegalSourceType(str, enum.Enum):
    """Partition of the legal knowledge base."""
    regulation = "regulation"
    precedent_case = "precedent_case"
    appeal_decision = "appeal_decision"


# ============================================================================
# Petitions
# ============================================================================

class Petition(Base):
    """
    One applicant case. Generation reads it and writes back only
    ``generated_content``.
    """
    __tablename__ = "petitions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    status = Column(SQLEnum(PetitionStatus), nullable=False, default=PetitionStatus.draft, index=True)

    # Intake
    client_name = Column(String(255), nullable=False, default="")
    visa_type = Column(String(20), nullable=False, default=VisaType.o1a.value)
    petitioner_name = Column(String(255), nullable=False, default="")
    field_of_expertise = Column(Text, nullable=False, default="")

    # Supporting documents (opaque file ids, contents never read here)
    cv_file_id = Column(UUID(as_uuid=True), ForeignKey("uploaded_files.id", ondelete="SET NULL"), nullable=True)
    job_offer_file_id = Column(UUID(as_uuid=True), ForeignKey("uploaded_files.id", ondelete="SET NULL"), nullable=True)
    scholar_link = Column(Text, nullable=True)

    # Strategy: ordered criterion ids; details keyed by criterion id
    selected_criteria = Column(JSONB, nullable=False, default=list)
    criteria_details = Column(JSONB, nullable=False, default=dict)

    # Generation output
    generated_content = Column(Text, nullable=True)
    refine_instructions = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(TIMESTAMP, nullable=True)

    generation_jobs = relationship("GenerationJob", back_populates="petition", cascade="all, delete-orphan")


class GenerationJob(Base):
    """
    One run of the draft pipeline for a petition. Kept after it finishes
    as an audit trail.

    ``steps`` is a JSON list of ``{"name": str, "status": str}`` whose order is
    fixed at creation.
    """
    __tablename__ = "generation_jobs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    petition_id = Column(UUID(as_uuid=True), ForeignKey("petitions.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(SQLEnum(GenerationJobStatus), nullable=False, default=GenerationJobStatus.pending, index=True)
    current_step = Column(String(255), nullable=True)
    steps = Column(JSONB, nullable=False, default=list)
    error_message = Column(Text, nullable=True)
    refine_instructions = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(TIMESTAMP, nullable=True)

    petition = relationship("Petition", back_populates="generation_jobs")

    __table_args__ = (
        Index("ix_generation_jobs_petition_created", "petition_id", "created_at"),
    )


# ============================================================================
# Legal knowledge base (populated by the offline ingestion tool)
# ============================================================================

class LegalChunk(Base):
    """
    A read-only chunk of regulation, precedent or appeal text with its
    embedding. ``distance`` is not a column; search results set it.
    """
    __tablename__ = "legal_chunks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    source_type = Column(String(50), nullable=False, index=True)
    source_document = Column(String(255), nullable=False, index=True)
    chunk_index = Column(Integer, nullable=False)
    text = Column("chunk_text", Text, nullable=False)

    regulatory_citation = Column(ARRAY(Text), nullable=True)
    case_citation = Column(Text, nullable=True)
    appeal_citation = Column(Text, nullable=True)
    criterion_tag = Column(String(100), nullable=True)
    legal_standard = Column(String(255), nullable=True)
    legal_test = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSONB, nullable=True, default=dict)

    is_winning_argument = Column(Boolean, nullable=False, default=False)
    is_holding = Column(Boolean, nullable=False, default=False)
    visa_type = Column(String(20), nullable=False, default="O-1")

    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    distance = None

    __table_args__ = (
        UniqueConstraint("source_document", "chunk_index", name="chunk_order_unique"),
        Index("idx_type_criterion", "source_type", "criterion_tag"),
    )

    @property
    def citation(self) -> str | None:
        """The citation string that fits this chunk's source type."""
        if self.source_type == LegalSourceType.appeal_decision.value:
            return self.appeal_citation
        if self.source_type == LegalSourceType.precedent_case.value:
            return self.case_citation
        if self.regulatory_citation:
            return ", ".join(self.regulatory_citation)
        return None


# ============================================================================
# Uploaded files
# ============================================================================

class UploadedFile(Base):
    """Metadata for a file held by the configured file store."""
    __tablename__ = "uploaded_files"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    petition_id = Column(
        UUID(as_uuid=True),
        ForeignKey("petitions.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
        index=True,
    )
    original_name = Column(String(500), nullable=False)
    content_type = Column(String(200), nullable=False, default="application/octet-stream")
    size_bytes = Column(Integer, nullable=False, default=0)
    storage_path = Column(String(1000), nullable=False, unique=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
