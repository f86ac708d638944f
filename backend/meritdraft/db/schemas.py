"""
Pydantic validation schemas
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from meritdraft.db.models import GenerationJobStatus, PetitionStatus, StepStatus, VisaType


# ============================================================================
# Criterion detail payloads
#
# Applicants send loose JSON per criterion. Each known criterion gets a typed
# record; everything else lands in GenericDetail. Counts are parsed into int
# here, so 89 and 89.0 become the same value before any formatting happens.
# ============================================================================

def _canonical_number(value: Any) -> Any:
    """Collapse integral floats (89.0) to int; leave everything else alone."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class _DetailModel(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, coerce_numbers_to_str=True)

    importance: Optional[str] = None
    impact: Optional[str] = None


class Award(_DetailModel):
    name: Optional[str] = None
    date: Optional[str] = None
    description: Optional[str] = None


class AwardsDetail(BaseModel):
    awards: List[Award] = Field(default_factory=list)


class JudgingDetail(_DetailModel):
    venue: Optional[str] = None
    role: Optional[str] = None
    papers_reviewed: Optional[int] = None


class Publication(_DetailModel):
    title: Optional[str] = None
    journal: Optional[str] = None
    impact_factor: Optional[float] = None
    citations: Optional[int] = None

    @field_validator("impact_factor", mode="after")
    @classmethod
    def keep_integral_impact_factor(cls, v: Optional[float]) -> Optional[Union[int, float]]:
        return _canonical_number(v)


class AuthorshipDetail(BaseModel):
    publications: List[Publication] = Field(default_factory=list)


class Contribution(_DetailModel):
    title: Optional[str] = None


class OriginalContributionsDetail(BaseModel):
    contributions: List[Contribution] = Field(default_factory=list)


class GenericDetail(_DetailModel):
    """Fallback bag: a description plus any other keys, kept verbatim."""
    model_config = ConfigDict(extra="allow", str_strip_whitespace=True, coerce_numbers_to_str=True)

    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def canonicalize_extra_numbers(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: _canonical_number(v) for k, v in data.items()}
        return data

    @property
    def extra_fields(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


CriterionDetail = Union[
    AwardsDetail,
    JudgingDetail,
    AuthorshipDetail,
    OriginalContributionsDetail,
    GenericDetail,
]

CRITERION_DETAIL_MODELS: Dict[str, type] = {
    "awards": AwardsDetail,
    "judging": JudgingDetail,
    "authorship": AuthorshipDetail,
    "original_contributions": OriginalContributionsDetail,
}


def parse_criterion_detail(criterion: str, raw: Optional[Dict[str, Any]]) -> CriterionDetail:
    """
    Parse one criterion's raw attribute bag into its typed record.

    Raises pydantic.ValidationError if a known field has the wrong shape,
    e.g. a fractional citation count.
    """
    model = CRITERION_DETAIL_MODELS.get(criterion, GenericDetail)
    return model.model_validate(raw or {})


# ============================================================================
# Petition schemas
# ============================================================================

class PetitionCreate(BaseModel):
    user_id: UUID
    status: PetitionStatus = PetitionStatus.draft


class PetitionUpdate(BaseModel):
    """Partial update; unset fields are left untouched."""
    status: Optional[PetitionStatus] = None
    client_name: Optional[str] = Field(None, max_length=255)
    visa_type: Optional[VisaType] = None
    petitioner_name: Optional[str] = Field(None, max_length=255)
    field_of_expertise: Optional[str] = None
    cv_file_id: Optional[UUID] = None
    job_offer_file_id: Optional[UUID] = None
    scholar_link: Optional[str] = None
    selected_criteria: Optional[List[str]] = None
    criteria_details: Optional[Dict[str, Dict[str, Any]]] = None
    refine_instructions: Optional[str] = None

    @model_validator(mode="after")
    def validate_criteria_details(self) -> "PetitionUpdate":
        if self.criteria_details:
            for criterion, raw in self.criteria_details.items():
                try:
                    parse_criterion_detail(criterion, raw)
                except ValidationError as e:
                    raise ValueError(f"invalid details for criterion {criterion}: {e.errors()[0]['msg']}")
        return self


class PetitionOut(BaseModel):
    id: UUID
    user_id: UUID
    status: PetitionStatus
    client_name: str
    visa_type: str
    petitioner_name: str
    field_of_expertise: str
    cv_file_id: Optional[UUID] = None
    job_offer_file_id: Optional[UUID] = None
    scholar_link: Optional[str] = None
    selected_criteria: List[str]
    criteria_details: Dict[str, Dict[str, Any]]
    generated_content: Optional[str] = None
    refine_instructions: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Generation job schemas
# ============================================================================

class GenerateDraftRequest(BaseModel):
    refine_instructions: Optional[str] = None


class GenerateDraftResponse(BaseModel):
    job_id: UUID
    status: GenerationJobStatus


class GenerationStep(BaseModel):
    name: str
    status: StepStatus = StepStatus.pending
    description: Optional[str] = None


class JobStatusResponse(BaseModel):
    id: UUID
    petition_id: UUID
    status: GenerationJobStatus
    current_step: Optional[str] = None
    steps: List[GenerationStep]
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# File schemas
# ============================================================================

class FileOut(BaseModel):
    id: UUID
    user_id: UUID
    petition_id: Optional[UUID] = None
    original_name: str
    content_type: str
    size_bytes: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
