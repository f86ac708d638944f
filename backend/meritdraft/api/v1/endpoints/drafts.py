"""
Draft generation endpoints.

POST   /petitions/{petition_id}/generate      → create job (pending), run it in the background
GET    /petitions/{petition_id}/jobs/latest   → most recent job for the petition
GET    /jobs/{job_id}                         → status, steps, error
"""

from __future__ import annotations

from typing import Callable, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from meritdraft.api.v1.deps import get_draft_service, get_job_dispatcher
from meritdraft.core.logger import logger
from meritdraft.db.schemas import GenerateDraftRequest, GenerateDraftResponse, JobStatusResponse
from meritdraft.services.draft_service import DraftService

router = APIRouter()


@router.post(
    "/petitions/{petition_id}/generate",
    response_model=GenerateDraftResponse,
    summary="Start draft generation for a petition",
    description=(
        "Validates the petition, records a pending generation job and hands it to the "
        "background scheduler. Poll GET /jobs/{job_id} for progress."
    ),
    status_code=status.HTTP_202_ACCEPTED,
)
def generate_draft(
    petition_id: UUID,
    request: Optional[GenerateDraftRequest] = None,
    service: DraftService = Depends(get_draft_service),
    dispatch: Callable[[UUID], bool] = Depends(get_job_dispatcher),
) -> GenerateDraftResponse:
    refine_instructions = request.refine_instructions if request else None
    job = service.create_job(petition_id, refine_instructions)

    try:
        dispatch(job.id)
    except RuntimeError as exc:
        logger.error("Could not schedule job %s: %s", job.id, exc)
        service.abandon_job(job.id, "could not schedule draft generation")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Draft generation is temporarily unavailable",
        ) from exc

    return GenerateDraftResponse(job_id=job.id, status=job.status)


@router.get(
    "/petitions/{petition_id}/jobs/latest",
    response_model=JobStatusResponse,
    summary="Get the latest generation job for a petition",
)
def get_latest_job(
    petition_id: UUID,
    service: DraftService = Depends(get_draft_service),
):
    return service.get_latest_job(petition_id)


@router.get(
    "/jobs/{job_id}",
    response_model=JobStatusResponse,
    summary="Get generation job status",
    description="Poll this endpoint to track the progress of a draft generation job.",
)
def get_job_status(
    job_id: UUID,
    service: DraftService = Depends(get_draft_service),
):
    return service.get_job_status(job_id)
