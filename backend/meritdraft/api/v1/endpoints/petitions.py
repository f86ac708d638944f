"""
Petition endpoints.

POST   /petitions                 → create an empty draft petition
GET    /petitions?user_id=...     → list a user's petitions
GET    /petitions/{petition_id}   → petition detail
PATCH  /petitions/{petition_id}   → partial update (intake + strategy)
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from meritdraft.api.v1.deps import get_petition_service
from meritdraft.db.models import PetitionStatus
from meritdraft.db.schemas import PetitionCreate, PetitionOut, PetitionUpdate
from meritdraft.services.petition_service import PetitionService

router = APIRouter()


@router.post("", response_model=PetitionOut, status_code=status.HTTP_201_CREATED)
def create_petition(
    request: PetitionCreate,
    service: PetitionService = Depends(get_petition_service),
):
    return service.create_petition(request.user_id, request.status)


@router.get("", response_model=List[PetitionOut])
def list_petitions(
    user_id: UUID,
    status_filter: Optional[PetitionStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: PetitionService = Depends(get_petition_service),
):
    return service.list_petitions(user_id, status=status_filter, limit=limit, offset=offset)


@router.get("/{petition_id}", response_model=PetitionOut)
def get_petition(
    petition_id: UUID,
    service: PetitionService = Depends(get_petition_service),
):
    return service.get_petition(petition_id)


@router.patch("/{petition_id}", response_model=PetitionOut)
def update_petition(
    petition_id: UUID,
    changes: PetitionUpdate,
    service: PetitionService = Depends(get_petition_service),
):
    """Only fields present in the body are changed."""
    return service.update_petition(petition_id, changes)
