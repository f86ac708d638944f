# meritdraft/services/petition_service.py
"""
Petition intake: create, read, partial update and list.
"""

from typing import List, Optional
from uuid import UUID

from meritdraft.core.logger import logger
from meritdraft.db.models import Petition, PetitionStatus, VisaType
from meritdraft.db.schemas import PetitionUpdate
from meritdraft.utils.exceptions import PetitionNotFoundError


class PetitionService:
    """
    Service layer for petition business logic.
    """

    def __init__(self, petitions):
        self.petitions = petitions

    def create_petition(self, user_id: UUID, status: PetitionStatus = PetitionStatus.draft) -> Petition:
        petition = Petition(
            user_id=user_id,
            status=status,
            client_name="",
            visa_type=VisaType.o1a.value,
            petitioner_name="",
            field_of_expertise="",
            selected_criteria=[],
            criteria_details={},
        )
        petition = self.petitions.create(petition)
        logger.info("Petition created: %s (user %s)", petition.id, user_id)
        return petition

    def get_petition(self, petition_id: UUID) -> Petition:
        petition = self.petitions.get(petition_id)
        if petition is None:
            raise PetitionNotFoundError(str(petition_id))
        return petition

    def update_petition(self, petition_id: UUID, changes: PetitionUpdate) -> Petition:
        """
        Apply the fields set on ``changes``. Criteria details were already
        validated per criterion when ``changes`` was parsed.
        """
        petition = self.get_petition(petition_id)
        data = changes.model_dump(exclude_unset=True)

        if "selected_criteria" in data and data["selected_criteria"] is not None:
            # Ordered set: keep first occurrence.
            data["selected_criteria"] = list(dict.fromkeys(data["selected_criteria"]))
        if data.get("visa_type") is not None:
            data["visa_type"] = changes.visa_type.value

        for key, value in data.items():
            if value is None and key in ("client_name", "petitioner_name", "field_of_expertise"):
                value = ""
            if value is None and key in ("selected_criteria", "criteria_details", "status", "visa_type"):
                continue
            setattr(petition, key, value)

        petition = self.petitions.update(petition)
        logger.info("Petition updated: %s (%s)", petition.id, ", ".join(sorted(data)) or "no changes")
        return petition

    def list_petitions(
        self,
        user_id: UUID,
        status: Optional[PetitionStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Petition]:
        return self.petitions.list_by_user(user_id, status=status, limit=limit, offset=offset)

    def attach_cv_file(self, petition: Petition, file_id: UUID) -> bool:
        """Point the petition's CV at ``file_id`` unless it already has one."""
        if petition.cv_file_id is not None:
            return False
        petition.cv_file_id = file_id
        self.petitions.update(petition)
        logger.info("Petition %s: cv_file_id set to %s", petition.id, file_id)
        return True
