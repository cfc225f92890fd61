'''
API endpoints for teacher substitutions.
'''
from datetime import datetime
from typing import Annotated, Optional, List
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Response, status

from ..database import models as db_models
from ..models import substitution as substitution_models
from ..services.security import verify_token_and_get_user
from ..services.substitution_service import SubstitutionService


class SubstitutionsAPI:
    """
    A class to encapsulate CRUD endpoints for substitutions.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/substitutions",
            tags=["Substitutions"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_substitutions,
                methods=["GET"],
                response_model=List[substitution_models.SubstitutionRead])
        self.router.add_api_route(
                "/",
                self.create_substitution,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=substitution_models.SubstitutionRead)
        self.router.add_api_route(
                "/lesson/{lesson_id}",
                self.get_substitution_by_lesson,
                methods=["GET"],
                response_model=substitution_models.SubstitutionRead)
        self.router.add_api_route(
                "/{substitution_id}",
                self.get_substitution,
                methods=["GET"],
                response_model=substitution_models.SubstitutionRead)
        self.router.add_api_route(
                "/{substitution_id}",
                self.update_substitution,
                methods=["PATCH"],
                response_model=substitution_models.SubstitutionRead)
        self.router.add_api_route(
                "/{substitution_id}",
                self.delete_substitution,
                methods=["DELETE"],
                status_code=status.HTTP_204_NO_CONTENT)

    async def list_substitutions(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        substitution_service: Annotated[SubstitutionService, Depends(SubstitutionService)],
        original_teacher_id: Optional[UUID] = None,
        substitute_teacher_id: Optional[UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Annotated[int, Query(ge=1, le=200)] = 50,
        offset: Annotated[int, Query(ge=0)] = 0
    ):
        return await substitution_service.list_substitutions(
            current_user,
            original_teacher_id=original_teacher_id,
            substitute_teacher_id=substitute_teacher_id,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset
        )

    async def create_substitution(
        self,
        data: substitution_models.SubstitutionCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        substitution_service: Annotated[SubstitutionService, Depends(SubstitutionService)]
    ):
        """
        Assigns a substitute teacher to one lesson. A lesson can have at most one.
        """
        return await substitution_service.create_substitution(data, current_user)

    async def get_substitution_by_lesson(
        self,
        lesson_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        substitution_service: Annotated[SubstitutionService, Depends(SubstitutionService)]
    ):
        return await substitution_service.get_substitution_by_lesson(lesson_id, current_user)

    async def get_substitution(
        self,
        substitution_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        substitution_service: Annotated[SubstitutionService, Depends(SubstitutionService)]
    ):
        return await substitution_service.get_substitution(substitution_id, current_user)

    async def update_substitution(
        self,
        substitution_id: UUID,
        data: substitution_models.SubstitutionUpdate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        substitution_service: Annotated[SubstitutionService, Depends(SubstitutionService)]
    ):
        return await substitution_service.update_substitution(substitution_id, data, current_user)

    async def delete_substitution(
        self,
        substitution_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        substitution_service: Annotated[SubstitutionService, Depends(SubstitutionService)]
    ):
        """
        Removes the substitution. The lesson goes back to its original teacher.
        """
        await substitution_service.delete_substitution(substitution_id, current_user)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


substitutions_api = SubstitutionsAPI()
router = substitutions_api.router
