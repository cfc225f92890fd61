'''
User lookups shared by authentication and the scheduling services.
'''
from typing import Annotated
from uuid import UUID
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import UserRole
from ..common.exceptions import NotFoundError
from ..common.logger import log

# Role -> concrete ORM class, so every fetch returns a fully loaded subclass.
ROLE_MODELS = {
    UserRole.ADMIN.value: db_models.Admins,
    UserRole.TEACHER.value: db_models.Teachers,
    UserRole.STUDENT.value: db_models.Students,
}


class UserService:
    """
    Base service for user-related database operations.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def _get_polymorphic_user(self, base_user: db_models.Users | None) -> db_models.Users | None:
        if not base_user:
            return None
        model = ROLE_MODELS.get(base_user.role)
        if model is None:
            return base_user
        result = await self.db.execute(select(model).filter(model.id == base_user.id))
        return result.scalars().first()

    async def get_user_by_email(self, email: str) -> db_models.Users | None:
        """
        Fetches the complete polymorphic user object
        (Admin, Teacher or Student) by email using an explicit two-step query.
        """
        log.info(f"Fetching full user profile for email: {email}")
        try:
            result = await self.db.execute(select(db_models.Users).filter(db_models.Users.email == email))
            return await self._get_polymorphic_user(result.scalars().first())
        except Exception as e:
            log.error(f"Database error fetching full user by email {email}: {e}", exc_info=True)
            raise

    async def _get_user_by_email_with_password(self, email: str) -> db_models.Users | None:
        """
        Internal lookup for the login flow. Returns the base row, password hash included.
        """
        result = await self.db.execute(select(db_models.Users).filter(db_models.Users.email == email))
        return result.scalars().first()

    async def get_teacher_in_organization(self, teacher_id: UUID, organization_id: UUID) -> db_models.Teachers:
        """Raises NotFoundError unless the teacher exists inside the organization."""
        stmt = select(db_models.Teachers).filter(
            db_models.Teachers.id == teacher_id,
            db_models.Teachers.organization_id == organization_id
        )
        teacher = (await self.db.execute(stmt)).scalars().first()
        if not teacher:
            log.warning(f"Teacher {teacher_id} not found in organization {organization_id}.")
            raise NotFoundError("Teacher not found.", details={"teacher_id": str(teacher_id)})
        return teacher

    async def get_student_in_organization(self, student_id: UUID, organization_id: UUID) -> db_models.Students:
        """Raises NotFoundError unless the student exists inside the organization."""
        stmt = select(db_models.Students).filter(
            db_models.Students.id == student_id,
            db_models.Students.organization_id == organization_id
        )
        student = (await self.db.execute(stmt)).scalars().first()
        if not student:
            log.warning(f"Student {student_id} not found in organization {organization_id}.")
            raise NotFoundError("Student not found.", details={"student_id": str(student_id)})
        return student
