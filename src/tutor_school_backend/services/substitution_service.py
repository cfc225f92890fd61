'''
Teacher substitutions: one alternate teacher for one lesson occurrence.

A substitution never edits the lesson itself. The teacher actually running a
lesson is derived on read (Lessons.effective_teacher_id), so deleting the
substitution is all it takes to revert.
'''
from datetime import datetime
from typing import Optional, Annotated
from uuid import UUID
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.engine import get_db_session
from ..database import models as db_models
from ..models import substitution as substitution_models
from ..models import user as user_models
from ..core.cancellation_fee import ensure_utc
from ..common.exceptions import SchedulingError, SchedulingValidationError, NotFoundError, DuplicateError
from ..common.logger import log
from .user_service import UserService
from .collaborators import NotificationService, get_notification_service


class SubstitutionService:
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        user_service: Annotated[UserService, Depends(UserService)],
        notifications: Annotated[NotificationService, Depends(get_notification_service)]
    ):
        self.db = db
        self.user_service = user_service
        self.notifications = notifications

    # --- Internal Fetchers ---

    def _substitution_query(self):
        return select(db_models.Substitutions).options(
            selectinload(db_models.Substitutions.lesson),
            selectinload(db_models.Substitutions.original_teacher),
            selectinload(db_models.Substitutions.substitute_teacher)
        ).execution_options(populate_existing=True)

    async def _get_substitution_internal(self, substitution_id: UUID, organization_id: UUID) -> db_models.Substitutions:
        stmt = self._substitution_query().filter(
            db_models.Substitutions.id == substitution_id,
            db_models.Substitutions.organization_id == organization_id
        )
        substitution = (await self.db.execute(stmt)).scalars().first()
        if not substitution:
            raise NotFoundError("Substitution not found.", details={"substitution_id": str(substitution_id)})
        return substitution

    async def _find_by_lesson(self, lesson_id: UUID) -> Optional[db_models.Substitutions]:
        stmt = self._substitution_query().filter(db_models.Substitutions.lesson_id == lesson_id)
        return (await self.db.execute(stmt)).scalars().first()

    async def _get_lesson(self, lesson_id: UUID, organization_id: UUID) -> db_models.Lessons:
        stmt = select(db_models.Lessons).filter(
            db_models.Lessons.id == lesson_id,
            db_models.Lessons.organization_id == organization_id
        )
        lesson = (await self.db.execute(stmt)).scalars().first()
        if not lesson:
            raise NotFoundError("Lesson not found.", details={"lesson_id": str(lesson_id)})
        return lesson

    # --- Writes ---

    async def create_substitution(
        self,
        data: substitution_models.SubstitutionCreate,
        current_user: db_models.Users
    ) -> substitution_models.SubstitutionRead:
        log.info(f"User {current_user.id} assigning substitute {data.substitute_teacher_id} to lesson {data.lesson_id}.")
        organization_id = current_user.organization_id
        try:
            if data.original_teacher_id == data.substitute_teacher_id:
                raise SchedulingValidationError(
                    "The substitute teacher cannot be the same as the original teacher.",
                    details={"teacher_id": str(data.original_teacher_id)}
                )

            lesson = await self._get_lesson(data.lesson_id, organization_id)
            if lesson.teacher_id != data.original_teacher_id:
                raise SchedulingValidationError(
                    "original_teacher_id must be the lesson's teacher.",
                    details={"lesson_teacher_id": str(lesson.teacher_id), "original_teacher_id": str(data.original_teacher_id)}
                )
            await self.user_service.get_teacher_in_organization(data.original_teacher_id, organization_id)
            await self.user_service.get_teacher_in_organization(data.substitute_teacher_id, organization_id)

            if await self._find_by_lesson(lesson.id) is not None:
                raise DuplicateError("A substitution already exists for this lesson.", details={"lesson_id": str(lesson.id)})

            substitution = db_models.Substitutions(
                organization_id=organization_id,
                lesson_id=lesson.id,
                original_teacher_id=data.original_teacher_id,
                substitute_teacher_id=data.substitute_teacher_id,
                reason=data.reason,
                notes=data.notes
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(substitution)
                    await self.db.flush()
            except IntegrityError:
                # Lost the race against a concurrent create for the same lesson.
                raise DuplicateError("A substitution already exists for this lesson.", details={"lesson_id": str(lesson.id)})

            substitution = await self._get_substitution_internal(substitution.id, organization_id)
            await self.notifications.substitution_created(substitution)
            log.info(f"Substitution {substitution.id} created for lesson {lesson.id}.")
            return self._format_substitution_for_api(substitution)
        except SchedulingError as e:
            log.warning(f"Substitution for lesson {data.lesson_id} refused ({e.kind.value}): {e.message}")
            raise
        except Exception as e:
            log.error(f"Unexpected error creating substitution for lesson {data.lesson_id}: {e}", exc_info=True)
            raise

    async def update_substitution(
        self,
        substitution_id: UUID,
        data: substitution_models.SubstitutionUpdate,
        current_user: db_models.Users
    ) -> substitution_models.SubstitutionRead:
        log.info(f"User {current_user.id} updating substitution {substitution_id}.")
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise SchedulingValidationError("No fields to update.")
        try:
            substitution = await self._get_substitution_internal(substitution_id, current_user.organization_id)

            if "substitute_teacher_id" in changes:
                new_substitute = changes["substitute_teacher_id"]
                if new_substitute is None:
                    raise SchedulingValidationError("substitute_teacher_id cannot be null.")
                if new_substitute == substitution.original_teacher_id:
                    raise SchedulingValidationError(
                        "The substitute teacher cannot be the same as the original teacher.",
                        details={"teacher_id": str(new_substitute)}
                    )
                await self.user_service.get_teacher_in_organization(new_substitute, current_user.organization_id)
                substitution.substitute_teacher_id = new_substitute
            if "reason" in changes:
                substitution.reason = changes["reason"]
            if "notes" in changes:
                substitution.notes = changes["notes"]

            await self.db.flush()
            substitution = await self._get_substitution_internal(substitution.id, current_user.organization_id)
            await self.notifications.substitution_updated(substitution)
            return self._format_substitution_for_api(substitution)
        except SchedulingError as e:
            log.warning(f"Update of substitution {substitution_id} refused ({e.kind.value}): {e.message}")
            raise
        except Exception as e:
            log.error(f"Unexpected error updating substitution {substitution_id}: {e}", exc_info=True)
            raise

    async def delete_substitution(self, substitution_id: UUID, current_user: db_models.Users) -> None:
        """Removes the substitution only. The lesson falls back to its original teacher."""
        log.info(f"User {current_user.id} deleting substitution {substitution_id}.")
        try:
            substitution = await self._get_substitution_internal(substitution_id, current_user.organization_id)
            await self.db.delete(substitution)
            await self.db.flush()
            await self.notifications.substitution_deleted(substitution)
            log.info(f"Substitution {substitution_id} deleted; lesson {substitution.lesson_id} reverted to teacher {substitution.original_teacher_id}.")
        except SchedulingError:
            raise
        except Exception as e:
            log.error(f"Unexpected error deleting substitution {substitution_id}: {e}", exc_info=True)
            raise

    # --- Reads ---

    async def get_substitution(self, substitution_id: UUID, current_user: db_models.Users) -> substitution_models.SubstitutionRead:
        substitution = await self._get_substitution_internal(substitution_id, current_user.organization_id)
        return self._format_substitution_for_api(substitution)

    async def get_substitution_by_lesson(self, lesson_id: UUID, current_user: db_models.Users) -> substitution_models.SubstitutionRead:
        lesson = await self._get_lesson(lesson_id, current_user.organization_id)
        substitution = await self._find_by_lesson(lesson.id)
        if substitution is None:
            raise NotFoundError("This lesson has no substitution.", details={"lesson_id": str(lesson_id)})
        return self._format_substitution_for_api(substitution)

    async def list_substitutions(
        self,
        current_user: db_models.Users,
        original_teacher_id: Optional[UUID] = None,
        substitute_teacher_id: Optional[UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0
    ) -> list[substitution_models.SubstitutionRead]:
        """Filters on the teachers and on the lesson's scheduled time, newest lessons first."""
        log.info(f"User {current_user.id} listing substitutions.")
        stmt = self._substitution_query().join(db_models.Substitutions.lesson).filter(
            db_models.Substitutions.organization_id == current_user.organization_id
        )
        if original_teacher_id is not None:
            stmt = stmt.filter(db_models.Substitutions.original_teacher_id == original_teacher_id)
        if substitute_teacher_id is not None:
            stmt = stmt.filter(db_models.Substitutions.substitute_teacher_id == substitute_teacher_id)
        if date_from is not None:
            stmt = stmt.filter(db_models.Lessons.scheduled_at >= ensure_utc(date_from))
        if date_to is not None:
            stmt = stmt.filter(db_models.Lessons.scheduled_at <= ensure_utc(date_to))
        stmt = stmt.order_by(db_models.Lessons.scheduled_at.desc()).limit(limit).offset(offset)

        try:
            substitutions = (await self.db.execute(stmt)).scalars().all()
            return [self._format_substitution_for_api(s) for s in substitutions]
        except Exception as e:
            log.error(f"Database error listing substitutions for user {current_user.id}: {e}", exc_info=True)
            raise

    # --- Formatting ---

    @staticmethod
    def _format_substitution_for_api(substitution: db_models.Substitutions) -> substitution_models.SubstitutionRead:
        return substitution_models.SubstitutionRead(
            id=substitution.id,
            lesson_id=substitution.lesson_id,
            original_teacher_id=substitution.original_teacher_id,
            substitute_teacher_id=substitution.substitute_teacher_id,
            reason=substitution.reason,
            notes=substitution.notes,
            lesson_title=substitution.lesson.title,
            lesson_scheduled_at=ensure_utc(substitution.lesson.scheduled_at),
            original_teacher=user_models.UserRead.model_validate(substitution.original_teacher),
            substitute_teacher=user_models.UserRead.model_validate(substitution.substitute_teacher)
        )
