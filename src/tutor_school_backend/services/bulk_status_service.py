'''
Applies one status change to many lessons, one savepoint per lesson.
'''
from typing import Annotated
from uuid import UUID
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..models import lesson as lesson_models
from ..common.exceptions import SchedulingError, INTERNAL_ERROR_CODE
from ..common.logger import log
from .lesson_service import LessonService


class BulkStatusService:
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ):
        self.db = db
        self.lesson_service = lesson_service

    async def _lookup_title(self, lesson_id: UUID, organization_id: UUID) -> str | None:
        stmt = select(db_models.Lessons.title).filter(
            db_models.Lessons.id == lesson_id,
            db_models.Lessons.organization_id == organization_id
        )
        return (await self.db.execute(stmt)).scalars().first()

    async def bulk_update_status(
        self,
        data: lesson_models.BulkStatusUpdate,
        current_user: db_models.Users
    ) -> lesson_models.BulkStatusResult:
        """
        Runs each lesson through the normal lifecycle validation independently.
        A lesson that fails for any reason is rolled back to its savepoint and
        reported; the rest of the batch carries on.
        """
        log.info(f"User {current_user.id} bulk-updating {len(data.lesson_ids)} lessons to {data.status.value}.")
        updated = 0
        errors: list[lesson_models.BulkStatusError] = []

        # Duplicated ids are processed once.
        for lesson_id in dict.fromkeys(data.lesson_ids):
            try:
                async with self.db.begin_nested():
                    await self.lesson_service.change_status(lesson_id, data.status, current_user, reason=data.reason)
                updated += 1
            except SchedulingError as e:
                errors.append(lesson_models.BulkStatusError(
                    lesson_id=lesson_id,
                    title=await self._lookup_title(lesson_id, current_user.organization_id),
                    error=e.message,
                    code=e.kind.value
                ))
            except Exception as e:
                log.error(f"Unexpected error moving lesson {lesson_id} to {data.status.value} in bulk: {e}", exc_info=True)
                errors.append(lesson_models.BulkStatusError(
                    lesson_id=lesson_id,
                    title=await self._lookup_title(lesson_id, current_user.organization_id),
                    error=str(e) or type(e).__name__,
                    code=INTERNAL_ERROR_CODE
                ))

        log.info(f"Bulk status update to {data.status.value}: {updated} updated, {len(errors)} failed.")
        return lesson_models.BulkStatusResult(updated=updated, failed=len(errors), errors=errors)
