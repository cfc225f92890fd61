'''
Double-booking detection for teachers and students.
'''
from datetime import datetime, timedelta
from typing import Annotated, Optional
from uuid import UUID
from fastapi import Depends
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.engine import get_db_session
from ..database import models as db_models
from ..models import lesson as lesson_models
from ..core.cancellation_fee import ensure_utc
from ..core.lesson_state import BLOCKING_STATUSES
from ..common.config import settings
from ..common.logger import log


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open intervals: touching end-to-start is not an overlap."""
    return a_start < b_end and b_start < a_end


class ConflictService:
    """
    Finds lessons that would collide with a proposed time slot.

    Callers that go on to write must call `lock_participants` first and keep the
    same transaction open until the write is flushed, otherwise two requests can
    both pass the check and double-book.
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    async def lock_participants(self, *user_ids: UUID) -> None:
        """
        Takes row locks on the given users (teacher, student) in a stable id order.
        Every writer that books a teacher or a student goes through here, so the
        check-then-write sequence is serialized per teacher and per student.
        """
        ids = sorted({user_id for user_id in user_ids if user_id is not None}, key=str)
        if not ids:
            return
        stmt = select(db_models.Users.id).filter(
            db_models.Users.id.in_(ids)
        ).order_by(db_models.Users.id).with_for_update()
        await self.db.execute(stmt)

    async def check_conflicts(
        self,
        organization_id: UUID,
        teacher_id: UUID,
        student_id: UUID,
        scheduled_at: datetime,
        duration_minutes: int,
        exclude_lesson_id: Optional[UUID] = None
    ) -> lesson_models.ConflictCheckResult:
        """
        Returns the blocking lessons of the teacher and of the student that overlap
        [scheduled_at, scheduled_at + duration_minutes). The two lists are independent:
        a lesson with both the same teacher and the same student shows up in both.
        """
        start = ensure_utc(scheduled_at)
        end = start + timedelta(minutes=duration_minutes)
        # No lesson is longer than this, so anything starting earlier cannot reach `start`.
        earliest_start = start - timedelta(minutes=settings.MAX_LESSON_DURATION_MINUTES)

        stmt = select(db_models.Lessons).options(
            selectinload(db_models.Lessons.teacher),
            selectinload(db_models.Lessons.student)
        ).filter(
            db_models.Lessons.organization_id == organization_id,
            or_(db_models.Lessons.teacher_id == teacher_id, db_models.Lessons.student_id == student_id),
            db_models.Lessons.status.in_([s.value for s in BLOCKING_STATUSES]),
            db_models.Lessons.scheduled_at < end,
            db_models.Lessons.scheduled_at > earliest_start
        ).order_by(db_models.Lessons.scheduled_at)

        if exclude_lesson_id is not None:
            stmt = stmt.filter(db_models.Lessons.id != exclude_lesson_id)

        try:
            candidates = (await self.db.execute(stmt)).scalars().all()
        except Exception as e:
            log.error(f"Database error checking conflicts for teacher {teacher_id} / student {student_id}: {e}", exc_info=True)
            raise

        teacher_conflicts, student_conflicts = [], []
        for lesson in candidates:
            lesson_start = ensure_utc(lesson.scheduled_at)
            lesson_end = lesson_start + timedelta(minutes=lesson.duration_minutes)
            if not intervals_overlap(start, end, lesson_start, lesson_end):
                continue
            if lesson.teacher_id == teacher_id:
                teacher_conflicts.append(self._to_conflict(lesson, counterpart=lesson.student))
            if lesson.student_id == student_id:
                student_conflicts.append(self._to_conflict(lesson, counterpart=lesson.teacher))

        has_conflicts = bool(teacher_conflicts or student_conflicts)
        if has_conflicts:
            log.info(
                f"Slot {start.isoformat()} (+{duration_minutes}m) conflicts: "
                f"{len(teacher_conflicts)} for teacher {teacher_id}, {len(student_conflicts)} for student {student_id}."
            )
        return lesson_models.ConflictCheckResult(
            has_conflicts=has_conflicts,
            teacher_conflicts=teacher_conflicts,
            student_conflicts=student_conflicts
        )

    @staticmethod
    def _to_conflict(lesson: db_models.Lessons, counterpart: db_models.Users) -> lesson_models.ConflictingLesson:
        return lesson_models.ConflictingLesson(
            id=lesson.id,
            title=lesson.title,
            scheduled_at=ensure_utc(lesson.scheduled_at),
            duration_minutes=lesson.duration_minutes,
            status=lesson.status,
            counterpart_name=counterpart.full_name
        )
