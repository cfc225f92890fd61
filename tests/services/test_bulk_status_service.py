'''
testing services/bulk_status_service.py
'''
import pytest
from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_school_backend.database.db_enums import LessonStatus
from tutor_school_backend.models import lesson as lesson_models
from tutor_school_backend.services.bulk_status_service import BulkStatusService
from tests.database import factories


@pytest.mark.anyio
class TestBulkUpdateStatus:

    async def _lesson(self, db_session, organization, teacher, student, **kwargs):
        lesson = factories.LessonFactory(
            organization_id=organization.id,
            teacher_id=teacher.id,
            student_id=student.id,
            **kwargs
        )
        await db_session.flush()
        return lesson

    async def test_partial_success(
        self,
        bulk_status_service: BulkStatusService,
        lesson_service,
        db_session: AsyncSession,
        admin_user, organization, teacher, student
    ):
        """One scheduled and one completed lesson: only the first can be cancelled."""
        scheduled = await self._lesson(db_session, organization, teacher, student)
        completed = await self._lesson(
            db_session, organization, teacher, student,
            scheduled_at=scheduled.scheduled_at - timedelta(days=7), status=LessonStatus.COMPLETED.value
        )

        result = await bulk_status_service.bulk_update_status(
            lesson_models.BulkStatusUpdate(lesson_ids=[scheduled.id, completed.id], status=LessonStatus.CANCELLED),
            admin_user
        )

        assert result.updated == 1
        assert result.failed == 1
        assert result.errors[0].lesson_id == completed.id
        assert result.errors[0].title == completed.title
        assert result.errors[0].code == "STATE_INVALID"

        assert (await lesson_service.get_lesson(scheduled.id, admin_user)).status == LessonStatus.CANCELLED
        assert (await lesson_service.get_lesson(completed.id, admin_user)).status == LessonStatus.COMPLETED

    async def test_missing_lesson_reported(
        self,
        bulk_status_service: BulkStatusService,
        db_session: AsyncSession,
        admin_user, organization, teacher, student
    ):
        lesson = await self._lesson(db_session, organization, teacher, student)
        missing = factories.LessonFactory.build()

        result = await bulk_status_service.bulk_update_status(
            lesson_models.BulkStatusUpdate(lesson_ids=[missing.id, lesson.id], status=LessonStatus.CONFIRMED),
            admin_user
        )

        assert result.updated == 1
        assert result.errors[0].lesson_id == missing.id
        assert result.errors[0].title is None
        assert result.errors[0].code == "NOT_FOUND"

    async def test_duplicate_ids_processed_once(
        self,
        bulk_status_service: BulkStatusService,
        db_session: AsyncSession,
        admin_user, organization, teacher, student
    ):
        lesson = await self._lesson(db_session, organization, teacher, student)

        result = await bulk_status_service.bulk_update_status(
            lesson_models.BulkStatusUpdate(lesson_ids=[lesson.id, lesson.id], status=LessonStatus.COMPLETED),
            admin_user
        )
        assert result.updated == 1
        assert result.failed == 0

    async def test_limit_failure_does_not_stop_the_batch(
        self,
        bulk_status_service: BulkStatusService,
        db_session: AsyncSession,
        admin_user, organization, teacher, student, other_student
    ):
        factories.CancellationPolicyFactory(
            organization_id=organization.id, student_id=student.id,
            fee_enabled=False, limit_enabled=True, limit_count=0
        )
        limited = await self._lesson(db_session, organization, teacher, student)
        free = await self._lesson(
            db_session, organization, teacher, other_student,
            scheduled_at=limited.scheduled_at + timedelta(hours=2)
        )

        result = await bulk_status_service.bulk_update_status(
            lesson_models.BulkStatusUpdate(lesson_ids=[limited.id, free.id], status=LessonStatus.CANCELLED, reason="Holiday"),
            admin_user
        )
        assert result.updated == 1
        assert [e.code for e in result.errors] == ["LIMIT_EXCEEDED"]

    async def test_unexpected_error_does_not_abort_batch(
        self,
        bulk_status_service: BulkStatusService,
        lesson_service,
        db_session: AsyncSession,
        admin_user, organization, teacher, student,
        mock_notifications
    ):
        """A notification failure rolls back only that lesson's cancellation."""
        first = await self._lesson(db_session, organization, teacher, student)
        second = await self._lesson(
            db_session, organization, teacher, student, scheduled_at=first.scheduled_at + timedelta(days=1)
        )
        mock_notifications.lesson_cancelled.side_effect = [RuntimeError("mail server down"), None]

        result = await bulk_status_service.bulk_update_status(
            lesson_models.BulkStatusUpdate(lesson_ids=[first.id, second.id], status=LessonStatus.CANCELLED),
            admin_user
        )

        assert result.updated == 1
        assert result.failed == 1
        assert result.errors[0].lesson_id == first.id
        assert result.errors[0].title == first.title
        assert result.errors[0].code == "INTERNAL_ERROR"
        assert result.errors[0].error == "mail server down"

        assert (await lesson_service.get_lesson(first.id, admin_user)).status == LessonStatus.SCHEDULED
        assert (await lesson_service.get_lesson(second.id, admin_user)).status == LessonStatus.CANCELLED
