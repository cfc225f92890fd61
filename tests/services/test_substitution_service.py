'''
testing services/substitution_service.py
'''
import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_school_backend.database import models as db_models
from tutor_school_backend.models import substitution as substitution_models
from tutor_school_backend.services.substitution_service import SubstitutionService
from tutor_school_backend.common.exceptions import SchedulingValidationError, DuplicateError, NotFoundError
from tests.database import factories

UTC = timezone.utc


@pytest.fixture
async def lesson(db_session: AsyncSession, organization, teacher, student) -> db_models.Lessons:
    lesson = factories.LessonFactory(
        organization_id=organization.id,
        teacher_id=teacher.id,
        student_id=student.id
    )
    await db_session.flush()
    return lesson


def substitution_payload(lesson, original, substitute, **overrides) -> substitution_models.SubstitutionCreate:
    data = {
        "lesson_id": lesson.id,
        "original_teacher_id": original.id,
        "substitute_teacher_id": substitute.id,
        "reason": "Conference",
    }
    data.update(overrides)
    return substitution_models.SubstitutionCreate(**data)


@pytest.mark.anyio
class TestCreateSubstitution:

    async def test_substitute_becomes_effective_teacher(
        self,
        substitution_service: SubstitutionService,
        lesson_service,
        admin_user, lesson, teacher, substitute_teacher,
        mock_notifications
    ):
        created = await substitution_service.create_substitution(
            substitution_payload(lesson, teacher, substitute_teacher), admin_user
        )

        assert created.lesson_id == lesson.id
        assert created.lesson_title == lesson.title
        assert created.original_teacher.id == teacher.id
        assert created.substitute_teacher.id == substitute_teacher.id
        assert created.reason == "Conference"
        mock_notifications.substitution_created.assert_awaited_once()

        lesson_view = await lesson_service.get_lesson(lesson.id, admin_user)
        assert lesson_view.teacher_id == teacher.id
        assert lesson_view.effective_teacher_id == substitute_teacher.id
        assert lesson_view.has_substitution is True

    async def test_same_teacher_rejected(
        self,
        substitution_service: SubstitutionService,
        admin_user, lesson, teacher,
        mock_notifications
    ):
        with pytest.raises(SchedulingValidationError):
            await substitution_service.create_substitution(substitution_payload(lesson, teacher, teacher), admin_user)
        mock_notifications.substitution_created.assert_not_awaited()

    async def test_original_must_be_lesson_teacher(
        self,
        substitution_service: SubstitutionService,
        admin_user, lesson, teacher, substitute_teacher
    ):
        with pytest.raises(SchedulingValidationError):
            await substitution_service.create_substitution(
                substitution_payload(lesson, substitute_teacher, teacher), admin_user
            )

    async def test_substitute_must_be_a_teacher(
        self,
        substitution_service: SubstitutionService,
        admin_user, lesson, teacher, other_student
    ):
        with pytest.raises(NotFoundError):
            await substitution_service.create_substitution(
                substitution_payload(lesson, teacher, other_student), admin_user
            )

    async def test_second_substitution_is_duplicate(
        self,
        substitution_service: SubstitutionService,
        db_session: AsyncSession,
        admin_user, organization, lesson, teacher, substitute_teacher
    ):
        await substitution_service.create_substitution(substitution_payload(lesson, teacher, substitute_teacher), admin_user)
        third_teacher = factories.TeacherFactory(organization_id=organization.id)
        await db_session.flush()

        with pytest.raises(DuplicateError):
            await substitution_service.create_substitution(substitution_payload(lesson, teacher, third_teacher), admin_user)

    async def test_unknown_lesson(
        self,
        substitution_service: SubstitutionService,
        admin_user, teacher, substitute_teacher
    ):
        missing = factories.LessonFactory.build()
        with pytest.raises(NotFoundError):
            await substitution_service.create_substitution(
                substitution_payload(missing, teacher, substitute_teacher), admin_user
            )


@pytest.mark.anyio
class TestUpdateAndDelete:

    async def test_update_reason_and_substitute(
        self,
        substitution_service: SubstitutionService,
        db_session: AsyncSession,
        admin_user, organization, lesson, teacher, substitute_teacher,
        mock_notifications
    ):
        created = await substitution_service.create_substitution(
            substitution_payload(lesson, teacher, substitute_teacher), admin_user
        )
        replacement = factories.TeacherFactory(organization_id=organization.id)
        await db_session.flush()

        updated = await substitution_service.update_substitution(
            created.id,
            substitution_models.SubstitutionUpdate(substitute_teacher_id=replacement.id, notes="Room 4"),
            admin_user
        )
        assert updated.substitute_teacher_id == replacement.id
        assert updated.notes == "Room 4"
        assert updated.reason == "Conference"
        mock_notifications.substitution_updated.assert_awaited_once()

    async def test_update_to_original_teacher_rejected(
        self,
        substitution_service: SubstitutionService,
        admin_user, lesson, teacher, substitute_teacher
    ):
        created = await substitution_service.create_substitution(
            substitution_payload(lesson, teacher, substitute_teacher), admin_user
        )
        with pytest.raises(SchedulingValidationError):
            await substitution_service.update_substitution(
                created.id, substitution_models.SubstitutionUpdate(substitute_teacher_id=teacher.id), admin_user
            )

    async def test_delete_reverts_lesson(
        self,
        substitution_service: SubstitutionService,
        lesson_service,
        admin_user, lesson, teacher, substitute_teacher,
        mock_notifications
    ):
        created = await substitution_service.create_substitution(
            substitution_payload(lesson, teacher, substitute_teacher), admin_user
        )

        await substitution_service.delete_substitution(created.id, admin_user)

        mock_notifications.substitution_deleted.assert_awaited_once()
        lesson_view = await lesson_service.get_lesson(lesson.id, admin_user)
        assert lesson_view.effective_teacher_id == teacher.id
        assert lesson_view.has_substitution is False
        with pytest.raises(NotFoundError):
            await substitution_service.get_substitution(created.id, admin_user)

    async def test_delete_unknown(
        self,
        substitution_service: SubstitutionService,
        admin_user
    ):
        missing = factories.SubstitutionFactory.build()
        with pytest.raises(NotFoundError):
            await substitution_service.delete_substitution(missing.id, admin_user)


@pytest.mark.anyio
class TestReads:

    async def test_get_by_lesson(
        self,
        substitution_service: SubstitutionService,
        admin_user, lesson, teacher, substitute_teacher
    ):
        with pytest.raises(NotFoundError):
            await substitution_service.get_substitution_by_lesson(lesson.id, admin_user)

        created = await substitution_service.create_substitution(
            substitution_payload(lesson, teacher, substitute_teacher), admin_user
        )
        found = await substitution_service.get_substitution_by_lesson(lesson.id, admin_user)
        assert found.id == created.id

    async def test_list_filters(
        self,
        substitution_service: SubstitutionService,
        db_session: AsyncSession,
        admin_user, organization, lesson, teacher, substitute_teacher, student
    ):
        later_lesson = factories.LessonFactory(
            organization_id=organization.id,
            teacher_id=substitute_teacher.id,
            student_id=student.id,
            scheduled_at=lesson.scheduled_at + timedelta(days=7)
        )
        await db_session.flush()

        first = await substitution_service.create_substitution(
            substitution_payload(lesson, teacher, substitute_teacher), admin_user
        )
        second = await substitution_service.create_substitution(
            substitution_payload(later_lesson, substitute_teacher, teacher), admin_user
        )

        everything = await substitution_service.list_substitutions(admin_user)
        # newest lesson first
        assert [s.id for s in everything] == [second.id, first.id]

        covering = await substitution_service.list_substitutions(admin_user, substitute_teacher_id=substitute_teacher.id)
        assert [s.id for s in covering] == [first.id]

        in_window = await substitution_service.list_substitutions(
            admin_user,
            date_from=lesson.scheduled_at + timedelta(days=1),
            date_to=datetime(2025, 12, 31, tzinfo=UTC)
        )
        assert [s.id for s in in_window] == [second.id]
