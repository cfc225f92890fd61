import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import uuid4

from tutor_school_backend.database import models as db_models
from tests.database import factories


@pytest.fixture
async def lesson(db_session: AsyncSession, organization, teacher, student) -> db_models.Lessons:
    lesson = factories.LessonFactory(
        organization_id=organization.id,
        teacher_id=teacher.id,
        student_id=student.id
    )
    await db_session.flush()
    return lesson


def substitution_json(lesson, original, substitute) -> dict:
    return {
        "lesson_id": str(lesson.id),
        "original_teacher_id": str(original.id),
        "substitute_teacher_id": str(substitute.id),
        "reason": "Sick leave",
    }


@pytest.mark.anyio
class TestSubstitutionsAPI:

    async def test_create_and_read_back(self, client: AsyncClient, lesson, teacher, substitute_teacher):
        response = await client.post("/substitutions/", json=substitution_json(lesson, teacher, substitute_teacher))
        assert response.status_code == 201, response.json()
        created = response.json()
        assert created["substitute_teacher"]["id"] == str(substitute_teacher.id)

        by_lesson = await client.get(f"/substitutions/lesson/{lesson.id}")
        assert by_lesson.status_code == 200, by_lesson.json()
        assert by_lesson.json()["id"] == created["id"]

        lesson_view = await client.get(f"/lessons/{lesson.id}")
        assert lesson_view.json()["effective_teacher_id"] == str(substitute_teacher.id)

    async def test_same_teacher_is_validation_error(self, client: AsyncClient, lesson, teacher):
        response = await client.post("/substitutions/", json=substitution_json(lesson, teacher, teacher))
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION"

    async def test_duplicate(self, client: AsyncClient, db_session: AsyncSession, organization, lesson, teacher, substitute_teacher):
        first = await client.post("/substitutions/", json=substitution_json(lesson, teacher, substitute_teacher))
        assert first.status_code == 201, first.json()

        another = factories.TeacherFactory(organization_id=organization.id)
        await db_session.flush()
        second = await client.post("/substitutions/", json=substitution_json(lesson, teacher, another))

        assert second.status_code == 409
        assert second.json()["error"]["code"] == "DUPLICATE"

    async def test_update_and_delete(self, client: AsyncClient, lesson, teacher, substitute_teacher):
        created = (await client.post("/substitutions/", json=substitution_json(lesson, teacher, substitute_teacher))).json()

        patched = await client.patch(f"/substitutions/{created['id']}", json={"notes": "Use room 12"})
        assert patched.status_code == 200, patched.json()
        assert patched.json()["notes"] == "Use room 12"

        deleted = await client.delete(f"/substitutions/{created['id']}")
        assert deleted.status_code == 204

        lesson_view = await client.get(f"/lessons/{lesson.id}")
        assert lesson_view.json()["effective_teacher_id"] == str(teacher.id)

        missing = await client.get(f"/substitutions/lesson/{lesson.id}")
        assert missing.status_code == 404

    async def test_list(self, client: AsyncClient, lesson, teacher, substitute_teacher):
        await client.post("/substitutions/", json=substitution_json(lesson, teacher, substitute_teacher))

        response = await client.get("/substitutions/", params={"original_teacher_id": str(teacher.id)})
        assert response.status_code == 200, response.json()
        assert len(response.json()) == 1

        response = await client.get("/substitutions/", params={"original_teacher_id": str(uuid4())})
        assert response.json() == []
