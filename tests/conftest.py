'''
Pytest configuration.

This file sets up fixtures for:
1. Forcing the application into TEST_MODE before any app code is imported.
2. A fresh in-memory database per test, built from the ORM metadata.
3. Service instances wired to the test session and to mocked collaborators.
4. An httpx AsyncClient for endpoint testing.
'''
import os

os.environ["TEST_MODE"] = "True"

import pytest
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from tutor_school_backend.main import app
from tutor_school_backend.common.config import settings
from tutor_school_backend.database.engine import build_engine, build_session_factory, get_db_session
from tutor_school_backend.database import models as db_models
from tutor_school_backend.services.security import verify_token_and_get_user
from tutor_school_backend.services.user_service import UserService
from tutor_school_backend.services.conflict_service import ConflictService
from tutor_school_backend.services.cancellation_service import CancellationService
from tutor_school_backend.services.lesson_service import LessonService
from tutor_school_backend.services.substitution_service import SubstitutionService
from tutor_school_backend.services.bulk_status_service import BulkStatusService
from tutor_school_backend.services.collaborators import (
    BillingGateway, NotificationService, ReminderScheduler,
    get_billing_gateway, get_notification_service, get_reminder_scheduler
)
from tests.database import factories


@pytest.fixture(scope="session")
def anyio_backend():
    """
    Override the default 'anyio_backend' fixture.
    1. Forces the backend to 'asyncio'.
    2. Promotes the scope to 'session'.
    """
    return "asyncio"


# --- 1. Database ---

@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    A brand new in-memory database for every test, so commits made by the
    services (recurring creation commits per lesson) cannot leak between tests.
    """
    assert settings.TEST_MODE is True, "TEST_MODE was not set to True!"

    engine = build_engine(settings.DATABASE_URL_TEST)
    async with engine.begin() as conn:
        await conn.run_sync(db_models.Base.metadata.create_all)

    session = build_session_factory(engine)()
    factories.test_db_session = session
    try:
        yield session
    finally:
        factories.test_db_session = None
        await session.close()
        await engine.dispose()


# --- 2. DATA FIXTURES ---

@pytest.fixture(scope="function")
async def organization(db_session: AsyncSession) -> db_models.Organizations:
    org = factories.OrganizationFactory()
    await db_session.flush()
    return org

@pytest.fixture(scope="function")
async def admin_user(db_session: AsyncSession, organization) -> db_models.Admins:
    admin = factories.AdminFactory(organization_id=organization.id)
    await db_session.flush()
    return admin

@pytest.fixture(scope="function")
async def teacher(db_session: AsyncSession, organization) -> db_models.Teachers:
    teacher = factories.TeacherFactory(organization_id=organization.id)
    await db_session.flush()
    return teacher

@pytest.fixture(scope="function")
async def substitute_teacher(db_session: AsyncSession, organization) -> db_models.Teachers:
    teacher = factories.TeacherFactory(organization_id=organization.id)
    await db_session.flush()
    return teacher

@pytest.fixture(scope="function")
async def student(db_session: AsyncSession, organization) -> db_models.Students:
    student = factories.StudentFactory(organization_id=organization.id)
    await db_session.flush()
    return student

@pytest.fixture(scope="function")
async def other_student(db_session: AsyncSession, organization) -> db_models.Students:
    student = factories.StudentFactory(organization_id=organization.id)
    await db_session.flush()
    return student


# --- 3. COLLABORATOR MOCKS ---

@pytest.fixture(scope="function")
def mock_billing() -> BillingGateway:
    mock = MagicMock(spec=BillingGateway)
    mock.charge_cancellation_fee = AsyncMock(return_value=None)
    return mock

@pytest.fixture(scope="function")
def mock_notifications() -> NotificationService:
    mock = MagicMock(spec=NotificationService)
    mock.substitution_created = AsyncMock(return_value=None)
    mock.substitution_updated = AsyncMock(return_value=None)
    mock.substitution_deleted = AsyncMock(return_value=None)
    mock.lesson_cancelled = AsyncMock(return_value=None)
    return mock

@pytest.fixture(scope="function")
def mock_reminders() -> ReminderScheduler:
    mock = MagicMock(spec=ReminderScheduler)
    mock.lesson_scheduled = AsyncMock(return_value=None)
    mock.lesson_cancelled = AsyncMock(return_value=None)
    return mock


# --- 4. SERVICE FIXTURES ---

@pytest.fixture(scope="function")
def user_service(db_session: AsyncSession) -> UserService:
    return UserService(db=db_session)

@pytest.fixture(scope="function")
def conflict_service(db_session: AsyncSession) -> ConflictService:
    return ConflictService(db=db_session)

@pytest.fixture(scope="function")
def cancellation_service(db_session: AsyncSession) -> CancellationService:
    return CancellationService(db=db_session)

@pytest.fixture(scope="function")
def lesson_service(
    db_session: AsyncSession,
    user_service: UserService,
    conflict_service: ConflictService,
    cancellation_service: CancellationService,
    mock_billing,
    mock_notifications,
    mock_reminders
) -> LessonService:
    return LessonService(
        db=db_session,
        user_service=user_service,
        conflict_service=conflict_service,
        cancellation_service=cancellation_service,
        billing=mock_billing,
        notifications=mock_notifications,
        reminders=mock_reminders
    )

@pytest.fixture(scope="function")
def substitution_service(db_session: AsyncSession, user_service: UserService, mock_notifications) -> SubstitutionService:
    return SubstitutionService(db=db_session, user_service=user_service, notifications=mock_notifications)

@pytest.fixture(scope="function")
def bulk_status_service(db_session: AsyncSession, lesson_service: LessonService) -> BulkStatusService:
    return BulkStatusService(db=db_session, lesson_service=lesson_service)


# --- 5. HTTP CLIENTS ---

def _override_common_dependencies(db_session, mock_billing, mock_notifications, mock_reminders):
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_billing_gateway] = lambda: mock_billing
    app.dependency_overrides[get_notification_service] = lambda: mock_notifications
    app.dependency_overrides[get_reminder_scheduler] = lambda: mock_reminders

@pytest.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    admin_user: db_models.Admins,
    mock_billing,
    mock_notifications,
    mock_reminders
) -> AsyncGenerator[AsyncClient, None]:
    """
    Endpoint client authenticated as `admin_user`. Every request shares the
    test session, so rows created through factories are visible to the app.
    """
    _override_common_dependencies(db_session, mock_billing, mock_notifications, mock_reminders)
    app.dependency_overrides[verify_token_and_get_user] = lambda: admin_user

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as test_client:
        yield test_client

    app.dependency_overrides.clear()

@pytest.fixture(scope="function")
async def anonymous_client(
    db_session: AsyncSession,
    mock_billing,
    mock_notifications,
    mock_reminders
) -> AsyncGenerator[AsyncClient, None]:
    """Endpoint client that goes through the real bearer-token check."""
    _override_common_dependencies(db_session, mock_billing, mock_notifications, mock_reminders)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as test_client:
        yield test_client

    app.dependency_overrides.clear()
