'''
API endpoints for lessons: creation, recurring series, rescheduling, the status
lifecycle and cancellation policy views.
'''
from datetime import datetime
from typing import Annotated, Optional, List
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from ..database import models as db_models
from ..database.db_enums import LessonStatus
from ..models import lesson as lesson_models
from ..models import recurring as recurring_models
from ..models import cancellation as cancellation_models
from ..services.security import verify_token_and_get_user
from ..services.lesson_service import LessonService
from ..services.cancellation_service import CancellationService
from ..services.bulk_status_service import BulkStatusService
from ..common.config import settings


class LessonsAPI:
    """
    A class to encapsulate the lesson scheduling endpoints.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/lessons",
            tags=["Lessons"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class. Fixed paths go before /{lesson_id}."""
        self.router.add_api_route(
                "/",
                self.list_lessons,
                methods=["GET"],
                response_model=List[lesson_models.LessonRead])
        self.router.add_api_route(
                "/",
                self.create_lesson,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=lesson_models.LessonRead)
        self.router.add_api_route(
                "/stats",
                self.get_stats,
                methods=["GET"],
                response_model=lesson_models.LessonStats)
        self.router.add_api_route(
                "/conflicts",
                self.check_conflicts,
                methods=["GET"],
                response_model=lesson_models.ConflictCheckResult)
        self.router.add_api_route(
                "/recurring",
                self.create_recurring_lessons,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=recurring_models.RecurringLessonsResult)
        self.router.add_api_route(
                "/bulk-update-status",
                self.bulk_update_status,
                methods=["PATCH"],
                response_model=lesson_models.BulkStatusResult)
        self.router.add_api_route(
                "/student/{student_id}/cancellation-stats",
                self.get_cancellation_stats,
                methods=["GET"],
                response_model=cancellation_models.CancellationStats)
        self.router.add_api_route(
                "/{lesson_id}",
                self.get_lesson,
                methods=["GET"],
                response_model=lesson_models.LessonRead)
        self.router.add_api_route(
                "/{lesson_id}",
                self.update_lesson,
                methods=["PATCH"],
                response_model=lesson_models.LessonRead)
        self.router.add_api_route(
                "/{lesson_id}/cancellation-fee-preview",
                self.preview_cancellation_fee,
                methods=["GET"],
                response_model=cancellation_models.CancellationFeeQuote)

        # Status lifecycle
        for action, endpoint in (
            ("confirm", self.confirm_lesson),
            ("complete", self.complete_lesson),
            ("uncomplete", self.uncomplete_lesson),
            ("no-show", self.mark_no_show),
            ("cancel", self.cancel_lesson),
        ):
            self.router.add_api_route(
                    f"/{{lesson_id}}/{action}",
                    endpoint,
                    methods=["POST"],
                    response_model=lesson_models.LessonRead)

    # --- Reads ---

    async def list_lessons(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)],
        teacher_id: Optional[UUID] = None,
        student_id: Optional[UUID] = None,
        course_id: Optional[UUID] = None,
        lesson_status: Annotated[Optional[LessonStatus], Query(alias="status")] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Annotated[int, Query(ge=1, le=500)] = 100,
        offset: Annotated[int, Query(ge=0)] = 0
    ):
        """
        Lists the organization's lessons, ordered by start time.
        """
        return await lesson_service.list_lessons(
            current_user,
            limit=limit,
            offset=offset,
            teacher_id=teacher_id,
            student_id=student_id,
            course_id=course_id,
            status=lesson_status,
            date_from=date_from,
            date_to=date_to
        )

    async def get_stats(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)],
        teacher_id: Optional[UUID] = None,
        student_id: Optional[UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ):
        return await lesson_service.get_lesson_stats(
            current_user, teacher_id=teacher_id, student_id=student_id, date_from=date_from, date_to=date_to
        )

    async def check_conflicts(
        self,
        teacher_id: UUID,
        student_id: UUID,
        scheduled_at: datetime,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)],
        duration_minutes: Annotated[int, Query(gt=0, le=settings.MAX_LESSON_DURATION_MINUTES)] = 60,
        exclude_lesson_id: Optional[UUID] = None
    ):
        """
        Reports the teacher's and the student's overlapping lessons for a proposed slot.
        Nothing is written.
        """
        return await lesson_service.check_conflicts_for_api(
            current_user, teacher_id, student_id, scheduled_at, duration_minutes, exclude_lesson_id
        )

    async def get_lesson(
        self,
        lesson_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ):
        return await lesson_service.get_lesson(lesson_id, current_user)

    async def preview_cancellation_fee(
        self,
        lesson_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        cancellation_service: Annotated[CancellationService, Depends(CancellationService)]
    ):
        """
        What cancelling this lesson right now would cost. Has no side effects.
        """
        return await cancellation_service.preview_fee(lesson_id, current_user)

    async def get_cancellation_stats(
        self,
        student_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        cancellation_service: Annotated[CancellationService, Depends(CancellationService)]
    ):
        return await cancellation_service.get_cancellation_stats(student_id, current_user)

    # --- Writes ---

    async def create_lesson(
        self,
        lesson_data: lesson_models.LessonCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ):
        """
        Creates a single lesson. Rejected with 409 if the teacher or the student is already booked.
        """
        return await lesson_service.create_lesson(lesson_data, current_user)

    async def create_recurring_lessons(
        self,
        request: recurring_models.RecurringLessonsCreate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ):
        """
        Creates a recurring series. Conflicting dates are skipped and listed in `errors`.
        """
        return await lesson_service.create_recurring_lessons(request, current_user)

    async def update_lesson(
        self,
        lesson_id: UUID,
        update_data: lesson_models.LessonUpdate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ):
        """
        Edits or reschedules a lesson.
        """
        return await lesson_service.update_lesson(lesson_id, update_data, current_user)

    async def bulk_update_status(
        self,
        data: lesson_models.BulkStatusUpdate,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        bulk_service: Annotated[BulkStatusService, Depends(BulkStatusService)]
    ):
        """
        Moves many lessons to one status. Partial success is a 200 with the failures listed.
        """
        return await bulk_service.bulk_update_status(data, current_user)

    async def confirm_lesson(
        self,
        lesson_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ):
        return await lesson_service.confirm_lesson(lesson_id, current_user)

    async def complete_lesson(
        self,
        lesson_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ):
        return await lesson_service.complete_lesson(lesson_id, current_user)

    async def uncomplete_lesson(
        self,
        lesson_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ):
        return await lesson_service.uncomplete_lesson(lesson_id, current_user)

    async def mark_no_show(
        self,
        lesson_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)]
    ):
        return await lesson_service.mark_no_show(lesson_id, current_user)

    async def cancel_lesson(
        self,
        lesson_id: UUID,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)],
        lesson_service: Annotated[LessonService, Depends(LessonService)],
        cancel_data: Optional[lesson_models.LessonCancel] = None
    ):
        """
        Cancels a lesson, applying the late-cancellation fee and the student's cancellation limit.
        """
        reason = cancel_data.reason if cancel_data else None
        return await lesson_service.cancel_lesson(lesson_id, current_user, reason=reason)


# Create an instance of the class and export its router
lessons_api = LessonsAPI()
router = lessons_api.router
