'''
Lesson creation (single and recurring), rescheduling and the status lifecycle.
'''
from datetime import datetime, timezone
from typing import Optional, Annotated, Any
from uuid import UUID
from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import LessonStatus, DeliveryMode
from ..models import lesson as lesson_models
from ..models import recurring as recurring_models
from ..core.pattern_expander import expand_pattern, validate_pattern
from ..core.cancellation_fee import calculate_cancellation_fee, ensure_utc
from ..core.lesson_state import assert_transition, assert_reschedulable
from ..common.config import settings
from ..common.exceptions import (
    SchedulingError, SchedulingValidationError, ConflictError, NotFoundError, StateInvalidError,
    INTERNAL_ERROR_CODE
)
from ..common.logger import log
from .user_service import UserService
from .conflict_service import ConflictService
from .cancellation_service import CancellationService
from .collaborators import (
    BillingGateway, NotificationService, ReminderScheduler,
    get_billing_gateway, get_notification_service, get_reminder_scheduler
)


class LessonService:
    """
    Owns every write to a lesson. Status changes go through the transition
    table in core.lesson_state; anything that occupies a time slot goes through
    the ConflictService under participant row locks.
    """
    def __init__(
        self,
        db: Annotated[AsyncSession, Depends(get_db_session)],
        user_service: Annotated[UserService, Depends(UserService)],
        conflict_service: Annotated[ConflictService, Depends(ConflictService)],
        cancellation_service: Annotated[CancellationService, Depends(CancellationService)],
        billing: Annotated[BillingGateway, Depends(get_billing_gateway)],
        notifications: Annotated[NotificationService, Depends(get_notification_service)],
        reminders: Annotated[ReminderScheduler, Depends(get_reminder_scheduler)]
    ):
        self.db = db
        self.user_service = user_service
        self.conflict_service = conflict_service
        self.cancellation_service = cancellation_service
        self.billing = billing
        self.notifications = notifications
        self.reminders = reminders

    # --- 1. Internal Fetchers ---

    def _lesson_query(self):
        return select(db_models.Lessons).options(
            selectinload(db_models.Lessons.teacher),
            selectinload(db_models.Lessons.student),
            selectinload(db_models.Lessons.substitution)
        ).execution_options(populate_existing=True)

    async def _get_lesson_internal(self, lesson_id: UUID, organization_id: UUID, for_update: bool = False) -> db_models.Lessons:
        stmt = self._lesson_query().filter(
            db_models.Lessons.id == lesson_id,
            db_models.Lessons.organization_id == organization_id
        )
        if for_update:
            stmt = stmt.with_for_update()
        lesson = (await self.db.execute(stmt)).scalars().first()
        if not lesson:
            raise NotFoundError("Lesson not found.", details={"lesson_id": str(lesson_id)})
        return lesson

    async def _get_lessons_internal(self, lesson_ids: list[UUID], organization_id: UUID) -> list[db_models.Lessons]:
        if not lesson_ids:
            return []
        stmt = self._lesson_query().filter(
            db_models.Lessons.id.in_(lesson_ids),
            db_models.Lessons.organization_id == organization_id
        ).order_by(db_models.Lessons.scheduled_at)
        return list((await self.db.execute(stmt)).scalars().all())

    async def _get_organization(self, organization_id: UUID) -> db_models.Organizations:
        organization = await self.db.get(db_models.Organizations, organization_id)
        if organization is None:
            raise NotFoundError("Organization not found.", details={"organization_id": str(organization_id)})
        return organization

    async def _resolve_lesson_defaults(
        self,
        organization: db_models.Organizations,
        teacher_id: UUID,
        student_id: UUID,
        course_id: Optional[UUID],
        enrollment_id: Optional[UUID],
        duration_minutes: Optional[int],
        price: Optional[Any],
        currency: Optional[str],
        delivery_mode: Optional[DeliveryMode]
    ) -> dict[str, Any]:
        """
        Validates the participants and fills what the request left out from the
        course template, then from the organization.
        """
        teacher = await self.user_service.get_teacher_in_organization(teacher_id, organization.id)
        student = await self.user_service.get_student_in_organization(student_id, organization.id)

        enrollment = None
        if enrollment_id is not None:
            enrollment = (await self.db.execute(
                select(db_models.StudentEnrollments).filter(db_models.StudentEnrollments.id == enrollment_id)
            )).scalars().first()
            if not enrollment or enrollment.student_id != student.id:
                raise NotFoundError("Enrollment not found for this student.", details={"enrollment_id": str(enrollment_id)})
            if course_id is not None and enrollment.course_id != course_id:
                raise SchedulingValidationError(
                    "The enrollment belongs to a different course.",
                    details={"enrollment_id": str(enrollment_id), "course_id": str(course_id)}
                )
            course_id = enrollment.course_id

        course = None
        if course_id is not None:
            course = (await self.db.execute(
                select(db_models.Courses).filter(
                    db_models.Courses.id == course_id,
                    db_models.Courses.organization_id == organization.id
                )
            )).scalars().first()
            if not course:
                raise NotFoundError("Course not found.", details={"course_id": str(course_id)})

        if duration_minutes is None and course is not None:
            duration_minutes = course.default_duration_minutes
        if duration_minutes is None:
            raise SchedulingValidationError("duration_minutes is required when no course is given.")
        if not 0 < duration_minutes <= settings.MAX_LESSON_DURATION_MINUTES:
            raise SchedulingValidationError(
                f"duration_minutes must be between 1 and {settings.MAX_LESSON_DURATION_MINUTES}.",
                details={"duration_minutes": duration_minutes}
            )

        if price is None and course is not None:
            price = course.price_per_lesson
        if delivery_mode is None:
            delivery_mode = DeliveryMode(course.delivery_mode) if course is not None else DeliveryMode.IN_PERSON

        return {
            "teacher_id": teacher.id,
            "student_id": student.id,
            "course_id": course.id if course else None,
            "enrollment_id": enrollment.id if enrollment else None,
            "duration_minutes": duration_minutes,
            "price": price,
            "currency": currency or (course.currency if course else None) or organization.currency or settings.DEFAULT_CURRENCY,
            "delivery_mode": delivery_mode.value,
        }

    # --- 2. Conflict-guarded writes ---

    @staticmethod
    def _conflict_error(result: lesson_models.ConflictCheckResult) -> ConflictError:
        return ConflictError(
            "The lesson overlaps existing lessons of the teacher or the student.",
            details=result.model_dump(mode="json")
        )

    async def _insert_lesson_without_conflicts(self, organization_id: UUID, fields: dict[str, Any]) -> db_models.Lessons:
        """Lock participants, check the slot, insert. Raises ConflictError without writing."""
        await self.conflict_service.lock_participants(fields["teacher_id"], fields["student_id"])
        result = await self.conflict_service.check_conflicts(
            organization_id,
            fields["teacher_id"],
            fields["student_id"],
            fields["scheduled_at"],
            fields["duration_minutes"]
        )
        if result.has_conflicts:
            raise self._conflict_error(result)

        lesson = db_models.Lessons(organization_id=organization_id, **fields)
        self.db.add(lesson)
        await self.db.flush()
        return lesson

    # --- 3. API-Facing Write Methods ---

    async def create_lesson(self, lesson_data: lesson_models.LessonCreate, current_user: db_models.Users) -> lesson_models.LessonRead:
        log.info(f"User {current_user.id} creating lesson '{lesson_data.title}' at {lesson_data.scheduled_at}.")
        try:
            organization = await self._get_organization(current_user.organization_id)
            fields = await self._resolve_lesson_defaults(
                organization,
                lesson_data.teacher_id,
                lesson_data.student_id,
                lesson_data.course_id,
                lesson_data.enrollment_id,
                lesson_data.duration_minutes,
                lesson_data.price,
                lesson_data.currency,
                lesson_data.delivery_mode
            )
            initial_status = LessonStatus.PENDING_CONFIRMATION if organization.require_teacher_confirmation else LessonStatus.SCHEDULED
            fields.update(
                title=lesson_data.title,
                description=lesson_data.description,
                meeting_url=str(lesson_data.meeting_url) if lesson_data.meeting_url else None,
                scheduled_at=ensure_utc(lesson_data.scheduled_at),
                status=initial_status.value
            )

            lesson = await self._insert_lesson_without_conflicts(organization.id, fields)
            lesson = await self._get_lesson_internal(lesson.id, organization.id)
            await self.reminders.lesson_scheduled(lesson)

            log.info(f"Created lesson {lesson.id} ({initial_status.value}) for teacher {lesson.teacher_id} / student {lesson.student_id}.")
            return self._format_lesson_for_api(lesson)
        except SchedulingError as e:
            log.warning(f"Lesson creation refused ({e.kind.value}): {e.message}")
            raise
        except Exception as e:
            log.error(f"Unexpected error creating lesson: {e}", exc_info=True)
            raise

    async def create_recurring_lessons(
        self,
        request: recurring_models.RecurringLessonsCreate,
        current_user: db_models.Users
    ) -> recurring_models.RecurringLessonsResult:
        """
        Persists the pattern and creates its occurrences until `occurrences_count`
        lessons exist or the candidates run out.

        Each occurrence is committed on its own, so a date that fails (a conflict or
        any other error) is recorded in `errors` and skipped without undoing the ones
        created before it. Invalid patterns and missing participants fail the whole
        request up front.
        """
        template = request.lesson_data
        log.info(f"User {current_user.id} creating recurring lessons '{template.title}' ({request.pattern.frequency.value}).")
        try:
            organization = await self._get_organization(current_user.organization_id)
            pattern = request.pattern.model_copy(update={"timezone": request.pattern.timezone or organization.timezone})
            validate_pattern(pattern)

            defaults = await self._resolve_lesson_defaults(
                organization,
                template.teacher_id,
                template.student_id,
                template.course_id,
                template.enrollment_id,
                pattern.duration_minutes,
                template.price,
                template.currency,
                pattern.delivery_mode
            )
            defaults.update(
                title=template.title,
                description=template.description,
                meeting_url=str(pattern.meeting_url) if pattern.meeting_url else None,
                status=(LessonStatus.PENDING_CONFIRMATION if organization.require_teacher_confirmation else LessonStatus.SCHEDULED).value,
                is_recurring=True
            )

            pattern_row = db_models.RecurringPatterns(
                organization_id=organization.id,
                frequency=pattern.frequency.value,
                interval=pattern.interval,
                days_of_week=sorted(set(pattern.days_of_week or [])),
                start_date=pattern.start_date,
                end_date=pattern.end_date,
                occurrences_count=pattern.occurrences_count,
                time_of_day=pattern.time,
                timezone=pattern.timezone
            )
            self.db.add(pattern_row)
            await self.db.flush()
            await self.db.commit()
            defaults["recurring_pattern_id"] = pattern_row.id

            organization_id = organization.id
            pattern_id = pattern_row.id
            wanted = pattern.occurrences_count
            created_ids: list[UUID] = []
            errors: list[recurring_models.RecurringCreationError] = []
            # occurrences_count is the number of lessons to create, so skipped
            # candidates do not use it up. end_date and the safety cap still bound the walk.
            for slot in expand_pattern(pattern.model_copy(update={"occurrences_count": None})):
                if wanted is not None and len(created_ids) >= wanted:
                    break
                try:
                    async with self.db.begin_nested():
                        lesson = await self._insert_lesson_without_conflicts(
                            organization_id, {**defaults, "scheduled_at": slot.scheduled_at}
                        )
                except SchedulingError as e:
                    log.info(f"Skipping occurrence {slot.scheduled_at.isoformat()} of pattern {pattern_id}: {e.message}")
                    errors.append(recurring_models.RecurringCreationError(
                        date=slot.scheduled_at, reason=e.message, code=e.kind.value
                    ))
                    continue
                except Exception as e:
                    log.error(f"Failed to create occurrence {slot.scheduled_at.isoformat()} of pattern {pattern_id}: {e}", exc_info=True)
                    errors.append(recurring_models.RecurringCreationError(
                        date=slot.scheduled_at, reason=str(e) or type(e).__name__, code=INTERNAL_ERROR_CODE
                    ))
                    continue
                created_ids.append(lesson.id)
                # The count is committed together with the lesson it counts.
                pattern_row.created_lessons_count = len(created_ids)
                await self.db.commit()

            lessons = await self._get_lessons_internal(created_ids, organization_id)
            for lesson in lessons:
                await self.reminders.lesson_scheduled(lesson)

            log.info(f"Pattern {pattern_row.id}: created {len(created_ids)} lessons, skipped {len(errors)}.")
            return recurring_models.RecurringLessonsResult(
                recurring_pattern=recurring_models.RecurringPatternRead.model_validate(pattern_row),
                created_lessons=[self._format_lesson_for_api(lesson) for lesson in lessons],
                errors=errors,
                total_created=len(created_ids),
                total_errors=len(errors)
            )
        except SchedulingError as e:
            log.warning(f"Recurring lesson creation refused ({e.kind.value}): {e.message}")
            raise
        except Exception as e:
            log.error(f"Unexpected error creating recurring lessons: {e}", exc_info=True)
            raise

    async def update_lesson(
        self,
        lesson_id: UUID,
        update_data: lesson_models.LessonUpdate,
        current_user: db_models.Users
    ) -> lesson_models.LessonRead:
        """
        Edits a lesson. A new `scheduled_at` or `duration_minutes` is a reschedule:
        only SCHEDULED or CONFIRMED lessons qualify, and the new slot must pass the
        conflict check (ignoring the lesson itself). On conflict nothing is changed.
        """
        log.info(f"User {current_user.id} updating lesson {lesson_id}.")
        changes = update_data.model_dump(exclude_unset=True)
        if not changes:
            raise SchedulingValidationError("No fields to update.")
        null_fields = [f for f in ("title", "scheduled_at", "duration_minutes", "delivery_mode") if f in changes and changes[f] is None]
        if null_fields:
            raise SchedulingValidationError("These fields cannot be null.", details={"fields": null_fields})

        try:
            lesson = await self._get_lesson_internal(lesson_id, current_user.organization_id, for_update=True)

            is_reschedule = "scheduled_at" in changes or "duration_minutes" in changes
            if is_reschedule:
                assert_reschedulable(lesson.status)
                new_start = ensure_utc(changes.get("scheduled_at", lesson.scheduled_at))
                new_duration = changes.get("duration_minutes", lesson.duration_minutes)

                await self.conflict_service.lock_participants(lesson.teacher_id, lesson.student_id)
                result = await self.conflict_service.check_conflicts(
                    lesson.organization_id,
                    lesson.teacher_id,
                    lesson.student_id,
                    new_start,
                    new_duration,
                    exclude_lesson_id=lesson.id
                )
                if result.has_conflicts:
                    raise self._conflict_error(result)
                lesson.scheduled_at = new_start
                lesson.duration_minutes = new_duration

            for field in ("title", "description"):
                if field in changes:
                    setattr(lesson, field, changes[field])
            if "delivery_mode" in changes:
                lesson.delivery_mode = DeliveryMode(changes["delivery_mode"]).value
            if "meeting_url" in changes:
                lesson.meeting_url = str(update_data.meeting_url) if update_data.meeting_url else None

            await self.db.flush()
            lesson = await self._get_lesson_internal(lesson.id, lesson.organization_id)
            if is_reschedule:
                await self.reminders.lesson_scheduled(lesson)
                log.info(f"Lesson {lesson.id} rescheduled to {lesson.scheduled_at} ({lesson.duration_minutes}m).")
            else:
                log.info(f"Lesson {lesson.id} details updated: {sorted(changes)}.")
            return self._format_lesson_for_api(lesson)
        except SchedulingError as e:
            log.warning(f"Update of lesson {lesson_id} refused ({e.kind.value}): {e.message}")
            raise
        except Exception as e:
            log.error(f"Unexpected error updating lesson {lesson_id}: {e}", exc_info=True)
            raise

    # --- 4. Status lifecycle ---

    async def _transition(
        self,
        lesson_id: UUID,
        target: LessonStatus,
        current_user: db_models.Users,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
        allowed_from: Optional[frozenset] = None
    ) -> db_models.Lessons:
        lesson = await self._get_lesson_internal(lesson_id, current_user.organization_id, for_update=True)
        current = LessonStatus(lesson.status)
        if allowed_from is not None and current not in allowed_from:
            raise StateInvalidError(
                f"Cannot change lesson status from {current.value} to {target.value} this way.",
                details={"current_status": current.value, "target_status": target.value}
            )
        assert_transition(current, target)
        now = ensure_utc(now or datetime.now(timezone.utc))

        quote = None
        if target == LessonStatus.CANCELLED:
            quote = await self._apply_cancellation(lesson, reason, now)
        elif target == LessonStatus.CONFIRMED and current == LessonStatus.COMPLETED:
            await self._apply_uncomplete(lesson)
        else:
            lesson.status = target.value
            if target == LessonStatus.CONFIRMED:
                lesson.confirmed_at = now
            elif target == LessonStatus.COMPLETED:
                lesson.completed_at = now

        await self.db.flush()
        lesson = await self._get_lesson_internal(lesson.id, lesson.organization_id)
        log.info(f"Lesson {lesson.id} moved {current.value} -> {target.value} by user {current_user.id}.")

        if quote is not None:
            if quote.fee_applies:
                await self.billing.charge_cancellation_fee(
                    lesson, quote.fee_amount, quote.currency, reference=f"lesson-cancellation:{lesson.id}"
                )
            await self.notifications.lesson_cancelled(lesson)
            await self.reminders.lesson_cancelled(lesson)
        elif target == LessonStatus.NO_SHOW:
            await self.reminders.lesson_cancelled(lesson)
        return lesson

    async def _apply_cancellation(self, lesson: db_models.Lessons, reason: Optional[str], now: datetime):
        """Gate on the student's limit, then stamp the lesson with the fee owed at `now`."""
        policy = await self.cancellation_service.ensure_can_cancel(lesson.student_id, lesson.organization_id, now)
        quote = calculate_cancellation_fee(lesson.scheduled_at, lesson.price, lesson.currency, policy, now)

        lesson.status = LessonStatus.CANCELLED.value
        lesson.cancelled_at = now
        lesson.cancellation_reason = reason
        lesson.cancellation_fee_applied = quote.fee_applies
        lesson.cancellation_fee_amount = quote.fee_amount
        return quote

    async def _apply_uncomplete(self, lesson: db_models.Lessons) -> None:
        """Back to CONFIRMED. The slot becomes blocking again, so it must still be free."""
        await self.conflict_service.lock_participants(lesson.teacher_id, lesson.student_id)
        result = await self.conflict_service.check_conflicts(
            lesson.organization_id,
            lesson.teacher_id,
            lesson.student_id,
            lesson.scheduled_at,
            lesson.duration_minutes,
            exclude_lesson_id=lesson.id
        )
        if result.has_conflicts:
            raise self._conflict_error(result)
        lesson.status = LessonStatus.CONFIRMED.value
        lesson.completed_at = None

    async def _run_transition(self, lesson_id: UUID, target: LessonStatus, current_user: db_models.Users, **kwargs) -> lesson_models.LessonRead:
        try:
            lesson = await self._transition(lesson_id, target, current_user, **kwargs)
            return self._format_lesson_for_api(lesson)
        except SchedulingError as e:
            log.warning(f"Status change of lesson {lesson_id} to {target.value} refused ({e.kind.value}): {e.message}")
            raise
        except Exception as e:
            log.error(f"Unexpected error changing status of lesson {lesson_id}: {e}", exc_info=True)
            raise

    async def confirm_lesson(self, lesson_id: UUID, current_user: db_models.Users) -> lesson_models.LessonRead:
        return await self._run_transition(
            lesson_id, LessonStatus.CONFIRMED, current_user,
            allowed_from=frozenset({LessonStatus.PENDING_CONFIRMATION, LessonStatus.SCHEDULED})
        )

    async def complete_lesson(self, lesson_id: UUID, current_user: db_models.Users) -> lesson_models.LessonRead:
        return await self._run_transition(lesson_id, LessonStatus.COMPLETED, current_user)

    async def uncomplete_lesson(self, lesson_id: UUID, current_user: db_models.Users) -> lesson_models.LessonRead:
        return await self._run_transition(
            lesson_id, LessonStatus.CONFIRMED, current_user,
            allowed_from=frozenset({LessonStatus.COMPLETED})
        )

    async def mark_no_show(self, lesson_id: UUID, current_user: db_models.Users) -> lesson_models.LessonRead:
        return await self._run_transition(lesson_id, LessonStatus.NO_SHOW, current_user)

    async def cancel_lesson(
        self,
        lesson_id: UUID,
        current_user: db_models.Users,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> lesson_models.LessonRead:
        """
        Cancels a SCHEDULED or CONFIRMED lesson. Refused with LIMIT_EXCEEDED once the
        student has used the period's allowance. Any late fee is stored on the lesson
        and forwarded to billing.
        """
        return await self._run_transition(lesson_id, LessonStatus.CANCELLED, current_user, reason=reason, now=now)

    async def change_status(
        self,
        lesson_id: UUID,
        target: LessonStatus,
        current_user: db_models.Users,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> lesson_models.LessonRead:
        """Generic entry point; the current status decides which transition applies."""
        return await self._run_transition(lesson_id, LessonStatus(target), current_user, reason=reason, now=now)

    # --- 5. API-Facing Read Methods ---

    async def get_lesson(self, lesson_id: UUID, current_user: db_models.Users) -> lesson_models.LessonRead:
        log.info(f"User {current_user.id} requesting lesson {lesson_id}")
        lesson = await self._get_lesson_internal(lesson_id, current_user.organization_id)
        return self._format_lesson_for_api(lesson)

    def _apply_filters(
        self,
        stmt,
        current_user: db_models.Users,
        teacher_id: Optional[UUID] = None,
        student_id: Optional[UUID] = None,
        course_id: Optional[UUID] = None,
        status: Optional[LessonStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ):
        stmt = stmt.filter(db_models.Lessons.organization_id == current_user.organization_id)
        if teacher_id is not None:
            stmt = stmt.filter(db_models.Lessons.teacher_id == teacher_id)
        if student_id is not None:
            stmt = stmt.filter(db_models.Lessons.student_id == student_id)
        if course_id is not None:
            stmt = stmt.filter(db_models.Lessons.course_id == course_id)
        if status is not None:
            stmt = stmt.filter(db_models.Lessons.status == LessonStatus(status).value)
        if date_from is not None:
            stmt = stmt.filter(db_models.Lessons.scheduled_at >= ensure_utc(date_from))
        if date_to is not None:
            stmt = stmt.filter(db_models.Lessons.scheduled_at <= ensure_utc(date_to))
        return stmt

    async def list_lessons(
        self,
        current_user: db_models.Users,
        limit: int = 100,
        offset: int = 0,
        **filters
    ) -> list[lesson_models.LessonRead]:
        log.info(f"User {current_user.id} listing lessons with filters {filters}.")
        try:
            stmt = self._apply_filters(self._lesson_query(), current_user, **filters)
            stmt = stmt.order_by(db_models.Lessons.scheduled_at).limit(limit).offset(offset)
            lessons = (await self.db.execute(stmt)).scalars().all()
            return [self._format_lesson_for_api(lesson) for lesson in lessons]
        except Exception as e:
            log.error(f"Database error listing lessons for user {current_user.id}: {e}", exc_info=True)
            raise

    async def get_lesson_stats(self, current_user: db_models.Users, **filters) -> lesson_models.LessonStats:
        """Counts of lessons per status (status filter ignored)."""
        filters.pop("status", None)
        stmt = self._apply_filters(
            select(db_models.Lessons.status, func.count(db_models.Lessons.id)),
            current_user,
            **filters
        ).group_by(db_models.Lessons.status)
        counts = {LessonStatus(status): count for status, count in (await self.db.execute(stmt)).all()}
        return lesson_models.LessonStats(
            total=sum(counts.values()),
            pending_confirmation=counts.get(LessonStatus.PENDING_CONFIRMATION, 0),
            scheduled=counts.get(LessonStatus.SCHEDULED, 0),
            confirmed=counts.get(LessonStatus.CONFIRMED, 0),
            completed=counts.get(LessonStatus.COMPLETED, 0),
            cancelled=counts.get(LessonStatus.CANCELLED, 0),
            no_show=counts.get(LessonStatus.NO_SHOW, 0)
        )

    async def check_conflicts_for_api(
        self,
        current_user: db_models.Users,
        teacher_id: UUID,
        student_id: UUID,
        scheduled_at: datetime,
        duration_minutes: int,
        exclude_lesson_id: Optional[UUID] = None
    ) -> lesson_models.ConflictCheckResult:
        """Read-only probe used by the UI before submitting a lesson."""
        return await self.conflict_service.check_conflicts(
            current_user.organization_id, teacher_id, student_id, scheduled_at, duration_minutes, exclude_lesson_id
        )

    # --- 6. Formatting ---

    @staticmethod
    def _format_lesson_for_api(lesson: db_models.Lessons) -> lesson_models.LessonRead:
        return lesson_models.LessonRead.model_validate(lesson)
