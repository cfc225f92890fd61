'''
Cancellation policy lookup, fee previews and the per-student cancellation limit.
'''
from datetime import datetime, timezone
from typing import Annotated, Optional
from uuid import UUID
from fastapi import Depends
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.engine import get_db_session
from ..database import models as db_models
from ..database.db_enums import LessonStatus, LimitPeriod
from ..models import cancellation as cancellation_models
from ..core.cancellation_fee import calculate_cancellation_fee, ensure_utc
from ..core.cancellation_periods import period_start, can_cancel
from ..common.config import settings
from ..common.exceptions import LimitExceededError, NotFoundError
from ..common.logger import log


class CancellationService:
    """
    Resolves the cancellation policy that applies to a student and answers
    "may this student cancel now, and what would it cost".
    """
    def __init__(self, db: Annotated[AsyncSession, Depends(get_db_session)]):
        self.db = db

    # --- Internal fetchers ---

    async def _get_organization_timezone(self, organization_id: UUID) -> str:
        organization = await self.db.get(db_models.Organizations, organization_id)
        if organization is None:
            return settings.DEFAULT_TIMEZONE
        return organization.timezone or settings.DEFAULT_TIMEZONE

    async def _get_student(self, student_id: UUID, organization_id: UUID, lock: bool = False) -> db_models.Students:
        stmt = select(db_models.Students).filter(
            db_models.Students.id == student_id,
            db_models.Students.organization_id == organization_id
        )
        if lock:
            stmt = stmt.with_for_update()
        student = (await self.db.execute(stmt)).scalars().first()
        if not student:
            raise NotFoundError("Student not found.", details={"student_id": str(student_id)})
        return student

    async def _get_cancelled_lessons(self, student_id: UUID, since: Optional[datetime]) -> list[db_models.Lessons]:
        """Reads the committed cancellations, never a cached snapshot."""
        stmt = select(db_models.Lessons).filter(
            db_models.Lessons.student_id == student_id,
            db_models.Lessons.status == LessonStatus.CANCELLED.value,
            db_models.Lessons.cancelled_at.is_not(None)
        ).order_by(db_models.Lessons.cancelled_at.desc())
        if since is not None:
            stmt = stmt.filter(db_models.Lessons.cancelled_at >= since)
        return list((await self.db.execute(stmt)).scalars().all())

    # --- Policy ---

    async def get_policy(self, organization_id: UUID, student_id: UUID) -> cancellation_models.CancellationPolicy:
        """
        The student's own policy row wins over the organization-wide row.
        With neither, fees and limits are both off.
        """
        stmt = select(db_models.CancellationPolicies).filter(
            db_models.CancellationPolicies.organization_id == organization_id,
            or_(
                db_models.CancellationPolicies.student_id == student_id,
                db_models.CancellationPolicies.student_id.is_(None)
            )
        )
        rows = (await self.db.execute(stmt)).scalars().all()
        student_row = next((row for row in rows if row.student_id is not None), None)
        organization_row = next((row for row in rows if row.student_id is None), None)
        row = student_row or organization_row
        if row is None:
            return cancellation_models.CancellationPolicy()
        return cancellation_models.CancellationPolicy.model_validate(row)

    # --- Limit ---

    async def _compute_stats(
        self,
        student: db_models.Students,
        policy: cancellation_models.CancellationPolicy,
        now: datetime
    ) -> cancellation_models.CancellationStats:
        tz_name = await self._get_organization_timezone(student.organization_id)
        # Without a limit, stats still report the current month for display.
        period = LimitPeriod(policy.limit_period) if policy.limit_enabled else LimitPeriod.MONTH
        window_start = period_start(period, now, tz_name, student.enrolled_at)

        cancelled = await self._get_cancelled_lessons(student.id, window_start)
        used = len(cancelled)
        limit = policy.limit_count if policy.limit_enabled else None
        remaining = max(limit - used, 0) if limit is not None else None

        return cancellation_models.CancellationStats(
            limit_enabled=policy.limit_enabled,
            limit=limit,
            used=used,
            remaining=remaining,
            period=policy.limit_period if policy.limit_enabled else None,
            period_start=window_start,
            can_cancel=can_cancel(policy.limit_enabled, limit, used),
            cancelled_lessons=[
                cancellation_models.CancelledLessonSummary.model_validate(lesson) for lesson in cancelled
            ]
        )

    async def get_cancellation_stats(
        self,
        student_id: UUID,
        current_user: db_models.Users,
        now: Optional[datetime] = None
    ) -> cancellation_models.CancellationStats:
        log.info(f"User {current_user.id} requesting cancellation stats for student {student_id}.")
        now = ensure_utc(now or datetime.now(timezone.utc))
        student = await self._get_student(student_id, current_user.organization_id)
        policy = await self.get_policy(current_user.organization_id, student.id)
        return await self._compute_stats(student, policy, now)

    async def ensure_can_cancel(
        self,
        student_id: UUID,
        organization_id: UUID,
        now: datetime
    ) -> cancellation_models.CancellationPolicy:
        """
        Gate for the CANCELLED transition. Locks the student row first so concurrent
        cancellations for the same student count each other's committed rows.
        Returns the policy so the caller can compute the fee with it.
        Raises LimitExceededError when the period's allowance is used up.
        """
        student = await self._get_student(student_id, organization_id, lock=True)
        policy = await self.get_policy(organization_id, student.id)
        if not policy.limit_enabled:
            return policy

        stats = await self._compute_stats(student, policy, now)
        if not stats.can_cancel:
            log.warning(f"Student {student_id} reached the cancellation limit ({stats.used}/{stats.limit} per {stats.period.value}).")
            raise LimitExceededError(
                "Cancellation limit reached for the current period.",
                details={
                    "limit": stats.limit,
                    "used": stats.used,
                    "period": stats.period.value,
                    "period_start": stats.period_start.isoformat() if stats.period_start else None
                }
            )
        return policy

    # --- Fee preview ---

    async def preview_fee(
        self,
        lesson_id: UUID,
        current_user: db_models.Users,
        now: Optional[datetime] = None
    ) -> cancellation_models.CancellationFeeQuote:
        """What cancelling the lesson right now would cost. No side effects."""
        log.info(f"User {current_user.id} previewing cancellation fee for lesson {lesson_id}.")
        stmt = select(db_models.Lessons).filter(
            db_models.Lessons.id == lesson_id,
            db_models.Lessons.organization_id == current_user.organization_id
        )
        lesson = (await self.db.execute(stmt)).scalars().first()
        if not lesson:
            raise NotFoundError("Lesson not found.", details={"lesson_id": str(lesson_id)})

        policy = await self.get_policy(lesson.organization_id, lesson.student_id)
        return calculate_cancellation_fee(
            scheduled_at=lesson.scheduled_at,
            price=lesson.price,
            currency=lesson.currency,
            policy=policy,
            now=ensure_utc(now or datetime.now(timezone.utc))
        )
