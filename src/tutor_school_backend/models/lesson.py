'''
Lesson API Models
'''
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from ..common.config import settings
from ..database.db_enums import LessonStatus, DeliveryMode


# --- API Read Models (Output) ---

class LessonRead(BaseModel):
    """
    The API model for a single lesson.
    `effective_teacher_id` is the substitute when one is assigned, else `teacher_id`.
    """
    id: UUID
    organization_id: UUID
    teacher_id: UUID
    effective_teacher_id: UUID
    student_id: UUID
    course_id: Optional[UUID] = None
    enrollment_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    scheduled_at: datetime
    duration_minutes: int
    status: LessonStatus
    delivery_mode: DeliveryMode
    meeting_url: Optional[str] = None
    price: Optional[Decimal] = None
    currency: str
    is_recurring: bool
    recurring_pattern_id: Optional[UUID] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancellation_fee_applied: bool
    cancellation_fee_amount: Optional[Decimal] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    has_substitution: bool = False

    model_config = ConfigDict(from_attributes=True)

    @field_validator('scheduled_at', 'cancelled_at', 'confirmed_at', 'completed_at')
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Some backends hand timestamps back without an offset; they are stored as UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ConflictingLesson(BaseModel):
    """A lesson that occupies part of the requested interval."""
    id: UUID
    title: str
    scheduled_at: datetime
    duration_minutes: int
    status: LessonStatus
    counterpart_name: str = Field(..., description="Student name for teacher conflicts, teacher name for student conflicts.")


class ConflictCheckResult(BaseModel):
    has_conflicts: bool
    teacher_conflicts: list[ConflictingLesson] = []
    student_conflicts: list[ConflictingLesson] = []


class LessonStats(BaseModel):
    total: int
    pending_confirmation: int
    scheduled: int
    confirmed: int
    completed: int
    cancelled: int
    no_show: int


# --- API Write Models (Input) ---

class LessonCreate(BaseModel):
    """
    The API model for creating a single lesson.
    Duration, price and delivery mode fall back to the course template when omitted.
    """
    teacher_id: UUID
    student_id: UUID
    title: str = Field(..., min_length=2)
    course_id: Optional[UUID] = None
    enrollment_id: Optional[UUID] = None
    description: Optional[str] = None
    scheduled_at: datetime
    duration_minutes: Optional[int] = Field(None, gt=0, le=settings.MAX_LESSON_DURATION_MINUTES)
    delivery_mode: Optional[DeliveryMode] = None
    meeting_url: Optional[HttpUrl] = None
    price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    @field_validator('scheduled_at')
    @classmethod
    def require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError('scheduled_at must include a timezone offset')
        return value


class LessonUpdate(BaseModel):
    """
    Editable fields of a lesson. Changing `scheduled_at` or `duration_minutes`
    is a reschedule and goes through the conflict check again.
    """
    title: Optional[str] = Field(None, min_length=2)
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, gt=0, le=settings.MAX_LESSON_DURATION_MINUTES)
    delivery_mode: Optional[DeliveryMode] = None
    meeting_url: Optional[HttpUrl] = None

    @field_validator('scheduled_at')
    @classmethod
    def require_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            raise ValueError('scheduled_at must include a timezone offset')
        return value


class LessonCancel(BaseModel):
    reason: Optional[str] = None


class BulkStatusUpdate(BaseModel):
    lesson_ids: list[UUID] = Field(..., min_length=1)
    status: LessonStatus
    reason: Optional[str] = None


class BulkStatusError(BaseModel):
    lesson_id: UUID
    title: Optional[str] = None
    error: str
    code: str


class BulkStatusResult(BaseModel):
    updated: int
    failed: int
    errors: list[BulkStatusError] = []
