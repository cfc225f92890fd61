'''
Recurring lesson API Models
'''
import datetime as dt
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from ..common.config import settings
from ..database.db_enums import RecurrenceFrequency, DeliveryMode
from .lesson import LessonRead


class RecurringPatternCreate(BaseModel):
    """
    How to generate a series of lessons.
    days_of_week uses 0=Sunday ... 6=Saturday and only applies to WEEKLY/BIWEEKLY.
    """
    frequency: RecurrenceFrequency
    interval: int = Field(1, ge=1)
    start_date: dt.date
    end_date: Optional[dt.date] = None
    days_of_week: Optional[list[int]] = Field(None, description="0=Sunday, 6=Saturday")
    occurrences_count: Optional[int] = Field(None, ge=1)
    time: dt.time
    timezone: Optional[str] = Field(None, description="IANA zone of `time`. Defaults to the organization's.")
    duration_minutes: Optional[int] = Field(None, gt=0, le=settings.MAX_LESSON_DURATION_MINUTES)
    delivery_mode: Optional[DeliveryMode] = None
    meeting_url: Optional[HttpUrl] = None


class RecurringLessonTemplate(BaseModel):
    """The parts of every generated lesson that do not depend on the date."""
    teacher_id: UUID
    student_id: UUID
    title: str = Field(..., min_length=2)
    description: Optional[str] = None
    course_id: Optional[UUID] = None
    enrollment_id: Optional[UUID] = None
    price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class RecurringLessonsCreate(BaseModel):
    lesson_data: RecurringLessonTemplate
    pattern: RecurringPatternCreate


class RecurringPatternRead(BaseModel):
    id: UUID
    frequency: RecurrenceFrequency
    interval: int
    days_of_week: list[int]
    start_date: dt.date
    end_date: Optional[dt.date] = None
    occurrences_count: Optional[int] = None
    time_of_day: dt.time
    timezone: str
    created_lessons_count: int

    model_config = ConfigDict(from_attributes=True)


class RecurringCreationError(BaseModel):
    """One skipped occurrence."""
    date: dt.datetime
    reason: str
    code: str


class RecurringLessonsResult(BaseModel):
    recurring_pattern: RecurringPatternRead
    created_lessons: list[LessonRead]
    errors: list[RecurringCreationError]
    total_created: int
    total_errors: int
