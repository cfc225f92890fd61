'''
Cancellation policy, fee and limit API Models
'''
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from ..database.db_enums import LimitPeriod


class CancellationPolicy(BaseModel):
    """
    The effective policy for one student: the student's own row if there is one,
    otherwise the organization's, otherwise everything disabled.
    """
    fee_enabled: bool = False
    fee_percent: Optional[Decimal] = None
    hours_threshold: Optional[int] = None
    limit_enabled: bool = False
    limit_count: Optional[int] = None
    limit_period: LimitPeriod = LimitPeriod.MONTH

    model_config = ConfigDict(from_attributes=True)


class CancellationFeeQuote(BaseModel):
    """What cancelling a lesson right now would cost."""
    fee_applies: bool
    fee_amount: Optional[Decimal] = None
    fee_percent: Optional[Decimal] = None
    hours_threshold: Optional[int] = None
    hours_until_lesson: float
    lesson_price: Optional[Decimal] = None
    currency: str


class CancelledLessonSummary(BaseModel):
    id: UUID
    title: str
    scheduled_at: datetime
    cancelled_at: datetime
    cancellation_reason: Optional[str] = None
    cancellation_fee_applied: bool
    cancellation_fee_amount: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


class CancellationStats(BaseModel):
    limit_enabled: bool
    limit: Optional[int] = None
    used: int
    remaining: Optional[int] = None
    period: Optional[LimitPeriod] = None
    period_start: Optional[datetime] = None
    can_cancel: bool
    cancelled_lessons: list[CancelledLessonSummary] = []
