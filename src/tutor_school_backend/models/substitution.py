'''
Substitution API Models
'''
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .user import UserRead


class SubstitutionCreate(BaseModel):
    lesson_id: UUID
    original_teacher_id: UUID
    substitute_teacher_id: UUID
    reason: Optional[str] = None
    notes: Optional[str] = None


class SubstitutionUpdate(BaseModel):
    """All fields are optional. Only the fields that are set get applied."""
    substitute_teacher_id: Optional[UUID] = None
    reason: Optional[str] = None
    notes: Optional[str] = None


class SubstitutionRead(BaseModel):
    id: UUID
    lesson_id: UUID
    original_teacher_id: UUID
    substitute_teacher_id: UUID
    reason: Optional[str] = None
    notes: Optional[str] = None
    lesson_title: str
    lesson_scheduled_at: datetime
    original_teacher: UserRead
    substitute_teacher: UserRead

    model_config = ConfigDict(from_attributes=True)
