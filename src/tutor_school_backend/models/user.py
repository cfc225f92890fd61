'''
User API Models (read-only, used inside lesson and substitution responses)
'''
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr

from ..database.db_enums import UserRole


class UserRead(BaseModel):
    id: UUID
    email: EmailStr
    role: UserRole
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
