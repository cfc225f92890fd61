'''
Access token models for the /auth/login flow.
'''
from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field


class Token(BaseModel):
    """OAuth2 bearer token as returned to the client."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds.")


class TokenPayload(BaseModel):
    """The claims we sign."""
    sub: EmailStr
    org: Optional[UUID] = None
    exp: datetime
