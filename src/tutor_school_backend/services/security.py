'''
Password hashing, JWT handling and the bearer-token dependency used by every router.
'''
from datetime import datetime, timedelta, timezone
from typing import Optional, Annotated
from uuid import UUID
from passlib.context import CryptContext
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from ..common.config import settings
from ..models.token import TokenPayload
from ..common.logger import log
from ..database import models as db_models
from .user_service import UserService


class HashedPassword:
    pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

    @classmethod
    def verify(cls, plain_password: str, hashed_password: str) -> bool:
        return cls.pwd_context.verify(plain_password, hashed_password)

    @classmethod
    def get_hash(cls, password: str) -> str:
        return cls.pwd_context.hash(password)


class JWTHandler:
    """
    Signs and reads access tokens. `sub` is the user's email; `org` pins the
    token to the organization the user belonged to at login.
    """
    @staticmethod
    def create_access_token(
        subject: str,
        organization_id: Optional[UUID] = None,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        expires_delta = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        claims = {"sub": str(subject), "exp": datetime.now(timezone.utc) + expires_delta}
        if organization_id is not None:
            claims["org"] = str(organization_id)
        return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> TokenPayload | None:
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
            return TokenPayload(**payload)
        except (JWTError, ValueError) as e: # pydantic validation errors are ValueErrors
            log.warning(f"Rejected access token: {e}")
            return None


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

async def verify_token_and_get_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    user_service: Annotated[UserService, Depends(UserService)]
) -> db_models.Users:
    """
    Resolves the bearer token to an active user. The user's organization_id
    scopes everything the scheduling endpoints touch, so a token issued for
    another organization is refused.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_data = JWTHandler.decode_token(token)
    if token_data is None:
        raise credentials_exception

    user = await user_service.get_user_by_email(token_data.sub)
    if user is None or not user.is_active:
        log.warning(f"Token subject '{token_data.sub}' is unknown or inactive.")
        raise credentials_exception

    if token_data.org is not None and token_data.org != user.organization_id:
        log.warning(f"Token for '{token_data.sub}' was issued for organization {token_data.org}, user is now in {user.organization_id}.")
        raise credentials_exception

    return user
