'''
API endpoints for authentication.
'''
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from ..database import models as db_models
from ..services.auth_service import LoginService
from ..services.security import verify_token_and_get_user
from ..models import token as token_models
from ..models import user as user_models
from ..common.logger import log


class AuthRoutes:
    def __init__(self):
        self.router = APIRouter(
            prefix="/auth",
            tags=["Authentication"]
        )
        self._register_routes()

    def _register_routes(self):
        self.router.add_api_route(
            "/login",
            self.login_for_access_token,
            methods=["POST"],
            response_model=token_models.Token,
            summary="Login for Access Token"
        )
        self.router.add_api_route(
            "/me",
            self.read_current_user,
            methods=["GET"],
            response_model=user_models.UserRead,
            summary="Current user"
        )

    async def login_for_access_token(
        self,
        form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
        login_service: Annotated[LoginService, Depends(LoginService)]
    ):
        """
        Exchanges email (`username` field) and password for a bearer token.
        """
        try:
            return await login_service.login_user(form_data)
        except HTTPException:
            raise
        except Exception as e:
            log.error(f"Unexpected error during login: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="An internal server error occurred during login.",
            )

    async def read_current_user(
        self,
        current_user: Annotated[db_models.Users, Depends(verify_token_and_get_user)]
    ):
        return current_user


auth_routes = AuthRoutes()
router = auth_routes.router
