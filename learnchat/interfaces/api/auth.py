"""Auth API routes — login, logout, me."""

from fastapi import APIRouter, Depends, status

from learnchat.application.services.auth_service import create_access_token
from learnchat.core.exceptions import AuthFailureException
from learnchat.domain.schemas.auth import LoginRequest, TokenResponse
from learnchat.domain.schemas.user import UserRead
from learnchat.interfaces.api.deps import get_current_user
from learnchat.interfaces.deps import Services, get_services

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/login", response_model=TokenResponse)
def login(body: LoginRequest, services: Services = Depends(get_services)):
    if not services.sessions.login(body.email, body.password):
        raise AuthFailureException()

    user = services.sessions.current_user()
    access_token = create_access_token(data={"sub": user.id, "admin": user.is_admin})

    return TokenResponse(access_token=access_token, user=user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    services: Services = Depends(get_services),
    user: UserRead = Depends(get_current_user),
):
    services.sessions.logout()


@router.get("/me", response_model=UserRead)
def get_me(user: UserRead = Depends(get_current_user)):
    return user
