"""Pydantic schemas for login and tokens."""

from pydantic import BaseModel

from learnchat.domain.schemas.user import UserRead


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead
