"""Pydantic schemas for the User entity."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserBase(BaseModel):
    email: str
    name: str
    phone: str = ""
    employee_id: str
    location: str = ""
    is_admin: bool = False


class UserCreate(UserBase):
    """Admin form for creating a single user; the password is issued, not typed."""
    pass


class UserDraft(UserBase):
    """A user about to be persisted; the repository assigns id and created_at."""
    password_hash: Optional[str] = None
    password_generated_at: Optional[datetime] = None
    created_by: Optional[str] = None


class User(UserDraft):
    id: str
    groups: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    def public(self) -> "UserRead":
        return UserRead.model_validate(self.model_dump(exclude={"password_hash"}))


class UserRead(UserBase):
    """A user as exposed outside the session manager: never carries credentials."""
    id: str
    groups: List[str] = Field(default_factory=list)
    password_generated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class UserUpdate(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    employee_id: Optional[str] = None
    location: Optional[str] = None
    is_admin: Optional[bool] = None


class BulkCreateResult(BaseModel):
    created: List[User]
    skipped: List[UserDraft]


class GeneratedPassword(BaseModel):
    user_id: str
    user_name: str
    email: str
    password: str
