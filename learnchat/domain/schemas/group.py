"""Pydantic schemas for the Group entity."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class GroupCreate(BaseModel):
    name: str
    description: str = ""

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Group name is required")
        return v.strip()


class Group(BaseModel):
    id: str
    name: str
    description: str = ""
    members: List[str] = Field(default_factory=list)
    created_by: str = ""
    created_at: Optional[datetime] = None

    def is_visible_to(self, user_id: str) -> bool:
        return user_id in self.members or self.created_by == user_id
