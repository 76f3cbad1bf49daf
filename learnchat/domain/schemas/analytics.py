"""Pydantic schemas for MCQ response analytics and the bulk-import report."""

from typing import Any, Dict, List

from pydantic import BaseModel, Field

from learnchat.domain.schemas.user import GeneratedPassword, UserRead


class MCQStats(BaseModel):
    total: int
    correct: int
    incorrect: int
    accuracy_percent: int


class OptionDistribution(BaseModel):
    option: str
    count: int
    percent: int
    is_correct: bool = False


class RowError(BaseModel):
    row: int
    error: str
    data: Dict[str, Any] = Field(default_factory=dict)


class BulkImportReport(BaseModel):
    success: List[UserRead] = Field(default_factory=list)
    errors: List[RowError] = Field(default_factory=list)
    passwords: List[GeneratedPassword] = Field(default_factory=list)
