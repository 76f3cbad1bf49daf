"""Pydantic schemas for Messages, MCQ payloads and MCQ responses."""

import json
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    MCQ = "mcq"


class MCQPayload(BaseModel):
    """Question embedded in an MCQ message's content.

    Serialized with the `correctAnswer` key so the content string keeps the
    wire format the clients already parse.
    """

    model_config = ConfigDict(populate_by_name=True)

    question: str
    options: List[str]
    correct_answer: str = Field(alias="correctAnswer")

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Question is required")
        return v.strip()

    @field_validator("options")
    @classmethod
    def drop_blank_options(cls, v: List[str]) -> List[str]:
        options = [opt.strip() for opt in v if opt and opt.strip()]
        if len(options) < 2:
            raise ValueError("At least two options are required")
        return options

    @model_validator(mode="after")
    def correct_answer_is_an_option(self) -> "MCQPayload":
        self.correct_answer = self.correct_answer.strip()
        if self.correct_answer not in self.options:
            raise ValueError("Correct answer must be one of the options")
        return self

    def to_content(self) -> str:
        return json.dumps(self.model_dump(by_alias=True), ensure_ascii=False)

    @classmethod
    def from_content(cls, content: str) -> "MCQPayload":
        return cls.model_validate_json(content)


class MessageDraft(BaseModel):
    sender_id: str
    sender_name: str
    content: str
    type: MessageType = MessageType.TEXT
    group_id: str

    @model_validator(mode="after")
    def mcq_content_is_a_question(self) -> "MessageDraft":
        if self.type == MessageType.MCQ:
            try:
                MCQPayload.from_content(self.content)
            except ValidationError as e:
                raise ValueError(f"Invalid MCQ content: {e.errors()[0]['msg']}")
        elif not self.content.strip():
            raise ValueError("Message content is required")
        return self


class Message(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str
    sender_id: str
    sender_name: str
    content: str
    type: MessageType
    timestamp: datetime
    group_id: str

    def mcq(self) -> Optional[MCQPayload]:
        """Parsed question for MCQ messages; None for other types or unreadable content."""
        if self.type != MessageType.MCQ.value:
            return None
        try:
            return MCQPayload.from_content(self.content)
        except ValidationError:
            return None


class MCQResponse(BaseModel):
    id: str
    message_id: str
    user_id: str
    user_name: str
    user_email: str
    group_id: str
    selected_answer: str
    timestamp: datetime
    is_correct: bool


# Request bodies

class TextMessageCreate(BaseModel):
    content: str


class MCQCreate(BaseModel):
    group_id: str
    question: str
    options: List[str]
    correct_answer: str


class AnswerSubmit(BaseModel):
    selected_answer: str
