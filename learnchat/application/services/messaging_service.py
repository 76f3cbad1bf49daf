"""Chat messages, MCQ broadcasts and answers."""

import uuid
from datetime import datetime, timezone
from typing import List

import structlog
from pydantic import ValidationError

from learnchat.core.exceptions import (
    BusinessRuleViolationException,
    EntityNotFoundException,
    ForbiddenException,
    ValidationFailureException,
)
from learnchat.domain.repositories.entity_repository import EntityRepository
from learnchat.domain.schemas.group import Group
from learnchat.domain.schemas.message import (
    MCQPayload,
    MCQResponse,
    Message,
    MessageDraft,
    MessageType,
)
from learnchat.domain.schemas.user import UserRead

logger = structlog.get_logger(__name__)


def _validation_error(e: ValidationError) -> ValidationFailureException:
    messages = [err["msg"].removeprefix("Value error, ") for err in e.errors()]
    return ValidationFailureException(", ".join(messages), {"errors": messages})


def require_group_access(repo: EntityRepository, user: UserRead, group_id: str) -> Group:
    """Members, the creator and admins may read and post in a group.

    Membership is written by the admin process, so it is checked against the
    store rather than this process's snapshot.
    """
    group = repo.get_group(group_id, fresh=True)
    if group is None:
        raise EntityNotFoundException("Group not found", {"group_id": group_id})
    if not user.is_admin and not group.is_visible_to(user.id):
        raise ForbiddenException("Not a member of this group")
    return group


def send_text_message(repo: EntityRepository, sender: UserRead, group_id: str, content: str) -> Message:
    require_group_access(repo, sender, group_id)
    try:
        draft = MessageDraft(
            sender_id=sender.id,
            sender_name=sender.name,
            content=content,
            type=MessageType.TEXT,
            group_id=group_id,
        )
    except ValidationError as e:
        raise _validation_error(e)
    return repo.append_message(draft)


def send_mcq(
    repo: EntityRepository,
    sender: UserRead,
    group_id: str,
    question: str,
    options: List[str],
    correct_answer: str,
) -> Message:
    try:
        payload = MCQPayload(question=question, options=options, correct_answer=correct_answer)
    except ValidationError as e:
        raise _validation_error(e)

    draft = MessageDraft(
        sender_id=sender.id,
        sender_name=sender.name,
        content=payload.to_content(),
        type=MessageType.MCQ,
        group_id=group_id,
    )
    message = repo.append_message(draft)
    logger.info("MCQ sent", message_id=message.id, group_id=group_id, options=len(payload.options))
    return message


def submit_answer(repo: EntityRepository, user: UserRead, message_id: str, selected_answer: str) -> MCQResponse:
    """Record a user's answer; correctness is fixed at submission time."""
    message = repo.get_message(message_id) or repo.get_message(message_id, fresh=True)
    if message is None:
        raise EntityNotFoundException("Message not found", {"message_id": message_id})
    mcq = message.mcq()
    if mcq is None:
        raise BusinessRuleViolationException("Message is not a question", {"message_id": message_id})
    require_group_access(repo, user, message.group_id)
    if selected_answer not in mcq.options:
        raise ValidationFailureException("Selected answer is not one of the options")

    response = MCQResponse(
        id=uuid.uuid4().hex,
        message_id=message.id,
        user_id=user.id,
        user_name=user.name,
        user_email=user.email,
        group_id=message.group_id,
        selected_answer=selected_answer,
        timestamp=datetime.now(timezone.utc),
        is_correct=selected_answer == mcq.correct_answer,
    )
    return repo.append_response(response)
