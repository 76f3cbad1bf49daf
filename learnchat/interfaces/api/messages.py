"""Group chat, MCQ broadcast and answers."""

from typing import List

from fastapi import APIRouter, Depends, status

from learnchat.application.services.messaging_service import (
    require_group_access,
    send_mcq,
    send_text_message,
    submit_answer,
)
from learnchat.domain.schemas.message import (
    AnswerSubmit,
    MCQCreate,
    MCQResponse,
    Message,
    TextMessageCreate,
)
from learnchat.domain.schemas.user import UserRead
from learnchat.interfaces.api.deps import get_current_user, require_admin
from learnchat.interfaces.deps import Services, get_services

router = APIRouter(prefix="/api/messages", tags=["Messages"])


@router.post("/mcq", response_model=Message, status_code=status.HTTP_201_CREATED)
def broadcast_mcq(
    body: MCQCreate,
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    return send_mcq(services.repo, admin, body.group_id, body.question, body.options, body.correct_answer)


@router.post("/{message_id}/answer", response_model=MCQResponse, status_code=status.HTTP_201_CREATED)
def answer(
    message_id: str,
    body: AnswerSubmit,
    services: Services = Depends(get_services),
    user: UserRead = Depends(get_current_user),
):
    return submit_answer(services.repo, user, message_id, body.selected_answer)


@router.get("/{message_id}/my-answer", response_model=MCQResponse | None)
def my_answer(
    message_id: str,
    services: Services = Depends(get_services),
    user: UserRead = Depends(get_current_user),
):
    return services.repo.find_response(message_id, user.id)


@router.get("/group/{group_id}", response_model=List[Message])
def group_messages(
    group_id: str,
    services: Services = Depends(get_services),
    user: UserRead = Depends(get_current_user),
):
    # Served from the snapshot the reconciler keeps fresh
    require_group_access(services.repo, user, group_id)
    return services.repo.list_messages_for_group(group_id)


@router.post("/group/{group_id}", response_model=Message, status_code=status.HTTP_201_CREATED)
def post_message(
    group_id: str,
    body: TextMessageCreate,
    services: Services = Depends(get_services),
    user: UserRead = Depends(get_current_user),
):
    return send_text_message(services.repo, user, group_id, body.content)
