"""Response analytics — pure aggregation over MCQ messages and responses.

All functions take snapshots (lists) and return new values; nothing here
reads from or writes to the repository.
"""

import math
from typing import Dict, Iterable, List, Optional

import pytz

from learnchat.config import get_settings
from learnchat.domain.schemas.analytics import MCQStats, OptionDistribution
from learnchat.domain.schemas.group import Group
from learnchat.domain.schemas.message import MCQResponse, Message

settings = get_settings()
tz = pytz.timezone(settings.TIMEZONE)

UNKNOWN = "Unknown"


def percent(part: int, total: int) -> int:
    """Whole percentage, halves rounded up; 0 for an empty total."""
    if total == 0:
        return 0
    return math.floor(part / total * 100 + 0.5)


def _stats(responses: List[MCQResponse]) -> MCQStats:
    total = len(responses)
    correct = sum(1 for r in responses if r.is_correct)
    return MCQStats(
        total=total,
        correct=correct,
        incorrect=total - correct,
        accuracy_percent=percent(correct, total),
    )


def stats_for_message(responses: Iterable[MCQResponse], message_id: str) -> MCQStats:
    return _stats([r for r in responses if r.message_id == message_id])


def stats_for_group(responses: Iterable[MCQResponse], group_id: str) -> MCQStats:
    return _stats([r for r in responses if r.group_id == group_id])


def overall_accuracy(responses: Iterable[MCQResponse]) -> int:
    return _stats(list(responses)).accuracy_percent


def distribution_for_message(message: Message, responses: Iterable[MCQResponse]) -> List[OptionDistribution]:
    """Answer count and share per option, in the question's option order."""
    mcq = message.mcq()
    if mcq is None:
        return []
    answers = [r.selected_answer for r in responses if r.message_id == message.id]
    return [
        OptionDistribution(
            option=option,
            count=answers.count(option),
            percent=percent(answers.count(option), len(answers)),
            is_correct=option == mcq.correct_answer,
        )
        for option in mcq.options
    ]


def report_rows(
    responses: Iterable[MCQResponse],
    messages: Iterable[Message],
    groups: Iterable[Group],
) -> List[Dict[str, str]]:
    """Flatten responses into export rows.

    A response whose question or group no longer exists is still reported,
    with "Unknown" in place of the missing values.
    """
    messages_by_id: Dict[str, Message] = {m.id: m for m in messages}
    groups_by_id: Dict[str, Group] = {g.id: g for g in groups}

    rows = []
    for r in responses:
        message: Optional[Message] = messages_by_id.get(r.message_id)
        mcq = message.mcq() if message else None
        group = groups_by_id.get(r.group_id)
        rows.append({
            "User Name": r.user_name,
            "Email": r.user_email,
            "Group": group.name if group else UNKNOWN,
            "Question": mcq.question if mcq else UNKNOWN,
            "Selected Answer": r.selected_answer,
            "Correct Answer": mcq.correct_answer if mcq else UNKNOWN,
            "Is Correct": "Yes" if r.is_correct else "No",
            "Submitted At": r.timestamp.astimezone(tz).strftime("%d/%m/%Y %H:%M:%S"),
        })
    return rows
