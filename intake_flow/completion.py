"""Completion message rendering with respondent-name placeholders."""
from __future__ import annotations

import re
from typing import Iterable, List, Optional

from .index import SchemaIndex
from .models import StoredAnswer
from .schema import CompletionSpec

NAME_PLACEHOLDERS = (
    "{name}",
    "{full_name}",
    "{fullName}",
    "{firstName}",
    "{first_name}",
    "{user_name}",
    "{customer_name}",
)
NAME_KEYS = ("full_name", "name", "first_name", "firstname", "fullname", "customer_name", "user_name")

_PHONE = re.compile(r"^\+?[0-9]{7,15}$")
DEFAULT_MESSAGE = "Thank you! Your information has been collected."


def _name_question_id(index: SchemaIndex) -> Optional[str]:
    for field in index.flow:
        if "name" in field.question_id.lower():
            return field.question_id
    return None


def respondent_name(
    index: SchemaIndex, answers: Iterable[StoredAnswer], *, fallback: str = "there"
) -> str:
    """Best guess at the respondent's name from the collected answers."""

    records: List[StoredAnswer] = list(answers)
    target = _name_question_id(index)
    if target is None:
        target = next((key for key in NAME_KEYS if any(a.question_id == key for a in records)), None)
    if target is not None:
        for answer in reversed(records):
            if answer.question_id == target and answer.value:
                return str(answer.value)

    for answer in records:
        text = str(answer.value or "")
        if len(text) > 2 and "@" not in text and not _PHONE.match(text) and isinstance(answer.value, str):
            return text
    return fallback


def render_completion_message(
    completion: Optional[CompletionSpec],
    index: SchemaIndex,
    answers: Iterable[StoredAnswer],
    *,
    fallback_name: str = "there",
    default_message: str = DEFAULT_MESSAGE,
) -> str:
    """Fill name placeholders in the schema's completion message."""

    message = completion.message if completion is not None and completion.message else default_message
    name = respondent_name(index, answers, fallback=fallback_name)
    for placeholder in NAME_PLACEHOLDERS:
        message = message.replace(placeholder, name)
    return message


__all__ = ["DEFAULT_MESSAGE", "NAME_PLACEHOLDERS", "render_completion_message", "respondent_name"]
