"""One conversational turn: extract, store, resolve, report."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from config.registry import EXTRACTOR_KEY, get_model
from config.settings import settings
from intake_flow import (
    FilesField,
    FormField,
    SchemaIndex,
    UIHint,
    build_profile,
    completion_percentage,
    next_question,
    render_completion_message,
    store_answer,
    ui_hint,
)
from intake_flow.completeness import MISSING, is_empty
from intake_flow.errors import ReasonMap
from intake_flow.models import field_summary
from intake_flow.schema import AnyField
from observability import log_event, span
from services.sessions import ConversationSession, SessionStatus


class Extraction(BaseModel):
    """Structured output expected from the bound answer extractor."""

    extracted: Dict[str, Any] = Field(default_factory=dict)
    reply: Optional[str] = None


class TurnResult(BaseModel):
    session_id: str
    status: SessionStatus
    question_id: Optional[str] = None
    ui_hint: Optional[UIHint] = None
    completion_percentage: int
    accepted: Optional[bool] = None
    error: Optional[str] = None
    reasons: Union[List[str], ReasonMap] = Field(default_factory=list)
    message: Optional[str] = None
    profile: Dict[str, Any] = Field(default_factory=dict)
    new_sub_flow: Optional[str] = None


def extract_answers(hint: UIHint, user_msg: str) -> Extraction:
    """Ask the registry-bound extractor to turn free text into flat values."""

    llm = get_model(EXTRACTOR_KEY)
    raw = llm(question=hint.model_dump(), text=user_msg)
    try:
        return Extraction.model_validate(raw)
    except ValidationError:
        return Extraction()


def pick_value(field: AnyField, flat: Mapping[str, Any]) -> Any:
    """Select the value for ``field`` from a flat questionId mapping.

    Forms collect their children's keys; a files field takes its own key or
    its slots' keys. Returns ``MISSING`` when nothing usable was supplied.
    """

    own = flat.get(field.question_id, MISSING)
    if own is not MISSING and is_empty(own) and not field.required:
        return own
    if isinstance(field, (FormField, FilesField)):
        if isinstance(own, Mapping) and own:
            return own
        if isinstance(field, FilesField) and own is not MISSING and not is_empty(own):
            return own
        collected: Dict[str, Any] = {}
        for child in field.children:
            value = pick_value(child, flat)
            if value is not MISSING:
                collected[child.question_id] = value
        return collected or MISSING
    if own is MISSING or is_empty(own):
        return MISSING
    return own


def _finish(index: SchemaIndex, session: ConversationSession, **fields: Any) -> TurnResult:
    with span(session, "resolve"):
        question = next_question(index, session.flow_state)
    session.flow_state = question.flow_state
    percent = completion_percentage(index, session.flow_state)
    profile = build_profile(index, session.flow_state.collected_answers)

    if question.is_complete:
        session.status = "complete"
        fields["message"] = render_completion_message(
            question.completion,
            index,
            session.flow_state.collected_answers,
            fallback_name=settings.NAME_FALLBACK,
            default_message=settings.DEFAULT_COMPLETION_MESSAGE,
        )
        percent = 100
    result = TurnResult(
        session_id=session.session_id,
        status=session.status,
        question_id=question.field.question_id if question.field is not None else None,
        ui_hint=ui_hint(question.field),
        completion_percentage=percent,
        profile=profile,
        **fields,
    )
    session.events.append(
        log_event(
            "turn_end",
            session.session_id,
            question_id=result.question_id,
            percent=percent,
            status=session.status,
            sub_flow=session.flow_state.active_sub_flow,
        )
    )
    del session.events[: max(0, len(session.events) - settings.MAX_SESSION_EVENTS)]
    return result


def run_turn(
    index: SchemaIndex,
    session: ConversationSession,
    *,
    answers: Optional[Mapping[str, Any]] = None,
    user_msg: Optional[str] = None,
) -> TurnResult:
    """Apply one user turn to ``session`` and describe what to ask next.

    ``answers`` are structured values keyed by questionId (e.g. from a form
    widget); ``user_msg`` is free text handed to the bound extractor. The
    open question's value is taken from whichever supplies it, with
    ``answers`` taking precedence.
    """

    if session.status == "complete":
        return _finish(index, session)

    with span(session, "resolve"):
        current = next_question(index, session.flow_state)
    session.flow_state = current.flow_state
    if current.field is None:
        return _finish(index, session)

    field = current.field
    log_event("turn_start", session.session_id, question_id=field.question_id, field=field_summary(field))

    flat: Dict[str, Any] = {}
    reply: Optional[str] = None
    if user_msg:
        with span(session, "extract"):
            extraction = extract_answers(ui_hint(field), user_msg)
        flat.update(extraction.extracted)
        reply = extraction.reply
    if answers:
        flat.update(answers)

    value = pick_value(field, flat)
    if value is MISSING:
        return _finish(index, session, message=reply)

    with span(session, "store"):
        processed = store_answer(index, session.flow_state, field.question_id, value)
    session.flow_state = processed.flow_state
    log_event(
        "answer",
        session.session_id,
        question_id=field.question_id,
        accepted=processed.accepted,
        error=processed.error,
        sub_flow=processed.new_sub_flow,
    )
    return _finish(
        index,
        session,
        accepted=processed.accepted,
        error=processed.error,
        reasons=processed.reasons,
        message=processed.message if not processed.accepted else reply,
        new_sub_flow=processed.new_sub_flow,
    )


__all__ = ["Extraction", "TurnResult", "extract_answers", "pick_value", "run_turn"]
