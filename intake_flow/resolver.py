"""Next-question resolution over the main flow and conditional sub-flows."""
from __future__ import annotations

import logging
from typing import Any, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from .completeness import has_record, is_complete, missing_children, unwrap
from .index import SchemaIndex
from .models import FlowState, NextQuestion, latest_answers
from .schema import (
    AnyField,
    ChoiceField,
    FileField,
    FilesField,
    FormField,
    NumberField,
    TextField,
    order_label,
)

logger = logging.getLogger(__name__)


class _Hit(NamedTuple):
    field: AnyField
    path: List[str]
    order_path: List[str]


def parse_sub_flow(ref: str) -> Tuple[str, str]:
    """Split ``"questionId:optionValue"`` on the first colon."""

    question_id, _, option = ref.partition(":")
    return question_id, option


def sub_flow_ref(choice: ChoiceField, option: str) -> str:
    return f"{choice.question_id}:{option}"


def selected_option(choice: ChoiceField, answers: Mapping[str, Any]) -> Optional[str]:
    """Option value currently stored for ``choice`` when it opens a sub-flow."""

    if choice.id not in answers:
        return None
    value = unwrap(answers[choice.id])
    if isinstance(value, str) and value in choice.option_flows:
        return value
    return None


def _walk(
    index: SchemaIndex,
    fields: Sequence[AnyField],
    answers: Mapping[str, Any],
    path: List[str],
    order_path: List[str],
) -> Optional[_Hit]:
    for field in fields:
        here = path + [field.question_id]
        here_order = order_path + [order_label(field)]

        if isinstance(field, ChoiceField):
            if not is_complete(field, answers):
                return _Hit(field, here, here_order)
            option = selected_option(field, answers)
            if option is not None and branch_pending(index, field, option, answers):
                nested = _walk(index, index.branch(field, option), answers, here + [option], here_order)
                if nested is not None:
                    return nested
            continue

        if isinstance(field, FormField):
            if is_complete(field, answers):
                continue
            if not has_record(field, answers):
                return _Hit(field, here, here_order)
            clone = field.model_copy(update={"children": missing_children(field, answers)})
            return _Hit(clone, here, here_order)

        if isinstance(field, FilesField):
            if is_complete(field, answers):
                continue
            return _Hit(field, here, here_order)

        if isinstance(field, (TextField, NumberField, FileField)):
            if not is_complete(field, answers):
                return _Hit(field, here, here_order)
            continue

        raise TypeError(f"Unsupported field type: {getattr(field, 'type', field)!r}")
    return None


def resolve_active_branch(
    index: SchemaIndex, ref: str, answers: Mapping[str, Any]
) -> Optional[Tuple[ChoiceField, str]]:
    """Owning choice and option for an active sub-flow, or None when stale."""

    question_id, option = parse_sub_flow(ref)
    for choice, _ in _reachable_choices(index, index.flow, answers):
        if choice.question_id == question_id and selected_option(choice, answers) == option:
            return choice, option
    return None


def _reachable_choices(
    index: SchemaIndex, fields: Sequence[AnyField], answers: Mapping[str, Any]
) -> List[Tuple[ChoiceField, List[AnyField]]]:
    found: List[Tuple[ChoiceField, List[AnyField]]] = []
    for field in fields:
        if not isinstance(field, ChoiceField):
            continue
        option = selected_option(field, answers)
        branch = index.branch(field, option) if option is not None else []
        found.append((field, branch))
        if branch:
            found.extend(_reachable_choices(index, branch, answers))
    return found


def _prefix_for(index: SchemaIndex, choice: ChoiceField, option: str) -> Tuple[List[str], List[str]]:
    """questionId/order path leading into ``choice``'s ``option`` branch."""

    path: List[str] = [choice.question_id, option]
    order_path: List[str] = [order_label(choice)]
    owner = index.branch_of(choice.id)
    while owner is not None:
        parent_choice = index.field(owner[0])
        path = [parent_choice.question_id, owner[1]] + path
        order_path = [order_label(parent_choice)] + order_path
        owner = index.branch_of(parent_choice.id)
    return path, order_path


def branch_pending(index: SchemaIndex, choice: ChoiceField, option: str, answers: Mapping[str, Any]) -> bool:
    """True while a required field of the sub-flow, or of a sub-flow selected inside it, is unanswered.

    Optional fields never hold a sub-flow open.
    """

    for field in index.branch(choice, option):
        if field.required and not is_complete(field, answers):
            return True
        if isinstance(field, ChoiceField):
            nested = selected_option(field, answers)
            if nested is not None and branch_pending(index, field, nested, answers):
                return True
    return False


def branch_chain(index: SchemaIndex, ref: str, answers: Mapping[str, Any]) -> List[Tuple[ChoiceField, str]]:
    """The sub-flow ``ref`` names and every sub-flow enclosing it, innermost first.

    Empty when ``ref`` is stale.
    """

    chain: List[Tuple[ChoiceField, str]] = []
    resolved = resolve_active_branch(index, ref, answers)
    while resolved is not None:
        chain.append(resolved)
        owner = index.branch_of(resolved[0].id)
        if owner is None:
            break
        outer = index.field(owner[0])
        if not isinstance(outer, ChoiceField) or selected_option(outer, answers) != owner[1]:
            break
        resolved = (outer, owner[1])
    return chain


def settle_sub_flow(index: SchemaIndex, ref: Optional[str], answers: Mapping[str, Any]) -> Optional[str]:
    """Sub-flow that stays active after ``ref``.

    ``ref`` itself while it has required fields left, otherwise the nearest
    enclosing sub-flow that still does, otherwise None.
    """

    if not ref:
        return None
    for choice, option in branch_chain(index, ref, answers):
        if branch_pending(index, choice, option, answers):
            return sub_flow_ref(choice, option)
    return None


def next_question(index: SchemaIndex, state: FlowState) -> NextQuestion:
    """Find the single next field to present, or report the flow complete.

    An active sub-flow is continued first. Once its required fields are
    answered, or its choice no longer holds the option that opened it, control
    passes to the enclosing sub-flow if that one still has required fields,
    else the walk restarts from the top-level list. Answered fields and
    finished sub-flows are skipped there, so control lands on the sibling
    after the choice.
    """

    answers = latest_answers(state.collected_answers)
    updated = state.model_copy(deep=True)

    if updated.active_sub_flow:
        settled = settle_sub_flow(index, updated.active_sub_flow, answers)
        if settled != updated.active_sub_flow:
            logger.debug("sub-flow %s closed, continuing in %s", updated.active_sub_flow, settled or "main flow")
            updated.active_sub_flow = settled
        if settled is not None:
            resolved = resolve_active_branch(index, settled, answers)
            if resolved is not None:
                choice, option = resolved
                prefix, order_prefix = _prefix_for(index, choice, option)
                hit = _walk(index, index.branch(choice, option), answers, prefix, order_prefix)
                if hit is not None:
                    return _result(index, hit, answers, updated)
            updated.active_sub_flow = None

    hit = _walk(index, index.flow, answers, [], [])
    return _result(index, hit, answers, updated)


def _result(
    index: SchemaIndex, hit: Optional[_Hit], answers: Mapping[str, Any], state: FlowState
) -> NextQuestion:
    remaining = [field.question_id for field in index.flow if not is_complete(field, answers)]
    if hit is None:
        return NextQuestion(
            field=None,
            remaining_top_level_ids=remaining,
            is_complete=True,
            completion=index.schema.completion,
            flow_state=state,
        )
    return NextQuestion(
        field=hit.field,
        path=hit.path,
        order_path=hit.order_path,
        next_order=":".join(hit.order_path) or None,
        remaining_top_level_ids=remaining,
        is_complete=False,
        flow_state=state,
    )


__all__ = [
    "branch_chain",
    "branch_pending",
    "next_question",
    "parse_sub_flow",
    "resolve_active_branch",
    "selected_option",
    "settle_sub_flow",
    "sub_flow_ref",
]
