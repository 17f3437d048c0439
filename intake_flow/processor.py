"""Answer validation, storage and sub-flow activation."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .completeness import (
    file_refs,
    is_complete,
    is_empty,
    leaf_reasons,
    match_option,
    max_files,
    parse_number,
    unwrap,
)
from .errors import AnswerValidationError, FlowEngineError, SchemaLookupError
from .index import SchemaIndex
from .models import FlowState, ProcessResult, StoredAnswer, latest_answers
from .resolver import parse_sub_flow, resolve_active_branch, selected_option, settle_sub_flow, sub_flow_ref
from .schema import (
    AnyField,
    ChoiceField,
    FileField,
    FilesField,
    FormField,
    NumberField,
    TextField,
    group_children,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Record = Tuple[AnyField, Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def reachable_fields(index: SchemaIndex, state: FlowState) -> List[AnyField]:
    """Main flow, branches chosen by the latest answers and the active sub-flow.

    Group children are included so a single child can be answered directly.
    """

    answers = latest_answers(state.collected_answers)
    reachable: List[AnyField] = []

    def visit(fields: List[AnyField]) -> None:
        for field in index.iter_tree(fields):
            reachable.append(field)
            if isinstance(field, ChoiceField):
                option = selected_option(field, answers)
                if option is not None:
                    visit(index.branch(field, option))

    visit(list(index.flow))
    if state.active_sub_flow:
        resolved = resolve_active_branch(index, state.active_sub_flow, answers)
        if resolved is not None:
            seen = {field.id for field in reachable}
            for field in index.iter_tree(index.branch(*resolved)):
                if field.id not in seen:
                    reachable.append(field)
    return reachable


def find_reachable(index: SchemaIndex, state: FlowState, question_id: str) -> AnyField:
    """Look up a reachable field by questionId.

    Raises:
        SchemaLookupError: If no reachable field carries ``question_id``.
    """

    for field in reachable_fields(index, state):
        if field.question_id == question_id:
            return field
    raise SchemaLookupError(question_id)


def normalize_leaf(field: AnyField, value: Any) -> Any:
    """Validate a leaf value and return the form it is stored in.

    Raises:
        AnswerValidationError: When the value breaks the field's rules.
    """

    value = unwrap(value)
    message = _error_message(field)
    if is_empty(value):
        if field.required:
            raise AnswerValidationError(field.question_id, ["required"], message=message)
        return [] if isinstance(field, FileField) else ""

    if isinstance(field, TextField):
        text = value.strip() if isinstance(value, str) else str(value).strip()
        reasons = leaf_reasons(field, text)
        if reasons:
            raise AnswerValidationError(field.question_id, reasons, message=message)
        return text
    if isinstance(field, NumberField):
        reasons = leaf_reasons(field, value)
        if reasons:
            raise AnswerValidationError(field.question_id, reasons, message=message)
        return parse_number(value)
    if isinstance(field, ChoiceField):
        option = match_option(field, value)
        if option is None:
            raise AnswerValidationError(field.question_id, ["invalid_option"], message=message)
        return option
    if isinstance(field, FileField):
        reasons = leaf_reasons(field, value)
        if reasons:
            raise AnswerValidationError(field.question_id, reasons, message=message)
        return file_refs(value)
    raise TypeError(f"Not a leaf field type: {field.type}")


def _error_message(field: AnyField) -> Optional[str]:
    rules = getattr(field, "validation", None)
    return rules.error_message if rules is not None else None


def _form_records(form: FormField, value: Any) -> List[Record]:
    if isinstance(value, Mapping) and set(value) == {"value"}:
        value = value["value"]
    if is_empty(value) and not form.required:
        return [(form, {})]
    if not isinstance(value, Mapping):
        raise AnswerValidationError(form.question_id, ["invalid_form"])
    records: List[Record] = []
    failures: Dict[str, List[str]] = {}
    for child in form.children:
        if child.question_id not in value:
            continue
        raw = value[child.question_id]
        if child.required and is_empty(raw):
            # left for the re-prompt that lists only missing children
            continue
        try:
            if isinstance(child, FormField):
                records.extend(_form_records(child, raw))
            elif isinstance(child, FilesField):
                records.extend(_files_records(child, raw))
            else:
                records.append((child, normalize_leaf(child, raw)))
        except AnswerValidationError as exc:
            failures[child.question_id] = exc.reasons if isinstance(exc.reasons, list) else [exc.code]
    if failures:
        raise AnswerValidationError(form.question_id, failures, code="invalid_form")
    if not records and form.required and form.children:
        raise AnswerValidationError(form.question_id, ["required"])
    return records


def _files_records(files: FilesField, value: Any) -> List[Record]:
    if isinstance(value, Mapping) and set(value) == {"value"}:
        value = value["value"]
    if not files.children:
        refs = file_refs(value)
        if refs is None:
            raise AnswerValidationError(files.question_id, ["invalid_reference"])
        if not refs and files.required:
            raise AnswerValidationError(files.question_id, ["required"])
        return [(files, refs)]

    if isinstance(value, Mapping) and isinstance(value.get("mapping"), Mapping):
        value = value["mapping"]
    if not isinstance(value, Mapping):
        if len(files.children) != 1 and not is_empty(value):
            raise AnswerValidationError(files.question_id, ["invalid_files"])
        value = {files.children[0].question_id: value} if not is_empty(value) else {}

    mapping: Dict[str, List[str]] = {}
    records: List[Record] = []
    failures: Dict[str, List[str]] = {}
    for slot in files.children:
        if slot.question_id not in value:
            continue
        refs = file_refs(value[slot.question_id])
        if refs is None:
            failures[slot.question_id] = ["invalid_reference"]
            continue
        limit = max_files(slot)
        if limit is not None and len(refs) > limit:
            failures[slot.question_id] = ["max_files"]
            continue
        mapping[slot.question_id] = refs
        records.append((slot, refs))
    if failures:
        raise AnswerValidationError(files.question_id, failures, code="invalid_files")
    if files.required and not any(mapping.values()):
        raise AnswerValidationError(files.question_id, ["required"])
    return [(files, mapping)] + records


def _records_for(field: AnyField, value: Any) -> List[Record]:
    if isinstance(field, FormField):
        return _form_records(field, value)
    if isinstance(field, FilesField):
        return _files_records(field, value)
    if isinstance(field, (TextField, NumberField, ChoiceField, FileField)):
        return [(field, normalize_leaf(field, value))]
    raise TypeError(f"Unsupported field type: {getattr(field, 'type', field)!r}")


def store_answer(
    index: SchemaIndex,
    state: FlowState,
    question_id: str,
    value: Any,
    *,
    now: Optional[Clock] = None,
) -> ProcessResult:
    """Validate and store a caller-supplied value for ``question_id``.

    A rejected answer leaves the state untouched: the returned ``flow_state`` is
    a copy equal to ``state``. Accepted answers are appended (corrections never
    rewrite earlier records) and the stored field, plus any group ancestor whose
    contract now holds, is marked complete.
    """

    clock = now or _utcnow
    try:
        field = find_reachable(index, state, question_id)
        records = _records_for(field, value)
    except FlowEngineError as exc:
        logger.debug("rejected answer for %s: %s", question_id, exc.code)
        return ProcessResult(
            accepted=False,
            question_id=question_id,
            error=exc.code,
            reasons=getattr(exc, "reasons", []),
            message=getattr(exc, "message", None) or str(exc),
            flow_state=state.model_copy(deep=True),
        )

    updated = state.model_copy(deep=True)
    timestamp = clock()
    for target, stored in records:
        updated.collected_answers.append(
            StoredAnswer(id=target.id, question_id=target.question_id, value=stored, timestamp=timestamp)
        )

    answers = latest_answers(updated.collected_answers)
    completed: List[str] = []
    candidates: List[AnyField] = []
    for target, _ in records:
        candidates.append(target)
        candidates.extend(group_children(target))
        candidates.extend(index.ancestors(target.id))
    for candidate in candidates:
        if candidate.id in completed:
            continue
        if is_complete(candidate, answers):
            completed.append(candidate.id)
            updated.completed_fields.add(candidate.id)

    opened: Optional[str] = None
    if isinstance(field, ChoiceField):
        option = selected_option(field, answers)
        if option is not None:
            opened = sub_flow_ref(field, option)
            updated.active_sub_flow = opened
        elif updated.active_sub_flow and parse_sub_flow(updated.active_sub_flow)[0] == field.question_id:
            owner = index.branch_of(field.id)
            updated.active_sub_flow = sub_flow_ref(index.field(owner[0]), owner[1]) if owner else None

    # Required fields only: a branch closes once they are answered.
    updated.active_sub_flow = settle_sub_flow(index, updated.active_sub_flow, answers)
    new_sub_flow = opened if opened is not None and updated.active_sub_flow == opened else None

    logger.debug(
        "stored %s (%d records), completed=%s, sub_flow=%s",
        question_id,
        len(records),
        completed,
        updated.active_sub_flow,
    )
    return ProcessResult(
        accepted=True,
        question_id=question_id,
        completed_ids=completed,
        new_sub_flow=new_sub_flow,
        flow_state=updated,
    )


__all__ = ["find_reachable", "normalize_leaf", "reachable_fields", "store_answer"]
