"""Type-specific completeness and value checks."""
from __future__ import annotations

import math
import re
from typing import Any, List, Mapping, Optional, Union

from .schema import (
    AnyField,
    ChoiceField,
    FileField,
    FilesField,
    FormField,
    NumberField,
    TextField,
)

Number = Union[int, float]

MISSING = object()


def unwrap(value: Any) -> Any:
    """Strip a ``{"value": ...}`` wrapper some callers send around leaf answers."""

    if isinstance(value, Mapping) and "value" in value:
        return value["value"]
    return value


def is_empty(value: Any) -> bool:
    value = unwrap(value)
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def parse_number(value: Any) -> Optional[Number]:
    """Return ``value`` as int/float, or None when it is not numeric."""

    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number: Number = value
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                return None
    else:
        return None
    if isinstance(number, float):
        if math.isnan(number) or math.isinf(number):
            return None
        if number.is_integer():
            return int(number)
    return number


def match_option(field: ChoiceField, value: Any) -> Optional[str]:
    """Resolve ``value`` to an option value (exact, then case-insensitive value/label)."""

    if not field.options:
        return str(value).strip() if not is_empty(value) else None
    raw = str(value).strip()
    for option in field.options:
        if option.value == raw:
            return option.value
    folded = raw.casefold()
    for option in field.options:
        if option.value.casefold() == folded or option.label.casefold() == folded:
            return option.value
    return None


def file_refs(value: Any) -> Optional[List[str]]:
    """Normalize attachment references to a list of strings; None when malformed."""

    value = unwrap(value)
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        refs: List[str] = []
        for item in value:
            if not isinstance(item, str) or not item.strip():
                return None
            refs.append(item.strip())
        return refs
    return None


def max_files(field: FileField) -> Optional[int]:
    raw = field.max_files
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def leaf_reasons(field: AnyField, value: Any) -> List[str]:
    """Reason codes for a non-empty leaf value; empty list means valid."""

    if isinstance(field, TextField):
        return text_reasons(field, value)
    if isinstance(field, NumberField):
        return number_reasons(field, value)
    if isinstance(field, ChoiceField):
        if field.options and not any(option.value == str(value) for option in field.options):
            return ["invalid_option"]
        return []
    if isinstance(field, FileField):
        refs = file_refs(value)
        if refs is None:
            return ["invalid_reference"]
        limit = max_files(field)
        if limit is not None and len(refs) > limit:
            return ["max_files"]
        return []
    raise TypeError(f"Not a leaf field type: {field.type}")


def text_reasons(field: TextField, value: Any) -> List[str]:
    text = value if isinstance(value, str) else str(value)
    rules = field.validation
    if rules is None:
        return []
    reasons: List[str] = []
    if rules.min_length is not None and len(text) < rules.min_length:
        reasons.append("min_length")
    if rules.max_length is not None and len(text) > rules.max_length:
        reasons.append("max_length")
    if rules.pattern and re.search(rules.pattern, text) is None:
        reasons.append("pattern")
    return reasons


def number_reasons(field: NumberField, value: Any) -> List[str]:
    number = parse_number(value)
    if number is None:
        return ["not_a_number"]
    rules = field.validation
    if rules is None:
        return []
    reasons: List[str] = []
    if rules.minimum is not None and number < rules.minimum:
        reasons.append("minimum")
    if rules.maximum is not None and number > rules.maximum:
        reasons.append("maximum")
    return reasons


def child_value(group: AnyField, child: AnyField, answers: Mapping[str, Any]) -> Any:
    """Latest value of a group child: its own record, else the group's mapping."""

    if child.id in answers:
        return answers[child.id]
    container = answers.get(group.id, MISSING)
    if isinstance(container, Mapping):
        mapping = container.get("mapping")
        if isinstance(mapping, Mapping) and child.question_id in mapping:
            return mapping[child.question_id]
        if child.question_id in container:
            return container[child.question_id]
    return MISSING


def has_record(field: AnyField, answers: Mapping[str, Any]) -> bool:
    """True when the field, or any of its group descendants, has an answer record."""

    if field.id in answers:
        return True
    if isinstance(field, (FormField, FilesField)):
        return any(has_record(child, answers) for child in field.children)
    return False


def is_complete(field: AnyField, answers: Mapping[str, Any]) -> bool:
    """Decide whether ``field``'s contract is satisfied by the latest answers."""

    if isinstance(field, (TextField, NumberField, ChoiceField, FileField)):
        return _leaf_complete(field, answers.get(field.id, MISSING))
    if isinstance(field, FormField):
        return _form_complete(field, answers)
    if isinstance(field, FilesField):
        return _files_complete(field, answers)
    raise TypeError(f"Unsupported field type: {getattr(field, 'type', field)!r}")


def _leaf_complete(field: AnyField, raw: Any) -> bool:
    if raw is MISSING:
        return False
    if is_empty(raw):
        return not field.required
    return not leaf_reasons(field, unwrap(raw))


def _form_complete(form: FormField, answers: Mapping[str, Any]) -> bool:
    if not form.children:
        return form.id in answers and not is_empty(answers[form.id])
    if not form.required and form.id in answers and is_empty(answers[form.id]):
        return True
    for child in form.children:
        if not child.required:
            continue
        if isinstance(child, (FormField, FilesField)):
            if not is_complete(child, answers):
                return False
            continue
        if not _leaf_complete(child, child_value(form, child, answers)):
            return False
    return True


def slot_refs(files: FilesField, slot: FileField, answers: Mapping[str, Any]) -> List[str]:
    raw = child_value(files, slot, answers)
    if raw is MISSING:
        return []
    return file_refs(raw) or []


def _files_complete(files: FilesField, answers: Mapping[str, Any]) -> bool:
    if not files.children:
        if files.id not in answers:
            return False
        refs = file_refs(answers[files.id])
        if refs is None:
            return False
        return bool(refs) or not files.required
    if not files.required and files.id in answers and is_empty(answers[files.id]):
        return True
    required_slots = [slot for slot in files.children if slot.required]
    if required_slots:
        return all(slot_refs(files, slot, answers) for slot in required_slots)
    if files.required:
        return any(slot_refs(files, slot, answers) for slot in files.children)
    return has_record(files, answers)


def missing_children(form: FormField, answers: Mapping[str, Any]) -> List[AnyField]:
    """Children of ``form`` not yet satisfied (required and optional alike)."""

    missing: List[AnyField] = []
    for child in form.children:
        if isinstance(child, (FormField, FilesField)):
            done = is_complete(child, answers)
        else:
            raw = child_value(form, child, answers)
            done = raw is not MISSING and not is_empty(raw) and not leaf_reasons(child, unwrap(raw))
        if not done:
            missing.append(child)
    return missing


__all__ = [
    "MISSING",
    "child_value",
    "file_refs",
    "has_record",
    "is_complete",
    "is_empty",
    "leaf_reasons",
    "match_option",
    "missing_children",
    "number_reasons",
    "parse_number",
    "slot_refs",
    "text_reasons",
    "unwrap",
]
