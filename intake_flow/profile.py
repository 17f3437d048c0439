"""Rebuild a nested profile from the flat answer history."""
from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Sequence

from .completeness import MISSING, child_value, is_empty, unwrap
from .index import SchemaIndex
from .models import StoredAnswer, latest_answers
from .resolver import selected_option
from .schema import AnyField, ChoiceField, FileField, FilesField, FormField, ordered

ProfileTree = Dict[str, Any]


def build_profile(index: SchemaIndex, collected_answers: Iterable[StoredAnswer]) -> ProfileTree:
    """Replay the schema against the answers into a tree keyed by questionId.

    Forms become nested objects, fields of a selected sub-flow sit beside their
    choice, and file fields are left out (attachments are referenced
    elsewhere). The latest record per field wins.
    """

    answers = latest_answers(list(collected_answers))
    return _build_list(index, index.flow, answers)


def _build_list(index: SchemaIndex, fields: Sequence[AnyField], answers: Mapping[str, Any]) -> ProfileTree:
    tree: ProfileTree = {}
    for field in fields:
        if isinstance(field, (FileField, FilesField)):
            continue
        if isinstance(field, FormField):
            nested = _build_form(field, answers)
            if nested:
                tree[field.question_id] = nested
            continue
        if field.id in answers and not is_empty(answers[field.id]):
            tree[field.question_id] = unwrap(answers[field.id])
        if isinstance(field, ChoiceField):
            option = selected_option(field, answers)
            if option is not None:
                tree.update(_build_list(index, index.branch(field, option), answers))
    return tree


def _build_form(form: FormField, answers: Mapping[str, Any]) -> ProfileTree:
    nested: ProfileTree = {}
    for child in ordered(form.children):
        if isinstance(child, (FileField, FilesField)):
            continue
        if isinstance(child, FormField):
            inner = _build_form(child, answers)
            if inner:
                nested[child.question_id] = inner
            continue
        raw = child_value(form, child, answers)
        if raw is MISSING or is_empty(raw):
            continue
        nested[child.question_id] = unwrap(raw)
    return nested


__all__ = ["ProfileTree", "build_profile"]
