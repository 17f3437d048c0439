"""Schema loading and load-time structural validation."""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Set, Tuple

import yaml
from pydantic import ValidationError

from .errors import SchemaDefinitionError
from .index import SchemaIndex
from .schema import (
    AnyField,
    ChoiceField,
    FormField,
    FormSchema,
    NumberField,
    TextField,
    group_children,
    order_key,
)

logger = logging.getLogger(__name__)


def _read_document(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


def parse_schema(data: Mapping[str, Any]) -> FormSchema:
    """Validate an in-memory schema document and check its structure."""

    try:
        schema = FormSchema.model_validate(data)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        ]
        raise SchemaDefinitionError(problems) from exc
    problems = check_schema(schema)
    if problems:
        raise SchemaDefinitionError(problems)
    return schema


def load_schema(path: str | Path) -> FormSchema:
    """Load a JSON or YAML schema document from disk."""

    schema_path = Path(path)
    try:
        data = _read_document(schema_path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise SchemaDefinitionError([f"{schema_path}: {exc}"]) from exc
    if not isinstance(data, dict):
        raise SchemaDefinitionError([f"{schema_path}: top-level document must be an object"])
    schema = parse_schema(data)
    logger.debug("loaded schema %s with %d top-level fields", schema_path, len(schema.flow))
    return schema


def build_index(schema: FormSchema) -> SchemaIndex:
    """Check a schema built in code and index it."""

    problems = check_schema(schema)
    if problems:
        raise SchemaDefinitionError(problems)
    return SchemaIndex(schema)


def load_index(path: str | Path) -> SchemaIndex:
    return SchemaIndex(load_schema(path))


def check_schema(schema: FormSchema) -> List[str]:
    """Return every structural problem found; empty means the schema is usable."""

    problems: List[str] = []
    seen_ids: Set[str] = set()
    _check_list(schema.flow, "flow", problems, seen_ids, stack=set(), path_qids=set(), in_group=False)
    return problems


def _check_list(
    fields: List[AnyField],
    where: str,
    problems: List[str],
    seen_ids: Set[str],
    *,
    stack: Set[int],
    path_qids: Set[str],
    in_group: bool,
) -> Set[str]:
    """Check one field list; return the questionIds it and its sub-flows add to a path."""

    orders: Dict[Tuple[int, ...], str] = {}
    for field in fields:
        if field.order is None:
            continue
        key = order_key(field, 0)
        if key in orders:
            problems.append(f"{where}: fields '{orders[key]}' and '{field.id}' share order {field.order!r}")
        else:
            orders[key] = field.id

    local_qids = set(path_qids)
    for field in _tree(fields, problems, stack):
        if field.question_id in local_qids:
            problems.append(f"{where}: questionId '{field.question_id}' repeats on one path")
        local_qids.add(field.question_id)

    # sub-flows of sibling choices can all be taken on one path
    branch_qids: Set[str] = set()
    for field in fields:
        branch_qids |= _check_field(
            field, where, problems, seen_ids, stack=stack, path_qids=local_qids | branch_qids, in_group=in_group
        )
    return (local_qids - path_qids) | branch_qids


def _tree(fields: Iterable[AnyField], problems: List[str], stack: Set[int]) -> List[AnyField]:
    collected: List[AnyField] = []

    def walk(nodes: Iterable[AnyField], active: Set[int]) -> None:
        for node in nodes:
            marker = id(node)
            if marker in active:
                problems.append(f"cycle detected at field '{node.id}'")
                continue
            collected.append(node)
            walk(group_children(node), active | {marker})

    walk(fields, set(stack))
    return collected


def _check_field(
    field: AnyField,
    where: str,
    problems: List[str],
    seen_ids: Set[str],
    *,
    stack: Set[int],
    path_qids: Set[str],
    in_group: bool,
) -> Set[str]:
    marker = id(field)
    added: Set[str] = set()
    if marker in stack:
        return added
    location = f"{where}.{field.id}"
    if field.id in seen_ids:
        problems.append(f"{location}: duplicate field id '{field.id}'")
    seen_ids.add(field.id)

    if isinstance(field, (TextField, NumberField)) and field.validation is not None:
        rules = field.validation
        if rules.pattern:
            try:
                re.compile(rules.pattern)
            except re.error as exc:
                problems.append(f"{location}: invalid pattern {rules.pattern!r} ({exc})")
        if rules.min_length is not None and rules.max_length is not None and rules.min_length > rules.max_length:
            problems.append(f"{location}: minLength exceeds maxLength")
        if rules.minimum is not None and rules.maximum is not None and rules.minimum > rules.maximum:
            problems.append(f"{location}: min exceeds max")

    if isinstance(field, ChoiceField):
        values = [option.value for option in field.options]
        if len(set(values)) != len(values):
            problems.append(f"{location}: duplicate option values")
        if field.option_flows and in_group:
            problems.append(f"{location}: optionFlows are not supported inside a group")
        for option, sub_flow in field.option_flows.items():
            if values and option not in values:
                problems.append(f"{location}: optionFlows key '{option}' matches no option")
            added |= _check_list(
                sub_flow,
                f"{location}[{option}]",
                problems,
                seen_ids,
                stack=stack | {marker},
                path_qids=path_qids,
                in_group=False,
            )

    children = group_children(field)
    if children:
        for child in children:
            if id(child) in stack | {marker}:
                continue
            added |= _check_field(
                child,
                location,
                problems,
                seen_ids,
                stack=stack | {marker},
                path_qids=path_qids,
                in_group=True,
            )
        child_orders: Dict[Tuple[int, ...], str] = {}
        for child in children:
            if child.order is None:
                continue
            key = order_key(child, 0)
            if key in child_orders:
                problems.append(f"{location}: children '{child_orders[key]}' and '{child.id}' share order")
            else:
                child_orders[key] = child.id
    elif isinstance(field, FormField):
        logger.debug("form field %s has no children", field.id)
    return added


__all__ = ["build_index", "check_schema", "load_index", "load_schema", "parse_schema"]
