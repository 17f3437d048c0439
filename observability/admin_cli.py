"""Lightweight CLI helpers for checking schemas and replaying answers."""
from __future__ import annotations

import argparse
import json
import sys
from typing import Any, List, Optional, Sequence

from config.settings import settings
from intake_flow import (
    FlowState,
    SchemaDefinitionError,
    SchemaIndex,
    build_profile,
    completion_percentage,
    load_index,
    next_question,
    store_answer,
)


def validate_schema(path: str) -> int:
    try:
        index = load_index(path)
    except SchemaDefinitionError as exc:
        for problem in exc.problems:
            print(f"error: {problem}")
        return 1
    print(f"ok: {index.schema.id} ({len(index)} fields)")
    return 0


def _read_answers(path: str) -> List[Any]:
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, dict):
        return [[key, value] for key, value in data.items()]
    return list(data)


def replay_answers(index: SchemaIndex, answers: Sequence[Any]) -> FlowState:
    """Feed ``[questionId, value]`` pairs through the engine, printing each step."""

    state = FlowState()
    for question_id, value in answers:
        result = store_answer(index, state, question_id, value)
        state = result.flow_state
        if result.accepted:
            print(f"{question_id}: accepted completed={result.completed_ids}")
        else:
            print(f"{question_id}: rejected error={result.error} reasons={result.reasons}")

    question = next_question(index, state)
    state = question.flow_state
    if question.is_complete:
        print("next: <complete>")
    else:
        print(f"next: {question.field.question_id} order={question.next_order} path={'/'.join(question.path)}")
    print(f"percent: {completion_percentage(index, state)}")
    print("profile: " + json.dumps(build_profile(index, state.collected_answers), indent=2, ensure_ascii=False))
    return state


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect intake flow schemas")
    parser.add_argument("--schema", default=settings.SCHEMA_PATH, help="Schema file (.json, .yaml)")
    parser.add_argument("--validate", action="store_true", help="Load the schema and report structural problems")
    parser.add_argument("--answers", help="JSON file of [questionId, value] pairs (or an object) to replay")
    args = parser.parse_args(argv)

    if args.validate:
        status = validate_schema(args.schema)
        if status or not args.answers:
            return status
    if args.answers:
        try:
            index = load_index(args.schema)
        except SchemaDefinitionError as exc:
            print(f"error: {exc}")
            return 1
        replay_answers(index, _read_answers(args.answers))
        return 0
    if not args.validate:
        parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
