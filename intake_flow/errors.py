"""Error taxonomy for the intake flow engine."""
from __future__ import annotations

from typing import Dict, List, Optional, Union

ReasonMap = Dict[str, Union[str, List[str]]]


class FlowEngineError(Exception):
    """Base error carrying a machine-readable ``code``."""

    code = "flow_error"

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class SchemaLookupError(FlowEngineError):
    """A questionId is not among the fields reachable in the current state."""

    code = "unknown_field"

    def __init__(self, question_id: str) -> None:
        super().__init__(f"unknown field: {question_id}")
        self.question_id = question_id


class AnswerValidationError(FlowEngineError):
    """A value failed the field's validation rules; state stays unchanged."""

    code = "validation_failed"

    def __init__(
        self,
        question_id: str,
        reasons: List[str] | ReasonMap,
        *,
        message: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        if code is None:
            if isinstance(reasons, dict):
                code = "invalid_form"
            else:
                code = reasons[0] if reasons else self.code
        super().__init__(message or f"invalid value for {question_id}: {reasons}", code=code)
        self.question_id = question_id
        self.reasons = reasons
        self.message = message


class SchemaDefinitionError(FlowEngineError):
    """Malformed schema detected at load time."""

    code = "malformed_schema"

    def __init__(self, problems: List[str]) -> None:
        super().__init__("; ".join(problems) or "malformed schema")
        self.problems = problems


__all__ = [
    "AnswerValidationError",
    "FlowEngineError",
    "ReasonMap",
    "SchemaDefinitionError",
    "SchemaLookupError",
]
