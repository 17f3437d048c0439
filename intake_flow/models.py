from __future__ import annotations  # Conversation flow state and engine results

from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from .errors import AnswerValidationError, FlowEngineError, ReasonMap, SchemaLookupError
from .schema import AnyField, CompletionSpec, SchemaField


class StoredAnswer(BaseModel):  # One append-only answer record
    id: str
    question_id: str
    value: Any = None
    timestamp: datetime


class FlowState(BaseModel):  # Per-conversation record of what has been answered
    completed_fields: Set[str] = Field(default_factory=set)
    collected_answers: List[StoredAnswer] = Field(default_factory=list)
    active_sub_flow: Optional[str] = None


class NextQuestion(BaseModel):  # Resolver output for one turn
    field: Optional[SchemaField] = None
    path: List[str] = Field(default_factory=list)
    order_path: List[str] = Field(default_factory=list)
    next_order: Optional[str] = None
    remaining_top_level_ids: List[str] = Field(default_factory=list)
    is_complete: bool = False
    completion: Optional[CompletionSpec] = None
    flow_state: FlowState

    @property
    def in_sub_flow(self) -> bool:
        return self.flow_state.active_sub_flow is not None


class ProcessResult(BaseModel):  # Answer processor outcome
    accepted: bool
    question_id: str
    completed_ids: List[str] = Field(default_factory=list)
    new_sub_flow: Optional[str] = None
    error: Optional[str] = None
    reasons: List[str] | ReasonMap = Field(default_factory=list)
    message: Optional[str] = None
    flow_state: FlowState

    def raise_for_error(self) -> None:
        """Re-raise the lookup/validation failure behind a rejected result."""

        if self.accepted:
            return
        if self.error == SchemaLookupError.code:
            raise SchemaLookupError(self.question_id)
        if self.error is not None:
            raise AnswerValidationError(
                self.question_id, self.reasons, message=self.message, code=self.error
            )
        raise FlowEngineError(f"answer for {self.question_id} was rejected")


class UIHint(BaseModel):  # Render hint for the field a caller should present
    question_id: str
    type: str
    required: bool
    placeholder: Optional[str] = None
    context: Optional[str] = None
    label: Optional[str] = None
    options: List[Dict[str, Any]] = Field(default_factory=list)
    validation: Optional[Dict[str, Any]] = None
    accept: List[str] = Field(default_factory=list)
    max_files: Optional[int | str] = None
    max_size: Optional[str] = None
    children: List["UIHint"] = Field(default_factory=list)
    extras: Dict[str, Any] = Field(default_factory=dict)


UIHint.model_rebuild()


def latest_answers(collected: List[StoredAnswer]) -> Dict[str, Any]:
    """Map field id to its most recent value (append order wins)."""

    latest: Dict[str, Any] = {}
    for answer in collected:
        latest[answer.id] = answer.value
    return latest


def field_summary(field: Optional[AnyField]) -> Optional[Dict[str, str]]:
    if field is None:
        return None
    return {"id": field.id, "question_id": field.question_id, "type": field.type}


__all__ = [
    "FlowState",
    "NextQuestion",
    "ProcessResult",
    "StoredAnswer",
    "UIHint",
    "field_summary",
    "latest_answers",
]
