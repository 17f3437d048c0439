"""Schema-driven intake engine: next question, answer storage and profiles."""
from .completeness import is_complete
from .completion import render_completion_message, respondent_name
from .errors import AnswerValidationError, FlowEngineError, SchemaDefinitionError, SchemaLookupError
from .hints import ui_hint
from .index import SchemaIndex
from .loader import build_index, check_schema, load_index, load_schema, parse_schema
from .models import FlowState, NextQuestion, ProcessResult, StoredAnswer, UIHint, latest_answers
from .processor import reachable_fields, store_answer
from .profile import build_profile
from .progress import completion_percentage
from .resolver import next_question
from .schema import (
    ChoiceField,
    ChoiceOption,
    CompletionSpec,
    FileField,
    FilesField,
    FormField,
    FormSchema,
    NumberField,
    SchemaField,
    TextField,
    ValidationRules,
)

__all__ = [
    "AnswerValidationError",
    "ChoiceField",
    "ChoiceOption",
    "CompletionSpec",
    "FileField",
    "FilesField",
    "FlowEngineError",
    "FlowState",
    "FormField",
    "FormSchema",
    "NextQuestion",
    "NumberField",
    "ProcessResult",
    "SchemaDefinitionError",
    "SchemaField",
    "SchemaIndex",
    "SchemaLookupError",
    "StoredAnswer",
    "TextField",
    "UIHint",
    "ValidationRules",
    "build_index",
    "build_profile",
    "check_schema",
    "completion_percentage",
    "is_complete",
    "latest_answers",
    "load_index",
    "load_schema",
    "next_question",
    "parse_schema",
    "reachable_fields",
    "render_completion_message",
    "respondent_name",
    "store_answer",
    "ui_hint",
]
