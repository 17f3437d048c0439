from __future__ import annotations  # Question schema models (tagged union over field types)

import re
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

FieldType = Literal["text", "number", "choice", "form", "file", "files"]

_ORDER_SPLIT = re.compile(r"[.:]")


class ValidationRules(BaseModel):  # Length, pattern and numeric bounds for a field
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    min_length: Optional[int] = Field(default=None, alias="minLength", ge=0)
    max_length: Optional[int] = Field(default=None, alias="maxLength", ge=0)
    pattern: Optional[str] = None
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    minimum: Optional[float] = Field(default=None, alias="min")
    maximum: Optional[float] = Field(default=None, alias="max")


class ChoiceOption(BaseModel):  # Selectable option of a choice field
    model_config = ConfigDict(extra="allow")

    value: str
    label: str = ""
    description: Optional[str] = None

    @model_validator(mode="after")
    def _label_defaults_to_value(self) -> "ChoiceOption":
        if not self.label:
            self.label = self.value
        return self


class BaseField(BaseModel):  # Attributes shared by every schema node
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    order: Optional[Union[int, str]] = None
    question_id: str = Field(default="", alias="questionId")
    required: bool = True
    placeholder: Optional[str] = None
    context: Optional[str] = None
    label: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _default_question_id(cls, data: Any) -> Any:  # Schemas often key fields by id only
        if isinstance(data, dict) and not (data.get("questionId") or data.get("question_id")):
            data = dict(data)
            data["questionId"] = data.get("id")
        return data

    @field_validator("id")
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        if not str(value).strip():
            raise ValueError("field id must not be blank")
        return value


class TextField(BaseField):
    type: Literal["text"] = "text"
    validation: Optional[ValidationRules] = None


class NumberField(BaseField):
    type: Literal["number"] = "number"
    validation: Optional[ValidationRules] = None


class ChoiceField(BaseField):
    type: Literal["choice"] = "choice"
    options: List[ChoiceOption] = Field(default_factory=list)
    option_flows: Dict[str, List[SchemaField]] = Field(default_factory=dict, alias="optionFlows")


class FormField(BaseField):
    type: Literal["form"] = "form"
    children: List[SchemaField] = Field(default_factory=list)


class FileField(BaseField):
    type: Literal["file"] = "file"
    accept: List[str] = Field(default_factory=list)
    max_files: Optional[Union[int, str]] = Field(default=None, alias="maxFiles")
    max_size: Optional[str] = Field(default=None, alias="maxSize")


class FilesField(BaseField):
    type: Literal["files"] = "files"
    children: List[FileField] = Field(default_factory=list)


SchemaField = Annotated[
    Union[TextField, NumberField, ChoiceField, FormField, FileField, FilesField],
    Field(discriminator="type"),
]

AnyField = Union[TextField, NumberField, ChoiceField, FormField, FileField, FilesField]
GroupField = Union[FormField, FilesField]


class CompletionSpec(BaseModel):  # Returned verbatim once the flow is done
    model_config = ConfigDict(extra="allow")

    message: str = ""
    actions: List[str] = Field(default_factory=list)
    type: Optional[str] = None


class FormSchema(BaseModel):  # Root document holding the top-level flow
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = ""
    title: str = ""
    version: Union[int, str] = 1
    locale: Optional[str] = None
    description: Optional[str] = None
    flow: List[SchemaField] = Field(default_factory=list)
    completion: Optional[CompletionSpec] = None


ChoiceField.model_rebuild()
FormField.model_rebuild()
FormSchema.model_rebuild()


def order_key(field: AnyField, position: int) -> Tuple[int, ...]:
    """Sort key for a sibling: parsed ``order`` path, else declaration position."""

    raw = field.order
    if raw is None:
        return (position,)
    if isinstance(raw, int):
        return (raw,)
    parts = [part for part in _ORDER_SPLIT.split(str(raw).strip()) if part]
    try:
        return tuple(int(part) for part in parts) or (position,)
    except ValueError:
        return (position,)


def ordered(fields: Sequence[AnyField]) -> List[AnyField]:
    """Return siblings sorted by ``order`` (stable for ties)."""

    indexed = list(enumerate(fields))
    indexed.sort(key=lambda pair: order_key(pair[1], pair[0]))
    return [field for _, field in indexed]


def order_label(field: AnyField) -> str:
    return str(field.order) if field.order is not None else field.id


def group_children(field: AnyField) -> List[AnyField]:
    """Children of a form/files field; empty for leaves and choices."""

    if isinstance(field, (FormField, FilesField)):
        return list(field.children)
    return []


__all__ = [
    "AnyField",
    "BaseField",
    "ChoiceField",
    "ChoiceOption",
    "CompletionSpec",
    "FieldType",
    "FileField",
    "FilesField",
    "FormField",
    "FormSchema",
    "GroupField",
    "NumberField",
    "SchemaField",
    "TextField",
    "ValidationRules",
    "group_children",
    "order_key",
    "order_label",
    "ordered",
]
