"""UI hint projection for the field a caller should render."""
from __future__ import annotations

from typing import Any, Dict, Optional

from .models import UIHint
from .schema import AnyField, ChoiceField, FileField, FilesField, FormField, NumberField, TextField, ordered


def _legacy_hint(field: AnyField) -> Dict[str, Any]:
    extra = field.model_extra or {}
    raw = extra.get("uiHint")
    return raw if isinstance(raw, dict) else {}


def ui_hint(field: Optional[AnyField]) -> Optional[UIHint]:
    """Project a field into the render hint sent to clients; None when done."""

    if field is None:
        return None
    legacy = _legacy_hint(field)
    hint = UIHint(
        question_id=field.question_id,
        type=field.type,
        required=field.required,
        placeholder=field.placeholder or legacy.get("placeholder"),
        context=field.context,
        label=field.label,
        extras=dict(field.model_extra or {}),
    )
    if isinstance(field, (TextField, NumberField)) and field.validation is not None:
        hint.validation = field.validation.model_dump(by_alias=True, exclude_none=True)
    if isinstance(field, ChoiceField):
        options = field.options or []
        if not options and isinstance(legacy.get("options"), list):
            hint.options = [dict(option) for option in legacy["options"] if isinstance(option, dict)]
        else:
            hint.options = [option.model_dump(exclude_none=True) for option in options]
    if isinstance(field, FileField):
        hint.accept = list(field.accept)
        hint.max_files = field.max_files
        hint.max_size = field.max_size
    if isinstance(field, (FormField, FilesField)):
        hint.children = [ui_hint(child) for child in ordered(field.children)]
    return hint


__all__ = ["ui_hint"]
