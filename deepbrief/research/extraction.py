"""Layered JSON extraction and deliverable validation for Phase 2 output."""
from __future__ import annotations

import json
import re
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError

from deepbrief.models.deliverables import schema_for
from deepbrief.models.jobs import TemplateKind
from deepbrief.research.errors import ExtractionParseError, FieldViolation, ValidationError

_LEADING_FENCE = re.compile(r"^\s*```[A-Za-z0-9_-]*[ \t]*\r?\n?")
_TRAILING_FENCE = re.compile(r"\r?\n?```\s*$")
_CLOSERS = {"{": "}", "[": "]"}


def parse_direct(text: str) -> Any:
    return json.loads(text)


def parse_fenced(text: str) -> Any:
    """Parse after stripping one leading and one trailing code fence."""
    if not _LEADING_FENCE.match(text):
        raise ValueError("no leading code fence")
    inner = _LEADING_FENCE.sub("", text, count=1)
    inner = _TRAILING_FENCE.sub("", inner, count=1)
    return json.loads(inner)


def parse_enclosed(text: str) -> Any:
    """Parse the span from the first opening brace/bracket to the last matching closer."""
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        raise ValueError("no JSON object or array found")
    start = min(starts)
    end = text.rfind(_CLOSERS[text[start]])
    if end <= start:
        raise ValueError("unterminated JSON object or array")
    return json.loads(text[start : end + 1])


LAYERS: list[tuple[str, Callable[[str], Any]]] = [
    ("direct", parse_direct),
    ("fenced", parse_fenced),
    ("enclosed", parse_enclosed),
]


def extract_json(text: str, preview_chars: int = 200) -> tuple[Any, str]:
    """Try each layer in order; return the parsed value and the layer that produced it."""
    last_error: Exception | None = None
    for name, layer in LAYERS:
        try:
            return layer(text), name
        except (ValueError, RecursionError) as exc:
            last_error = exc
    raise ExtractionParseError(text[:preview_chars], last_error)


def _field_path(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or "<root>"


def validate_structured(template_kind: TemplateKind, value: Any) -> dict[str, Any]:
    """Validate against the template's deliverable schema; extra fields survive untouched."""
    schema = schema_for(template_kind)
    try:
        model = schema.model_validate(value)
    except PydanticValidationError as exc:
        violations = [
            FieldViolation(field=_field_path(err["loc"]), message=err["msg"], kind=err["type"])
            for err in exc.errors()
        ]
        raise ValidationError(template_kind.value, violations) from exc
    return model.model_dump(mode="json")
