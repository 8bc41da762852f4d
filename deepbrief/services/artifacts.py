"""Load every upstream artifact for a session in one place."""
from __future__ import annotations

import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from deepbrief.models.artifacts import (
    BrandContext,
    ConsultationSummary,
    ExplorationCategory,
    ParsedBrief,
    SessionArtifacts,
)
from deepbrief.services import logger as log_service
from deepbrief.services.job_store import JobStore

ModelT = TypeVar("ModelT", bound=BaseModel)

# File-search citation markers such as 【4:0†source】.
_CITATION_MARKER = re.compile(r"【\d+:\d+†[^】]+】")


def _decode(value: Any) -> Any:
    """Artifacts are stored either as JSON text or as already-decoded objects."""
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None
    return value


def _parse_model(model: type[ModelT], value: Any, *, session_id: str, artifact: str) -> ModelT | None:
    if not isinstance(value, dict):
        if value is not None:
            log_service.log_event(
                event_type="artifact_malformed",
                message=f"Ignoring {artifact}: expected an object",
                session_id=session_id,
            )
        return None
    try:
        return model.model_validate(value)
    except PydanticValidationError as exc:
        log_service.log_event(
            event_type="artifact_malformed",
            message=f"Ignoring {artifact}: {exc.error_count()} validation error(s)",
            session_id=session_id,
        )
        return None


def _parse_categories(value: Any, *, session_id: str) -> list[ExplorationCategory]:
    if isinstance(value, dict):
        value = value.get("categories")
    if not isinstance(value, list):
        return []
    categories: list[ExplorationCategory] = []
    for item in value:
        category = _parse_model(ExplorationCategory, item, session_id=session_id, artifact="exploration category")
        if category is not None and category.name.strip():
            categories.append(category)
    return categories


def _parse_consultation(value: dict[str, Any], *, session_id: str) -> ConsultationSummary | None:
    summary = value.get("summary")
    if summary is None and isinstance(value.get("consultationSummary"), str):
        summary = {"strategic_focus": value["consultationSummary"]}
    consultation = _parse_model(ConsultationSummary, summary, session_id=session_id, artifact="consultation summary")
    if consultation is None or consultation.is_empty():
        return None
    return consultation


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, str) and v.strip()]


def clean_relevant_docs(text: str | None) -> str | None:
    if not text:
        return None
    cleaned = _CITATION_MARKER.sub("", text).strip()
    return cleaned or None


def parse_session_artifacts(session_id: str, raw: dict[str, Any]) -> SessionArtifacts:
    """Turn raw stored payloads into a SessionArtifacts; malformed pieces count as absent."""
    brand_context = _parse_model(
        BrandContext, _decode(raw.get("context_pack")), session_id=session_id, artifact="context pack"
    )
    if brand_context is not None and brand_context.is_empty():
        brand_context = None

    parsed_brief = _parse_model(
        ParsedBrief, _decode(raw.get("parsed_brief")), session_id=session_id, artifact="parsed brief"
    )
    if parsed_brief is not None and parsed_brief.is_empty():
        parsed_brief = None

    categories = _parse_categories(_decode(raw.get("exploration_selection")), session_id=session_id)

    research_context = _decode(raw.get("research_context"))
    consultation = None
    focus_areas: list[str] = []
    relevant_docs = None
    if isinstance(research_context, dict):
        consultation = _parse_consultation(research_context, session_id=session_id)
        focus_areas = _string_list(research_context.get("focusAreas", research_context.get("focus_areas")))
        relevant_docs = clean_relevant_docs(
            research_context.get("relevantDocs") or research_context.get("relevant_docs")
        )

    vector_store_id = raw.get("vector_store_id")
    return SessionArtifacts(
        session_id=session_id,
        brand_context=brand_context,
        parsed_brief=parsed_brief,
        exploration_categories=categories,
        consultation=consultation,
        focus_areas=focus_areas,
        relevant_docs=relevant_docs,
        vector_store_id=str(vector_store_id) if vector_store_id else None,
    )


async def load_session_artifacts(store: JobStore, session_id: str) -> SessionArtifacts | None:
    """Fetch and parse a session's artifacts; None when the session does not exist."""
    raw = await store.fetch_session_artifacts(session_id)
    if raw is None:
        return None
    return parse_session_artifacts(session_id, raw)
