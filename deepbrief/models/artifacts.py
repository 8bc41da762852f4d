from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, BeforeValidator, Field


def _text(value: Any) -> Any:
    return "" if value is None else value


def _text_list(value: Any) -> Any:
    # Context packs store list fields as JSON-encoded strings.
    if value is None:
        return []
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return [value] if value.strip() else []
        return parsed if isinstance(parsed, list) else []
    return value


def _guardrails(value: Any) -> Any:
    # Accepts a JSON string, a single bullet, or a list of bullets or {bullet, source} objects.
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return [{"bullet": value}] if value.strip() else []
    if isinstance(value, (str, dict)):
        value = [value]
    if not isinstance(value, list):
        return []
    return [{"bullet": item} if isinstance(item, str) else item for item in value if isinstance(item, (str, dict))]


Text = Annotated[str, BeforeValidator(_text)]
TextList = Annotated[list[str], BeforeValidator(_text_list)]


class Guardrail(BaseModel):
    """A safety, legal or compliance constraint and the document it came from."""

    bullet: Text = ""
    source: Text = ""

    model_config = {"extra": "ignore"}


class BrandContext(BaseModel):
    """Brand context pack distilled from the knowledge hub."""

    brand_voice: Text = Field("", validation_alias=AliasChoices("brand_voice", "brandVoice"))
    visual_identity: Text = Field("", validation_alias=AliasChoices("visual_identity", "visualIdentity"))
    audience_summary: Text = Field("", validation_alias=AliasChoices("audience_summary", "audienceSummary"))
    key_insights: TextList = Field(default_factory=list, validation_alias=AliasChoices("key_insights", "keyInsights"))
    creative_lessons: TextList = Field(
        default_factory=list, validation_alias=AliasChoices("creative_lessons", "creativeLessons")
    )
    strategy_highlights: TextList = Field(
        default_factory=list, validation_alias=AliasChoices("strategy_highlights", "strategyHighlights")
    )
    budget_notes: Text = Field("", validation_alias=AliasChoices("budget_notes", "budgetNotes"))
    risks_or_cautions: TextList = Field(
        default_factory=list, validation_alias=AliasChoices("risks_or_cautions", "risksOrCautions")
    )
    guardrails: Annotated[list[Guardrail], BeforeValidator(_guardrails)] = Field(default_factory=list)

    model_config = {"extra": "ignore"}

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())

    def guardrail_lines(self) -> list[str]:
        lines = []
        for guardrail in self.guardrails:
            bullet, source = guardrail.bullet.strip(), guardrail.source.strip()
            if bullet:
                lines.append(f"{bullet} (source: {source})" if source else bullet)
        return lines


class ParsedBrief(BaseModel):
    objective: Text = ""
    audience: Text = ""
    timing: Text = ""
    budget: Text = ""
    kpis: TextList = Field(default_factory=list)
    constraints: TextList = Field(default_factory=list)

    model_config = {"extra": "ignore", "coerce_numbers_to_str": True}

    def is_empty(self) -> bool:
        return not self.objective.strip()


class ExplorationCategory(BaseModel):
    name: str
    subcategories: TextList = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class ConsultationSummary(BaseModel):
    strategic_focus: Text = Field("", validation_alias=AliasChoices("strategic_focus", "strategicFocus"))
    key_insights: TextList = Field(default_factory=list, validation_alias=AliasChoices("key_insights", "keyInsights"))
    research_priorities: TextList = Field(
        default_factory=list, validation_alias=AliasChoices("research_priorities", "researchPriorities")
    )

    model_config = {"extra": "ignore"}

    def is_empty(self) -> bool:
        return not (self.strategic_focus.strip() or self.key_insights or self.research_priorities)


@dataclass(slots=True)
class SessionArtifacts:
    """Every upstream artifact for a session; absent ones are None or empty."""

    session_id: str
    brand_context: BrandContext | None = None
    parsed_brief: ParsedBrief | None = None
    exploration_categories: list[ExplorationCategory] = field(default_factory=list)
    consultation: ConsultationSummary | None = None
    focus_areas: list[str] = field(default_factory=list)
    relevant_docs: str | None = None
    vector_store_id: str | None = None

    def constraints(self) -> list[str]:
        """Brief constraints followed by brand guardrails, without blanks or repeats."""
        items = list(self.parsed_brief.constraints) if self.parsed_brief is not None else []
        if self.brand_context is not None:
            items.extend(self.brand_context.guardrail_lines())
        seen: list[str] = []
        for item in items:
            if item.strip() and item.strip() not in seen:
                seen.append(item.strip())
        return seen

    def present(self) -> set[str]:
        names: set[str] = set()
        if self.brand_context is not None:
            names.add("brand_context")
        if self.parsed_brief is not None:
            names.add("parsed_brief")
        if self.exploration_categories:
            names.add("exploration_categories")
        if self.consultation is not None:
            names.add("consultation")
        if self.focus_areas:
            names.add("focus_areas")
        if self.relevant_docs:
            names.add("relevant_docs")
        if self.constraints():
            names.add("constraints")
        return names
