"""Composite research prompt assembly from a session's upstream artifacts."""
from __future__ import annotations

from typing import Callable

from deepbrief.models.artifacts import (
    BrandContext,
    ConsultationSummary,
    ExplorationCategory,
    ParsedBrief,
    SessionArtifacts,
)
from deepbrief.models.jobs import TemplateKind
from deepbrief.services.prompt_store import render_prompt

BRAND_CONTEXT = "brand_context"
PARSED_BRIEF = "parsed_brief"
EXPLORATION = "exploration_categories"
CONSULTATION = "consultation"
FOCUS_AREAS = "focus_areas"
RELEVANT_DOCS = "relevant_docs"
CONSTRAINTS = "constraints"

REQUIRED_ARTIFACTS: dict[TemplateKind, tuple[str, ...]] = {
    TemplateKind.STRATEGY: (PARSED_BRIEF, CONSULTATION),
    TemplateKind.LITE: (PARSED_BRIEF,),
    TemplateKind.BIG_IDEA: (PARSED_BRIEF, CONSULTATION),
}

SECTION_ORDER: dict[TemplateKind, tuple[str, ...]] = {
    TemplateKind.STRATEGY: (
        BRAND_CONTEXT,
        PARSED_BRIEF,
        CONSTRAINTS,
        EXPLORATION,
        CONSULTATION,
        FOCUS_AREAS,
        RELEVANT_DOCS,
    ),
    TemplateKind.LITE: (
        BRAND_CONTEXT,
        PARSED_BRIEF,
        CONSTRAINTS,
        EXPLORATION,
        FOCUS_AREAS,
        CONSULTATION,
        RELEVANT_DOCS,
    ),
    TemplateKind.BIG_IDEA: (
        BRAND_CONTEXT,
        PARSED_BRIEF,
        CONSTRAINTS,
        CONSULTATION,
        EXPLORATION,
        FOCUS_AREAS,
        RELEVANT_DOCS,
    ),
}


def _bullets(items: list[str], indent: str = "") -> list[str]:
    return [f"{indent}- {item}" for item in items if item and item.strip()]


def _labelled(label: str, value: str) -> list[str]:
    return [f"**{label}:** {value.strip()}"] if value and value.strip() else []


def _labelled_list(label: str, items: list[str]) -> list[str]:
    lines = _bullets(items)
    return [f"**{label}:**", *lines] if lines else []


def render_brand_context(brand: BrandContext) -> list[str]:
    lines = [
        *_labelled("Brand Voice", brand.brand_voice),
        *_labelled("Visual Identity", brand.visual_identity),
        *_labelled("Audience", brand.audience_summary),
        *_labelled_list("Key Insights", brand.key_insights),
        *_labelled_list("Creative Lessons", brand.creative_lessons),
        *_labelled_list("Strategy Highlights", brand.strategy_highlights),
        *_labelled("Budget Notes", brand.budget_notes),
        *_labelled_list("Risks or Cautions", brand.risks_or_cautions),
    ]
    # Guardrails render under Constraints; a pack holding only those has no section here.
    return ["## Brand Context", *lines] if lines else []


def render_parsed_brief(brief: ParsedBrief) -> list[str]:
    kpis = [k for k in brief.kpis if k.strip()]
    return [
        "## Strategy Brief",
        *_labelled("Objective", brief.objective),
        *_labelled("Audience", brief.audience),
        *_labelled("Timing", brief.timing),
        *_labelled("Budget", brief.budget),
        *(["**KPIs:** " + ", ".join(kpis)] if kpis else []),
    ]


def render_constraints(constraints: list[str]) -> list[str]:
    return ["## Constraints", *_bullets(constraints)]


def render_exploration(categories: list[ExplorationCategory]) -> list[str]:
    lines = ["## Exploration Focus"]
    for category in categories:
        lines.append(f"- {category.name.strip()}")
        lines.extend(_bullets(category.subcategories, indent="  "))
    return lines


def render_consultation(consultation: ConsultationSummary) -> list[str]:
    lines = ["## Consultation Summary"]
    if consultation.strategic_focus.strip():
        lines.append(consultation.strategic_focus.strip())
    lines.extend(_labelled_list("Key Insights", consultation.key_insights))
    lines.extend(_labelled_list("Research Priorities", consultation.research_priorities))
    return lines


def render_focus_areas(focus_areas: list[str]) -> list[str]:
    return [
        "## Research Focus Areas",
        "The research should emphasize these strategic angles:",
        *_bullets(focus_areas),
    ]


def render_relevant_docs(text: str) -> list[str]:
    return ["## Relevant Brand Intelligence", text.strip()]


# Each renderer receives the artifact only when it is present.
_RENDERERS: dict[str, Callable[[SessionArtifacts], list[str]]] = {
    BRAND_CONTEXT: lambda a: render_brand_context(a.brand_context),
    PARSED_BRIEF: lambda a: render_parsed_brief(a.parsed_brief),
    CONSTRAINTS: lambda a: render_constraints(a.constraints()),
    EXPLORATION: lambda a: render_exploration(a.exploration_categories),
    CONSULTATION: lambda a: render_consultation(a.consultation),
    FOCUS_AREAS: lambda a: render_focus_areas(a.focus_areas),
    RELEVANT_DOCS: lambda a: render_relevant_docs(a.relevant_docs or ""),
}


class ContextAssembler:
    """Merge session artifacts into one prompt string for a template kind.

    Absent artifacts are skipped silently. The output depends only on the
    artifacts, the template kind and the prompt catalog, so equal inputs give
    byte-identical prompts.
    """

    def missing_artifacts(self, artifacts: SessionArtifacts, template_kind: TemplateKind) -> list[str]:
        present = artifacts.present()
        return [name for name in REQUIRED_ARTIFACTS[template_kind] if name not in present]

    def assemble(self, artifacts: SessionArtifacts, template_kind: TemplateKind) -> str:
        present = artifacts.present()
        blocks = [render_prompt(f"research.{template_kind.value}.preamble")]
        for name in SECTION_ORDER[template_kind]:
            if name in present:
                blocks.append("\n".join(_RENDERERS[name](artifacts)))
        blocks.append(render_prompt(f"research.{template_kind.value}.task"))
        return "\n\n".join(block.strip() for block in blocks if block.strip())
