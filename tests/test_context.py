from __future__ import annotations

from deepbrief.models.artifacts import (
    BrandContext,
    ConsultationSummary,
    ExplorationCategory,
    ParsedBrief,
    SessionArtifacts,
)
from deepbrief.models.jobs import TemplateKind
from deepbrief.research.context import ContextAssembler


def _full_artifacts() -> SessionArtifacts:
    return SessionArtifacts(
        session_id="s1",
        brand_context=BrandContext(brand_voice="Playful", key_insights=["Oat is the default"]),
        parsed_brief=ParsedBrief(objective="Grow trial", budget="$250k", kpis=["trial rate", "SOV"]),
        exploration_categories=[ExplorationCategory(name="Cafe culture", subcategories=["Latte art"])],
        consultation=ConsultationSummary(strategic_focus="Barista credibility", research_priorities=["Cafes"]),
        focus_areas=["loyalty"],
        relevant_docs="2023 campaign lifted trial 12%",
    )


def test_sections_follow_template_order():
    prompt = ContextAssembler().assemble(_full_artifacts(), TemplateKind.STRATEGY)

    headings = [
        "## Brand Context",
        "## Strategy Brief",
        "## Exploration Focus",
        "## Consultation Summary",
        "## Research Focus Areas",
        "## Relevant Brand Intelligence",
    ]
    positions = [prompt.index(h) for h in headings]
    assert positions == sorted(positions)
    assert prompt.startswith("# Deep Research Context")
    assert prompt.rstrip().endswith("reconcile budgets across phases.")


def test_big_idea_puts_consultation_before_exploration():
    prompt = ContextAssembler().assemble(_full_artifacts(), TemplateKind.BIG_IDEA)
    assert prompt.index("## Consultation Summary") < prompt.index("## Exploration Focus")


def test_absent_artifacts_leave_no_placeholder():
    artifacts = SessionArtifacts(session_id="s1", parsed_brief=ParsedBrief(objective="Grow trial"))

    prompt = ContextAssembler().assemble(artifacts, TemplateKind.LITE)

    assert "## Strategy Brief" in prompt
    assert "**Objective:** Grow trial" in prompt
    for heading in ("## Brand Context", "## Exploration Focus", "## Consultation Summary", "## Research Focus Areas"):
        assert heading not in prompt
    assert "**Budget:**" not in prompt
    assert "None" not in prompt


def test_assembly_is_deterministic():
    assembler = ContextAssembler()
    assert assembler.assemble(_full_artifacts(), TemplateKind.STRATEGY) == assembler.assemble(
        _full_artifacts(), TemplateKind.STRATEGY
    )


def test_nested_subcategories_are_indented():
    prompt = ContextAssembler().assemble(_full_artifacts(), TemplateKind.LITE)
    assert "- Cafe culture\n  - Latte art" in prompt
    assert "**KPIs:** trial rate, SOV" in prompt


def test_missing_artifacts_per_template():
    assembler = ContextAssembler()
    brief_only = SessionArtifacts(session_id="s1", parsed_brief=ParsedBrief(objective="Grow trial"))
    empty = SessionArtifacts(session_id="s1")

    assert assembler.missing_artifacts(brief_only, TemplateKind.LITE) == []
    assert assembler.missing_artifacts(brief_only, TemplateKind.STRATEGY) == ["consultation"]
    assert assembler.missing_artifacts(empty, TemplateKind.BIG_IDEA) == ["parsed_brief", "consultation"]
    assert assembler.missing_artifacts(_full_artifacts(), TemplateKind.STRATEGY) == []


def test_brief_constraints_and_guardrails_share_one_section():
    artifacts = _full_artifacts()
    artifacts.parsed_brief = ParsedBrief(objective="Grow trial", constraints=["no paid TikTok"])
    artifacts.brand_context = BrandContext(
        brand_voice="Playful",
        guardrails=[{"bullet": "No health claims", "source": "Legal_Guidelines.pdf"}, "Disclose partnerships"],
    )

    prompt = ContextAssembler().assemble(artifacts, TemplateKind.STRATEGY)

    section = prompt[prompt.index("## Constraints") : prompt.index("## Exploration Focus")]
    assert section.strip().splitlines() == [
        "## Constraints",
        "- no paid TikTok",
        "- No health claims (source: Legal_Guidelines.pdf)",
        "- Disclose partnerships",
    ]
    assert prompt.index("## Strategy Brief") < prompt.index("## Constraints")
    assert prompt.count("no paid TikTok") == 1


def test_guardrails_only_brand_pack_renders_constraints_without_brand_section():
    artifacts = SessionArtifacts(
        session_id="s1",
        brand_context=BrandContext(guardrails="No health claims"),
        parsed_brief=ParsedBrief(objective="Grow trial"),
    )

    prompt = ContextAssembler().assemble(artifacts, TemplateKind.LITE)

    assert "## Constraints\n- No health claims" in prompt
    assert "## Brand Context" not in prompt


def test_no_constraints_section_without_constraints():
    prompt = ContextAssembler().assemble(_full_artifacts(), TemplateKind.LITE)
    assert "## Constraints" not in prompt
