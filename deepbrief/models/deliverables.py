"""Phase 2 target schemas, one per research template.

Scalar fields are strict: a wrong type is a violation, never coerced.
Unknown keys are kept so nothing the structuring call produced is dropped.
"""
from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr

from deepbrief.models.jobs import TemplateKind

Number = Union[StrictInt, StrictFloat]
Level = Literal["low", "med", "medium", "high"]


class _Deliverable(BaseModel):
    model_config = ConfigDict(extra="allow")


class Meta(_Deliverable):
    brand: StrictStr = ""
    objective: StrictStr = ""
    currency: StrictStr = ""
    budget: Number | None = None
    assumptions: list[StrictStr] = Field(default_factory=list)


class Source(_Deliverable):
    title: StrictStr
    url: StrictStr = ""
    publisher: StrictStr = ""
    date_accessed: StrictStr = ""
    key_insight: StrictStr = ""


class RiskMitigation(_Deliverable):
    risk: StrictStr
    likelihood: Level
    impact: Level
    mitigation: StrictStr = ""


class Placement(_Deliverable):
    channel: StrictStr
    placement: StrictStr = ""
    supply_type: StrictStr = ""
    format_spec_notes: StrictStr = ""


class BudgetPhase(_Deliverable):
    name: StrictStr
    start: StrictStr = ""
    end: StrictStr = ""
    budget: Number = 0
    milestones: list[StrictStr] = Field(default_factory=list)
    key_activities: list[StrictStr] = Field(default_factory=list)


class BudgetTimeline(_Deliverable):
    total_budget: Number = 0
    phases: list[BudgetPhase] = Field(default_factory=list)


class ChannelRole(_Deliverable):
    channel: StrictStr
    role: StrictStr = ""


class GoToMarket(_Deliverable):
    channel_mix: list[ChannelRole] = Field(default_factory=list)
    retail_or_sales_plan: StrictStr = ""
    creator_activation: StrictStr = ""
    crm_loyalty_hooks: list[StrictStr] = Field(default_factory=list)
    geo_or_seasonality: list[StrictStr] = Field(default_factory=list)


class ThreeHorizons(_Deliverable):
    h1_now: list[StrictStr] = Field(default_factory=list)
    h2_next: list[StrictStr] = Field(default_factory=list)
    h3_beyond: list[StrictStr] = Field(default_factory=list)
    rationale: StrictStr = ""


# --- strategy (three full strategies) ---


class Strategy(_Deliverable):
    id: StrictStr = ""
    title: StrictStr
    one_line_positioning: StrictStr
    why_now: StrictStr = ""
    executive_summary: StrictStr = ""
    audience_fit: dict[str, Any] = Field(default_factory=dict)
    core_mechanics: dict[str, Any] = Field(default_factory=dict)
    partner_map: list[dict[str, Any]] = Field(default_factory=list)
    content_system: dict[str, Any] = Field(default_factory=dict)
    go_to_market: GoToMarket = Field(default_factory=GoToMarket)
    budget_timeline: BudgetTimeline = Field(default_factory=BudgetTimeline)
    measurement_plan: dict[str, Any] = Field(default_factory=dict)
    tows_matrix: dict[str, Any] = Field(default_factory=dict)
    mckinsey_7s_alignment: dict[str, Any] = Field(default_factory=dict)
    three_horizons: ThreeHorizons = Field(default_factory=ThreeHorizons)
    placements_supply: list[Placement] = Field(default_factory=list)
    regional_compliance: list[dict[str, Any]] = Field(default_factory=list)
    ai_use_policy: dict[str, Any] = Field(default_factory=dict)
    risks_mitigations: list[RiskMitigation] = Field(default_factory=list)
    compliance_alignment: dict[str, Any] = Field(default_factory=dict)
    ops_requirements: dict[str, Any] = Field(default_factory=dict)
    success_criteria: dict[str, Any] = Field(default_factory=dict)
    sources: list[Source] = Field(default_factory=list)


class StrategyDeliverable(_Deliverable):
    meta: Meta = Field(default_factory=Meta)
    strategies: list[Strategy] = Field(min_length=1)


# --- lite (one strategy) ---


class LiteHorizon(_Deliverable):
    horizon: Literal["H1", "H2", "H3", ""] = ""
    rationale: StrictStr = ""


class LiteStrategy(_Deliverable):
    title: StrictStr
    one_line_positioning: StrictStr
    core_mechanic: StrictStr = ""
    channel_mix: list[StrictStr] = Field(default_factory=list)
    tows: dict[str, Any] = Field(default_factory=dict)
    mckinsey_7s: dict[str, Any] = Field(default_factory=dict)
    three_horizons: LiteHorizon = Field(default_factory=LiteHorizon)
    placements_supply: list[Placement] = Field(default_factory=list)
    regional_compliance: list[dict[str, Any]] = Field(default_factory=list)
    ai_use_policy: dict[str, Any] = Field(default_factory=dict)
    kpis: list[StrictStr] = Field(default_factory=list)
    sources: list[Source] = Field(default_factory=list)


class LiteDeliverable(_Deliverable):
    meta: Meta = Field(default_factory=Meta)
    strategy: LiteStrategy


# --- big idea ---


class MediaChannel(_Deliverable):
    channel: StrictStr
    budget_allocation: Number = 0
    budget_percentage: Number = 0
    role: StrictStr = ""
    kpis: list[StrictStr] = Field(default_factory=list)


class MediaMix(_Deliverable):
    channels: list[MediaChannel] = Field(default_factory=list)
    total_budget: Number | None = None
    budget_rationale: StrictStr = ""


class BigIdea(_Deliverable):
    title: StrictStr
    one_line_pitch: StrictStr
    concept_overview: StrictStr = ""
    why_now: StrictStr = ""
    audience_fit: dict[str, Any] = Field(default_factory=dict)
    execution_details: dict[str, Any] = Field(default_factory=dict)
    media_mix: MediaMix = Field(default_factory=MediaMix)
    timing_flighting: dict[str, Any] = Field(default_factory=dict)
    viral_mechanics: dict[str, Any] = Field(default_factory=dict)
    measurement: dict[str, Any] = Field(default_factory=dict)
    proof_points: dict[str, Any] = Field(default_factory=dict)
    risks_mitigations: list[RiskMitigation] = Field(default_factory=list)
    competitive_differentiation: StrictStr = ""
    ops_requirements: dict[str, Any] = Field(default_factory=dict)
    sources: list[Source] = Field(default_factory=list)


class BigIdeaDeliverable(_Deliverable):
    meta: Meta = Field(default_factory=Meta)
    big_idea: BigIdea


DELIVERABLE_SCHEMAS: dict[TemplateKind, type[_Deliverable]] = {
    TemplateKind.STRATEGY: StrategyDeliverable,
    TemplateKind.LITE: LiteDeliverable,
    TemplateKind.BIG_IDEA: BigIdeaDeliverable,
}


def schema_for(template_kind: TemplateKind) -> type[_Deliverable]:
    return DELIVERABLE_SCHEMAS[TemplateKind(template_kind)]
