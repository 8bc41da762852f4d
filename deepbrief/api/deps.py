from __future__ import annotations

from fastapi import Depends

from deepbrief.models.jobs import TemplateKind
from deepbrief.provider import ResearchProvider, get_provider
from deepbrief.research.context import REQUIRED_ARTIFACTS, ContextAssembler
from deepbrief.research.launcher import JobLauncher
from deepbrief.research.reconciler import StatusReconciler
from deepbrief.research.structuring import ResultExtractor
from deepbrief.services.job_store import JobStore, get_job_store


def get_store() -> JobStore:
    return get_job_store()


def get_research_provider() -> ResearchProvider:
    return get_provider()


def get_launcher(
    store: JobStore = Depends(get_store),
    provider: ResearchProvider = Depends(get_research_provider),
) -> JobLauncher:
    return JobLauncher(store, provider, ContextAssembler())


def get_reconciler(
    store: JobStore = Depends(get_store),
    provider: ResearchProvider = Depends(get_research_provider),
) -> StatusReconciler:
    return StatusReconciler(store, provider)


def get_extractor(
    store: JobStore = Depends(get_store),
    provider: ResearchProvider = Depends(get_research_provider),
) -> ResultExtractor:
    return ResultExtractor(store, provider)


def get_available_templates() -> list[dict[str, object]]:
    """Return the research templates a job can be launched with."""
    descriptions = {
        TemplateKind.STRATEGY: (
            "Deep Research: Three Strategies",
            "Three differentiated strategies with TOWS, 7S, Three Horizons, budget and compliance detail.",
        ),
        TemplateKind.LITE: (
            "Lite Research: One Strategy",
            "A single well-sourced strategy from a faster, lighter research model.",
        ),
        TemplateKind.BIG_IDEA: (
            "Big Idea Deep Dive",
            "One marketing execution idea researched down to media mix, flighting and measurement.",
        ),
    }
    return [
        {
            "id": kind,
            "name": name,
            "description": description,
            "required_artifacts": list(REQUIRED_ARTIFACTS[kind]),
        }
        for kind, (name, description) in descriptions.items()
    ]
