from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Any

os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("JOB_STORE_BACKEND", "memory")

import pytest

from deepbrief.models.jobs import JobStatus, ResearchJob, TemplateKind
from deepbrief.provider import ProviderTask, TaskSnapshot
from deepbrief.services.memory_store import InMemoryJobStore


class FakeProvider:
    """Scriptable stand-in for the research provider that records every call."""

    def __init__(self) -> None:
        self.launch_status = JobStatus.QUEUED
        self.create_error: Exception | None = None
        self.snapshots: list[TaskSnapshot] = [TaskSnapshot(status=JobStatus.QUEUED)]
        self.status_error: Exception | None = None
        self.transform_response = ""
        self.transform_error: Exception | None = None
        self.delay = 0.0
        self.create_calls: list[dict[str, Any]] = []
        self.status_calls: list[str] = []
        self.transform_calls: list[str] = []

    async def create_background_task(self, prompt, capabilities, template_kind, *, vector_store_id=None):
        self.create_calls.append(
            {
                "prompt": prompt,
                "capabilities": list(capabilities),
                "template_kind": template_kind,
                "vector_store_id": vector_store_id,
            }
        )
        if self.create_error is not None:
            raise self.create_error
        return ProviderTask(task_ref=f"resp_{len(self.create_calls)}", status=self.launch_status)

    async def get_task_status(self, task_ref):
        self.status_calls.append(task_ref)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.status_error is not None:
            raise self.status_error
        # The last scripted snapshot repeats once the script runs out.
        if len(self.snapshots) > 1:
            return self.snapshots.pop(0)
        return self.snapshots[0]

    async def transform_text(self, prompt):
        self.transform_calls.append(prompt)
        if self.transform_error is not None:
            raise self.transform_error
        return self.transform_response


BRIEF = {
    "objective": "Grow trial of oat milk among Gen Z coffee drinkers",
    "audience": "18-24 urban coffee drinkers",
    "timing": "Q3 2025",
    "budget": "$250,000",
    "kpis": ["trial rate", "share of voice"],
    "constraints": ["no paid TikTok"],
}

CONSULTATION = {
    "summary": {
        "strategicFocus": "Lean into barista credibility",
        "keyInsights": ["Baristas drive trial"],
        "researchPriorities": ["Cafe partnerships"],
    },
    "focusAreas": ["cafe partnerships"],
}


def _seed_session(store: InMemoryJobStore, session_id: str = "session-1", **overrides: Any) -> str:
    artifacts: dict[str, Any] = {
        "parsed_brief": BRIEF,
        "vector_store_id": None,
        "context_pack": {"brandVoice": "Playful, warm", "keyInsights": '["Oat is the default"]'},
        "exploration_selection": {"categories": [{"name": "Cafe culture", "subcategories": ["Latte art"]}]},
        "research_context": CONSULTATION,
    }
    artifacts.update(overrides)
    store.put_session_artifacts(session_id, **artifacts)
    return session_id


def _make_job(
    job_id: str = "job-1",
    status: JobStatus = JobStatus.QUEUED,
    template_kind: TemplateKind = TemplateKind.STRATEGY,
    age: timedelta = timedelta(minutes=5),
    **overrides: Any,
) -> ResearchJob:
    created = datetime.now(timezone.utc) - age
    fields: dict[str, Any] = {
        "id": job_id,
        "session_id": "session-1",
        "external_task_ref": f"resp_{job_id}",
        "status": status,
        "template_kind": template_kind,
        "prompt_snapshot": "prompt",
        "created_at": created,
        "updated_at": created,
        "capabilities": ["web_search"],
    }
    fields.update(overrides)
    return ResearchJob(**fields)


@pytest.fixture
def store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def seed_session(store):
    """Register a session with a full set of artifacts; keyword overrides replace single artifacts."""

    def seed(session_id: str = "session-1", **overrides: Any) -> str:
        return _seed_session(store, session_id, **overrides)

    return seed


@pytest.fixture
def make_job():
    return _make_job
