"""Launch a remote background research task and record it as a job."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from deepbrief.config import settings
from deepbrief.models.artifacts import SessionArtifacts
from deepbrief.models.jobs import Capability, JobStatus, ResearchJob, TemplateKind
from deepbrief.provider import ProviderError, ResearchProvider
from deepbrief.research.context import ContextAssembler
from deepbrief.research.errors import StartError
from deepbrief.services import logger as log_service
from deepbrief.services.artifacts import load_session_artifacts
from deepbrief.services.job_store import JobStore


def default_capabilities(template_kind: TemplateKind) -> list[str]:
    if template_kind == TemplateKind.LITE:
        return settings.lite_default_capability_list
    return settings.default_capability_list


def normalize_capabilities(
    capabilities: list[str] | None,
    vector_store_id: str | None,
    template_kind: TemplateKind = TemplateKind.STRATEGY,
) -> list[str]:
    """Resolve the capability list actually submitted with a task.

    Without an explicit list the template's defaults apply. `file_search`
    needs the session's vector store and is dropped without one.
    The result is never empty: `web_search` is supplied when nothing is left.
    """
    requested = default_capabilities(template_kind) if capabilities is None else capabilities
    resolved: list[str] = []
    for name in requested:
        try:
            capability = Capability(name.strip().lower())
        except ValueError:
            raise StartError(
                f"Unknown research capability: {name}", reason=StartError.INVALID_CAPABILITY
            ) from None
        if capability == Capability.FILE_SEARCH and not vector_store_id:
            continue
        if capability.value not in resolved:
            resolved.append(capability.value)
    return resolved or [Capability.WEB_SEARCH.value]


class JobLauncher:
    def __init__(self, store: JobStore, provider: ResearchProvider, assembler: ContextAssembler | None = None):
        self.store = store
        self.provider = provider
        self.assembler = assembler or ContextAssembler()

    async def _load(self, session_id: str, template_kind: TemplateKind) -> SessionArtifacts:
        artifacts = await load_session_artifacts(self.store, session_id)
        if artifacts is None:
            raise StartError(f"Session not found: {session_id}", reason=StartError.SESSION_NOT_FOUND)
        missing = self.assembler.missing_artifacts(artifacts, template_kind)
        if missing:
            raise StartError(
                f"Missing required context for {template_kind.value} research: {', '.join(missing)}",
                reason=StartError.MISSING_CONTEXT,
                missing=missing,
            )
        return artifacts

    async def launch(
        self,
        session_id: str,
        template_kind: TemplateKind,
        capabilities: list[str] | None = None,
        focus_areas: list[str] | None = None,
    ) -> ResearchJob:
        """Submit one background research task and create exactly one job for it.

        Any failure before the job is created raises StartError and leaves no
        record behind; the caller retries the whole launch.
        """
        artifacts = await self._load(session_id, template_kind)
        if focus_areas:
            artifacts.focus_areas = [a.strip() for a in focus_areas if a and a.strip()]

        tools = normalize_capabilities(capabilities, artifacts.vector_store_id, template_kind)
        prompt = self.assembler.assemble(artifacts, template_kind)

        try:
            task = await self.provider.create_background_task(
                prompt,
                tools,
                template_kind,
                vector_store_id=artifacts.vector_store_id,
            )
        except ProviderError as exc:
            log_service.log_event(
                event_type="launch_failed",
                message=str(exc),
                session_id=session_id,
                template_kind=template_kind.value,
            )
            raise StartError(
                f"Research provider rejected the task: {exc}", reason=StartError.PROVIDER_ERROR
            ) from exc

        # The reconciler owns every move past queued.
        status = task.status if task.status in (JobStatus.PENDING, JobStatus.QUEUED) else JobStatus.QUEUED
        now = datetime.now(timezone.utc)
        job = await self.store.create_job(
            ResearchJob(
                id=str(uuid.uuid4()),
                session_id=session_id,
                external_task_ref=task.task_ref,
                status=status,
                template_kind=template_kind,
                prompt_snapshot=prompt[: settings.prompt_snapshot_chars],
                capabilities=tools,
                created_at=now,
                updated_at=now,
            )
        )
        log_service.log_event(
            event_type="job_launched",
            message=f"Research job {job.id} launched",
            session_id=session_id,
            job_id=job.id,
            task_ref=task.task_ref,
            template_kind=template_kind.value,
            capabilities=tools,
            prompt_chars=len(prompt),
        )
        return job
