"""Phase 2: turn a completed job's research prose into a validated deliverable."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from deepbrief.config import settings
from deepbrief.models.jobs import JobStatus, ResearchJob
from deepbrief.provider import ProviderError, ResearchProvider
from deepbrief.research.errors import JobNotFoundError, JobNotReadyError, StructuringProviderError
from deepbrief.research.extraction import extract_json, validate_structured
from deepbrief.services import logger as log_service
from deepbrief.services.job_store import JobStore
from deepbrief.services.prompt_store import render_prompt


def build_structuring_prompt(job: ResearchJob) -> str:
    kind = job.template_kind.value
    return render_prompt(
        "structuring.request",
        schema_instructions=render_prompt(f"structuring.{kind}"),
        research=job.raw_result.output_text if job.raw_result else "",
    )


class ResultExtractor:
    def __init__(self, store: JobStore, provider: ResearchProvider):
        self.store = store
        self.provider = provider

    async def _ready_job(self, job_id: str) -> ResearchJob:
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status != JobStatus.COMPLETED:
            raise JobNotReadyError(
                f"Research job {job_id} is {job.status.value}; structuring needs a completed job",
                status=job.status.value,
            )
        if job.raw_result is None or not job.raw_result.output_text.strip():
            raise JobNotReadyError(
                f"Research job {job_id} has no research output to structure",
                status=job.status.value,
            )
        return job

    async def structure(self, job_id: str) -> dict[str, Any]:
        """Run the structuring call, extract and validate its JSON, and store it.

        Parse or validation failures write nothing. Only `structured_result`
        and `structured_at` are ever written here.
        """
        job = await self._ready_job(job_id)
        prompt = build_structuring_prompt(job)

        try:
            response = await self.provider.transform_text(prompt)
        except ProviderError as exc:
            raise StructuringProviderError(f"Structuring call failed: {exc}") from exc

        value, layer = extract_json(response, settings.parse_preview_chars)
        structured = validate_structured(job.template_kind, value)

        updated = await self.store.set_structured_result(job.id, structured, datetime.now(timezone.utc))
        if updated is None:
            # Only reachable if the job stopped being completed underneath us.
            current = await self.store.get_job(job.id)
            raise JobNotReadyError(
                f"Research job {job_id} changed before the structured result was stored",
                status=current.status.value if current else "unknown",
            )

        log_service.log_event(
            event_type="job_structured",
            message=f"Structured result stored for {job.id}",
            job_id=job.id,
            template_kind=job.template_kind.value,
            parse_layer=layer,
            response_chars=len(response),
        )
        return structured
