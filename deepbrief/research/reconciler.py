"""Poll-driven job state machine.

`decide_transition` is pure: given the local record and the remote snapshot it
says what should happen. `StatusReconciler.reconcile` performs one poll and
persists the decision through the store's conditional updates, so concurrent
pollers converge on a single terminal write.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Union

from deepbrief.config import settings
from deepbrief.models.jobs import JobStatus, RawResult, ResearchJob
from deepbrief.provider import ProviderError, ResearchProvider, TaskNotFoundError, TaskSnapshot
from deepbrief.research.errors import JobNotFoundError, PollTerminalFailure, PollTransientError
from deepbrief.services import logger as log_service
from deepbrief.services.job_store import JobStore


@dataclass(slots=True, frozen=True)
class NoChange:
    pass


@dataclass(slots=True, frozen=True)
class Advance:
    status: JobStatus


@dataclass(slots=True, frozen=True)
class Complete:
    raw_result: RawResult


@dataclass(slots=True, frozen=True)
class Fail:
    failure: PollTerminalFailure


Transition = Union[NoChange, Advance, Complete, Fail]


def decide_transition(
    job: ResearchJob,
    snapshot: TaskSnapshot,
    now: datetime,
    stale_after: timedelta | None = None,
) -> Transition:
    if job.is_terminal:
        return NoChange()

    if snapshot.status == JobStatus.COMPLETED:
        return Complete(RawResult(output_text=snapshot.output_text, tool_trace=list(snapshot.tool_trace)))
    if snapshot.status == JobStatus.FAILED:
        return Fail(PollTerminalFailure(snapshot.error or "Research failed"))

    if stale_after is not None and now - job.created_at >= stale_after:
        minutes = int(stale_after.total_seconds() // 60)
        return Fail(
            PollTerminalFailure(
                f"Research task still {snapshot.status.value} after {minutes} minutes; marked stale"
            )
        )

    if snapshot.status.rank > job.status.rank:
        return Advance(snapshot.status)
    return NoChange()


class StatusReconciler:
    def __init__(
        self,
        store: JobStore,
        provider: ResearchProvider,
        stale_after: timedelta | None = None,
    ):
        self.store = store
        self.provider = provider
        if stale_after is None and settings.job_stale_after_minutes > 0:
            stale_after = timedelta(minutes=settings.job_stale_after_minutes)
        self.stale_after = stale_after

    async def _get(self, job_id: str) -> ResearchJob:
        job = await self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def reconcile(self, job_id: str) -> ResearchJob:
        """Poll the provider once for a job and persist what it reports.

        A terminal job is returned as stored without contacting the provider.
        Transient provider errors raise PollTransientError and write nothing.
        """
        job = await self._get(job_id)
        if job.is_terminal:
            return job

        now = datetime.now(timezone.utc)
        try:
            snapshot = await self.provider.get_task_status(job.external_task_ref)
        except TaskNotFoundError as exc:
            transition: Transition = Fail(PollTerminalFailure(f"Research task not found or expired: {exc}"))
        except ProviderError as exc:
            log_service.log_event(
                event_type="poll_transient",
                message=str(exc),
                job_id=job.id,
                status=job.status.value,
            )
            raise PollTransientError(
                f"Could not reach research provider: {exc}",
                job_id=job.id,
                current_status=job.status.value,
            ) from exc
        else:
            transition = decide_transition(job, snapshot, now, self.stale_after)

        return await self._apply(job, transition, now)

    async def _apply(self, job: ResearchJob, transition: Transition, now: datetime) -> ResearchJob:
        if isinstance(transition, NoChange):
            return job

        if isinstance(transition, Advance):
            updated = await self.store.advance_status(job.id, transition.status, now)
            target, detail = transition.status, None
        elif isinstance(transition, Complete):
            updated = await self.store.complete_job(job.id, transition.raw_result, now)
            target, detail = JobStatus.COMPLETED, f"{len(transition.raw_result.output_text)} chars"
        else:
            updated = await self.store.fail_job(job.id, transition.failure.message, now)
            target, detail = JobStatus.FAILED, transition.failure.message

        log_service.log_job_transition(
            job.id, job.status.value, target.value, applied=updated is not None, detail=detail
        )
        if updated is not None:
            return updated
        # Another poller got there first; return whatever it wrote.
        return await self._get(job.id)
