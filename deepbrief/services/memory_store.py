from __future__ import annotations

import asyncio
import copy
from dataclasses import replace
from datetime import datetime
from typing import Any

from deepbrief.models.jobs import JobStatus, RawResult, ResearchJob


class InMemoryJobStore:
    """Process-local job store with the same conditional-update semantics as Postgres.

    Used for local development (JOB_STORE_BACKEND=memory) and tests. Records are
    copied in and out so callers never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, ResearchJob] = {}
        self._artifacts: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _copy(job: ResearchJob) -> ResearchJob:
        return copy.deepcopy(job)

    def put_session_artifacts(self, session_id: str, **artifacts: Any) -> None:
        """Register a session and its raw upstream artifacts."""
        self._artifacts[session_id] = dict(artifacts)

    @property
    def job_count(self) -> int:
        return len(self._jobs)

    async def create_job(self, job: ResearchJob) -> ResearchJob:
        async with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Duplicate research job id: {job.id}")
            self._jobs[job.id] = self._copy(job)
            return self._copy(job)

    async def get_job(self, job_id: str) -> ResearchJob | None:
        async with self._lock:
            job = self._jobs.get(job_id)
            return self._copy(job) if job else None

    async def list_jobs(self, session_id: str) -> list[ResearchJob]:
        async with self._lock:
            jobs = [self._copy(j) for j in self._jobs.values() if j.session_id == session_id]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    async def advance_status(
        self, job_id: str, status: JobStatus, updated_at: datetime
    ) -> ResearchJob | None:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status.rank >= status.rank:
                return None
            updated = replace(job, status=status, updated_at=updated_at)
            self._jobs[job_id] = updated
            return self._copy(updated)

    async def complete_job(
        self, job_id: str, raw_result: RawResult, completed_at: datetime
    ) -> ResearchJob | None:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return None
            updated = replace(
                job,
                status=JobStatus.COMPLETED,
                raw_result=copy.deepcopy(raw_result),
                error=None,
                completed_at=completed_at,
                updated_at=completed_at,
            )
            self._jobs[job_id] = updated
            return self._copy(updated)

    async def fail_job(self, job_id: str, error: str, completed_at: datetime) -> ResearchJob | None:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return None
            updated = replace(
                job,
                status=JobStatus.FAILED,
                raw_result=None,
                error=error,
                completed_at=completed_at,
                updated_at=completed_at,
            )
            self._jobs[job_id] = updated
            return self._copy(updated)

    async def set_structured_result(
        self, job_id: str, structured_result: dict[str, Any], structured_at: datetime
    ) -> ResearchJob | None:
        async with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status != JobStatus.COMPLETED:
                return None
            updated = replace(
                job,
                structured_result=copy.deepcopy(structured_result),
                structured_at=structured_at,
                updated_at=structured_at,
            )
            self._jobs[job_id] = updated
            return self._copy(updated)

    async def fetch_session_artifacts(self, session_id: str) -> dict[str, Any] | None:
        artifacts = self._artifacts.get(session_id)
        return copy.deepcopy(artifacts) if artifacts is not None else None
