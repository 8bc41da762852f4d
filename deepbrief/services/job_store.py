from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from deepbrief.config import settings
from deepbrief.models.jobs import JobStatus, RawResult, ResearchJob


class JobStore(Protocol):
    """Durable research job records plus read access to upstream session artifacts.

    Every mutation is conditional on the stored status and returns the updated
    record, or None when the condition did not hold (nothing was written).
    """

    async def create_job(self, job: ResearchJob) -> ResearchJob: ...

    async def get_job(self, job_id: str) -> ResearchJob | None: ...

    async def list_jobs(self, session_id: str) -> list[ResearchJob]: ...

    async def advance_status(
        self, job_id: str, status: JobStatus, updated_at: datetime
    ) -> ResearchJob | None: ...

    async def complete_job(
        self, job_id: str, raw_result: RawResult, completed_at: datetime
    ) -> ResearchJob | None: ...

    async def fail_job(self, job_id: str, error: str, completed_at: datetime) -> ResearchJob | None: ...

    async def set_structured_result(
        self, job_id: str, structured_result: dict[str, Any], structured_at: datetime
    ) -> ResearchJob | None: ...

    async def fetch_session_artifacts(self, session_id: str) -> dict[str, Any] | None: ...


_store: JobStore | None = None


def get_job_store() -> JobStore:
    global _store
    if _store is None:
        backend = settings.job_store_backend.lower().strip()
        if backend == "postgres":
            from deepbrief.services.database import PostgresJobStore

            _store = PostgresJobStore(settings.database_url)
        elif backend == "memory":
            from deepbrief.services.memory_store import InMemoryJobStore

            _store = InMemoryJobStore()
        else:
            raise ValueError(f"Unsupported JOB_STORE_BACKEND: {settings.job_store_backend}")
    return _store


async def close_job_store() -> None:
    global _store
    if _store is not None and hasattr(_store, "close"):
        await _store.close()
    _store = None
