"""PostgreSQL job store using asyncpg."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

import asyncpg

from deepbrief.config import settings
from deepbrief.models.jobs import (
    TERMINAL_STATUSES,
    JobStatus,
    RawResult,
    ResearchJob,
    TemplateKind,
    statuses_below,
)
from deepbrief.services import logger as log_service

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS research_jobs (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    external_task_ref TEXT NOT NULL UNIQUE,
    status TEXT NOT NULL,
    template_kind TEXT NOT NULL,
    capabilities TEXT NOT NULL DEFAULT '[]',
    prompt_snapshot TEXT NOT NULL DEFAULT '',
    raw_result TEXT,
    structured_result TEXT,
    error TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    completed_at TIMESTAMPTZ,
    structured_at TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS research_jobs_session_idx ON research_jobs (session_id, created_at DESC);
"""

JOB_COLUMNS = (
    "id, session_id, external_task_ref, status, template_kind, capabilities, prompt_snapshot, "
    "raw_result, structured_result, error, created_at, updated_at, completed_at, structured_at"
)

# Generation types holding upstream artifacts, newest row wins.
ARTIFACT_GENERATION_TYPES = ("context", "exploration-selection", "research-context")

_TERMINAL = [s.value for s in TERMINAL_STATUSES]


def _coerce_json_object(value: Any) -> dict[str, Any]:
    """Normalize JSON-string fields into dictionaries."""
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _coerce_json_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def row_to_job(row: Any) -> ResearchJob:
    data = dict(row)
    raw = _coerce_json_object(data.get("raw_result")) if data.get("raw_result") else None
    structured = _coerce_json_object(data.get("structured_result")) if data.get("structured_result") else None
    return ResearchJob(
        id=str(data["id"]),
        session_id=str(data["session_id"]),
        external_task_ref=data["external_task_ref"],
        status=JobStatus(data["status"]),
        template_kind=TemplateKind(data["template_kind"]),
        capabilities=[str(c) for c in _coerce_json_list(data.get("capabilities"))],
        prompt_snapshot=data.get("prompt_snapshot") or "",
        raw_result=RawResult.from_dict(raw) if raw is not None else None,
        structured_result=structured,
        error=data.get("error"),
        created_at=data["created_at"],
        updated_at=data["updated_at"],
        completed_at=data.get("completed_at"),
        structured_at=data.get("structured_at"),
    )


class PostgresJobStore:
    def __init__(self, database_url: str, *, pool: asyncpg.Pool | None = None):
        self.database_url = database_url
        self._pool = pool
        self._schema_ready = False

    async def _get_pool(self) -> asyncpg.Pool:
        """Get or create the connection pool, creating the jobs table on first use."""
        if self._pool is None:
            if not self.database_url:
                raise RuntimeError("Database not configured. Set DATABASE_URL in .env")
            self._pool = await asyncpg.create_pool(
                self.database_url,
                min_size=1,
                max_size=settings.database_pool_max_size,
            )
        if not self._schema_ready:
            async with self._pool.acquire() as conn:
                await conn.execute(SCHEMA_SQL)
            self._schema_ready = True
        return self._pool

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # --- Jobs ---

    async def create_job(self, job: ResearchJob) -> ResearchJob:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO research_jobs (
                    id, session_id, external_task_ref, status, template_kind,
                    capabilities, prompt_snapshot, created_at, updated_at
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING {JOB_COLUMNS}
                """,
                job.id,
                job.session_id,
                job.external_task_ref,
                job.status.value,
                job.template_kind.value,
                json.dumps(job.capabilities),
                job.prompt_snapshot,
                job.created_at,
                job.updated_at,
            )
        log_service.log_db_operation("insert", "research_jobs", "success", details=job.id)
        return row_to_job(row)

    async def get_job(self, job_id: str) -> ResearchJob | None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {JOB_COLUMNS} FROM research_jobs WHERE id = $1",
                job_id,
            )
        return row_to_job(row) if row else None

    async def list_jobs(self, session_id: str) -> list[ResearchJob]:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {JOB_COLUMNS} FROM research_jobs
                WHERE session_id = $1
                ORDER BY created_at DESC
                """,
                session_id,
            )
        return [row_to_job(r) for r in rows]

    async def advance_status(
        self, job_id: str, status: JobStatus, updated_at: datetime
    ) -> ResearchJob | None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE research_jobs
                SET status = $2, updated_at = $3
                WHERE id = $1 AND status = ANY($4::text[])
                RETURNING {JOB_COLUMNS}
                """,
                job_id,
                status.value,
                updated_at,
                [s.value for s in statuses_below(status)],
            )
        return row_to_job(row) if row else None

    async def complete_job(
        self, job_id: str, raw_result: RawResult, completed_at: datetime
    ) -> ResearchJob | None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE research_jobs
                SET status = 'completed', raw_result = $2, error = NULL,
                    completed_at = $3, updated_at = $3
                WHERE id = $1 AND NOT (status = ANY($4::text[]))
                RETURNING {JOB_COLUMNS}
                """,
                job_id,
                json.dumps(raw_result.to_dict()),
                completed_at,
                _TERMINAL,
            )
        log_service.log_db_operation(
            "complete", "research_jobs", "success" if row else "skipped", details=job_id
        )
        return row_to_job(row) if row else None

    async def fail_job(self, job_id: str, error: str, completed_at: datetime) -> ResearchJob | None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE research_jobs
                SET status = 'failed', error = $2, raw_result = NULL,
                    completed_at = $3, updated_at = $3
                WHERE id = $1 AND NOT (status = ANY($4::text[]))
                RETURNING {JOB_COLUMNS}
                """,
                job_id,
                error,
                completed_at,
                _TERMINAL,
            )
        log_service.log_db_operation(
            "fail", "research_jobs", "success" if row else "skipped", details=job_id
        )
        return row_to_job(row) if row else None

    async def set_structured_result(
        self, job_id: str, structured_result: dict[str, Any], structured_at: datetime
    ) -> ResearchJob | None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE research_jobs
                SET structured_result = $2, structured_at = $3, updated_at = $3
                WHERE id = $1 AND status = 'completed'
                RETURNING {JOB_COLUMNS}
                """,
                job_id,
                json.dumps(structured_result),
                structured_at,
            )
        log_service.log_db_operation(
            "structure", "research_jobs", "success" if row else "skipped", details=job_id
        )
        return row_to_job(row) if row else None

    # --- Upstream session artifacts (written by the wizard, read-only here) ---

    async def fetch_session_artifacts(self, session_id: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            session = await conn.fetchrow(
                "SELECT id, parsed_brief, vector_store_id FROM sessions WHERE id::text = $1",
                session_id,
            )
            if not session:
                return None
            context_pack = await conn.fetchrow(
                """
                SELECT * FROM context_packs
                WHERE session_id::text = $1
                ORDER BY created_at DESC
                LIMIT 1
                """,
                session_id,
            )
            generations = await conn.fetch(
                """
                SELECT DISTINCT ON (type) type, content
                FROM generations
                WHERE session_id::text = $1 AND type = ANY($2::text[])
                ORDER BY type, created_at DESC
                """,
                session_id,
                list(ARTIFACT_GENERATION_TYPES),
            )

        by_type = {g["type"]: g["content"] for g in generations}
        return {
            "parsed_brief": session["parsed_brief"],
            "vector_store_id": session["vector_store_id"],
            "context_pack": dict(context_pack) if context_pack else by_type.get("context"),
            "exploration_selection": by_type.get("exploration-selection"),
            "research_context": by_type.get("research-context"),
        }
