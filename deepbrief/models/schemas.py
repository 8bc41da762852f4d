from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from deepbrief.models.jobs import Capability, JobStatus, ResearchJob, TemplateKind


# --- Requests ---


class StartJobRequest(BaseModel):
    session_id: str = Field(min_length=1)
    template: TemplateKind = TemplateKind.STRATEGY
    capabilities: list[Capability] | None = None
    focus_areas: list[str] | None = None


# --- Responses ---


class RawResultResponse(BaseModel):
    output_text: str
    tool_trace: list[dict[str, Any]]


class JobResponse(BaseModel):
    id: str
    session_id: str
    external_task_ref: str
    status: JobStatus
    template_kind: TemplateKind
    capabilities: list[str]
    prompt_snapshot: str
    raw_result: RawResultResponse | None = None
    structured_result: dict[str, Any] | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    structured_at: datetime | None = None

    @classmethod
    def from_job(cls, job: ResearchJob) -> JobResponse:
        return cls.model_validate(job.to_dict())


class StartJobResponse(BaseModel):
    success: bool = True
    job_id: str
    status: JobStatus
    external_task_ref: str
    capabilities: list[str]


class PollJobResponse(BaseModel):
    success: bool = True
    job: JobResponse


class StructureJobResponse(BaseModel):
    success: bool = True
    job_id: str
    structured_result: dict[str, Any]


class JobListResponse(BaseModel):
    success: bool = True
    jobs: list[JobResponse]


class TemplateInfo(BaseModel):
    id: TemplateKind
    name: str
    description: str
    required_artifacts: list[str]


class TemplatesResponse(BaseModel):
    templates: list[TemplateInfo]
