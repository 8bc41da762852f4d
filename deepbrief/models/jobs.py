from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class JobStatus(StrEnum):
    PENDING = "pending"
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


_STATUS_RANK = {
    JobStatus.PENDING: 0,
    JobStatus.QUEUED: 1,
    JobStatus.IN_PROGRESS: 2,
    JobStatus.COMPLETED: 3,
    JobStatus.FAILED: 3,
}

TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


def statuses_below(status: JobStatus) -> list[JobStatus]:
    """Statuses a job may legally move out of to reach `status`."""
    return [s for s in JobStatus if s.rank < status.rank]


class TemplateKind(StrEnum):
    STRATEGY = "strategy"
    LITE = "lite"
    BIG_IDEA = "big-idea"


class Capability(StrEnum):
    WEB_SEARCH = "web_search"
    CODE_INTERPRETER = "code_interpreter"
    FILE_SEARCH = "file_search"


TOOL_TRACE_TYPES = (
    "web_search_call",
    "code_interpreter_call",
    "file_search_call",
    "mcp_tool_call",
)


@dataclass(slots=True)
class RawResult:
    output_text: str
    tool_trace: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"output_text": self.output_text, "tool_trace": list(self.tool_trace)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawResult:
        trace = data.get("tool_trace")
        return cls(
            output_text=str(data.get("output_text") or ""),
            tool_trace=list(trace) if isinstance(trace, list) else [],
        )


@dataclass(slots=True)
class ResearchJob:
    """Local record of one remote background research task."""

    id: str
    session_id: str
    external_task_ref: str
    status: JobStatus
    template_kind: TemplateKind
    prompt_snapshot: str
    created_at: datetime
    updated_at: datetime
    capabilities: list[str] = field(default_factory=list)
    raw_result: RawResult | None = None
    structured_result: dict[str, Any] | None = None
    error: str | None = None
    completed_at: datetime | None = None
    structured_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def needs_structuring(self) -> bool:
        return self.status == JobStatus.COMPLETED and self.structured_result is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "external_task_ref": self.external_task_ref,
            "status": self.status.value,
            "template_kind": self.template_kind.value,
            "capabilities": list(self.capabilities),
            "prompt_snapshot": self.prompt_snapshot,
            "raw_result": self.raw_result.to_dict() if self.raw_result else None,
            "structured_result": self.structured_result,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "structured_at": self.structured_at.isoformat() if self.structured_at else None,
        }
