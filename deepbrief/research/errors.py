from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class ResearchJobError(Exception):
    """Base for every error the orchestrator surfaces to callers."""

    status_code: int = 500
    code: str = "research_job_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any]:
        return {}


class StartError(ResearchJobError):
    """Launch failed; no job record was created and the whole launch must be retried."""

    code = "start_failed"

    MISSING_CONTEXT = "missing_context"
    SESSION_NOT_FOUND = "session_not_found"
    PROVIDER_ERROR = "provider_error"
    INVALID_CAPABILITY = "invalid_capability"

    _STATUS_BY_REASON = {
        MISSING_CONTEXT: 400,
        INVALID_CAPABILITY: 400,
        SESSION_NOT_FOUND: 404,
        PROVIDER_ERROR: 502,
    }

    def __init__(self, message: str, *, reason: str, missing: list[str] | None = None):
        super().__init__(message)
        self.reason = reason
        self.missing = list(missing or [])
        self.status_code = self._STATUS_BY_REASON.get(reason, 500)

    def details(self) -> dict[str, Any]:
        data: dict[str, Any] = {"reason": self.reason}
        if self.missing:
            data["missing"] = self.missing
        return data


class PollTransientError(ResearchJobError):
    """The provider could not be reached; local state is unchanged, poll again later."""

    status_code = 503
    code = "poll_transient"

    def __init__(self, message: str, *, job_id: str, current_status: str):
        super().__init__(message)
        self.job_id = job_id
        self.current_status = current_status

    def details(self) -> dict[str, Any]:
        return {"retryable": True, "job_id": self.job_id, "status": self.current_status}


class PollTerminalFailure(ResearchJobError):
    """Remote failure recorded on the job as its `error`; never retried automatically."""

    status_code = 200
    code = "poll_terminal_failure"


class JobNotFoundError(ResearchJobError):
    status_code = 404
    code = "job_not_found"

    def __init__(self, job_id: str):
        super().__init__(f"Research job not found: {job_id}")
        self.job_id = job_id


class JobNotReadyError(ResearchJobError):
    """Structuring was requested for a job without completed research output."""

    status_code = 409
    code = "job_not_ready"

    def __init__(self, message: str, *, status: str):
        super().__init__(message)
        self.status = status

    def details(self) -> dict[str, Any]:
        return {"status": self.status}


class StructuringProviderError(ResearchJobError):
    """The transformation call failed; rerun structuring later."""

    status_code = 502
    code = "structuring_provider_error"


class ExtractionParseError(ResearchJobError):
    """No extraction layer produced JSON from the structuring response."""

    status_code = 422
    code = "extraction_parse_error"

    def __init__(self, preview: str, cause: Exception | None = None):
        reason = str(cause) if cause else "no JSON found"
        super().__init__(f"Failed to parse structured JSON: {reason}")
        self.preview = preview
        self.cause = cause

    def details(self) -> dict[str, Any]:
        return {"preview": self.preview}


@dataclass(slots=True, frozen=True)
class FieldViolation:
    field: str
    message: str
    kind: str = ""


class ValidationError(ResearchJobError):
    """Parsed JSON does not conform to the template's schema."""

    status_code = 422
    code = "validation_error"

    def __init__(self, template_kind: str, violations: list[FieldViolation]):
        fields = ", ".join(v.field for v in violations) or "<root>"
        super().__init__(f"Structured result does not match the {template_kind} schema: {fields}")
        self.template_kind = template_kind
        self.violations = violations

    @property
    def fields(self) -> list[str]:
        return [v.field for v in self.violations]

    def details(self) -> dict[str, Any]:
        return {
            "template_kind": self.template_kind,
            "violations": [
                {"field": v.field, "message": v.message, "type": v.kind} for v in self.violations
            ],
        }
