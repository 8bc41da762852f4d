"""Remote research provider interface and its OpenAI Responses API implementation."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from deepbrief.config import settings
from deepbrief.models.jobs import TOOL_TRACE_TYPES, JobStatus, TemplateKind
from deepbrief.services import logger as log_service
from deepbrief.services.prompt_store import has_prompt, render_prompt


class ProviderError(Exception):
    """Any failure talking to the research provider."""


class ProviderTransientError(ProviderError):
    """Network, timeout, rate limit or 5xx; the same call may succeed later."""


class ProviderRejectedError(ProviderError):
    """The provider refused the request (bad capabilities, auth, quota)."""


class TaskNotFoundError(ProviderError):
    """The provider no longer knows the task reference (expired or never existed)."""

    def __init__(self, task_ref: str, message: str | None = None):
        super().__init__(message or f"Research task {task_ref} not found at provider")
        self.task_ref = task_ref


@dataclass(slots=True)
class ProviderTask:
    task_ref: str
    status: JobStatus


@dataclass(slots=True)
class TaskSnapshot:
    """Remote view of a background task at the time of polling."""

    status: JobStatus
    output_text: str = ""
    tool_trace: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None


class ResearchProvider(Protocol):
    async def create_background_task(
        self,
        prompt: str,
        capabilities: list[str],
        template_kind: TemplateKind,
        *,
        vector_store_id: str | None = None,
    ) -> ProviderTask: ...

    async def get_task_status(self, task_ref: str) -> TaskSnapshot: ...

    async def transform_text(self, prompt: str) -> str: ...


# Remote statuses that end the task without usable output.
_REMOTE_FAILURE_STATUSES = {"failed", "cancelled", "incomplete"}


def map_remote_status(remote_status: str | None) -> JobStatus:
    value = (remote_status or "").strip().lower()
    if value in _REMOTE_FAILURE_STATUSES:
        return JobStatus.FAILED
    try:
        return JobStatus(value)
    except ValueError:
        return JobStatus.PENDING


def build_tools(capabilities: list[str], vector_store_id: str | None = None) -> list[dict[str, Any]]:
    """Translate capability names into Responses API tool declarations."""
    tools: list[dict[str, Any]] = []
    for capability in capabilities:
        if capability == "web_search":
            tools.append({"type": "web_search_preview"})
        elif capability == "code_interpreter":
            tools.append({"type": "code_interpreter", "container": {"type": "auto"}})
        elif capability == "file_search" and vector_store_id:
            tools.append({"type": "file_search", "vector_store_ids": [vector_store_id]})
    return tools


def _item_to_dict(item: Any) -> dict[str, Any]:
    if isinstance(item, dict):
        return item
    if hasattr(item, "model_dump"):
        return item.model_dump(exclude_none=True)
    return {k: v for k, v in vars(item).items() if not k.startswith("_")}


def extract_tool_trace(output: list[Any] | None) -> list[dict[str, Any]]:
    """Ordered tool invocations (search/compute/lookup) from a response's output items."""
    trace: list[dict[str, Any]] = []
    for item in output or []:
        data = _item_to_dict(item)
        if data.get("type") in TOOL_TRACE_TYPES:
            trace.append(data)
    return trace


def _output_text(response: Any) -> str:
    text = getattr(response, "output_text", None)
    if text:
        return text
    # Older SDKs do not expose the output_text convenience property.
    parts: list[str] = []
    for item in getattr(response, "output", None) or []:
        data = _item_to_dict(item)
        if data.get("type") != "message":
            continue
        for content in data.get("content") or []:
            if content.get("type") == "output_text" and content.get("text"):
                parts.append(content["text"])
    return "".join(parts)


def _remote_error_message(response: Any, status: str) -> str:
    error = getattr(response, "error", None)
    message = getattr(error, "message", None) if error is not None else None
    if message:
        return message
    incomplete = getattr(response, "incomplete_details", None)
    reason = getattr(incomplete, "reason", None) if incomplete is not None else None
    if reason:
        return f"Research {status}: {reason}"
    return "Research failed" if status == "failed" else f"Research {status}"


class OpenAIResearchProvider:
    """Research provider backed by the OpenAI Responses API in background mode."""

    def __init__(self, openai_client: Any):
        self._client = openai_client

    @staticmethod
    def _model_for(template_kind: TemplateKind) -> str:
        if template_kind == TemplateKind.LITE:
            return settings.lite_research_model
        return settings.deep_research_model

    @staticmethod
    def _temperature_for_model(model: str) -> float:
        # Some GPT-5-compatible gateways reject anything but the default temperature.
        lowered = (model or "").lower()
        if "gpt-5" in lowered:
            return 1
        return settings.structuring_temperature

    @staticmethod
    def _translate(exc: Exception, task_ref: str | None = None) -> ProviderError:
        import openai

        if isinstance(exc, openai.NotFoundError) and task_ref:
            return TaskNotFoundError(task_ref)
        if isinstance(exc, (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError)):
            return ProviderTransientError(str(exc))
        if isinstance(exc, openai.APIStatusError):
            return ProviderRejectedError(str(exc))
        return ProviderError(str(exc))

    async def create_background_task(
        self,
        prompt: str,
        capabilities: list[str],
        template_kind: TemplateKind,
        *,
        vector_store_id: str | None = None,
    ) -> ProviderTask:
        import openai

        model = self._model_for(template_kind)
        tools = build_tools(capabilities, vector_store_id)
        kwargs: dict[str, Any] = {
            "model": model,
            "input": prompt,
            "background": True,
            "tools": tools,
            "reasoning": {"summary": "auto"},
        }
        instructions_key = f"research.{template_kind.value}.instructions"
        if has_prompt(instructions_key):
            kwargs["instructions"] = render_prompt(instructions_key)

        t0 = time.monotonic()
        try:
            response = await self._client.responses.create(**kwargs)
        except openai.OpenAIError as exc:
            log_service.log_provider_call(
                "create_background_task",
                model,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(exc),
            )
            raise self._translate(exc) from exc

        log_service.log_provider_call(
            "create_background_task",
            model,
            duration_ms=int((time.monotonic() - t0) * 1000),
            task_ref=response.id,
        )
        return ProviderTask(task_ref=response.id, status=map_remote_status(getattr(response, "status", None)))

    async def get_task_status(self, task_ref: str) -> TaskSnapshot:
        import openai

        t0 = time.monotonic()
        try:
            response = await self._client.responses.retrieve(task_ref)
        except openai.OpenAIError as exc:
            log_service.log_provider_call(
                "get_task_status",
                settings.deep_research_model,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                task_ref=task_ref,
                error=str(exc),
            )
            raise self._translate(exc, task_ref) from exc

        remote_status = (getattr(response, "status", None) or "").lower()
        status = map_remote_status(remote_status)
        log_service.log_provider_call(
            "get_task_status",
            getattr(response, "model", None) or settings.deep_research_model,
            duration_ms=int((time.monotonic() - t0) * 1000),
            status=remote_status or "unknown",
            task_ref=task_ref,
        )

        if status == JobStatus.COMPLETED:
            output = getattr(response, "output", None)
            return TaskSnapshot(
                status=status,
                output_text=_output_text(response),
                tool_trace=extract_tool_trace(output),
            )
        if status == JobStatus.FAILED:
            return TaskSnapshot(status=status, error=_remote_error_message(response, remote_status))
        return TaskSnapshot(status=status)

    async def transform_text(self, prompt: str) -> str:
        import openai

        model = settings.structuring_model
        t0 = time.monotonic()
        try:
            completion = await self._client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": render_prompt("structuring.system")},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=self._temperature_for_model(model),
                max_tokens=settings.structuring_max_tokens,
            )
        except openai.OpenAIError as exc:
            log_service.log_provider_call(
                "transform_text",
                model,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(exc),
            )
            raise self._translate(exc) from exc

        log_service.log_provider_call(
            "transform_text",
            model,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        choices = getattr(completion, "choices", None) or []
        if not choices:
            return ""
        return getattr(choices[0].message, "content", None) or ""


def get_client() -> Any:
    """Get the OpenAI async client used for research and structuring."""
    from openai import AsyncOpenAI

    kwargs: dict[str, Any] = {
        "api_key": settings.openai_api_key,
        "timeout": settings.openai_timeout_seconds,
    }
    if settings.openai_base_url.strip():
        kwargs["base_url"] = settings.openai_base_url.strip()
    return AsyncOpenAI(**kwargs)


_provider: OpenAIResearchProvider | None = None


def get_provider() -> OpenAIResearchProvider:
    """Get or create the process-wide provider (inject a different one in tests)."""
    global _provider
    if _provider is None:
        _provider = OpenAIResearchProvider(get_client())
    return _provider
