"""Tests for the OpenAI-backed research provider."""
import sys
import types
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from deepbrief.models.jobs import JobStatus, TemplateKind
from deepbrief.provider import (
    OpenAIResearchProvider,
    ProviderRejectedError,
    ProviderTransientError,
    TaskNotFoundError,
    build_tools,
    extract_tool_trace,
    get_client,
    map_remote_status,
)

_REQUEST = httpx.Request("GET", "https://api.openai.com/v1/responses/resp_1")


def _status_error(cls, status_code: int):
    return cls(f"HTTP {status_code}", response=httpx.Response(status_code, request=_REQUEST), body=None)


def _client(create=None, retrieve=None, chat_create=None):
    return SimpleNamespace(
        responses=SimpleNamespace(create=create or AsyncMock(), retrieve=retrieve or AsyncMock()),
        chat=SimpleNamespace(completions=SimpleNamespace(create=chat_create or AsyncMock())),
    )


class TestHelpers:
    @pytest.mark.parametrize(
        "remote, expected",
        [
            ("queued", JobStatus.QUEUED),
            ("in_progress", JobStatus.IN_PROGRESS),
            ("completed", JobStatus.COMPLETED),
            ("failed", JobStatus.FAILED),
            ("cancelled", JobStatus.FAILED),
            ("incomplete", JobStatus.FAILED),
            ("something_new", JobStatus.PENDING),
            (None, JobStatus.PENDING),
        ],
    )
    def test_map_remote_status(self, remote, expected):
        assert map_remote_status(remote) == expected

    def test_build_tools(self):
        tools = build_tools(["web_search", "code_interpreter", "file_search"], "vs_1")
        assert tools == [
            {"type": "web_search_preview"},
            {"type": "code_interpreter", "container": {"type": "auto"}},
            {"type": "file_search", "vector_store_ids": ["vs_1"]},
        ]

    def test_build_tools_skips_file_search_without_store(self):
        assert build_tools(["file_search"], None) == []

    def test_extract_tool_trace_keeps_order_and_tool_items_only(self):
        output = [
            SimpleNamespace(type="reasoning", id="rs_1"),
            SimpleNamespace(type="web_search_call", id="ws_1", status="completed"),
            {"type": "code_interpreter_call", "id": "ci_1"},
            {"type": "message", "id": "msg_1"},
            {"type": "file_search_call", "id": "fs_1"},
        ]

        trace = extract_tool_trace(output)

        assert [t["id"] for t in trace] == ["ws_1", "ci_1", "fs_1"]


class TestCreateBackgroundTask:
    @pytest.mark.asyncio
    async def test_submits_background_request(self):
        create = AsyncMock(return_value=SimpleNamespace(id="resp_1", status="queued"))
        provider = OpenAIResearchProvider(_client(create=create))

        task = await provider.create_background_task("prompt", ["web_search"], TemplateKind.STRATEGY)

        assert task.task_ref == "resp_1"
        assert task.status == JobStatus.QUEUED
        kwargs = create.call_args.kwargs
        assert kwargs["background"] is True
        assert kwargs["input"] == "prompt"
        assert kwargs["tools"] == [{"type": "web_search_preview"}]
        assert kwargs["reasoning"] == {"summary": "auto"}
        assert "instructions" not in kwargs

    @pytest.mark.asyncio
    async def test_lite_uses_lite_model_and_instructions(self):
        create = AsyncMock(return_value=SimpleNamespace(id="resp_2", status="in_progress"))
        provider = OpenAIResearchProvider(_client(create=create))

        with patch("deepbrief.provider.settings") as mock_settings:
            mock_settings.lite_research_model = "o4-mini-deep-research"
            mock_settings.deep_research_model = "o3-deep-research"
            await provider.create_background_task("prompt", ["web_search"], TemplateKind.LITE)

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "o4-mini-deep-research"
        assert "Strategic Researcher" in kwargs["instructions"]

    @pytest.mark.asyncio
    async def test_rejection_is_translated(self):
        create = AsyncMock(side_effect=_status_error(openai.BadRequestError, 400))
        provider = OpenAIResearchProvider(_client(create=create))

        with pytest.raises(ProviderRejectedError):
            await provider.create_background_task("prompt", [], TemplateKind.STRATEGY)


class TestGetTaskStatus:
    @pytest.mark.asyncio
    async def test_completed_snapshot_has_output_and_trace(self):
        response = SimpleNamespace(
            status="completed",
            model="o4-mini-deep-research",
            output_text="# Report",
            output=[
                SimpleNamespace(type="web_search_call", id="ws_1"),
                SimpleNamespace(type="message", id="msg_1"),
            ],
        )
        provider = OpenAIResearchProvider(_client(retrieve=AsyncMock(return_value=response)))

        snapshot = await provider.get_task_status("resp_1")

        assert snapshot.status == JobStatus.COMPLETED
        assert snapshot.output_text == "# Report"
        assert snapshot.tool_trace == [{"type": "web_search_call", "id": "ws_1"}]

    @pytest.mark.asyncio
    async def test_output_text_assembled_from_message_items(self):
        response = SimpleNamespace(
            status="completed",
            output_text=None,
            output=[
                {"type": "message", "content": [{"type": "output_text", "text": "Part one. "}]},
                {"type": "message", "content": [{"type": "output_text", "text": "Part two."}]},
            ],
        )
        provider = OpenAIResearchProvider(_client(retrieve=AsyncMock(return_value=response)))

        snapshot = await provider.get_task_status("resp_1")

        assert snapshot.output_text == "Part one. Part two."

    @pytest.mark.asyncio
    async def test_incomplete_maps_to_failed_with_reason(self):
        response = SimpleNamespace(
            status="incomplete",
            error=None,
            incomplete_details=SimpleNamespace(reason="max_output_tokens"),
        )
        provider = OpenAIResearchProvider(_client(retrieve=AsyncMock(return_value=response)))

        snapshot = await provider.get_task_status("resp_1")

        assert snapshot.status == JobStatus.FAILED
        assert snapshot.error == "Research incomplete: max_output_tokens"

    @pytest.mark.asyncio
    async def test_failed_uses_remote_error_message(self):
        response = SimpleNamespace(status="failed", error=SimpleNamespace(message="server_error"))
        provider = OpenAIResearchProvider(_client(retrieve=AsyncMock(return_value=response)))

        snapshot = await provider.get_task_status("resp_1")

        assert snapshot.error == "server_error"

    @pytest.mark.asyncio
    async def test_not_found(self):
        retrieve = AsyncMock(side_effect=_status_error(openai.NotFoundError, 404))
        provider = OpenAIResearchProvider(_client(retrieve=retrieve))

        with pytest.raises(TaskNotFoundError) as exc_info:
            await provider.get_task_status("resp_gone")
        assert exc_info.value.task_ref == "resp_gone"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            openai.APIConnectionError(request=_REQUEST),
            _status_error(openai.RateLimitError, 429),
            _status_error(openai.InternalServerError, 500),
        ],
    )
    async def test_transient_errors(self, error):
        provider = OpenAIResearchProvider(_client(retrieve=AsyncMock(side_effect=error)))

        with pytest.raises(ProviderTransientError):
            await provider.get_task_status("resp_1")


class TestTransformText:
    @pytest.mark.asyncio
    async def test_requests_json_object(self):
        completion = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content='{"a": 1}'))])
        chat_create = AsyncMock(return_value=completion)
        provider = OpenAIResearchProvider(_client(chat_create=chat_create))

        text = await provider.transform_text("structure this")

        assert text == '{"a": 1}'
        kwargs = chat_create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"
        assert kwargs["messages"][1] == {"role": "user", "content": "structure this"}

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        chat_create = AsyncMock(return_value=SimpleNamespace(choices=[]))
        provider = OpenAIResearchProvider(_client(chat_create=chat_create))

        assert await provider.transform_text("x") == ""

    def test_gpt5_models_use_default_temperature(self):
        assert OpenAIResearchProvider._temperature_for_model("openai/gpt-5-mini") == 1


class TestGetClient:
    def test_get_client_passes_base_url_when_set(self):
        with patch("deepbrief.provider.settings") as mock_settings:
            mock_settings.openai_api_key = "sk-test"
            mock_settings.openai_timeout_seconds = 600.0
            mock_settings.openai_base_url = "https://gateway.example/v1"

            openai_module = types.ModuleType("openai")
            mock_openai = MagicMock()
            openai_module.AsyncOpenAI = mock_openai

            with patch.dict(sys.modules, {"openai": openai_module}):
                get_client()

            mock_openai.assert_called_once_with(
                api_key="sk-test",
                timeout=600.0,
                base_url="https://gateway.example/v1",
            )
