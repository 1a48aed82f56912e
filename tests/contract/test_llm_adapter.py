"""Contract tests for the LLM adapter (mocked, no real API calls)."""

from unittest.mock import MagicMock

import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from openai import APITimeoutError, InternalServerError

from project_chat.api.schemas import ChatMessage
from project_chat.chat.capabilities import active_capabilities
from project_chat.core.errors import UpstreamError
from project_chat.core.llm_adapter import LLMAdapter, build_messages, parse_model_output

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/responses")


@pytest.fixture
def adapter(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai-key")
    monkeypatch.setenv("OPENAI_CHAT_MODEL", "test-chat-model")
    monkeypatch.setenv("LLM_TIMEOUT", "1")
    return LLMAdapter()


class TestLLMAdapterInit:

    def test_loads_config(self, adapter):
        assert adapter.api_key == "test-openai-key"
        assert adapter.model_name == "test-chat-model"
        assert adapter.timeout == 1
        assert adapter.is_healthy()

    def test_uses_responses_api(self, adapter):
        from langchain_openai import ChatOpenAI

        assert isinstance(adapter.chat_model, ChatOpenAI)
        assert adapter.chat_model.use_responses_api is True

    def test_injected_model_is_used(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        model = MagicMock()
        adapter = LLMAdapter(model=model)
        assert adapter.chat_model is model
        assert not adapter.is_healthy()


class TestComplete:

    def _messages(self):
        return [ChatMessage(role="user", text="hello")]

    def test_binds_declared_tools(self, adapter, mocker):
        bind = mocker.patch("langchain_openai.ChatOpenAI.bind_tools")
        bind.return_value.invoke.return_value = AIMessage(content="hi")

        result = adapter.complete("system", self._messages(), active_capabilities(True, "vs_1"))

        tools = bind.call_args.args[0]
        assert [t["type"] for t in tools] == ["web_search", "file_search", "function"]
        assert result.assistant_text == "hi"

    def test_status_error_is_upstream(self, adapter, mocker):
        err = InternalServerError("boom", response=httpx.Response(500, request=_REQUEST), body=None)
        bind = mocker.patch("langchain_openai.ChatOpenAI.bind_tools")
        bind.return_value.invoke.side_effect = err

        with pytest.raises(UpstreamError) as exc:
            adapter.complete("system", self._messages(), active_capabilities(False, None))
        assert "500" in str(exc.value)
        assert exc.value.status == 502

    def test_timeout_is_upstream(self, adapter, mocker):
        bind = mocker.patch("langchain_openai.ChatOpenAI.bind_tools")
        bind.return_value.invoke.side_effect = APITimeoutError(request=_REQUEST)

        with pytest.raises(UpstreamError, match="timed out"):
            adapter.complete("system", self._messages(), active_capabilities(False, None))

    def test_transport_error_is_upstream(self, adapter, mocker):
        bind = mocker.patch("langchain_openai.ChatOpenAI.bind_tools")
        bind.return_value.invoke.side_effect = httpx.ReadTimeout("Timeout")

        with pytest.raises(UpstreamError):
            adapter.complete("system", self._messages(), active_capabilities(False, None))


class TestBuildMessages:

    def test_roles_map_to_input_and_output(self):
        history = [
            ChatMessage(role="system", text="extra rule"),
            ChatMessage(role="user", text="q"),
            ChatMessage(role="assistant", text="a"),
        ]
        prompt = build_messages("instruction", history)
        assert [type(m) for m in prompt] == [SystemMessage, SystemMessage, HumanMessage, AIMessage]
        assert prompt[0].content == "instruction"
        assert prompt[3].content == "a"


class TestParseModelOutput:

    def test_string_content(self):
        result = parse_model_output(AIMessage(content="plain"))
        assert result.assistant_text == "plain"
        assert result.invocations == []
        assert result.citations == []

    def test_content_blocks_and_citations(self):
        message = AIMessage(content=[
            {"type": "text", "text": "See ", "annotations": []},
            {"type": "text", "text": "the docs.", "annotations": [
                {"type": "url_citation", "url": "https://example.com", "title": "Example"},
                {"type": "container_file_citation", "file_id": "f1"},
            ]},
            {"type": "reasoning", "summary": []},
        ])
        result = parse_model_output(message)
        assert result.assistant_text == "See the docs."
        assert result.citations == [{"type": "url_citation", "url": "https://example.com", "title": "Example"}]

    def test_tool_calls_in_order(self):
        message = AIMessage(content="", tool_calls=[
            {"name": "generate_image", "args": {"prompt": "one"}, "id": "c1"},
            {"name": "generate_image", "args": {"prompt": "two"}, "id": "c2"},
        ])
        result = parse_model_output(message)
        assert [i.arguments["prompt"] for i in result.invocations] == ["one", "two"]
        assert result.invocations[0].name == "generate_image"
