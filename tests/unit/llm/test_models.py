"""
Unit tests for the request/response data models.
"""

import pytest
from pydantic import ValidationError

from switchboard.errors import ProviderTransportError
from switchboard.llm.models import LLMRequest, LLMResponse, Message, TokenUsage, Tool, ToolCall


class TestLLMRequest:

    def test_request_is_immutable(self):
        req = LLMRequest(messages=(Message(role="user", content="hi"),))
        with pytest.raises(ValidationError):
            req.messages = ()

    def test_option_default(self):
        req = LLMRequest(options={"temperature": 0.2})
        assert req.option("temperature") == 0.2
        assert req.option("cache_ttl", 60) == 60

    def test_with_option_returns_new_request(self):
        req = LLMRequest()
        updated = req.with_option("no_cache", True)

        assert updated.option("no_cache") is True
        assert req.options == {}

    def test_with_message_appends(self):
        req = LLMRequest().with_message("system", "be brief").with_message("user", "hi")
        assert [m.role for m in req.messages] == ["system", "user"]

    def test_with_tools_replaces_tool_list(self):
        req = LLMRequest().with_tools([Tool(name="a"), Tool(name="b")])
        assert [t.name for t in req.tools] == ["a", "b"]
        assert req.has_tools()

    def test_invalid_role_rejected(self):
        with pytest.raises(ValidationError):
            Message(role="tool", content="x")


class TestTool:

    def test_default_parameters_schema(self):
        tool = Tool(name="ping")
        assert tool.parameters == {"type": "object", "properties": {}, "required": []}

    def test_openai_format(self):
        tool = Tool(name="list_posts", description="List posts", parameters={"type": "object"})
        assert tool.to_openai() == {
            "type": "function",
            "function": {"name": "list_posts", "description": "List posts", "parameters": {"type": "object"}},
        }


class TestLLMResponse:

    def test_success_response(self):
        response = LLMResponse(provider="openai", content="ok")
        assert not response.is_error
        assert not response.has_tool_calls

    def test_from_error(self):
        error = ProviderTransportError("openai", "connection reset")
        response = LLMResponse.from_error(error, "openai")

        assert response.is_error
        assert response.content is None
        assert response.error is error
        assert "connection reset" in response.error_message

    def test_from_error_without_message_uses_type_name(self):
        response = LLMResponse.from_error(RuntimeError(), "anthropic")
        assert response.error_message == "RuntimeError"

    def test_cache_json_roundtrip(self):
        response = LLMResponse(
            provider="anthropic",
            content="Four plugins are active.",
            model="claude-3-5-sonnet-20241022",
            usage=TokenUsage(prompt_tokens=10, completion_tokens=5),
        )
        restored = LLMResponse.from_cache_json(response.to_cache_json())
        assert restored == response

    def test_exception_not_serialized(self):
        response = LLMResponse.from_error(RuntimeError("boom"), "openai")
        assert '"error":' not in response.to_cache_json()

    def test_tool_calls_flag(self):
        response = LLMResponse(provider="openai", tool_calls=[ToolCall(name="list_plugins")])
        assert response.has_tool_calls


class TestTokenUsage:

    def test_total(self):
        assert TokenUsage(prompt_tokens=3, completion_tokens=4).total_tokens == 7
