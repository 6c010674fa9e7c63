"""
Data models for the LLM request pipeline.

These Pydantic models are the provider-agnostic vocabulary shared by the
orchestrator, the provider clients, the response cache and the conversation
adapter.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    """A single chat message."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"] = Field(description="Author of the message")
    content: str = Field(description="Message text")


class Tool(BaseModel):
    """
    A tool definition offered to the model.

    ``parameters`` is a JSON-schema-like object:
    ``{"type": "object", "properties": {...}, "required": [...]}``.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Tool name, unique within a request")
    description: str = Field(default="", description="Human-readable description")
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        description="JSON schema for the tool arguments",
    )

    def to_openai(self) -> dict[str, Any]:
        """Render in the OpenAI function-tool format LiteLLM expects."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolCall(BaseModel):
    """A model-emitted request to invoke a tool."""

    id: str = Field(default="", description="Provider-assigned call id")
    name: str = Field(description="Name of the tool to invoke")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")


class TokenUsage(BaseModel):
    """Token consumption for a single API call."""

    prompt_tokens: int = Field(default=0, description="Tokens in the prompt")
    completion_tokens: int = Field(default=0, description="Tokens in the completion")

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class LLMRequest(BaseModel):
    """
    A normalized, immutable chat request.

    Options are free-form; the pipeline understands ``temperature``,
    ``max_tokens``, ``cache_ttl``, ``no_cache``, ``provider``, ``model`` and
    ``conversation_id``. The ``with_*`` helpers return new requests.
    """

    model_config = ConfigDict(frozen=True)

    messages: tuple[Message, ...] = Field(default=(), description="Ordered message list")
    tools: tuple[Tool, ...] = Field(default=(), description="Tools available to the model")
    options: dict[str, Any] = Field(default_factory=dict, description="Request options")

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)

    def has_tools(self) -> bool:
        return len(self.tools) > 0

    def with_option(self, key: str, value: Any) -> LLMRequest:
        return self.with_options({key: value})

    def with_options(self, options: dict[str, Any]) -> LLMRequest:
        return self.model_copy(update={"options": {**self.options, **options}})

    def with_tools(self, tools: list[Tool] | tuple[Tool, ...]) -> LLMRequest:
        return self.model_copy(update={"tools": tuple(tools)})

    def with_message(self, role: str, content: str) -> LLMRequest:
        message = Message(role=role, content=content)
        return self.model_copy(update={"messages": (*self.messages, message)})

    def canonical_payload(self) -> dict[str, Any]:
        """Plain-data view of the semantic content, used for cache keys."""
        return {
            "messages": [m.model_dump() for m in self.messages],
            "tools": [t.model_dump() for t in self.tools],
            "options": self.options,
        }


class LLMResponse(BaseModel):
    """
    Result of a provider call.

    A response is either a success (``content``, ``tool_calls``) or an error
    (``error_message`` and optionally the underlying ``error``), never both.
    The exception object itself is not serialized.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    provider: str = Field(description="Provider that produced this response")
    content: str | None = Field(default=None, description="Text answer")
    tool_calls: list[ToolCall] = Field(default_factory=list, description="Tool invocations requested")
    model: str = Field(default="", description="Model that produced the answer")
    usage: TokenUsage = Field(default_factory=TokenUsage, description="Token consumption")
    error_message: str | None = Field(default=None, description="Error text for failed calls")
    error: Exception | None = Field(default=None, exclude=True, description="Underlying exception")

    @classmethod
    def from_error(cls, error: Exception, provider: str) -> LLMResponse:
        return cls(provider=provider, error_message=str(error) or type(error).__name__, error=error)

    @property
    def is_error(self) -> bool:
        return self.error_message is not None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_cache_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_cache_json(cls, raw: str) -> LLMResponse:
        return cls.model_validate_json(raw)
