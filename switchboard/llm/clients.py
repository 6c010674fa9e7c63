"""
Provider clients.

Every upstream provider is reached through LiteLLM's ``acompletion`` so that
switching vendors is a configuration change. A client is bound to one
provider, one API key and one ProviderConfig; the ProviderRegistry creates
and memoises them.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any

from litellm import acompletion
from pydantic import BaseModel, ConfigDict, Field

from switchboard.config.logging import get_logger
from switchboard.errors import ProviderTransportError
from switchboard.llm.models import LLMRequest, LLMResponse, TokenUsage, ToolCall

logger = get_logger(__name__)


class ProviderConfig(BaseModel):
    """Per-provider defaults and model catalogue."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Provider name, also the LiteLLM model prefix")
    default_model: str = Field(description="Model used when a request names none")
    available_models: tuple[str, ...] = Field(default=(), description="Models this provider serves")
    default_temperature: float = Field(default=0.7, description="Temperature when a request sets none")
    default_max_tokens: int = Field(default=2048, description="Max tokens when a request sets none")
    options: dict[str, Any] = Field(default_factory=dict, description="Extra provider options")

    def is_model_available(self, model: str) -> bool:
        """An empty catalogue accepts any model."""
        return not self.available_models or model in self.available_models

    def with_default_model(self, model: str) -> ProviderConfig:
        return self.model_copy(update={"default_model": model})

    def with_option(self, key: str, value: Any) -> ProviderConfig:
        return self.with_options({key: value})

    def with_options(self, options: dict[str, Any]) -> ProviderConfig:
        return self.model_copy(update={"options": {**self.options, **options}})


class LLMClient(ABC):
    """
    Uniform interface over an upstream provider.

    Implementations raise ProviderTransportError for network/HTTP/timeout
    failures; they never return partial responses.
    """

    def __init__(self, provider: str, api_key: str, config: ProviderConfig):
        self.provider = provider
        self.api_key = api_key
        self.config = config

    @abstractmethod
    async def send(self, request: LLMRequest) -> LLMResponse:
        """
        Send a request to the provider.

        Args:
            request: The normalized request

        Returns:
            Successful LLMResponse

        Raises:
            ProviderTransportError: If the call fails or times out
        """
        pass

    def available_models(self) -> list[str]:
        return list(self.config.available_models)

    async def test_connection(self) -> bool:
        """Send a one-token probe; return False instead of raising."""
        probe = LLMRequest().with_message("user", "ping").with_option("max_tokens", 1)
        try:
            response = await self.send(probe)
        except ProviderTransportError as e:
            logger.warning(f"Connection test for '{self.provider}' failed: {e}")
            return False
        return not response.is_error


class LiteLLMClient(LLMClient):
    """
    Client backed by LiteLLM.

    Args:
        provider: Provider name ("openai", "anthropic", ...)
        api_key: Resolved API key
        config: Provider defaults
        timeout: Seconds before the call is abandoned
    """

    def __init__(
        self,
        provider: str,
        api_key: str,
        config: ProviderConfig,
        timeout: float = 60.0,
    ):
        super().__init__(provider, api_key, config)
        self.timeout = timeout

    def _model_name(self, request: LLMRequest) -> str:
        model = request.option("model") or self.config.default_model
        if not self.config.is_model_available(model):
            logger.warning(
                f"Model '{model}' not in {self.provider} catalogue, "
                f"using {self.config.default_model}"
            )
            model = self.config.default_model
        # LiteLLM routes on the "<provider>/<model>" prefix
        if "/" in model:
            return model
        return f"{self.provider}/{model}"

    def _build_call_kwargs(self, request: LLMRequest) -> dict[str, Any]:
        call_kwargs: dict[str, Any] = {
            "model": self._model_name(request),
            "messages": [m.model_dump() for m in request.messages],
            "temperature": request.option("temperature", self.config.default_temperature),
            "max_tokens": request.option("max_tokens", self.config.default_max_tokens),
            "api_key": self.api_key,
            "timeout": self.timeout,
            **self.config.options,
        }
        if request.tools:
            call_kwargs["tools"] = [tool.to_openai() for tool in request.tools]
        return call_kwargs

    async def send(self, request: LLMRequest) -> LLMResponse:
        call_kwargs = self._build_call_kwargs(request)
        try:
            response = await asyncio.wait_for(acompletion(**call_kwargs), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTransportError(
                self.provider, f"request timed out after {self.timeout}s", cause=e
            ) from e
        except Exception as e:
            raise ProviderTransportError(self.provider, f"LLM API call failed: {e}", cause=e) from e

        return self._parse_response(response)

    def _parse_response(self, response: Any) -> LLMResponse:
        message = response.choices[0].message

        tool_calls: list[ToolCall] = []
        for raw_call in message.tool_calls or []:
            arguments = raw_call.function.arguments
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments) if arguments else {}
                except json.JSONDecodeError as e:
                    raise ProviderTransportError(
                        self.provider,
                        f"malformed arguments for tool '{raw_call.function.name}'",
                        cause=e,
                    ) from e
            tool_calls.append(
                ToolCall(id=raw_call.id or "", name=raw_call.function.name, arguments=arguments)
            )

        usage = getattr(response, "usage", None)
        return LLMResponse(
            provider=self.provider,
            content=message.content or "",
            tool_calls=tool_calls,
            model=response.model or "",
            usage=TokenUsage(
                prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            ),
        )
