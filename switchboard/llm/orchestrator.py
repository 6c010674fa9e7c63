"""
Orchestrator - provider selection, caching and fallback.

Per request (nothing is persisted between calls):

1. Select a provider: the request's ``provider`` option, else the configured
   primary. A request carrying a structured-data tool (substring match
   against the allowlist) is pinned to the forced provider.
2. Serve from ResponseCache on a hit.
3. Execute through the ProviderRegistry. Raised exceptions and in-band error
   responses are handled identically.
4. On success write through to the cache and return.
5. On failure try the fallback provider exactly once (its cache, then the
   call, then write-through). If that fails too, the original failure is
   returned.

UnknownProviderError is a configuration error and is re-raised instead of
triggering fallback. Every decision is logged and sent to the optional
``on_decision(event, details)`` hook.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from switchboard.errors import UnknownProviderError
from switchboard.llm.cache import ResponseCache
from switchboard.llm.models import LLMRequest, LLMResponse
from switchboard.llm.registry import ProviderRegistry

logger = logging.getLogger(__name__)

DecisionHook = Callable[[str, dict[str, Any]], None]


class Orchestrator:
    """
    Routes requests to providers with caching and a single fallback hop.

    Args:
        registry: Provider registry used to build clients
        cache: Response cache
        primary_provider: Provider used when a request names none
        fallback_provider: Provider tried once after a failure (None disables)
        forced_provider: Provider pinned for structured-data tools
        forced_provider_tools: Substrings of tool names that trigger pinning
        on_decision: Optional trace hook called with (event, details)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: ResponseCache,
        primary_provider: str = "openai",
        fallback_provider: str | None = None,
        forced_provider: str | None = None,
        forced_provider_tools: Iterable[str] = (),
        on_decision: DecisionHook | None = None,
    ):
        self._registry = registry
        self._cache = cache
        self._primary = primary_provider
        self._fallback = fallback_provider or None
        self._forced = forced_provider
        self._forced_tools = tuple(forced_provider_tools)
        self._on_decision = on_decision

    @property
    def primary_provider(self) -> str:
        return self._primary

    @property
    def fallback_provider(self) -> str | None:
        return self._fallback

    def with_provider(self, provider: str) -> Orchestrator:
        self._primary = provider
        return self

    def with_fallback(self, provider: str | None) -> Orchestrator:
        self._fallback = provider or None
        return self

    def _trace(self, event: str, **details: Any) -> None:
        logger.info(f"{event}: {details}")
        if self._on_decision is not None:
            try:
                self._on_decision(event, details)
            except Exception:
                logger.exception(f"Decision hook failed for event '{event}'")

    def select_provider(self, request: LLMRequest) -> str:
        """Explicit override, else primary; structured-data tools pin the forced provider."""
        provider = request.option("provider") or self._primary

        if self._forced and self._forced_tools:
            for tool in request.tools:
                if any(marker in tool.name for marker in self._forced_tools):
                    if provider != self._forced:
                        self._trace(
                            "provider_forced",
                            requested=provider,
                            forced=self._forced,
                            tool=tool.name,
                        )
                    return self._forced

        self._trace("provider_selected", provider=provider)
        return provider

    async def _execute(self, request: LLMRequest, provider: str) -> LLMResponse:
        try:
            client = self._registry.create(provider)
            return await client.send(request)
        except UnknownProviderError:
            raise
        except Exception as e:
            logger.warning(f"Provider '{provider}' failed: {e}")
            return LLMResponse.from_error(e, provider)

    async def _attempt(self, request: LLMRequest, provider: str) -> LLMResponse:
        """Cache lookup, then execute and write through on success."""
        cached = await self._cache.get(request, provider)
        if cached is not None:
            self._trace("cache_hit", provider=provider)
            return cached
        self._trace("cache_miss", provider=provider, cacheable=self._cache.should_cache(request, provider))

        response = await self._execute(request, provider)
        if not response.is_error:
            stored = await self._cache.put(request, provider, response)
            if stored:
                self._trace("cache_store", provider=provider)
        return response

    async def process(self, request: LLMRequest) -> LLMResponse:
        """
        Serve a request.

        Returns:
            The successful response, or the original provider's error response
            when every attempt failed.

        Raises:
            UnknownProviderError: If the selected or fallback provider was never registered
        """
        provider = self.select_provider(request)
        response = await self._attempt(request, provider)
        if not response.is_error:
            return response

        if not self._fallback or self._fallback == provider:
            self._trace("fallback_unavailable", provider=provider, error=response.error_message)
            return response

        self._trace(
            "fallback_attempt",
            failed=provider,
            fallback=self._fallback,
            error=response.error_message,
        )
        fallback_response = await self._attempt(request, self._fallback)
        if fallback_response.is_error:
            self._trace(
                "fallback_failed",
                fallback=self._fallback,
                error=fallback_response.error_message,
            )
            return response

        self._trace("fallback_succeeded", fallback=self._fallback)
        return fallback_response
