"""
Factory for building pipeline components from settings.
"""

from __future__ import annotations

from pathlib import Path

from switchboard.chat.adapter import ConversationAdapter
from switchboard.chat.history import HistoryStore, InMemoryHistoryStore, SQLiteHistoryStore
from switchboard.config.settings import Settings
from switchboard.llm.cache import ResponseCache
from switchboard.llm.orchestrator import DecisionHook, Orchestrator
from switchboard.llm.registry import ProviderRegistry
from switchboard.services import KeyManager
from switchboard.storage.cache_backends import MemoryCacheBackend, SQLiteCacheBackend
from switchboard.tools.base import ToolRegistry
from switchboard.tools.formatting import ResultFormatter
from switchboard.tools.routing import ToolRoutingTable


class SwitchboardComponents:
    """
    Factory for building pipeline components from settings.

    Example::

        factory = SwitchboardComponents(settings)
        adapter = factory.create_adapter(tools=tool_registry)
        reply = await adapter.process_request("List all active memberships")
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def create_cache(self) -> ResponseCache:
        """Create a ResponseCache on the configured backend."""
        cache_settings = self.settings.cache
        if cache_settings.backend == "sqlite":
            backend = SQLiteCacheBackend(Path(cache_settings.sqlite_path))
        else:
            backend = MemoryCacheBackend(max_entries=cache_settings.max_entries)
        return ResponseCache(
            backend,
            enabled=cache_settings.enabled,
            default_ttl=cache_settings.default_ttl,
        )

    def create_registry(self, key_manager: KeyManager | None = None) -> ProviderRegistry:
        """Create a ProviderRegistry with the built-in providers."""
        return ProviderRegistry.with_defaults(self.settings.llm, key_manager=key_manager)

    def create_orchestrator(
        self,
        registry: ProviderRegistry,
        cache: ResponseCache,
        on_decision: DecisionHook | None = None,
    ) -> Orchestrator:
        """Create an Orchestrator from settings + initialized dependencies."""
        llm = self.settings.llm
        return Orchestrator(
            registry=registry,
            cache=cache,
            primary_provider=llm.primary_provider,
            fallback_provider=llm.fallback_provider,
            forced_provider=llm.forced_provider,
            forced_provider_tools=llm.forced_provider_tools,
            on_decision=on_decision,
        )

    def create_history_store(self) -> HistoryStore:
        """Create the configured conversation history store."""
        if self.settings.history.backend == "sqlite":
            return SQLiteHistoryStore(Path(self.settings.history.sqlite_path))
        return InMemoryHistoryStore()

    def create_routing_table(self, tools: ToolRegistry) -> ToolRoutingTable:
        return ToolRoutingTable.build(tools, self.settings.tools.conflict_exclusions)

    def create_adapter(
        self,
        tools: ToolRegistry | None = None,
        orchestrator: Orchestrator | None = None,
        history: HistoryStore | None = None,
        key_manager: KeyManager | None = None,
    ) -> ConversationAdapter:
        """Create a ConversationAdapter, building any dependency not supplied."""
        if orchestrator is None:
            orchestrator = self.create_orchestrator(self.create_registry(key_manager), self.create_cache())
        llm = self.settings.llm
        return ConversationAdapter(
            orchestrator=orchestrator,
            routing=self.create_routing_table(tools or ToolRegistry()),
            history=history or self.create_history_store(),
            formatter=ResultFormatter(),
            system_prompt=llm.system_prompt,
            temperature=llm.temperature,
            max_tokens=llm.max_tokens,
        )
