"""
LLM request layer.

Provider clients and registry, response cache, and the Orchestrator that
picks a provider, serves from cache and falls back on failure:

    LLMRequest → Orchestrator.process()
                     ↓
    ResponseCache.get()  →  hit: return
                     ↓ miss
    ProviderRegistry.create(provider).send()  →  failure: one fallback hop
                     ↓
    ResponseCache.put()  →  LLMResponse
"""

from switchboard.llm.cache import ResponseCache
from switchboard.llm.clients import LiteLLMClient, LLMClient, ProviderConfig
from switchboard.llm.models import LLMRequest, LLMResponse, Message, TokenUsage, Tool, ToolCall
from switchboard.llm.orchestrator import Orchestrator
from switchboard.llm.registry import ProviderRegistry

__all__ = [
    "LLMClient",
    "LiteLLMClient",
    "LLMRequest",
    "LLMResponse",
    "Message",
    "Orchestrator",
    "ProviderConfig",
    "ProviderRegistry",
    "ResponseCache",
    "TokenUsage",
    "Tool",
    "ToolCall",
]
