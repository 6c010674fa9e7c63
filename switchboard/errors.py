"""
Error taxonomy for the request pipeline.

Which errors may trigger a provider fallback and which must abort is decided
by the Orchestrator; this module only names them:

- MissingCredentialError: no usable API key for a provider (fallback-eligible)
- UnknownProviderError: provider name was never registered (aborts)
- ProviderTransportError: network/HTTP/timeout failure (fallback-eligible)
- ToolExecutionError: one tool call failed (isolated to its result slot)
- CacheError: storage failure (always swallowed by ResponseCache)
"""

from __future__ import annotations


class SwitchboardError(Exception):
    """Base class for all switchboard errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class MissingCredentialError(SwitchboardError):
    """Raised when no credential resolver yields a key for a provider."""

    def __init__(self, provider: str):
        super().__init__(f"API key for provider '{provider}' is not available")
        self.provider = provider


class UnknownProviderError(SwitchboardError):
    """Raised when a provider name was never registered."""

    def __init__(self, provider: str):
        super().__init__(f"Provider '{provider}' is not registered")
        self.provider = provider


class ProviderTransportError(SwitchboardError):
    """Raised when the upstream provider call fails or times out."""

    def __init__(self, provider: str, message: str, cause: Exception | None = None):
        super().__init__(f"{provider}: {message}", cause=cause)
        self.provider = provider


class ToolExecutionError(SwitchboardError):
    """Raised when a single tool call cannot be resolved or fails."""

    def __init__(self, tool: str, message: str, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.tool = tool


class CacheError(SwitchboardError):
    """Raised by cache backends on storage failure."""
