"""
Provider registry and credential resolution.

The registry maps provider names to client constructors and per-provider
configuration, resolves an API key for a provider through an ordered chain
of resolver strategies, and lazily builds one client per provider.

Resolution order (first non-empty key wins):

1. InjectedKeyManagerResolver - key manager passed to the registry
2. ServiceLocatorResolver - ``"key_manager"`` from switchboard.services,
   only consulted when nothing was injected
3. LegacyConfigResolver - flat ``provider -> key`` mapping, then the
   provider's conventional environment variable
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from functools import partial

from switchboard.config.logging import get_logger
from switchboard.config.settings import LLMSettings
from switchboard.errors import MissingCredentialError, UnknownProviderError
from switchboard.llm.clients import LiteLLMClient, LLMClient, ProviderConfig
from switchboard.services import KeyManager, get_service

logger = get_logger(__name__)

ClientConstructor = Callable[[str, ProviderConfig], LLMClient]

PROVIDER_ENV_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
}

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o",
    "anthropic": "claude-3-5-sonnet-20241022",
}


# ---------------------------------------------------------------------------
# Credential resolvers
# ---------------------------------------------------------------------------

class CredentialResolver:
    """One step of the credential chain."""

    name = "resolver"

    def resolve(self, provider: str) -> str | None:
        raise NotImplementedError


class InjectedKeyManagerResolver(CredentialResolver):
    name = "injected_key_manager"

    def __init__(self, key_manager: KeyManager):
        self._key_manager = key_manager

    def resolve(self, provider: str) -> str | None:
        return self._key_manager.get_api_key(provider)


class ServiceLocatorResolver(CredentialResolver):
    name = "service_locator"

    def __init__(self, service_name: str = "key_manager"):
        self._service_name = service_name

    def resolve(self, provider: str) -> str | None:
        key_manager = get_service(self._service_name)
        if key_manager is None:
            return None
        return key_manager.get_api_key(provider)


class LegacyConfigResolver(CredentialResolver):
    name = "legacy_config"

    def __init__(self, api_keys: Mapping[str, str] | None = None, environ: Mapping[str, str] | None = None):
        self._api_keys = dict(api_keys or {})
        self._environ = os.environ if environ is None else environ

    def resolve(self, provider: str) -> str | None:
        key = self._api_keys.get(provider)
        if key:
            return key
        env_var = PROVIDER_ENV_VARS.get(provider, f"{provider.upper()}_API_KEY")
        return self._environ.get(env_var)


def default_resolvers(
    key_manager: KeyManager | None = None,
    api_keys: Mapping[str, str] | None = None,
) -> list[CredentialResolver]:
    """Build the standard chain; the service locator only stands in for a missing injection."""
    resolvers: list[CredentialResolver] = []
    if key_manager is not None:
        resolvers.append(InjectedKeyManagerResolver(key_manager))
    else:
        resolvers.append(ServiceLocatorResolver())
    resolvers.append(LegacyConfigResolver(api_keys))
    return resolvers


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class ProviderRegistry:
    """
    Named provider constructors with lazily-created, memoised clients.

    Args:
        resolvers: Credential chain, tried in order. Defaults to
            default_resolvers() with no injected key manager.
    """

    def __init__(self, resolvers: list[CredentialResolver] | None = None):
        self._resolvers = resolvers if resolvers is not None else default_resolvers()
        self._constructors: dict[str, ClientConstructor] = {}
        self._configs: dict[str, ProviderConfig] = {}
        self._clients: dict[str, LLMClient] = {}

    @classmethod
    def with_defaults(
        cls,
        settings: LLMSettings,
        key_manager: KeyManager | None = None,
    ) -> ProviderRegistry:
        """Registry with the built-in OpenAI and Anthropic providers."""
        registry = cls(default_resolvers(key_manager, settings.api_keys))
        for name in ("openai", "anthropic"):
            model = settings.models.get(name, DEFAULT_MODELS[name])
            config = ProviderConfig(
                name=name,
                default_model=model,
                default_temperature=settings.temperature,
                default_max_tokens=settings.max_tokens,
            )
            registry.register(
                name,
                partial(LiteLLMClient, name, timeout=settings.request_timeout),
                config,
            )
        return registry

    def register(
        self,
        name: str,
        constructor: ClientConstructor,
        config: ProviderConfig | None = None,
    ) -> None:
        """Register (or replace) a provider. The last registration wins."""
        self._constructors[name] = constructor
        self._configs[name] = config or ProviderConfig(
            name=name, default_model=DEFAULT_MODELS.get(name, name)
        )
        self._clients.pop(name, None)
        logger.debug(f"Registered provider '{name}'")

    def has(self, name: str) -> bool:
        return name in self._constructors

    def list_providers(self) -> list[str]:
        return list(self._constructors)

    def get_config(self, name: str) -> ProviderConfig:
        if name not in self._configs:
            raise UnknownProviderError(name)
        return self._configs[name]

    def set_config(self, name: str, config: ProviderConfig) -> None:
        if name not in self._constructors:
            raise UnknownProviderError(name)
        self._configs[name] = config
        self._clients.pop(name, None)

    def reset(self) -> None:
        """Drop memoised clients so the next create() re-resolves credentials."""
        self._clients.clear()

    def resolve_api_key(self, name: str) -> str | None:
        """Walk the resolver chain; resolver failures count as "no key"."""
        for resolver in self._resolvers:
            try:
                key = resolver.resolve(name)
            except Exception as e:
                logger.warning(f"Credential resolver '{resolver.name}' failed for '{name}': {e}")
                continue
            if key:
                logger.debug(f"API key for '{name}' resolved by {resolver.name}")
                return key
        return None

    def create(self, name: str) -> LLMClient:
        """
        Return the client for a provider, building it on first use.

        Raises:
            UnknownProviderError: If the provider was never registered
            MissingCredentialError: If no resolver yields an API key
        """
        if name not in self._constructors:
            raise UnknownProviderError(name)

        client = self._clients.get(name)
        if client is not None:
            return client

        api_key = self.resolve_api_key(name)
        if not api_key:
            raise MissingCredentialError(name)

        client = self._constructors[name](api_key, self._configs[name])
        self._clients[name] = client
        return client
