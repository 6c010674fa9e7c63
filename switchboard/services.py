"""
Process-wide service lookup.

Older deployments register shared collaborators (most notably the
``"key_manager"``) here instead of injecting them. The ProviderRegistry
consults it only when no key manager was passed in explicitly.
"""

from typing import Any, Protocol

_services: dict[str, Any] = {}


class KeyManager(Protocol):
    """Credential source consumed by the ProviderRegistry."""

    def get_api_key(self, provider: str) -> str | None: ...


def register_service(name: str, service: Any) -> None:
    _services[name] = service


def get_service(name: str) -> Any | None:
    return _services.get(name)


def unregister_service(name: str) -> None:
    _services.pop(name, None)
