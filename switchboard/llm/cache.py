"""
Response cache for provider calls.

Keys are derived from the semantic content of a request plus the provider
name, so identical requests to the same provider collide and requests to
different providers never do. Tool-bearing requests and responses that
carry tool calls are never cached since tool calls may have side effects.

Storage failures never fail the surrounding request: they are logged and
treated as a miss (reads) or a no-op (writes).
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from pydantic import ValidationError

from switchboard.config.logging import get_logger
from switchboard.llm.models import LLMRequest, LLMResponse

logger = get_logger(__name__)

KEY_PREFIX = "llm_response_"
# Provider names may contain underscores, so the digest needs its own separator
KEY_SEPARATOR = ":"


class ResponseCache:
    """
    TTL cache of serialized LLMResponses on top of a storage backend.

    Args:
        backend: Storage backend (see switchboard.storage.cache_backends)
        enabled: Global switch; when False nothing is read or written
        default_ttl: Seconds to keep an entry when the request sets no cache_ttl
    """

    def __init__(self, backend: Any, enabled: bool = True, default_ttl: int = 3600):
        self._backend = backend
        self.enabled = enabled
        self.default_ttl = default_ttl
        self._stats = {"hits": 0, "misses": 0, "writes": 0, "errors": 0}

    def should_cache(self, request: LLMRequest, provider: str) -> bool:
        if not self.enabled:
            return False
        if request.option("no_cache"):
            return False
        if request.has_tools():
            return False
        return True

    def key_for(self, request: LLMRequest, provider: str) -> str:
        """Pure function of (provider, messages, tools, options)."""
        payload = {"provider": provider, **request.canonical_payload()}
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"{KEY_PREFIX}{provider}{KEY_SEPARATOR}{digest}"

    async def get(self, request: LLMRequest, provider: str) -> LLMResponse | None:
        if not self.should_cache(request, provider):
            return None

        key = self.key_for(request, provider)
        try:
            raw = await self._backend.get(key)
        except Exception as e:
            self._stats["errors"] += 1
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

        if raw is None:
            self._stats["misses"] += 1
            return None

        try:
            response = LLMResponse.from_cache_json(raw)
        except ValidationError as e:
            self._stats["errors"] += 1
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

        self._stats["hits"] += 1
        return response

    async def put(self, request: LLMRequest, provider: str, response: LLMResponse) -> bool:
        """Store a successful response. Returns True when an entry was written."""
        if response.is_error or response.has_tool_calls or not self.should_cache(request, provider):
            return False

        key = self.key_for(request, provider)
        ttl = int(request.option("cache_ttl", self.default_ttl))
        try:
            stored = await self._backend.set(key, response.to_cache_json(), ttl)
        except Exception as e:
            self._stats["errors"] += 1
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

        if stored:
            self._stats["writes"] += 1
        return bool(stored)

    async def invalidate(self, provider: str | None = None) -> int:
        """
        Remove cached responses for one provider, or all of them.

        Uses the backend's ``delete_by_prefix`` when it has one, otherwise
        enumerates keys and deletes them one by one.

        Returns:
            Number of entries removed
        """
        prefix = f"{KEY_PREFIX}{provider}{KEY_SEPARATOR}" if provider else KEY_PREFIX
        try:
            delete_by_prefix = getattr(self._backend, "delete_by_prefix", None)
            if delete_by_prefix is not None:
                removed = await delete_by_prefix(prefix)
            else:
                removed = 0
                for key in await self._backend.keys():
                    if key.startswith(prefix) and await self._backend.delete(key):
                        removed += 1
        except Exception as e:
            self._stats["errors"] += 1
            logger.warning(f"Cache invalidation for prefix {prefix!r} failed: {e}")
            return 0

        logger.info(f"Invalidated {removed} cached responses (prefix {prefix!r})")
        return removed

    def stats(self) -> dict[str, int]:
        return dict(self._stats)
