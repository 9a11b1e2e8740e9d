"""Process-local expiring cache for AI generation results.

Keys are ``<prefix>:<sha256 of the canonical JSON input>``, so the same
logical input (regardless of dict key order) hits the same entry.

The map lives in one worker process and is not synchronized. Each API
worker holds its own copy.
"""

import hashlib
import inspect
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from nesternity_api.config.env import get_ai_cache_ttl_seconds

logger = logging.getLogger(__name__)

_KEY_DIGEST_CHARS = 32

# Marks an absent entry, so a cached None still counts as a hit
_MISSING = object()


@dataclass
class _Entry:
    value: Any
    expires_at: float


@dataclass
class CacheStats:
    """Cache counters since creation or the last clear()."""

    size: int
    hits: int
    misses: int
    evictions: int
    keys: list[str] = field(default_factory=list)


class AICache:
    """In-memory TTL map.

    Args:
        default_ttl_seconds: TTL used when set() is called without one
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        default_ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if default_ttl_seconds is None:
            default_ttl_seconds = get_ai_cache_ttl_seconds()
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @staticmethod
    def make_key(prefix: str, payload: Any) -> str:
        """Deterministic key for a JSON-serializable input."""
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:_KEY_DIGEST_CHARS]
        return f"{prefix}:{digest}"

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""
        value = self._lookup(key)
        return None if value is _MISSING else value

    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return _MISSING
        if entry.expires_at <= self._clock():
            del self._entries[key]
            self._evictions += 1
            self._misses += 1
            return _MISSING
        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
        if ttl <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl}")
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    def clear_expired(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._evictions += len(expired)
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._entries),
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            keys=list(self._entries),
        )

    async def with_cache(
        self,
        prefix: str,
        payload: Any,
        generator: Callable[[], Union[Any, Awaitable[Any]]],
        ttl_seconds: Optional[int] = None,
    ) -> Any:
        """Return the cached result for ``payload`` or compute and store it.

        ``generator`` may be a plain or an async callable. Failures propagate
        and nothing is cached for them.
        """
        key = self.make_key(prefix, payload)
        cached = self._lookup(key)
        if cached is not _MISSING:
            logger.debug("AI cache hit", extra={"event": "ai_cache.hit", "cache_key": key})
            return cached

        result = generator()
        if inspect.isawaitable(result):
            result = await result

        self.set(key, result, ttl_seconds)
        return result


_ai_cache: Optional[AICache] = None


def get_ai_cache() -> AICache:
    """Get the process-wide AI cache singleton."""
    global _ai_cache
    if _ai_cache is None:
        _ai_cache = AICache()
    return _ai_cache
