"""Fixed-window rate limiting.

Two interchangeable backends behind ``check_rate_limit(key, path)``:

- InMemoryRateLimiter: process-local dict, unsynchronized. Counts are per
  worker process, so N workers allow up to N x quota.
- RedisRateLimiter: shared counters, INCR-first (atomic increment, TTL set
  on the first hit, rollback on breach).

NESTERNITY_RATE_LIMIT_BACKEND selects the backend for build_rate_limiter().
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import redis

from nesternity_api.config.env import get_rate_limit_backend
from nesternity_api.db.redis_client import RedisClient

logger = logging.getLogger(__name__)

# Opportunistic purge threshold for the in-memory backend
_PURGE_THRESHOLD = 10_000


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one rate limit check."""

    allowed: bool
    quota: int
    window: int
    remaining: int
    reset: int  # seconds until the window resets
    policy_id: str = "default"


class RateLimiter:
    """Base interface."""

    def __init__(self, quota: int, window: int, policy_id: str = "default"):
        if quota <= 0 or window <= 0:
            raise ValueError("quota and window must be positive")
        self.quota = quota
        self.window = window
        self.policy_id = policy_id

    def check_rate_limit(self, key: str, path: str = "") -> RateLimitResult:
        raise NotImplementedError


class InMemoryRateLimiter(RateLimiter):
    """Process-local fixed-window limiter.

    Args:
        quota: Allowed hits per window
        window: Window length in seconds
        policy_id: Name reported in results and used to namespace keys
        clock: Wall-clock time source (injectable for tests)
    """

    def __init__(
        self,
        quota: int,
        window: int,
        policy_id: str = "default",
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(quota, window, policy_id)
        self._clock = clock
        # key -> (window_index, count)
        self._counters: dict[str, tuple[int, int]] = {}

    def check_rate_limit(self, key: str, path: str = "") -> RateLimitResult:
        now = self._clock()
        window_index = int(now // self.window)
        reset = max(1, int((window_index + 1) * self.window - now))

        if len(self._counters) > _PURGE_THRESHOLD:
            self.purge_expired()

        current_index, count = self._counters.get(key, (window_index, 0))
        if current_index != window_index:
            count = 0

        if count >= self.quota:
            return RateLimitResult(
                allowed=False,
                quota=self.quota,
                window=self.window,
                remaining=0,
                reset=reset,
                policy_id=self.policy_id,
            )

        count += 1
        self._counters[key] = (window_index, count)
        return RateLimitResult(
            allowed=True,
            quota=self.quota,
            window=self.window,
            remaining=self.quota - count,
            reset=reset,
            policy_id=self.policy_id,
        )

    def purge_expired(self) -> int:
        """Drop counters from past windows. Returns the number removed."""
        window_index = int(self._clock() // self.window)
        stale = [k for k, (idx, _) in self._counters.items() if idx != window_index]
        for k in stale:
            del self._counters[k]
        return len(stale)

    def reset(self) -> None:
        self._counters.clear()


class RedisRateLimiter(RateLimiter):
    """Shared fixed-window limiter on Redis (INCR-first)."""

    def __init__(
        self,
        redis_client: redis.Redis,
        quota: int,
        window: int,
        policy_id: str = "default",
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(quota, window, policy_id)
        self.redis = redis_client
        self._clock = clock

    def check_rate_limit(self, key: str, path: str = "") -> RateLimitResult:
        window_index = int(self._clock() // self.window)
        redis_key = f"ratelimit:{self.policy_id}:{key}:{window_index}"

        # INCR-first (atomic)
        new_count = self.redis.incr(redis_key)

        # Set TTL (first request only)
        if new_count == 1:
            self.redis.expire(redis_key, self.window)

        if new_count > self.quota:
            # Exceeded - rollback so denied attempts do not extend the block
            self.redis.decr(redis_key)
            ttl = self.redis.ttl(redis_key)
            return RateLimitResult(
                allowed=False,
                quota=self.quota,
                window=self.window,
                remaining=0,
                reset=max(1, ttl),
                policy_id=self.policy_id,
            )

        ttl = self.redis.ttl(redis_key)
        return RateLimitResult(
            allowed=True,
            quota=self.quota,
            window=self.window,
            remaining=self.quota - new_count,
            reset=max(1, ttl),
            policy_id=self.policy_id,
        )


def build_rate_limiter(
    quota: int,
    window: int,
    policy_id: str,
    backend: Optional[str] = None,
) -> RateLimiter:
    """Build a limiter for the configured backend."""
    backend = backend or get_rate_limit_backend()
    if backend == "redis":
        return RedisRateLimiter(RedisClient.get_client(), quota, window, policy_id)
    return InMemoryRateLimiter(quota, window, policy_id)
