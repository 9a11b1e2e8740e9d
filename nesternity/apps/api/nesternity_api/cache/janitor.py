"""Periodic purge of process-local caches.

Started on application startup, cancelled on shutdown. Each tick drops
expired AI cache entries and stale in-memory rate limit windows.
"""

import asyncio
import logging
from typing import Iterable, Optional

from nesternity_api.cache.ai_cache import AICache
from nesternity_api.rate_limiter import InMemoryRateLimiter, RateLimiter

logger = logging.getLogger(__name__)


def purge_once(cache: AICache, limiters: Iterable[RateLimiter]) -> dict[str, int]:
    """Run one purge pass.

    Returns:
        Counts of removed entries per store
    """
    removed_limiter_windows = 0
    for limiter in limiters:
        if isinstance(limiter, InMemoryRateLimiter):
            removed_limiter_windows += limiter.purge_expired()

    result = {
        "ai_cache_entries": cache.clear_expired(),
        "rate_limit_windows": removed_limiter_windows,
    }
    logger.info("Cache janitor pass completed", extra={"event": "cache.janitor.pass", **result})
    return result


async def run_janitor(
    cache: AICache,
    limiters: Iterable[RateLimiter],
    interval_seconds: int,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Purge loop. Runs until cancelled or ``stop_event`` is set."""
    limiters = list(limiters)
    stop_event = stop_event or asyncio.Event()

    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            pass
        if stop_event.is_set():
            break
        try:
            purge_once(cache, limiters)
        except Exception:
            logger.exception("Cache janitor pass failed")
