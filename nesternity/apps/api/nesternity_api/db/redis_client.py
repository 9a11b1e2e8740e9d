"""Redis client configuration for Nesternity.

Redis backs the shared rate limiter (NESTERNITY_RATE_LIMIT_BACKEND=redis)
and is reported by the health endpoints.
"""

import os
from typing import Any, Optional
from urllib.parse import urlparse

import redis


class RedisClient:
    """Singleton Redis client."""

    _instance: Optional[redis.Redis] = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        """
        Get Redis client instance.

        - REDIS_URL env var (e.g., redis://host:6379/0 or rediss://...)
        - Fallback: redis://localhost:6379/0 for local development
        - REDIS_PASSWORD: applied only if the URL carries no password

        Returns:
            redis.Redis: Redis client
        """
        if cls._instance is None:
            redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
            redis_password = os.getenv("REDIS_PASSWORD")

            parsed = urlparse(redis_url)

            kwargs: dict[str, Any] = {
                "decode_responses": True,
                "socket_connect_timeout": 5,
                "socket_timeout": 5,
                "health_check_interval": 30,
            }

            if not parsed.password and redis_password:
                kwargs["password"] = redis_password

            cls._instance = redis.from_url(redis_url, **kwargs)

        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset Redis client (for testing)."""
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None

