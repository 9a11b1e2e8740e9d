"""Environment variable resolution utilities.

Canonical env names + fail-fast validation for required secrets.
"""

import os
from typing import Optional

DEFAULT_ADMIN_SESSION_TTL_SECONDS = 4 * 60 * 60
DEFAULT_AI_CACHE_TTL_SECONDS = 24 * 60 * 60
DEFAULT_CACHE_JANITOR_INTERVAL_SECONDS = 60 * 60


def get_nesternity_env() -> str:
    """Get Nesternity environment name.

    Priority:
    1. NESTERNITY_ENV (canonical)
    2. APP_ENV (deployment platform compat)
    3. Default: "local"

    Returns:
        Environment name (lowercase)
    """
    return (
        os.getenv("NESTERNITY_ENV")
        or os.getenv("APP_ENV")
        or "local"
    ).lower()


def is_production_env() -> bool:
    """Determine if running in a production environment.

    Returns:
        True if NESTERNITY_ENV (or APP_ENV) is "prod" or "production"
    """
    return get_nesternity_env() in {"prod", "production"}


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def get_admin_credentials() -> tuple[str, str]:
    """Get the configured admin email and password.

    Required: ADMIN_EMAIL, ADMIN_PASSWORD

    Returns:
        (email, password)

    Raises:
        ValueError: If either variable is missing
    """
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        raise ValueError(
            "ADMIN_EMAIL and ADMIN_PASSWORD are required for the admin surface. "
            "Set both in your environment configuration."
        )
    return email, password


def get_admin_session_secret() -> str:
    """Get the HMAC key used to sign admin session cookies.

    Required: ADMIN_SESSION_SECRET (at least 32 characters in production)

    Raises:
        ValueError: If the secret is missing, or too short in production
    """
    secret = os.getenv("ADMIN_SESSION_SECRET")
    if not secret:
        raise ValueError(
            "ADMIN_SESSION_SECRET is required to sign admin session cookies."
        )
    if is_production_env() and len(secret) < 32:
        raise ValueError(
            "ADMIN_SESSION_SECRET must be at least 32 characters in production."
        )
    return secret


def get_admin_session_ttl_seconds() -> int:
    """Admin cookie validity window (ADMIN_SESSION_TTL_SECONDS, default 4h)."""
    return _get_int("ADMIN_SESSION_TTL_SECONDS", DEFAULT_ADMIN_SESSION_TTL_SECONDS)


def get_ai_cache_ttl_seconds() -> int:
    """Default AI response cache TTL (AI_CACHE_TTL_SECONDS, default 24h)."""
    return _get_int("AI_CACHE_TTL_SECONDS", DEFAULT_AI_CACHE_TTL_SECONDS)


def get_cache_janitor_interval_seconds() -> int:
    """Interval of the periodic cache purge (CACHE_JANITOR_INTERVAL_SECONDS, default 1h)."""
    return _get_int("CACHE_JANITOR_INTERVAL_SECONDS", DEFAULT_CACHE_JANITOR_INTERVAL_SECONDS)


def get_rate_limit_backend() -> str:
    """Rate limiter backend selection.

    NESTERNITY_RATE_LIMIT_BACKEND: "memory" (default) or "redis"

    Raises:
        ValueError: If the value is not a known backend
    """
    backend = os.getenv("NESTERNITY_RATE_LIMIT_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "redis"}:
        raise ValueError(
            f"NESTERNITY_RATE_LIMIT_BACKEND must be 'memory' or 'redis', got {backend!r}"
        )
    return backend


def get_cors_allowed_origins(raw: Optional[str] = None) -> list[str]:
    """Resolve the CORS allowlist.

    CORS_ALLOWED_ORIGINS is a comma-separated list. When unset, localhost
    variants are allowed (development default).
    """
    if raw is None:
        raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]
