"""Database engine builder.

- Default pool: NullPool (Supabase pooler in transaction mode pools server-side)
- Supabase hosts: sslmode=require unless the URL already sets one
- ENV: NESTERNITY_DB_POOL=nullpool|queuepool (default: nullpool)
"""

import logging
import os
import re
from typing import Any
from urllib.parse import parse_qs, urlparse

from sqlalchemy import Engine, NullPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

_SUPABASE_HOST_MARKERS = (".supabase.co", ".supabase.com")


def is_supabase_host(url: str) -> bool:
    """Check whether a database URL points at a Supabase-hosted Postgres."""
    hostname = (urlparse(url).hostname or "").lower()
    return hostname.endswith(_SUPABASE_HOST_MARKERS)


def _mask_password(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r"://([^:]+):([^@]+)@", r"://\1:***@", url)


def _connect_args(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}

    connect_args: dict[str, Any] = {}
    if is_supabase_host(url) and "sslmode" not in parse_qs(urlparse(url).query):
        connect_args["sslmode"] = "require"

    app_name = os.getenv("NESTERNITY_DB_APPLICATION_NAME", "nesternity-api")
    if app_name:
        connect_args["application_name"] = app_name
    return connect_args


def build_engine(database_url: str | None = None) -> Engine:
    """Build the SQLAlchemy engine.

    Args:
        database_url: Database URL. If None, reads from env DATABASE_URL.

    Returns:
        SQLAlchemy Engine instance.

    Raises:
        ValueError: If no URL is available or NESTERNITY_DB_POOL is invalid.

    Environment Variables:
        DATABASE_URL: Runtime connection string (required if not passed as arg)
        NESTERNITY_DB_POOL: "nullpool" (default) | "queuepool"
        NESTERNITY_DB_POOL_SIZE: QueuePool size (default: 5)
        NESTERNITY_DB_MAX_OVERFLOW: QueuePool overflow (default: 10)
    """
    url = database_url or os.getenv("DATABASE_URL")
    if not url:
        raise ValueError(
            "DATABASE_URL is required. "
            "Pass as argument or set DATABASE_URL environment variable."
        )

    connect_args = _connect_args(url)
    pool_mode = os.getenv("NESTERNITY_DB_POOL", "nullpool").lower()

    if pool_mode == "nullpool":
        engine = create_engine(
            url,
            poolclass=NullPool,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
    elif pool_mode == "queuepool":
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_size=int(os.getenv("NESTERNITY_DB_POOL_SIZE", "5")),
            max_overflow=int(os.getenv("NESTERNITY_DB_MAX_OVERFLOW", "10")),
            connect_args=connect_args,
        )
    else:
        raise ValueError(
            f"Invalid NESTERNITY_DB_POOL value: {pool_mode}. "
            "Must be 'nullpool' or 'queuepool'."
        )

    logger.debug(
        "Database engine created: pool=%s, url=%s",
        engine.pool.__class__.__name__,
        _mask_password(url),
    )
    return engine


def build_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    """Build a sessionmaker with autocommit=False, autoflush=False."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
