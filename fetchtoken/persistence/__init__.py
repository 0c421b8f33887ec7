"""Persistence layer for fetchtoken access tokens."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FetchTokenConfig, load_config
from .inmemory import InMemoryTokenRepository
from .postgres import PostgresTokenRepository
from .redis import RedisTokenRepository
from .repository import TokenRepository
from .sqlite import SQLiteTokenRepository

_repository_instance: TokenRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[FetchTokenConfig] = None
) -> TokenRepository:
    """Factory function to obtain a token repository.

    The repository backend is selected based on ``database_url`` which can be
    provided explicitly, via environment variable ``FETCHTOKEN_DATABASE_URL``
    or ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("FETCHTOKEN_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        _repository_instance = InMemoryTokenRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteTokenRepository(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        _repository_instance = PostgresTokenRepository(database_url)
    elif database_url.startswith("redis://") or database_url.startswith("rediss://"):
        redis_conf = config.redis
        if database_url in ("redis://", "rediss://"):
            # Bare scheme: connection details come from the redis config block
            _repository_instance = RedisTokenRepository(
                host=redis_conf.host,
                port=redis_conf.port,
                db=redis_conf.db,
                password=redis_conf.password,
                key_prefix=redis_conf.key_prefix,
            )
        else:
            _repository_instance = RedisTokenRepository(
                url=database_url, key_prefix=redis_conf.key_prefix
            )
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


__all__ = [
    "TokenRepository",
    "InMemoryTokenRepository",
    "SQLiteTokenRepository",
    "PostgresTokenRepository",
    "RedisTokenRepository",
    "get_repository",
]
