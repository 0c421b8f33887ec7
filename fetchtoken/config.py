from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field

DEFAULT_TOKEN_TIMEOUT = 300


class RedisConfig(BaseModel):
    """Connection settings for the Redis token store."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    key_prefix: str = "fetchtoken"


class FetchTokenConfig(BaseModel):
    """Top-level configuration model."""

    token_timeout: int = Field(default=DEFAULT_TOKEN_TIMEOUT, gt=0)
    database_url: Optional[str] = None
    redis: RedisConfig = RedisConfig()


def load_config(path: Optional[str] = None) -> FetchTokenConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to FETCHTOKEN_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("FETCHTOKEN_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = FetchTokenConfig(**data)
    else:
        config = FetchTokenConfig()

    env_db_url = os.getenv("FETCHTOKEN_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_timeout = os.getenv("FETCHTOKEN_TOKEN_TIMEOUT")
    if env_timeout:
        config = FetchTokenConfig(
            **{**config.model_dump(), "token_timeout": int(env_timeout)}
        )
    return config
