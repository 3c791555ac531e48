from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, field_validator

API_PREFIX = "/api/v1"


class N8nConfig(BaseModel):
    """Connection settings for the n8n REST API."""

    base_url: str = "http://localhost:5678"
    api_key: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 3
    retry_backoff_base: float = 1.5

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        value = value.rstrip("/")
        if not value.endswith(API_PREFIX):
            value = f"{value}{API_PREFIX}"
        return value


class XrayConfig(BaseModel):
    """Top-level configuration model."""

    n8n: N8nConfig = N8nConfig()
    source: Literal["api", "database"] = "api"
    n8n_database_url: Optional[str] = None
    database_url: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> XrayConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to N8N_XRAY_CONFIG env
            variable or 'config.yaml' in the current directory.

    Environment variables override file values: ``N8N_HOST``/``N8N_API_URL``,
    ``N8N_API_KEY``, ``N8N_DATABASE_URL`` and
    ``N8N_XRAY_DATABASE_URL``/``DATABASE_URL``.
    """

    config_path = path or os.getenv("N8N_XRAY_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = XrayConfig(**data)
    else:
        config = XrayConfig()

    n8n_updates = {}
    env_host = os.getenv("N8N_API_URL") or os.getenv("N8N_HOST")
    if env_host:
        n8n_updates["base_url"] = env_host
    env_key = os.getenv("N8N_API_KEY")
    if env_key:
        n8n_updates["api_key"] = env_key
    if n8n_updates:
        config.n8n = N8nConfig(**{**config.n8n.model_dump(), **n8n_updates})

    env_source_db = os.getenv("N8N_DATABASE_URL")
    if env_source_db:
        config.n8n_database_url = env_source_db
    env_db_url = os.getenv("N8N_XRAY_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
