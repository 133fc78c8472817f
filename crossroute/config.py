from __future__ import annotations

import os
from typing import List, Optional

import yaml
from pydantic import BaseModel

from .constants import (
    DEFAULT_API_TIMEOUT,
    DEFAULT_API_URL,
    DEFAULT_POLLING_INTERVAL,
    DEFAULT_SLIPPAGE,
    GAS_LIMIT_MARGIN_PERCENT,
)
from .contracts import Chain


class ApiConfig(BaseModel):
    """Connection settings for the quoting backend."""

    url: str = DEFAULT_API_URL
    api_key: Optional[str] = None
    timeout: float = DEFAULT_API_TIMEOUT


class PollingConfig(BaseModel):
    interval: float = DEFAULT_POLLING_INTERVAL


class ExecutionConfig(BaseModel):
    """Defaults applied to every route execution."""

    gas_limit_margin_percent: int = GAS_LIMIT_MARGIN_PERCENT
    default_slippage: float = DEFAULT_SLIPPAGE
    infinite_approval: bool = False


class CrossrouteConfig(BaseModel):
    """Top-level configuration model."""

    api: ApiConfig = ApiConfig()
    polling: PollingConfig = PollingConfig()
    execution: ExecutionConfig = ExecutionConfig()
    chains: List[Chain] = []
    database_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> CrossrouteConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CROSSROUTE_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("CROSSROUTE_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = CrossrouteConfig(**data)
    else:
        config = CrossrouteConfig()

    env_db_url = os.getenv("CROSSROUTE_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_api_url = os.getenv("CROSSROUTE_API_URL")
    if env_api_url:
        config.api.url = env_api_url
    return config
