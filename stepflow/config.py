from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import CONFIG_ENV_VAR, DATABASE_URL_ENV_VAR, DEFAULT_CONFIG_PATH


class StepsConfig(BaseModel):
    """Settings for resolving and running steps."""

    base_path: Optional[str] = None
    run_sync_in_thread: bool = True


class ExecutionConfig(BaseModel):
    """Settings for the execution coordinator."""

    step_retry_limit: int = Field(default=0, ge=0)
    retry_backoff_base: float = Field(default=1.5, gt=0)
    retry_backoff_jitter: float = Field(default=0.5, ge=0)


class StepflowConfig(BaseModel):
    """Top-level configuration model."""

    steps: StepsConfig = StepsConfig()
    execution: ExecutionConfig = ExecutionConfig()
    database_url: Optional[str] = None
    log_level: str = "INFO"
    workflows: Dict[str, List[str]] = Field(default_factory=dict)


def load_config(path: Optional[str] = None) -> StepflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STEPFLOW_CONFIG env
            variable or 'stepflow.yaml' in the current directory.
    """

    config_path = path or os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StepflowConfig(**data)
    else:
        config = StepflowConfig()

    env_db_url = os.getenv(DATABASE_URL_ENV_VAR)
    if env_db_url:
        config.database_url = env_db_url
    return config


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
