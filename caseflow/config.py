from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_ADMIN_POOL, DEFAULT_MAX_STEPS


class EngineSettings(BaseModel):
    """Settings for the orchestration loop."""

    max_steps: int = Field(default=DEFAULT_MAX_STEPS, gt=0)


class AssignmentSettings(BaseModel):
    """Settings for cascading assignee selection."""

    default_admin_pool: str = DEFAULT_ADMIN_POOL


class CaseflowConfig(BaseModel):
    """Top-level configuration model."""

    engine: EngineSettings = EngineSettings()
    assignment: AssignmentSettings = AssignmentSettings()
    database_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> CaseflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CASEFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("CASEFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = CaseflowConfig(**data)
    else:
        config = CaseflowConfig()

    env_db_url = os.getenv("CASEFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_max_steps = os.getenv("CASEFLOW_MAX_STEPS")
    if env_max_steps:
        config.engine = EngineSettings(max_steps=int(env_max_steps))
    return config
