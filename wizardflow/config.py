from __future__ import annotations

import os
from enum import Enum
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_AUTO_SAVE_INTERVAL,
    DEFAULT_BACKEND_TIMEOUT,
    WORKFLOW_SESSION_DURATION,
)


class OverridePolicy(str, Enum):
    """How a step-supplied verdict combines with central validation."""

    REPLACE = "replace"  # override wins outright
    ALL = "all"  # override and central verdict must both pass


class AutoSaveSettings(BaseModel):
    """Draft autosave settings."""

    enabled: bool = True
    interval_seconds: float = Field(default=DEFAULT_AUTO_SAVE_INTERVAL, gt=0)


class BackendSettings(BaseModel):
    """Backend collaborator settings."""

    database_url: Optional[str] = None
    timeout_seconds: float = Field(default=DEFAULT_BACKEND_TIMEOUT, gt=0)


class SessionSettings(BaseModel):
    """Session token settings."""

    secret: str = "wizardflow-dev-secret"
    duration_seconds: int = Field(default=WORKFLOW_SESSION_DURATION, gt=0)


class WizardflowConfig(BaseModel):
    """Top-level configuration model."""

    autosave: AutoSaveSettings = Field(default_factory=AutoSaveSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    override_policy: OverridePolicy = OverridePolicy.REPLACE
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> WizardflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to WIZARDFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("WIZARDFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = WizardflowConfig(**data)
    else:
        config = WizardflowConfig()

    env_db_url = os.getenv("WIZARDFLOW_DATABASE_URL")
    if env_db_url:
        config.backend.database_url = env_db_url
    env_secret = os.getenv("WIZARDFLOW_SESSION_SECRET")
    if env_secret:
        config.session.secret = env_secret
    return config
