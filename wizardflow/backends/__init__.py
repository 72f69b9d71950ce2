"""Backend collaborators for wizardflow workflows."""

from __future__ import annotations

import os
from typing import Optional

from ..config import WizardflowConfig, load_config
from ..sessions import SessionIssuer
from .base import WorkflowBackend
from .http import HttpWorkflowBackend
from .inmemory import InMemoryWorkflowBackend
from .sqlite import SQLiteWorkflowBackend

_backend_instance: WorkflowBackend | None = None


def get_backend(
    database_url: Optional[str] = None, config: Optional[WizardflowConfig] = None
) -> WorkflowBackend:
    """Factory function to obtain a workflow backend.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``WIZARDFLOW_DATABASE_URL``, or from
    loaded configuration. When nothing is configured, an in-memory backend is
    returned.
    """

    global _backend_instance
    if _backend_instance is not None and database_url is None and config is None:
        return _backend_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("WIZARDFLOW_DATABASE_URL")
        or config.backend.database_url
    )
    sessions = SessionIssuer(
        config.session.secret,
        config.session.duration_seconds,
        auto_save_interval=config.autosave.interval_seconds,
    )

    if not database_url:
        _backend_instance = InMemoryWorkflowBackend(sessions=sessions)
        return _backend_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _backend_instance = SQLiteWorkflowBackend(path, sessions=sessions)
    elif database_url.startswith("http://") or database_url.startswith("https://"):
        _backend_instance = HttpWorkflowBackend(
            database_url, timeout=config.backend.timeout_seconds
        )
    else:
        raise ValueError(f"Unsupported workflow backend: {database_url}")

    return _backend_instance


__all__ = [
    "WorkflowBackend",
    "InMemoryWorkflowBackend",
    "SQLiteWorkflowBackend",
    "HttpWorkflowBackend",
    "get_backend",
]
