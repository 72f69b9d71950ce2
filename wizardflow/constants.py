"""Shared constants for wizardflow."""

from __future__ import annotations

DEFAULT_AUTO_SAVE_INTERVAL = 30  # seconds
WORKFLOW_SESSION_DURATION = 3600  # seconds
DEFAULT_BACKEND_TIMEOUT = 10.0  # seconds
MAX_CONCURRENT_WORKFLOWS_PER_USER = 5

# Key under which a step may embed its own validation verdict in step data.
VALIDATION_OVERRIDE_KEY = "validation_results"

# Selecting a new value for the key field resets the dependent field.
DEPENDENT_FIELDS = {
    "metadata_schema_id": "metadata_values",
}

VALID_SECURITY_CLASSIFICATIONS = ("Public", "Internal", "Confidential", "Restricted")
