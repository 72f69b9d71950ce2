"""wizardflow: guided multi-step workflows backed by a system of record."""

from .backends import get_backend
from .config import OverridePolicy, WizardflowConfig, load_config
from .contracts import StepName, ValidationResults, WorkflowState, WorkflowStatus
from .engine import WorkflowEngine
from .errors import (
    BackendInvocationError,
    NoActiveWorkflowError,
    WizardflowError,
    WorkflowValidationError,
)
from .registry import ASSET_CREATION_REGISTRY, StepRegistry
from .validation import ValidationEngine

__version__ = "0.1.0"
__all__ = [
    "ASSET_CREATION_REGISTRY",
    "BackendInvocationError",
    "NoActiveWorkflowError",
    "OverridePolicy",
    "StepName",
    "StepRegistry",
    "ValidationEngine",
    "ValidationResults",
    "WizardflowConfig",
    "WizardflowError",
    "WorkflowEngine",
    "WorkflowState",
    "WorkflowStatus",
    "WorkflowValidationError",
    "get_backend",
    "load_config",
]
