"""Core data contracts for the wizardflow workflow system."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_AUTO_SAVE_INTERVAL,
    DEPENDENT_FIELDS,
    VALIDATION_OVERRIDE_KEY,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowType(str, Enum):
    ASSET_CREATION = "asset_creation"


class WorkflowStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


class StepName(str, Enum):
    ASSET_TYPE_SELECTION = "asset_type_selection"
    HIERARCHY_SELECTION = "hierarchy_selection"
    METADATA_CONFIGURATION = "metadata_configuration"
    SECURITY_VALIDATION = "security_validation"
    REVIEW_CONFIRMATION = "review_confirmation"


class ValidationIssue(BaseModel):
    """A single field-level validation error or warning."""

    field: str
    message: str = ""
    code: str


class ValidationResults(BaseModel):
    """Outcome of validating one step against the workflow data."""

    is_valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    @classmethod
    def ok(cls) -> "ValidationResults":
        return cls(is_valid=True)

    @classmethod
    def failure(cls, field: str, message: str, code: str) -> "ValidationResults":
        return cls(
            is_valid=False,
            errors=[ValidationIssue(field=field, message=message, code=code)],
        )

    def merge(self, other: "ValidationResults") -> "ValidationResults":
        """Combine two verdicts: valid only if both are, issues concatenated."""
        return ValidationResults(
            is_valid=self.is_valid and other.is_valid,
            errors=[*self.errors, *other.errors],
            warnings=[*self.warnings, *other.warnings],
        )


class WorkflowState(BaseModel):
    """Authoritative record of one in-progress workflow."""

    id: str
    workflow_type: WorkflowType = WorkflowType.ASSET_CREATION
    current_step: StepName = StepName.ASSET_TYPE_SELECTION
    status: WorkflowStatus = WorkflowStatus.ACTIVE
    data: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    def touch(self, at: Optional[datetime] = None) -> None:
        """Bump ``updated_at`` without ever moving it backwards."""
        at = at or utcnow()
        if at > self.updated_at:
            self.updated_at = at

    def advance_to_step(self, step: StepName, at: Optional[datetime] = None) -> None:
        self.current_step = step
        self.touch(at)

    def update_data(self, data: Dict[str, Any], at: Optional[datetime] = None) -> None:
        self.data = data
        self.touch(at)

    def complete(self, at: Optional[datetime] = None) -> None:
        self.status = WorkflowStatus.COMPLETED
        self.touch(at)
        self.completed_at = self.updated_at

    def cancel(self, at: Optional[datetime] = None) -> None:
        self.status = WorkflowStatus.CANCELLED
        self.touch(at)

    def pause(self, at: Optional[datetime] = None) -> None:
        self.status = WorkflowStatus.PAUSED
        self.touch(at)

    def resume(self, at: Optional[datetime] = None) -> None:
        self.status = WorkflowStatus.ACTIVE
        self.touch(at)

    def set_error(self, at: Optional[datetime] = None) -> None:
        self.status = WorkflowStatus.ERROR
        self.touch(at)

    def is_active(self) -> bool:
        return self.status == WorkflowStatus.ACTIVE

    def can_be_resumed(self) -> bool:
        return self.status in (WorkflowStatus.ACTIVE, WorkflowStatus.PAUSED)


class AutoSaveConfig(BaseModel):
    enabled: bool = False
    interval_seconds: float = DEFAULT_AUTO_SAVE_INTERVAL
    save_in_progress: bool = False
    last_saved: Optional[datetime] = None


class WorkflowSession(BaseModel):
    """Ephemeral client-side handle for an active workflow."""

    workflow_id: str
    session_token: str
    expires_at: datetime
    auto_save: AutoSaveConfig = Field(
        default_factory=lambda: AutoSaveConfig(enabled=True)
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at


class WorkflowDraft(BaseModel):
    """Periodically persisted snapshot of in-progress workflow data."""

    id: str
    workflow_id: str
    draft_data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ----------------------------------------------------------------------
# Backend request/response records


class StartWorkflowResponse(BaseModel):
    session: WorkflowSession
    state: WorkflowState


class UpdateStepResponse(BaseModel):
    state: WorkflowState
    validation: ValidationResults


class CompleteWorkflowResponse(BaseModel):
    asset_id: int
    state: WorkflowState


# ----------------------------------------------------------------------
# Progress indicator summary


class WizardStep(BaseModel):
    key: StepName
    title: str
    description: Optional[str] = None
    status: Literal["wait", "process", "finish", "error"] = "wait"
    disabled: bool = False


class WizardNavigation(BaseModel):
    steps: List[WizardStep] = Field(default_factory=list)
    current: int = 0
    can_go_next: bool = False
    can_go_previous: bool = False
    is_first_step: bool = False
    is_last_step: bool = False


# ----------------------------------------------------------------------
# Data helpers


def split_validation_override(
    step_data: Dict[str, Any],
) -> tuple[Dict[str, Any], Optional[ValidationResults]]:
    """Separate an embedded validation verdict from domain fields."""
    domain = dict(step_data)
    raw = domain.pop(VALIDATION_OVERRIDE_KEY, None)
    if raw is None:
        return domain, None
    if isinstance(raw, ValidationResults):
        return domain, raw
    return domain, ValidationResults.model_validate(raw)


def apply_step_data(data: Dict[str, Any], step_data: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``step_data`` into ``data`` and return the new mapping.

    Fields present in ``step_data`` overwrite existing ones (``None`` clears a
    value). When a key field from ``DEPENDENT_FIELDS`` changes, its dependent
    field is reset to an empty mapping before the rest of ``step_data`` is
    applied.
    """
    merged = dict(data)
    for key_field, dependent in DEPENDENT_FIELDS.items():
        if key_field in step_data and step_data[key_field] != data.get(key_field):
            if data.get(dependent):
                logger.debug(
                    f"Resetting {dependent} because {key_field} changed "
                    f"from {data.get(key_field)!r} to {step_data[key_field]!r}"
                )
            merged[dependent] = {}
    for key, value in step_data.items():
        if key == VALIDATION_OVERRIDE_KEY:
            continue
        merged[key] = value
    return merged
