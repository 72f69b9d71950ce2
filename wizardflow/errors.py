"""Exception hierarchy for wizardflow."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .contracts import ValidationResults


class WizardflowError(Exception):
    """Base class for all wizardflow errors."""


class NoActiveWorkflowError(WizardflowError):
    """Raised when an operation needs a current workflow and there is none."""

    def __init__(self, operation: str = "") -> None:
        message = "No active workflow"
        if operation:
            message = f"{message} for {operation}"
        super().__init__(message)
        self.operation = operation


class BackendInvocationError(WizardflowError):
    """A backend call failed, timed out or returned an error.

    The local workflow state is left exactly as it was before the call.
    """

    def __init__(
        self, operation: str, message: str, cause: Optional[BaseException] = None
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.cause = cause


class WorkflowValidationError(WizardflowError):
    """Local validation blocked an operation before reaching the backend."""

    def __init__(self, message: str, results: "ValidationResults") -> None:
        super().__init__(message)
        self.results = results


# ----------------------------------------------------------------------
# Errors raised by backend implementations


class BackendError(WizardflowError):
    """Base class for errors reported by a workflow backend."""


class WorkflowNotFoundError(BackendError):
    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow not found: {workflow_id}")
        self.workflow_id = workflow_id


class InvalidWorkflowStateError(BackendError):
    """The requested operation is not allowed in the workflow's current state."""


class StepValidationFailedError(BackendError):
    """Server-side validation rejected a transition or completion."""


class SessionExpiredError(BackendError):
    """A session token is expired or was not issued by this backend."""
