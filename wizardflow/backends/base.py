"""Backend collaborator abstraction for guided workflows."""

from __future__ import annotations

from typing import Any, Protocol

from ..contracts import (
    CompleteWorkflowResponse,
    StartWorkflowResponse,
    StepName,
    UpdateStepResponse,
    WorkflowDraft,
    WorkflowState,
    WorkflowType,
)


class WorkflowBackend(Protocol):
    """Protocol for the backend of record behind a workflow engine.

    Implementations own persistence and business validation. Every method is
    a single request/response exchange; failures are raised as exceptions.
    """

    async def start(
        self, workflow_type: WorkflowType, initial_data: dict[str, Any] | None = None
    ) -> StartWorkflowResponse:
        """Create a workflow and its session."""

    async def update_step(
        self, workflow_id: str, step_name: StepName, step_data: dict[str, Any]
    ) -> UpdateStepResponse:
        """Merge step data, re-validate and return the canonical state."""

    async def advance_step(self, workflow_id: str, target_step: StepName) -> None:
        """Move the workflow to ``target_step``."""

    async def save_draft(self, workflow_id: str, draft_data: dict[str, Any]) -> None:
        """Persist a snapshot of in-progress data."""

    async def resume(self, workflow_id: str) -> WorkflowState:
        """Return the state of an existing workflow so it can be continued."""

    async def complete(self, workflow_id: str) -> CompleteWorkflowResponse:
        """Create the asset and mark the workflow completed."""

    async def cancel(self, workflow_id: str) -> None:
        """Mark the workflow cancelled."""

    async def get_workflow(self, workflow_id: str) -> WorkflowState | None:
        """Retrieve the workflow by id."""

    async def list_workflows(self) -> list[WorkflowState]:
        """Return all known workflows."""

    async def list_resumable_workflows(self) -> list[WorkflowState]:
        """Return the caller's active or paused workflows."""

    async def list_drafts(self, workflow_id: str) -> list[WorkflowDraft]:
        """Return saved drafts for a workflow."""
