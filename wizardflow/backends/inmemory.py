"""In-memory implementation of the workflow backend."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..checks import server_engine, validate_complete
from ..constants import MAX_CONCURRENT_WORKFLOWS_PER_USER
from ..contracts import (
    CompleteWorkflowResponse,
    StartWorkflowResponse,
    StepName,
    UpdateStepResponse,
    WorkflowDraft,
    WorkflowState,
    WorkflowStatus,
    WorkflowType,
    apply_step_data,
    split_validation_override,
    utcnow,
)
from ..errors import (
    InvalidWorkflowStateError,
    StepValidationFailedError,
    WorkflowNotFoundError,
)
from ..registry import get_registry
from ..sessions import SessionIssuer
from .base import WorkflowBackend

logger = logging.getLogger(__name__)


class InMemoryWorkflowBackend(WorkflowBackend):
    """Keep workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Subclasses change where state lives
    by overriding the storage hooks at the bottom of the class.
    """

    def __init__(
        self,
        sessions: Optional[SessionIssuer] = None,
        user_id: Optional[int] = None,
        max_active_per_user: int = MAX_CONCURRENT_WORKFLOWS_PER_USER,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._workflows: Dict[str, WorkflowState] = {}
        self._drafts: Dict[str, WorkflowDraft] = {}
        self._asset_id = 0
        self._sessions = sessions or SessionIssuer("wizardflow-dev-secret", clock=clock)
        self._user_id = user_id
        self._max_active = max_active_per_user
        self._clock = clock

    # ------------------------------------------------------------------
    # Backend API
    async def start(
        self, workflow_type: WorkflowType, initial_data: dict[str, Any] | None = None
    ) -> StartWorkflowResponse:
        active = [
            wf
            for wf in await self._load_all()
            if wf.is_active() and wf.user_id == self._user_id
        ]
        if len(active) >= self._max_active:
            raise InvalidWorkflowStateError(
                f"Maximum concurrent workflows reached ({self._max_active})"
            )

        registry = get_registry(workflow_type)
        domain, _ = split_validation_override(initial_data or {})
        now = self._clock()
        state = WorkflowState(
            id=str(uuid.uuid4()),
            workflow_type=workflow_type,
            current_step=registry.first.name,
            status=WorkflowStatus.ACTIVE,
            data=apply_step_data({}, domain),
            user_id=self._user_id,
            created_at=now,
            updated_at=now,
        )
        await self._store(state)
        session = self._sessions.issue(state.id)
        logger.info(f"Started {workflow_type.value} workflow {state.id}")
        return StartWorkflowResponse(session=session, state=state.model_copy(deep=True))

    async def update_step(
        self, workflow_id: str, step_name: StepName, step_data: dict[str, Any]
    ) -> UpdateStepResponse:
        state = await self._require_active(workflow_id)
        if state.current_step != step_name:
            raise InvalidWorkflowStateError(
                f"Cannot update step '{step_name.value}' when current step is "
                f"'{state.current_step.value}'"
            )

        domain, _ = split_validation_override(step_data)
        state.update_data(apply_step_data(state.data, domain), self._clock())
        validation = self._validator(state).validate(step_name, state.data)
        await self._store(state)
        logger.debug(f"Updated step {step_name.value} of workflow {workflow_id}")
        return UpdateStepResponse(state=state.model_copy(deep=True), validation=validation)

    async def advance_step(self, workflow_id: str, target_step: StepName) -> None:
        state = await self._require_active(workflow_id)
        registry = get_registry(state.workflow_type)
        current = registry.index(state.current_step)
        target = registry.index(target_step)
        if target == -1:
            raise InvalidWorkflowStateError(f"Unknown step: {target_step}")
        if target == current:
            return
        if abs(target - current) != 1:
            raise InvalidWorkflowStateError(
                f"Invalid step progression from {state.current_step.value} "
                f"to {target_step.value}"
            )
        if target > current:
            validation = self._validator(state).validate(state.current_step, state.data)
            if not validation.is_valid:
                codes = ", ".join(e.code for e in validation.errors)
                raise StepValidationFailedError(
                    f"Current step validation failed: {codes}"
                )

        state.advance_to_step(target_step, self._clock())
        await self._store(state)
        logger.info(f"Workflow {workflow_id} advanced to {target_step.value}")

    async def save_draft(self, workflow_id: str, draft_data: dict[str, Any]) -> None:
        await self._require(workflow_id)
        now = self._clock()
        existing = await self._load_drafts(workflow_id)
        if existing:
            draft = existing[0].model_copy(
                update={"draft_data": dict(draft_data), "updated_at": now}
            )
        else:
            draft = WorkflowDraft(
                id=str(uuid.uuid4()),
                workflow_id=workflow_id,
                draft_data=dict(draft_data),
                created_at=now,
                updated_at=now,
            )
        await self._store_draft(draft)

    async def resume(self, workflow_id: str) -> WorkflowState:
        state = await self._require(workflow_id)
        if not state.can_be_resumed():
            raise InvalidWorkflowStateError(
                f"Workflow cannot be resumed (status: {state.status.value})"
            )
        if state.status == WorkflowStatus.PAUSED:
            state.resume(self._clock())
            await self._store(state)
        logger.info(f"Resumed workflow {workflow_id}")
        return state.model_copy(deep=True)

    async def pause(self, workflow_id: str) -> WorkflowState:
        state = await self._require_active(workflow_id)
        state.pause(self._clock())
        await self._store(state)
        return state.model_copy(deep=True)

    async def complete(self, workflow_id: str) -> CompleteWorkflowResponse:
        state = await self._require_active(workflow_id)
        registry = get_registry(state.workflow_type)
        if state.current_step != registry.last.name:
            raise InvalidWorkflowStateError(
                f"Workflow must be at {registry.last.name.value} step to complete"
            )
        final = validate_complete(state.data)
        if not final.is_valid:
            codes = ", ".join(e.code for e in final.errors)
            raise StepValidationFailedError(f"Final validation failed: {codes}")

        asset_id = await self._create_asset(state)
        state.complete(self._clock())
        await self._store(state)
        await self._delete_drafts(workflow_id)
        logger.info(f"Workflow {workflow_id} completed, asset created with ID: {asset_id}")
        return CompleteWorkflowResponse(asset_id=asset_id, state=state.model_copy(deep=True))

    async def cancel(self, workflow_id: str) -> None:
        state = await self._require(workflow_id)
        if not state.can_be_resumed():
            raise InvalidWorkflowStateError(
                f"Workflow cannot be cancelled (status: {state.status.value})"
            )
        state.cancel(self._clock())
        await self._store(state)
        await self._delete_drafts(workflow_id)
        logger.info(f"Workflow {workflow_id} cancelled")

    async def get_workflow(self, workflow_id: str) -> WorkflowState | None:
        state = await self._load(workflow_id)
        return state.model_copy(deep=True) if state else None

    async def list_workflows(self) -> list[WorkflowState]:
        return [wf.model_copy(deep=True) for wf in await self._load_all()]

    async def list_resumable_workflows(self) -> list[WorkflowState]:
        return [
            wf.model_copy(deep=True)
            for wf in await self._load_all()
            if wf.can_be_resumed() and wf.user_id == self._user_id
        ]

    async def list_drafts(self, workflow_id: str) -> list[WorkflowDraft]:
        return await self._load_drafts(workflow_id)

    # ------------------------------------------------------------------
    # Helpers
    def _validator(self, state: WorkflowState):
        return server_engine(get_registry(state.workflow_type))

    async def _require(self, workflow_id: str) -> WorkflowState:
        state = await self._load(workflow_id)
        if state is None:
            raise WorkflowNotFoundError(workflow_id)
        return state

    async def _require_active(self, workflow_id: str) -> WorkflowState:
        state = await self._require(workflow_id)
        if not state.is_active():
            raise InvalidWorkflowStateError(
                f"Workflow {workflow_id} is not active (status: {state.status.value})"
            )
        return state

    # ------------------------------------------------------------------
    # Storage hooks
    async def _load(self, workflow_id: str) -> WorkflowState | None:
        return self._workflows.get(workflow_id)

    async def _load_all(self) -> list[WorkflowState]:
        return list(self._workflows.values())

    async def _store(self, state: WorkflowState) -> None:
        self._workflows[state.id] = state

    async def _load_drafts(self, workflow_id: str) -> list[WorkflowDraft]:
        draft = self._drafts.get(workflow_id)
        return [draft] if draft else []

    async def _store_draft(self, draft: WorkflowDraft) -> None:
        self._drafts[draft.workflow_id] = draft

    async def _delete_drafts(self, workflow_id: str) -> None:
        self._drafts.pop(workflow_id, None)

    async def _create_asset(self, state: WorkflowState) -> int:
        self._asset_id += 1
        return self._asset_id
