"""Client-side driver for one guided workflow."""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, TypeVar

from .autosave import AutosaveScheduler, SleepFn
from .config import OverridePolicy, WizardflowConfig
from .context import StepContext
from .contracts import (
    AutoSaveConfig,
    StepName,
    ValidationIssue,
    ValidationResults,
    WizardNavigation,
    WorkflowSession,
    WorkflowState,
    WorkflowType,
    split_validation_override,
    utcnow,
)
from .errors import BackendInvocationError, NoActiveWorkflowError, WorkflowValidationError
from .backends.base import WorkflowBackend
from .navigation import NavigationGuard, StepChangeCallback, ValidationChangeCallback
from .registry import StepRegistry, get_registry
from .validation import ValidationEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkflowEngine:
    """Holds the local view of one workflow and routes every change through
    the backend of record.

    The backend is authoritative: local state changes only after the backend
    accepts an operation, and a failed call leaves ``state`` and ``session``
    exactly as they were while recording the failure in ``error``. Each engine
    owns its own transition lock and autosave timer, so several engines can
    run side by side.

    Verdicts that step components report through :meth:`record_validation`
    (or through a ``validation_results`` entry in an update) are kept per
    step, apart from the workflow data, and are combined with the central
    :class:`ValidationEngine` according to ``config.override_policy``.
    """

    def __init__(
        self,
        backend: WorkflowBackend,
        registry: Optional[StepRegistry] = None,
        validator: Optional[ValidationEngine] = None,
        config: Optional[WizardflowConfig] = None,
        workflow_type: WorkflowType = WorkflowType.ASSET_CREATION,
        clock: Callable[[], datetime] = utcnow,
        sleep: SleepFn = asyncio.sleep,
        on_step_change: Optional[StepChangeCallback] = None,
        on_validation_change: Optional[ValidationChangeCallback] = None,
    ) -> None:
        self.backend = backend
        self.config = config or WizardflowConfig()
        self.workflow_type = workflow_type
        self.registry = registry or get_registry(workflow_type)
        self.validator = validator or ValidationEngine(self.registry)
        self._clock = clock

        self.state: Optional[WorkflowState] = None
        self.session: Optional[WorkflowSession] = None
        self.auto_save = self._default_auto_save()
        self.error: Optional[str] = None
        self.is_loading = False

        self._overrides: Dict[StepName, ValidationResults] = {}
        self._update_seq = 0
        self._applied_seq = 0
        self._scheduler = AutosaveScheduler(
            self.save_workflow_draft, self.auto_save.interval_seconds, sleep=sleep
        )
        self.guard = NavigationGuard(
            self,
            on_step_change=on_step_change,
            on_validation_change=on_validation_change,
        )

    async def __aenter__(self) -> "WorkflowEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Disarm autosave and wait for any save that is still running."""
        self.disable_autosave()
        await self._scheduler.wait_idle()

    @property
    def last_save_time(self) -> Optional[datetime]:
        return self.auto_save.last_saved

    @property
    def autosave_running(self) -> bool:
        return self._scheduler.running

    def require_state(self, operation: str = "") -> WorkflowState:
        if self.state is None:
            raise NoActiveWorkflowError(operation)
        return self.state

    # ------------------------------------------------------------------
    # Lifecycle
    async def start(self, initial_data: Optional[Dict[str, Any]] = None) -> WorkflowState:
        """Begin a new workflow and arm autosave with the session's settings."""
        domain, override = split_validation_override(initial_data or {})
        response = await self._loading(
            "start", self.backend.start(self.workflow_type, domain or None)
        )

        self.disable_autosave()
        self._overrides.clear()
        self.state = response.state
        self.session = response.session
        if override is not None:
            self._overrides[response.state.current_step] = override
        logger.info(f"Started workflow {response.state.id} at {response.state.current_step.value}")

        if response.session.auto_save.enabled and self.config.autosave.enabled:
            self.enable_autosave(response.session.auto_save.interval_seconds)
        return response.state

    async def resume(self, workflow_id: str) -> WorkflowState:
        """Re-enter an existing workflow.

        The backend returns only the workflow state; a session is kept only
        if the engine already holds one for the same workflow.
        """
        state = await self._loading("resume", self.backend.resume(workflow_id))

        self.disable_autosave()
        self._overrides.clear()
        self.state = state
        if self.session is not None and self.session.workflow_id != state.id:
            self.session = None
        logger.info(f"Resumed workflow {state.id} at {state.current_step.value}")

        if self.config.autosave.enabled:
            self.enable_autosave()
        return state

    async def complete_workflow(self) -> int:
        """Finish the workflow and return the id of the created asset.

        The current step is validated locally first; a failing verdict raises
        :class:`WorkflowValidationError` without contacting the backend. If
        the backend rejects completion, state and autosave are left intact.
        """
        state = self.require_state("complete")
        validation = self.validation_for(state.current_step)
        if not validation.is_valid:
            self.error = "Workflow validation failed"
            raise WorkflowValidationError(self.error, validation)

        response = await self._loading("complete", self.backend.complete(state.id))

        self.disable_autosave()
        self.state = None
        self.session = None
        self._overrides.clear()
        logger.info(f"Workflow {state.id} completed, asset {response.asset_id}")
        return response.asset_id

    async def cancel_workflow(self) -> None:
        """Cancel the current workflow; a no-op when there is none.

        On failure the state, session and autosave timer are kept so the
        workflow can still be resumed.
        """
        state = self.state
        if state is None:
            return
        await self._loading("cancel", self.backend.cancel(state.id))
        self.reset()
        logger.info(f"Workflow {state.id} cancelled")

    def reset(self) -> None:
        """Forget the current workflow locally without contacting the backend."""
        self.disable_autosave()
        self.state = None
        self.session = None
        self.error = None
        self.is_loading = False
        self.auto_save = self._default_auto_save()
        self._overrides.clear()

    # ------------------------------------------------------------------
    # Step data
    async def update_step(
        self, step_name: StepName, step_data: Dict[str, Any]
    ) -> ValidationResults:
        """Send a partial update for ``step_name`` and return the backend verdict.

        Responses are applied only if no later request has been applied
        already, so a slow earlier response never overwrites a newer one. A
        ``validation_results`` entry is recorded together with the response;
        a failed request changes nothing locally.
        """
        state = self.require_state("update step")
        domain, override = split_validation_override(step_data)

        self._update_seq += 1
        seq = self._update_seq
        response = await self._loading(
            "update_step", self.backend.update_step(state.id, step_name, domain)
        )

        if seq < self._applied_seq:
            logger.warning(
                f"Discarding stale update for {step_name.value} "
                f"(request {seq}, applied {self._applied_seq})"
            )
        elif self.state is None or self.state.id != response.state.id:
            logger.warning(
                f"Discarding update for workflow {response.state.id}; it is no longer current"
            )
        else:
            self._applied_seq = seq
            self.state = response.state
            if override is not None:
                self._overrides[step_name] = override
        return response.validation

    async def save_workflow_draft(self) -> bool:
        """Persist a snapshot of the current data as a draft.

        Returns ``False`` without contacting the backend when there is no
        workflow or a save is already running. Failures are recorded in
        ``error`` and never raised, since this runs from the autosave timer.
        """
        state = self.state
        if state is None:
            return False
        auto_save = self.auto_save
        if auto_save.save_in_progress:
            logger.debug(f"Draft save for {state.id} already in progress; skipping")
            return False

        auto_save.save_in_progress = True
        try:
            await self._invoke(
                "save_draft", self.backend.save_draft(state.id, copy.deepcopy(state.data))
            )
        except BackendInvocationError:
            return False
        finally:
            auto_save.save_in_progress = False

        auto_save.last_saved = self._clock()
        logger.info(f"Saved draft for workflow {state.id}")
        return True

    # ------------------------------------------------------------------
    # Navigation
    async def navigate_to_step(self, target: StepName) -> bool:
        self.require_state("navigate")
        return await self.guard.handle_step_transition(target)

    async def next_step(self) -> bool:
        self.require_state("next step")
        return await self.guard.go_to_next_step()

    async def previous_step(self) -> bool:
        self.require_state("previous step")
        return await self.guard.go_to_previous_step()

    def can_navigate_next(self) -> bool:
        return self.guard.can_navigate_next()

    def can_navigate_previous(self) -> bool:
        return self.guard.can_navigate_previous()

    async def advance(self, target: StepName) -> None:
        """Ask the backend to move to ``target`` and mirror the move locally.

        This is the unguarded primitive; use :meth:`navigate_to_step` for
        validated, serialized transitions.
        """
        state = self.require_state("advance")
        await self._loading("advance_step", self.backend.advance_step(state.id, target))
        if self.state is not None and self.state.id == state.id:
            self.state.advance_to_step(target, self._clock())
        logger.info(f"Workflow {state.id} moved to {target.value}")

    def navigation(self) -> WizardNavigation:
        return self.guard.wizard_navigation()

    def step_context(self) -> StepContext:
        return StepContext.for_engine(self)

    # ------------------------------------------------------------------
    # Validation
    def validate_step(self, step_name: StepName) -> ValidationResults:
        data = self.state.data if self.state is not None else {}
        return self.validator.validate(step_name, data)

    def validate_current_step(self) -> ValidationResults:
        if self.state is None:
            return ValidationResults.failure("workflow", "No active workflow", "NO_WORKFLOW")
        return self.validate_step(self.state.current_step)

    def validation_for(self, step_name: StepName) -> ValidationResults:
        """Combine the step's reported verdict with central validation."""
        central = self.validate_step(step_name)
        override = self._overrides.get(step_name)
        if override is None:
            return central
        if self.config.override_policy == OverridePolicy.ALL:
            return override.merge(central)
        return override

    def override_for(self, step_name: StepName) -> Optional[ValidationResults]:
        """Return the verdict a step reported for itself, if any."""
        return self._overrides.get(step_name)

    def record_validation(
        self,
        step_name: StepName,
        is_valid: bool,
        errors: Optional[Iterable[ValidationIssue | Dict[str, Any]]] = None,
    ) -> None:
        self._overrides[step_name] = ValidationResults(
            is_valid=is_valid,
            errors=[ValidationIssue.model_validate(e) for e in errors or []],
        )

    def clear_validation(self, step_name: Optional[StepName] = None) -> None:
        if step_name is None:
            self._overrides.clear()
        else:
            self._overrides.pop(step_name, None)

    # ------------------------------------------------------------------
    # Autosave
    def enable_autosave(self, interval_seconds: Optional[float] = None) -> None:
        """Arm (or re-arm) the autosave timer. Needs a running event loop."""
        interval = interval_seconds or self.config.autosave.interval_seconds
        self.auto_save.enabled = True
        self.auto_save.interval_seconds = interval
        self._scheduler.start(interval)

    def disable_autosave(self) -> None:
        self._scheduler.stop()
        self.auto_save.enabled = False

    # ------------------------------------------------------------------
    # Errors
    def set_error(self, message: Optional[str]) -> None:
        self.error = message

    def clear_error(self) -> None:
        self.error = None

    # ------------------------------------------------------------------
    # Helpers
    def _default_auto_save(self) -> AutoSaveConfig:
        return AutoSaveConfig(interval_seconds=self.config.autosave.interval_seconds)

    async def _loading(self, operation: str, call: Awaitable[T]) -> T:
        self.is_loading = True
        self.error = None
        try:
            return await self._invoke(operation, call)
        finally:
            self.is_loading = False

    async def _invoke(self, operation: str, call: Awaitable[T]) -> T:
        timeout = self.config.backend.timeout_seconds
        try:
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError as e:
            raise self._backend_failure(
                operation, f"{operation} timed out after {timeout}s", e
            ) from e
        except Exception as e:
            raise self._backend_failure(
                operation, str(e) or f"{operation} failed", e
            ) from e

    def _backend_failure(
        self, operation: str, message: str, cause: BaseException
    ) -> BackendInvocationError:
        self.error = message
        logger.warning(f"Backend call {operation} failed: {message}")
        return BackendInvocationError(operation, message, cause)
