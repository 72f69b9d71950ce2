"""Guarded step-to-step navigation."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Callable, List, Optional

from pydantic import BaseModel

from .contracts import (
    StepName,
    ValidationIssue,
    ValidationResults,
    WizardNavigation,
    WizardStep,
)
from .errors import BackendInvocationError, NoActiveWorkflowError

if TYPE_CHECKING:
    from .engine import WorkflowEngine

logger = logging.getLogger(__name__)

StepChangeCallback = Callable[[StepName], None]
ValidationChangeCallback = Callable[[bool, List[ValidationIssue]], None]


class TransitionLock:
    """Non-blocking, single-holder lock for step transitions.

    A second caller does not wait: ``try_acquire`` simply reports ``False``
    and the request is dropped.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def locked(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        return True

    def release(self) -> None:
        self._held = False

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        """Yield whether the lock was taken; release it on exit if it was."""
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()


class StepStatus(BaseModel):
    name: StepName
    title: str
    is_current: bool
    is_completed: bool
    is_valid: bool
    can_navigate: bool


class NavigationGuard:
    """Decides whether the engine may move between steps and performs moves.

    Forward moves require the current step to be valid under the engine's
    override policy; backward moves are always permitted. Transitions are
    serialized by a :class:`TransitionLock` so overlapping requests are
    dropped instead of queued.
    """

    def __init__(
        self,
        engine: "WorkflowEngine",
        on_step_change: Optional[StepChangeCallback] = None,
        on_validation_change: Optional[ValidationChangeCallback] = None,
    ) -> None:
        self._engine = engine
        self.on_step_change = on_step_change
        self.on_validation_change = on_validation_change
        self.lock = TransitionLock()

    # ------------------------------------------------------------------
    # Predicates
    def can_navigate_next(self) -> bool:
        state = self._engine.state
        if state is None:
            return False
        if self._engine.registry.next_step(state.current_step) is None:
            return False
        return self._engine.validation_for(state.current_step).is_valid

    def can_navigate_previous(self) -> bool:
        state = self._engine.state
        if state is None:
            return False
        return self._engine.registry.previous_step(state.current_step) is not None

    def can_navigate_to_step(self, target: StepName) -> bool:
        state = self._engine.state
        if state is None:
            return False
        registry = self._engine.registry
        current = registry.index(state.current_step)
        position = registry.index(target)
        if position == -1 or current == -1:
            return False
        if position < current:
            return True
        allowed = self._engine.validation_for(state.current_step).is_valid
        logger.debug(
            f"Navigation {state.current_step.value} -> {target.value}: "
            f"{'allowed' if allowed else 'blocked'}"
        )
        return allowed

    # ------------------------------------------------------------------
    # Transitions
    async def handle_step_transition(
        self, target: StepName, skip_validation: bool = False
    ) -> bool:
        """Move to ``target`` if permitted.

        Returns ``True`` only when the backend accepted the move. A request
        that arrives while another transition is in flight is dropped and
        returns ``False`` without contacting the backend.
        """
        if self._engine.state is None:
            raise NoActiveWorkflowError("step transition")

        async with self.lock.hold() as acquired:
            if not acquired:
                logger.warning(
                    f"Step transition already in progress; dropping request for {target.value}"
                )
                return False

            state = self._engine.state
            if state is None:
                raise NoActiveWorkflowError("step transition")
            if target not in self._engine.registry:
                self._engine.set_error(f"Unknown step: {target.value}")
                return False

            if not skip_validation:
                if not self.can_navigate_to_step(target):
                    self._block(
                        "Cannot navigate to this step. Please complete current step first.",
                        self._engine.validation_for(state.current_step),
                    )
                    return False
                current = self._engine.validation_for(state.current_step)
                if not current.is_valid:
                    self._block(
                        "Please complete all required fields before proceeding.", current
                    )
                    return False

            try:
                await self._engine.advance(target)
            except BackendInvocationError as e:
                logger.warning(f"Step transition to {target.value} failed: {e}")
                return False

        if self.on_step_change is not None:
            self.on_step_change(target)
        self._report(self._engine.validation_for(target))
        return True

    async def go_to_next_step(self) -> bool:
        state = self._engine.state
        if state is None:
            raise NoActiveWorkflowError("next step")
        target = self._engine.registry.next_step(state.current_step)
        if target is None:
            return False
        return await self.handle_step_transition(target)

    async def go_to_previous_step(self) -> bool:
        state = self._engine.state
        if state is None:
            raise NoActiveWorkflowError("previous step")
        target = self._engine.registry.previous_step(state.current_step)
        if target is None:
            return False
        return await self.handle_step_transition(target, skip_validation=True)

    # ------------------------------------------------------------------
    # Status
    def step_status(self, step: StepName) -> StepStatus:
        state = self._engine.state
        registry = self._engine.registry
        config = registry.get(step)
        title = config.title if config else step.value
        if state is None:
            return StepStatus(
                name=step,
                title=title,
                is_current=False,
                is_completed=False,
                is_valid=False,
                can_navigate=False,
            )
        position = registry.index(step)
        current = registry.index(state.current_step)
        return StepStatus(
            name=step,
            title=title,
            is_current=position == current,
            is_completed=0 <= position < current,
            is_valid=self._engine.validation_for(step).is_valid,
            can_navigate=self.can_navigate_to_step(step),
        )

    def steps_status(self) -> List[StepStatus]:
        return [self.step_status(name) for name in self._engine.registry.names]

    def wizard_navigation(self) -> WizardNavigation:
        """Summarize the workflow for a progress indicator."""
        state = self._engine.state
        registry = self._engine.registry
        current = registry.index(state.current_step) if state is not None else -1

        steps: List[WizardStep] = []
        for status in self.steps_status():
            config = registry.get(status.name)
            if status.is_current:
                label = "process"
            elif status.is_completed:
                label = "finish" if status.is_valid else "error"
            else:
                label = "wait"
            steps.append(
                WizardStep(
                    key=status.name,
                    title=status.title,
                    description=config.description if config else None,
                    status=label,
                    disabled=not (status.can_navigate or status.is_current),
                )
            )

        return WizardNavigation(
            steps=steps,
            current=max(current, 0),
            can_go_next=self.can_navigate_next(),
            can_go_previous=self.can_navigate_previous(),
            is_first_step=current == 0,
            is_last_step=current == len(registry) - 1,
        )

    # ------------------------------------------------------------------
    # Helpers
    def _block(self, message: str, validation: ValidationResults) -> None:
        logger.debug(f"Step transition blocked: {message}")
        self._engine.set_error(message)
        self._report(validation)

    def _report(self, validation: ValidationResults) -> None:
        if self.on_validation_change is not None:
            self.on_validation_change(validation.is_valid, list(validation.errors))
