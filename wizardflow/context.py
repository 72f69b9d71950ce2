"""The callable surface a step component receives from the engine."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

from .contracts import StepName, ValidationIssue, ValidationResults
from .errors import BackendInvocationError

if TYPE_CHECKING:
    from .engine import WorkflowEngine

logger = logging.getLogger(__name__)


@dataclass
class StepContext:
    """Bound to one step of one workflow.

    ``data`` is a snapshot taken when the context was built; it does not
    follow later updates.
    """

    workflow_id: str
    step: StepName
    data: Dict[str, Any]
    on_data_change: Callable[[Dict[str, Any]], Awaitable[ValidationResults]]
    on_validation: Callable[..., None]
    on_next: Callable[[], Awaitable[bool]]
    on_previous: Callable[[], Awaitable[bool]]

    @classmethod
    def for_engine(cls, engine: "WorkflowEngine") -> "StepContext":
        state = engine.require_state("step context")
        step = state.current_step

        async def on_data_change(partial: Dict[str, Any]) -> ValidationResults:
            try:
                return await engine.update_step(step, partial)
            except BackendInvocationError as e:
                logger.warning(f"Failed to update step data for {step.value}: {e}")
                return ValidationResults.failure(
                    "update", "Failed to update step data", "UPDATE_ERROR"
                )

        def on_validation(
            is_valid: bool, errors: Optional[List[ValidationIssue]] = None
        ) -> None:
            engine.record_validation(step, is_valid, errors)

        return cls(
            workflow_id=state.id,
            step=step,
            data=copy.deepcopy(state.data),
            on_data_change=on_data_change,
            on_validation=on_validation,
            on_next=engine.next_step,
            on_previous=engine.previous_step,
        )
