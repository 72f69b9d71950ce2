"""HTTP client for a remote workflow backend."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..contracts import (
    CompleteWorkflowResponse,
    StartWorkflowResponse,
    StepName,
    UpdateStepResponse,
    WorkflowDraft,
    WorkflowState,
    WorkflowType,
)
from ..errors import (
    BackendError,
    InvalidWorkflowStateError,
    StepValidationFailedError,
    WorkflowNotFoundError,
)
from .base import WorkflowBackend

logger = logging.getLogger(__name__)


class HttpWorkflowBackend(WorkflowBackend):
    """Talk to a workflow service over its REST API.

    Args:
        base_url: Root URL of the service, e.g. ``https://host/api``.
        client: Optional preconfigured ``httpx.AsyncClient``; when omitted the
            backend creates and owns one.
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self, method: str, path: str, workflow_id: str = "", json: Any = None
    ) -> Any:
        try:
            resp = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise BackendError(f"HTTP request failed: {e}") from e

        if resp.status_code >= 400:
            detail = _error_detail(resp)
            logger.warning(f"{method} {path} returned {resp.status_code}: {detail}")
            if resp.status_code == 404:
                raise WorkflowNotFoundError(workflow_id or path)
            if resp.status_code == 409:
                raise InvalidWorkflowStateError(detail)
            if resp.status_code == 422:
                raise StepValidationFailedError(detail)
            raise BackendError(f"HTTP {resp.status_code}: {detail}")

        if not resp.content:
            return None
        return resp.json()

    # ------------------------------------------------------------------
    # Backend API
    async def start(
        self, workflow_type: WorkflowType, initial_data: dict[str, Any] | None = None
    ) -> StartWorkflowResponse:
        body = await self._request(
            "POST",
            "/workflows",
            json={"workflow_type": workflow_type.value, "initial_data": initial_data},
        )
        return StartWorkflowResponse.model_validate(body)

    async def update_step(
        self, workflow_id: str, step_name: StepName, step_data: dict[str, Any]
    ) -> UpdateStepResponse:
        body = await self._request(
            "PATCH",
            f"/workflows/{workflow_id}/steps/{step_name.value}",
            workflow_id,
            json={"step_data": step_data},
        )
        return UpdateStepResponse.model_validate(body)

    async def advance_step(self, workflow_id: str, target_step: StepName) -> None:
        await self._request(
            "POST",
            f"/workflows/{workflow_id}/advance",
            workflow_id,
            json={"target_step": target_step.value},
        )

    async def save_draft(self, workflow_id: str, draft_data: dict[str, Any]) -> None:
        await self._request(
            "PUT",
            f"/workflows/{workflow_id}/draft",
            workflow_id,
            json={"draft_data": draft_data},
        )

    async def resume(self, workflow_id: str) -> WorkflowState:
        body = await self._request("POST", f"/workflows/{workflow_id}/resume", workflow_id)
        return WorkflowState.model_validate(body)

    async def complete(self, workflow_id: str) -> CompleteWorkflowResponse:
        body = await self._request("POST", f"/workflows/{workflow_id}/complete", workflow_id)
        return CompleteWorkflowResponse.model_validate(body)

    async def cancel(self, workflow_id: str) -> None:
        await self._request("POST", f"/workflows/{workflow_id}/cancel", workflow_id)

    async def get_workflow(self, workflow_id: str) -> WorkflowState | None:
        try:
            body = await self._request("GET", f"/workflows/{workflow_id}", workflow_id)
        except WorkflowNotFoundError:
            return None
        return WorkflowState.model_validate(body)

    async def list_workflows(self) -> list[WorkflowState]:
        body = await self._request("GET", "/workflows")
        return [WorkflowState.model_validate(item) for item in body or []]

    async def list_resumable_workflows(self) -> list[WorkflowState]:
        body = await self._request("GET", "/workflows/resumable")
        return [WorkflowState.model_validate(item) for item in body or []]

    async def list_drafts(self, workflow_id: str) -> list[WorkflowDraft]:
        body = await self._request("GET", f"/workflows/{workflow_id}/drafts", workflow_id)
        return [WorkflowDraft.model_validate(item) for item in body or []]


def _error_detail(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text
    if isinstance(payload, dict) and "detail" in payload:
        return str(payload["detail"])
    return resp.text
