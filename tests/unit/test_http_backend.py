import json

import httpx
import pytest

from wizardflow.backends import HttpWorkflowBackend
from wizardflow.contracts import StepName, WorkflowType
from wizardflow.errors import (
    BackendError,
    InvalidWorkflowStateError,
    StepValidationFailedError,
    WorkflowNotFoundError,
)

STATE = {
    "id": "wf-1",
    "workflow_type": "asset_creation",
    "current_step": "asset_type_selection",
    "status": "active",
    "data": {},
    "created_at": "2024-01-01T12:00:00Z",
    "updated_at": "2024-01-01T12:00:00Z",
}


def _backend(handler) -> HttpWorkflowBackend:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://backend.test"
    )
    return HttpWorkflowBackend("http://backend.test", client=client)


@pytest.mark.asyncio
async def test_start_posts_workflow_type():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            201,
            json={
                "session": {
                    "workflow_id": "wf-1",
                    "session_token": "tok",
                    "expires_at": "2024-01-01T13:00:00Z",
                },
                "state": STATE,
            },
        )

    backend = _backend(handler)
    response = await backend.start(WorkflowType.ASSET_CREATION, {"asset_type": "Folder"})

    assert seen == {
        "method": "POST",
        "path": "/workflows",
        "body": {"workflow_type": "asset_creation", "initial_data": {"asset_type": "Folder"}},
    }
    assert response.state.id == "wf-1"
    assert response.session.session_token == "tok"


@pytest.mark.asyncio
async def test_update_step_and_advance_paths():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.method, request.url.path, json.loads(request.content or b"null")))
        if request.method == "PATCH":
            return httpx.Response(200, json={"state": STATE, "validation": {"is_valid": True}})
        return httpx.Response(204)

    backend = _backend(handler)
    response = await backend.update_step("wf-1", StepName.ASSET_TYPE_SELECTION, {"asset_name": "A"})
    await backend.advance_step("wf-1", StepName.HIERARCHY_SELECTION)
    await backend.save_draft("wf-1", {"asset_name": "A"})

    assert response.validation.is_valid
    assert requests == [
        ("PATCH", "/workflows/wf-1/steps/asset_type_selection", {"step_data": {"asset_name": "A"}}),
        ("POST", "/workflows/wf-1/advance", {"target_step": "hierarchy_selection"}),
        ("PUT", "/workflows/wf-1/draft", {"draft_data": {"asset_name": "A"}}),
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, error",
    [
        (404, WorkflowNotFoundError),
        (409, InvalidWorkflowStateError),
        (422, StepValidationFailedError),
        (500, BackendError),
    ],
)
async def test_error_statuses_map_to_backend_errors(status, error):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"detail": "nope"})

    backend = _backend(handler)
    with pytest.raises(error):
        await backend.complete("wf-1")


@pytest.mark.asyncio
async def test_get_workflow_returns_none_when_missing():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/workflows/wf-1":
            return httpx.Response(200, json=STATE)
        return httpx.Response(404, json={"detail": "not found"})

    backend = _backend(handler)
    assert (await backend.get_workflow("wf-1")).id == "wf-1"
    assert await backend.get_workflow("other") is None


@pytest.mark.asyncio
async def test_transport_errors_become_backend_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    backend = _backend(handler)
    with pytest.raises(BackendError):
        await backend.list_workflows()


@pytest.mark.asyncio
async def test_list_resumable_workflows():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/workflows/resumable"
        return httpx.Response(200, json=[STATE, {**STATE, "id": "wf-2", "status": "paused"}])

    backend = _backend(handler)
    workflows = await backend.list_resumable_workflows()
    assert [wf.id for wf in workflows] == ["wf-1", "wf-2"]
    assert workflows[1].status.value == "paused"
