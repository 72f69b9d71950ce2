import pytest

from wizardflow import WorkflowEngine
from wizardflow.backends import InMemoryWorkflowBackend
from wizardflow.config import OverridePolicy, WizardflowConfig
from wizardflow.contracts import StepName, WorkflowStatus
from wizardflow.errors import NoActiveWorkflowError, WorkflowValidationError

ASSET = {"asset_type": "Folder", "asset_name": "Building A"}

STEP_DATA = {
    StepName.ASSET_TYPE_SELECTION: ASSET,
    StepName.HIERARCHY_SELECTION: {"parent_id": None},
    StepName.METADATA_CONFIGURATION: {"metadata_schema_id": 4, "metadata_values": {"floor": 2}},
    StepName.SECURITY_VALIDATION: {"security_classification": "Internal"},
}


async def _fill_and_advance(engine: WorkflowEngine, until: StepName) -> None:
    while engine.state.current_step != until:
        step = engine.state.current_step
        await engine.update_step(step, STEP_DATA[step])
        assert await engine.next_step(), engine.error


@pytest.mark.asyncio
async def test_start_lands_on_first_step_with_empty_data():
    async with WorkflowEngine(InMemoryWorkflowBackend()) as engine:
        state = await engine.start()

        assert state.current_step == StepName.ASSET_TYPE_SELECTION
        assert state.status == WorkflowStatus.ACTIVE
        assert state.data == {}
        assert engine.session is not None
        assert engine.session.workflow_id == state.id
        assert engine.auto_save.enabled
        assert engine.autosave_running
        assert not engine.is_loading


@pytest.mark.asyncio
async def test_valid_asset_type_update():
    async with WorkflowEngine(InMemoryWorkflowBackend()) as engine:
        await engine.start()
        assert not engine.can_navigate_next()

        validation = await engine.update_step(StepName.ASSET_TYPE_SELECTION, ASSET)

        assert validation.is_valid
        assert engine.state.data == ASSET
        assert engine.validate_current_step().is_valid
        assert engine.can_navigate_next()


@pytest.mark.asyncio
async def test_missing_required_field_blocks_next():
    async with WorkflowEngine(InMemoryWorkflowBackend()) as engine:
        await engine.start()
        await engine.update_step(StepName.ASSET_TYPE_SELECTION, {"asset_type": "Folder"})

        assert not engine.can_navigate_next()
        assert await engine.next_step() is False
        assert engine.state.current_step == StepName.ASSET_TYPE_SELECTION
        assert engine.error == "Cannot navigate to this step. Please complete current step first."


@pytest.mark.asyncio
async def test_step_override_blocks_next_on_hierarchy():
    reported = []
    async with WorkflowEngine(
        InMemoryWorkflowBackend(),
        on_validation_change=lambda ok, errors: reported.append((ok, errors)),
    ) as engine:
        await engine.start()
        await _fill_and_advance(engine, StepName.HIERARCHY_SELECTION)

        await engine.update_step(
            StepName.HIERARCHY_SELECTION,
            {
                "parent_id": None,
                "validation_results": {
                    "is_valid": False,
                    "errors": [
                        {"field": "parent_id", "message": "Pick a folder", "code": "PARENT"}
                    ],
                },
            },
        )

        # the central rules alone would pass
        assert engine.validate_current_step().is_valid
        assert "validation_results" not in engine.state.data
        assert not engine.can_navigate_next()
        assert await engine.next_step() is False
        assert engine.state.current_step == StepName.HIERARCHY_SELECTION
        assert reported[-1][0] is False
        assert reported[-1][1][0].code == "PARENT"

        engine.record_validation(StepName.HIERARCHY_SELECTION, True)
        assert engine.can_navigate_next()
        assert await engine.next_step() is True
        assert engine.state.current_step == StepName.METADATA_CONFIGURATION


@pytest.mark.asyncio
async def test_device_without_parent_is_blocked_by_step_verdict_only():
    async with WorkflowEngine(InMemoryWorkflowBackend()) as engine:
        await engine.start()
        await engine.update_step(
            StepName.ASSET_TYPE_SELECTION, {"asset_type": "Device", "asset_name": "Pump 7"}
        )
        assert await engine.next_step()

        await engine.update_step(StepName.HIERARCHY_SELECTION, {"parent_id": None})
        # no custom rules run on the client, so central validation passes
        assert engine.validate_current_step().is_valid
        assert engine.can_navigate_next()

        await engine.update_step(
            StepName.HIERARCHY_SELECTION,
            {
                "parent_id": None,
                "validation_results": {
                    "is_valid": False,
                    "errors": [
                        {
                            "field": "parent_id",
                            "message": "Devices need a parent",
                            "code": "DEVICE_PARENT_REQUIRED",
                        }
                    ],
                },
            },
        )

        assert engine.validate_current_step().is_valid
        assert not engine.can_navigate_next()
        assert await engine.next_step() is False
        assert engine.state.current_step == StepName.HIERARCHY_SELECTION
        assert engine.error == "Cannot navigate to this step. Please complete current step first."


@pytest.mark.asyncio
async def test_override_alone_decides_under_replace_policy():
    async with WorkflowEngine(InMemoryWorkflowBackend()) as engine:
        await engine.start()
        engine.record_validation(StepName.ASSET_TYPE_SELECTION, True)
        assert engine.can_navigate_next()

        # the backend still enforces its own rules
        assert await engine.next_step() is False
        assert engine.error is not None
        assert engine.state.current_step == StepName.ASSET_TYPE_SELECTION

        engine.clear_validation(StepName.ASSET_TYPE_SELECTION)
        assert engine.override_for(StepName.ASSET_TYPE_SELECTION) is None
        assert not engine.can_navigate_next()


@pytest.mark.asyncio
async def test_all_policy_requires_both_verdicts():
    config = WizardflowConfig(override_policy=OverridePolicy.ALL)
    async with WorkflowEngine(InMemoryWorkflowBackend(), config=config) as engine:
        await engine.start()
        engine.record_validation(StepName.ASSET_TYPE_SELECTION, True)
        assert not engine.can_navigate_next()

        await engine.update_step(StepName.ASSET_TYPE_SELECTION, ASSET)
        assert engine.can_navigate_next()

        engine.record_validation(
            StepName.ASSET_TYPE_SELECTION,
            False,
            [{"field": "asset_name", "message": "Taken", "code": "DUPLICATE"}],
        )
        verdict = engine.validation_for(StepName.ASSET_TYPE_SELECTION)
        assert not verdict.is_valid
        assert [e.code for e in verdict.errors] == ["DUPLICATE"]


@pytest.mark.asyncio
async def test_previous_step_is_never_gated():
    steps = []
    async with WorkflowEngine(
        InMemoryWorkflowBackend(), on_step_change=steps.append
    ) as engine:
        await engine.start()
        assert not engine.can_navigate_previous()
        assert await engine.previous_step() is False

        await _fill_and_advance(engine, StepName.HIERARCHY_SELECTION)
        engine.record_validation(StepName.HIERARCHY_SELECTION, False)

        assert engine.can_navigate_previous()
        assert await engine.previous_step() is True
        assert engine.state.current_step == StepName.ASSET_TYPE_SELECTION
        assert steps == [StepName.HIERARCHY_SELECTION, StepName.ASSET_TYPE_SELECTION]


@pytest.mark.asyncio
async def test_navigate_to_step_rules():
    async with WorkflowEngine(InMemoryWorkflowBackend()) as engine:
        await engine.start()
        await _fill_and_advance(engine, StepName.METADATA_CONFIGURATION)

        assert engine.guard.can_navigate_to_step(StepName.ASSET_TYPE_SELECTION)
        assert not engine.guard.can_navigate_to_step(StepName.SECURITY_VALIDATION)

        # an unguarded jump still needs the current step to be valid
        assert await engine.navigate_to_step(StepName.ASSET_TYPE_SELECTION) is False
        assert engine.error == "Please complete all required fields before proceeding."

        await engine.update_step(
            StepName.METADATA_CONFIGURATION, STEP_DATA[StepName.METADATA_CONFIGURATION]
        )
        assert engine.guard.can_navigate_to_step(StepName.SECURITY_VALIDATION)

        # the backend only accepts adjacent moves
        assert await engine.navigate_to_step(StepName.ASSET_TYPE_SELECTION) is False
        assert engine.state.current_step == StepName.METADATA_CONFIGURATION
        assert "Invalid step progression" in engine.error

        engine.clear_error()
        assert await engine.navigate_to_step(StepName.HIERARCHY_SELECTION) is True
        assert engine.error is None


@pytest.mark.asyncio
async def test_full_workflow_completes():
    backend = InMemoryWorkflowBackend()
    async with WorkflowEngine(backend) as engine:
        state = await engine.start()
        await _fill_and_advance(engine, StepName.REVIEW_CONFIRMATION)
        assert not engine.can_navigate_next()
        assert engine.navigation().is_last_step

        asset_id = await engine.complete_workflow()

        assert asset_id == 1
        assert engine.state is None
        assert engine.session is None
        assert not engine.autosave_running
        stored = await backend.get_workflow(state.id)
        assert stored.status == WorkflowStatus.COMPLETED
        assert stored.data["metadata_values"] == {"floor": 2}


@pytest.mark.asyncio
async def test_complete_rejected_locally_without_backend_call():
    backend = InMemoryWorkflowBackend()
    async with WorkflowEngine(backend) as engine:
        await engine.start()
        await _fill_and_advance(engine, StepName.REVIEW_CONFIRMATION)
        engine.record_validation(
            StepName.REVIEW_CONFIRMATION,
            False,
            [{"field": "confirm", "message": "Confirm first", "code": "UNCONFIRMED"}],
        )

        with pytest.raises(WorkflowValidationError) as exc:
            await engine.complete_workflow()

        assert exc.value.results.errors[0].code == "UNCONFIRMED"
        assert engine.state is not None
        assert (await backend.get_workflow(engine.state.id)).status == WorkflowStatus.ACTIVE


@pytest.mark.asyncio
async def test_schema_change_resets_metadata_values():
    async with WorkflowEngine(InMemoryWorkflowBackend()) as engine:
        await engine.start()
        await _fill_and_advance(engine, StepName.METADATA_CONFIGURATION)
        await engine.update_step(
            StepName.METADATA_CONFIGURATION,
            {"metadata_schema_id": 1, "metadata_values": {"serial": "X1"}},
        )
        await engine.update_step(StepName.METADATA_CONFIGURATION, {"metadata_schema_id": 2})

        assert engine.state.data["metadata_schema_id"] == 2
        assert engine.state.data["metadata_values"] == {}


@pytest.mark.asyncio
async def test_wizard_navigation_summary():
    async with WorkflowEngine(InMemoryWorkflowBackend()) as engine:
        await engine.start()
        await _fill_and_advance(engine, StepName.HIERARCHY_SELECTION)

        nav = engine.navigation()
        assert nav.current == 1
        assert [s.status for s in nav.steps] == ["finish", "process", "wait", "wait", "wait"]
        assert nav.can_go_previous
        assert nav.can_go_next
        assert not nav.is_first_step
        assert not nav.steps[0].disabled

        statuses = engine.guard.steps_status()
        assert statuses[0].is_completed
        assert statuses[1].is_current


@pytest.mark.asyncio
async def test_step_context_callbacks():
    async with WorkflowEngine(InMemoryWorkflowBackend()) as engine:
        await engine.start()
        ctx = engine.step_context()
        assert ctx.step == StepName.ASSET_TYPE_SELECTION
        assert ctx.workflow_id == engine.state.id

        validation = await ctx.on_data_change(ASSET)
        assert validation.is_valid
        # the snapshot does not follow later updates
        assert ctx.data == {}

        ctx.on_validation(False, [{"field": "asset_name", "message": "Taken", "code": "DUP"}])
        assert not engine.override_for(StepName.ASSET_TYPE_SELECTION).is_valid
        assert await ctx.on_next() is False

        ctx.on_validation(True)
        assert await ctx.on_next() is True
        assert await ctx.on_previous() is True


@pytest.mark.asyncio
async def test_resume_in_a_new_engine():
    backend = InMemoryWorkflowBackend()
    async with WorkflowEngine(backend) as first:
        state = await first.start()
        await _fill_and_advance(first, StepName.HIERARCHY_SELECTION)
        first.reset()
        assert first.state is None
        assert not first.autosave_running

    async with WorkflowEngine(backend) as second:
        resumed = await second.resume(state.id)
        assert resumed.current_step == StepName.HIERARCHY_SELECTION
        assert resumed.data == ASSET
        assert second.session is None
        assert second.autosave_running
        assert await second.previous_step() is True


@pytest.mark.asyncio
async def test_operations_without_a_workflow():
    async with WorkflowEngine(InMemoryWorkflowBackend()) as engine:
        with pytest.raises(NoActiveWorkflowError):
            await engine.update_step(StepName.ASSET_TYPE_SELECTION, ASSET)
        with pytest.raises(NoActiveWorkflowError):
            await engine.next_step()
        with pytest.raises(NoActiveWorkflowError):
            await engine.complete_workflow()
        with pytest.raises(NoActiveWorkflowError):
            engine.step_context()

        await engine.cancel_workflow()
        assert await engine.save_workflow_draft() is False
        assert not engine.can_navigate_next()
        assert engine.validate_current_step().errors[0].code == "NO_WORKFLOW"
