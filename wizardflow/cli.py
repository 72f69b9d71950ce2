"""Command line interface for inspecting wizardflow workflows."""

from __future__ import annotations

import asyncio
import logging

import typer

from wizardflow import get_backend, load_config
from wizardflow.errors import BackendError
from wizardflow.registry import get_registry

app = typer.Typer(help="CLI for wizardflow guided workflows")

workflow_app = typer.Typer(help="Commands for managing workflows")

app.add_typer(workflow_app, name="workflow")


@app.callback()
def main() -> None:
    """wizardflow CLI entry point."""
    config = load_config()
    logging.basicConfig(level=config.log_level.upper())


@app.command("steps")
def steps() -> None:
    """
    List the steps of the asset creation workflow in order.

    Example:
        wizardflow steps
        # Output: 1. asset_type_selection - Asset Type (required: asset_type, asset_name)
    """
    for position, step in enumerate(get_registry(), start=1):
        required = ", ".join(step.required_fields) or "none"
        typer.echo(f"{position}. {step.name.value} - {step.title} (required: {required})")


@workflow_app.command("list")
def workflow_list() -> None:
    """
    List all workflows with their current step and status.

    Example:
        wizardflow workflow list
        # Output: 3f2a...    hierarchy_selection    active
    """
    backend = get_backend()
    workflows = asyncio.run(backend.list_workflows())
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(f"{wf.id}\t{wf.current_step.value}\t{wf.status.value}")


@workflow_app.command("resumable")
def workflow_resumable() -> None:
    """
    List active or paused workflows that can be passed to resume.

    Example:
        wizardflow workflow resumable
        # Output: 3f2a...    hierarchy_selection    paused
    """
    backend = get_backend()
    workflows = asyncio.run(backend.list_resumable_workflows())
    if not workflows:
        typer.echo("No resumable workflows")
        return
    for wf in workflows:
        typer.echo(f"{wf.id}\t{wf.current_step.value}\t{wf.status.value}")


@workflow_app.command("show")
def workflow_show(workflow_id: str) -> None:
    """
    Show the state and collected data of a single workflow.

    Args:
        workflow_id: Workflow ID to inspect (get from 'workflow list')
    """
    backend = get_backend()
    wf = asyncio.run(backend.get_workflow(workflow_id))
    if wf is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {wf.id}: {wf.status.value}")
    typer.echo(f"Current step: {wf.current_step.value}")
    typer.echo(f"Updated: {wf.updated_at.isoformat()}")
    if wf.completed_at:
        typer.echo(f"Completed: {wf.completed_at.isoformat()}")
    for key, value in wf.data.items():
        typer.echo(f"- {key}: {value}")


@workflow_app.command("drafts")
def workflow_drafts(workflow_id: str) -> None:
    """Show saved drafts for a workflow."""
    backend = get_backend()
    if asyncio.run(backend.get_workflow(workflow_id)) is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    drafts = asyncio.run(backend.list_drafts(workflow_id))
    if not drafts:
        typer.echo("No drafts found")
        return
    for draft in drafts:
        typer.echo(f"{draft.id}\t{draft.updated_at.isoformat()}\t{draft.draft_data}")


@workflow_app.command("cancel")
def workflow_cancel(workflow_id: str) -> None:
    """Cancel an active or paused workflow."""
    backend = get_backend()
    if asyncio.run(backend.get_workflow(workflow_id)) is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    try:
        asyncio.run(backend.cancel(workflow_id))
    except BackendError as e:
        typer.secho(f"Cannot cancel workflow: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {workflow_id} cancelled")


if __name__ == "__main__":
    app()
