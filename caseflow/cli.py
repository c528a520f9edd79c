"""Command line interface for inspecting caseflow schemas and instances."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
import yaml
from pydantic import ValidationError

from caseflow import WorkflowEngine, get_repository, load_config, load_schema

app = typer.Typer(help="CLI for caseflow workflows")

# Command groups
schema_app = typer.Typer(help="Commands for authoring workflow schemas")
activity_app = typer.Typer(help="Commands for inspecting activity types")
workflow_app = typer.Typer(help="Commands for inspecting workflow instances")

app.add_typer(schema_app, name="schema")
app.add_typer(activity_app, name="activity")
app.add_typer(workflow_app, name="workflow")


@app.callback()
def main() -> None:
    """caseflow CLI entry point."""
    pass


def _engine() -> WorkflowEngine:
    return WorkflowEngine(get_repository(), config=load_config())


def _read_schema(path: Path):
    if not path.exists():
        typer.secho(f"Schema file not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    try:
        return load_schema(path)
    except (ValidationError, ValueError, yaml.YAMLError) as e:
        typer.secho(f"Could not parse schema {path}: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


@schema_app.command("validate")
def schema_validate(path: Path) -> None:
    """
    Validate a workflow schema file without running it.

    Checks the name, the activity list, the transition graph (unique start,
    known targets, parseable guards, reachability) and each activity's
    configuration.

    Example:
        caseflow schema validate workflows/appraisal.yaml
    """
    schema = _read_schema(path)
    errors = asyncio.run(_engine().collect_validation_errors(schema))
    if errors:
        typer.secho(f"Workflow schema {schema.id} is invalid:", fg=typer.colors.RED)
        for error in errors:
            typer.echo(f"  - {error}")
        raise typer.Exit(code=1)
    typer.secho(f"Workflow schema {schema.id} is valid", fg=typer.colors.GREEN)


@schema_app.command("register")
def schema_register(path: Path) -> None:
    """Validate a schema file and store it in the configured repository."""
    schema = _read_schema(path)
    engine = _engine()
    if not asyncio.run(engine.validate_workflow_definition(schema)):
        typer.secho(
            f"Workflow schema {schema.id} is invalid; run 'schema validate' for details",
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)
    asyncio.run(engine.register_schema(schema))
    typer.echo(f"Registered workflow schema {schema.id} (version {schema.version})")


@activity_app.command("types")
def activity_types() -> None:
    """List the registered activity types."""
    for activity_type, description in _engine().activity_factory.describe().items():
        typer.echo(f"{activity_type}\t{description}")


@workflow_app.command("list")
def workflow_list() -> None:
    """
    List all workflow instances with their current status.

    Example:
        caseflow workflow list
        # Output: 3f1c...    suspended    review
        #         9a2e...    completed    -
    """
    repo = get_repository()
    instances = asyncio.run(repo.list_instances())
    if not instances:
        typer.echo("No workflows found")
        return
    for instance in instances:
        typer.echo(
            f"{instance.id}\t{instance.status.value}\t{instance.current_activity_id or '-'}"
        )


@workflow_app.command("show")
def workflow_show(instance_id: str) -> None:
    """
    Show detailed information for a workflow instance.

    Displays status, current activity and assignee, variables, activity
    executions and checkpoints.
    """
    repo = get_repository()
    instance = asyncio.run(repo.get_instance(instance_id))
    if instance is None:
        instance = asyncio.run(repo.get_instance_by_correlation_id(instance_id))
    if instance is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)

    typer.echo(f"Workflow {instance.id}: {instance.status.value}")
    if instance.correlation_id:
        typer.echo(f"Correlation ID: {instance.correlation_id}")
    if instance.current_activity_id:
        typer.echo(
            f"Current activity: {instance.current_activity_id} "
            f"(assignee: {instance.current_assignee or 'unassigned'})"
        )
    if instance.status_reason:
        typer.echo(f"Reason: {instance.status_reason}")
    typer.echo(f"Variables: {json.dumps(instance.variables, default=str)}")
    for execution in instance.executions:
        typer.echo(
            f"- {execution.activity_id}: {execution.status.value} "
            f"(assigned: {execution.assigned_to or '-'}, completed by: {execution.completed_by or '-'})"
        )
    checkpoints = asyncio.run(repo.list_checkpoints(instance.id))
    for checkpoint in checkpoints:
        typer.echo(f"* {checkpoint.created_at.isoformat()} {checkpoint.status.value}: {checkpoint.reason}")
