"""Command line interface for running and inspecting fieldflow workflows."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml
from pydantic import ValidationError

from fieldflow.config import configure_logging, load_config
from fieldflow.contracts import WorkflowDefinition
from fieldflow.dispatch import ExecutionCoordinator
from fieldflow.errors import WorkflowError
from fieldflow.persistence import WorkflowRepository, get_record_store
from fieldflow.validation import validate_workflow

app = typer.Typer(help="CLI for fieldflow workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for managing workflow definitions")
execution_app = typer.Typer(help="Commands for inspecting executions")

app.add_typer(workflow_app, name="workflow")
app.add_typer(execution_app, name="execution")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override the configured log level"),
) -> None:
    """fieldflow CLI entry point."""
    configure_logging(log_level or load_config().log_level)


def _parse_data(data: Optional[str]) -> Dict[str, Any]:
    if not data:
        return {}
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError as exc:
        typer.secho(f"Invalid JSON for --data: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if not isinstance(parsed, dict):
        typer.secho("--data must be a JSON object", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return parsed


def _load_definition(path: Path) -> WorkflowDefinition:
    if not path.exists():
        typer.secho(f"File not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    try:
        data = yaml.safe_load(path.read_text()) or {}
        return WorkflowDefinition.model_validate(data)
    except (yaml.YAMLError, ValidationError) as exc:
        typer.secho(f"Invalid workflow definition: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _repository() -> WorkflowRepository:
    return WorkflowRepository(get_record_store())


@app.command("execute")
def execute(
    workflow_id: str,
    tenant_id: str = typer.Option(..., help="Tenant the execution belongs to"),
    data: Optional[str] = typer.Option(None, help="Trigger data as a JSON object"),
    test_mode: bool = typer.Option(False, help="Mark the execution as a test run"),
) -> None:
    """
    Run a workflow and wait for it to finish.

    Example:
        fieldflow execute wf-quote-signed --tenant-id t1 --data '{"customerId": "c1"}'
        # Output: Execution 3f2a...: completed
    """
    trigger_data = _parse_data(data)

    async def run() -> str:
        coordinator = ExecutionCoordinator(store=get_record_store())
        execution_id = await coordinator.start_execution(
            workflow_id, trigger_data, tenant_id, test_mode=test_mode
        )
        await coordinator.wait_for(execution_id)
        return execution_id

    try:
        execution_id = asyncio.run(run())
    except WorkflowError as exc:
        typer.secho(f"Failed to start workflow: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    _show_execution(execution_id)


@app.command("trigger")
def trigger(
    trigger_type: str,
    tenant_id: str = typer.Option(..., help="Tenant whose workflows should run"),
    data: Optional[str] = typer.Option(None, help="Trigger data as a JSON object"),
) -> None:
    """Run every active workflow registered for TRIGGER_TYPE."""
    trigger_data = _parse_data(data)

    async def run() -> list[str]:
        coordinator = ExecutionCoordinator(store=get_record_store())
        execution_ids = await coordinator.dispatch_trigger(
            trigger_type, trigger_data, tenant_id
        )
        await coordinator.drain()
        return execution_ids

    execution_ids = asyncio.run(run())
    if not execution_ids:
        typer.echo(f"No active workflows for {trigger_type}")
        return
    for execution_id in execution_ids:
        _show_execution(execution_id)


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Bind port"),
) -> None:
    """Serve the HTTP API with uvicorn."""
    import uvicorn

    from fieldflow.api import create_app

    config = load_config()
    uvicorn.run(
        create_app(config=config),
        host=host or config.api.host,
        port=port or config.api.port,
    )


@workflow_app.command("import")
def workflow_import(path: Path) -> None:
    """Store the workflow definition in PATH (YAML or JSON)."""
    definition = _load_definition(path)
    asyncio.run(_repository().save_workflow(definition))
    typer.echo(f"Imported workflow {definition.id} ({len(definition.nodes)} nodes)")


@workflow_app.command("validate")
def workflow_validate(path: Path) -> None:
    """
    Check the workflow definition in PATH for structural problems.

    Exits with code 1 when any error is found; warnings alone pass.
    """
    result = validate_workflow(_load_definition(path))
    for issue in result.issues:
        color = typer.colors.RED if issue.severity == "error" else typer.colors.YELLOW
        where = f" [{issue.node_id}]" if issue.node_id else ""
        typer.secho(f"{issue.severity}{where}: {issue.message}", fg=color)
    if not result.is_valid:
        raise typer.Exit(code=1)
    typer.echo("Workflow is valid")


@execution_app.command("list")
def execution_list(
    workflow_id: Optional[str] = typer.Option(None, help="Only show this workflow"),
) -> None:
    """List executions with their current status."""
    executions = asyncio.run(_repository().list_executions(workflow_id))
    if not executions:
        typer.echo("No executions found")
        return
    for execution in executions:
        typer.echo(f"{execution.id}\t{execution.workflow_id}\t{execution.status.value}")


@execution_app.command("show")
def execution_show(execution_id: str) -> None:
    """Show an execution's status and its node log in visiting order."""
    _show_execution(execution_id)


def _show_execution(execution_id: str) -> None:
    repo = _repository()
    execution = asyncio.run(repo.get_execution(execution_id))
    if execution is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    typer.echo(f"Execution {execution.id}: {execution.status.value}")
    if execution.error_message:
        typer.echo(f"Error: {execution.error_message}")
    for log in asyncio.run(repo.get_logs(execution_id)):
        detail = log.error_message if log.error_message else json.dumps(
            log.output, default=str
        )
        typer.echo(f"- {log.node_id}: {log.status.value} {detail}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
