"""Command line interface for stepflow."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer

from stepflow.config import configure_logging, load_config
from stepflow.coordinator import build_coordinator
from stepflow.errors import WorkflowError
from stepflow.models import ExecutionRecord, ExecutionStatus
from stepflow.store import get_execution_store

app = typer.Typer(help="CLI for stepflow workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for defining and running workflows")
execution_app = typer.Typer(help="Commands for inspecting executions")

app.add_typer(workflow_app, name="workflow")
app.add_typer(execution_app, name="execution")


@app.callback()
def main() -> None:
    """stepflow CLI entry point."""
    pass


def _parse_data(data: Optional[str]):
    if data is None:
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError as exc:
        typer.secho(f"--data is not valid JSON: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2)


def _echo_record(record: ExecutionRecord) -> None:
    typer.echo(f"Execution {record.execution_id}: {record.status.value}")
    typer.echo(f"Workflow: {record.workflow_name}")
    for index, step_ref in enumerate(record.steps_snapshot):
        if record.error is not None and record.error.step_index == index:
            marker = "failed"
        elif index < record.current_step_index:
            marker = "done"
        else:
            marker = "not run"
        typer.echo(f"  {index}. {step_ref}: {marker}")
    typer.echo(f"Data: {json.dumps(record.current_data, default=str)}")
    if record.error is not None:
        typer.echo(f"Error ({record.error.kind}): {record.error.message}")


@workflow_app.command("run")
def workflow_run(
    name: str,
    steps: Optional[List[str]] = typer.Argument(None, help="Step references; omit to use the configured workflow"),
    data: Optional[str] = typer.Option(None, help="Initial data as JSON"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a stepflow YAML config"),
) -> None:
    """
    Run a workflow in-process and wait for it to finish.

    When step references are given the workflow is (re)defined with them
    first; otherwise it must be listed under ``workflows`` in the config.

    Example:
        stepflow workflow run double-add ./steps/double.py ./steps/add1.py --data 5
    """
    config = load_config(str(config_path) if config_path else None)
    configure_logging(config.log_level)
    initial_data = _parse_data(data)

    async def _run() -> ExecutionRecord:
        coordinator = await build_coordinator(config)
        if steps:
            await coordinator.registry.define(name, steps)
        execution_id = await coordinator.start(name, initial_data)
        try:
            return await coordinator.wait(execution_id)
        finally:
            await coordinator.close()

    try:
        record = asyncio.run(_run())
    except WorkflowError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    _echo_record(record)
    if record.status is not ExecutionStatus.SUCCEEDED:
        raise typer.Exit(code=1)


@workflow_app.command("list")
def workflow_list(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a stepflow YAML config"),
) -> None:
    """List workflows defined in the configuration."""
    config = load_config(str(config_path) if config_path else None)
    if not config.workflows:
        typer.echo("No workflows configured")
        return
    for name, steps in sorted(config.workflows.items()):
        typer.echo(f"{name}\t{' -> '.join(steps)}")


@execution_app.command("list")
def execution_list(
    workflow: Optional[str] = typer.Option(None, help="Only show executions of this workflow"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a stepflow YAML config"),
) -> None:
    """
    List executions with their current status.

    Reads the configured store; only a persistent store (e.g. sqlite) will
    show executions from other processes.

    Example:
        stepflow execution list
        # Output: abc123-def456-789    double-add    succeeded
    """
    config = load_config(str(config_path)) if config_path else None
    store = get_execution_store(config=config)
    records = asyncio.run(store.list_executions())
    if workflow is not None:
        records = [r for r in records if r.workflow_name == workflow]
    if not records:
        typer.echo("No executions found")
        return
    for record in records:
        typer.echo(f"{record.execution_id}\t{record.workflow_name}\t{record.status.value}")


@execution_app.command("show")
def execution_show(
    execution_id: str,
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a stepflow YAML config"),
) -> None:
    """Show status, data and per-step progress of one execution."""
    config = load_config(str(config_path)) if config_path else None
    store = get_execution_store(config=config)
    record = asyncio.run(store.get(execution_id))
    if record is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    _echo_record(record)


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind"),
    port: int = typer.Option(8000, help="Port to bind"),
) -> None:
    """Start the HTTP API server."""
    import uvicorn

    config = load_config()
    configure_logging(config.log_level)
    uvicorn.run("stepflow.api:create_app", factory=True, host=host, port=port)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
