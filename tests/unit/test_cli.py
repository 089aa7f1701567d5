import asyncio
import uuid
from pathlib import Path

import pytest
from typer.testing import CliRunner

import stepflow.store as store_module
from stepflow.cli import app
from stepflow.models import ExecutionError, ExecutionRecord, ExecutionStatus
from stepflow.store import InMemoryExecutionStore

STEPS_DIR = Path(__file__).resolve().parent.parent / "fixtures" / "steps"


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("STEPFLOW_CONFIG", raising=False)
    monkeypatch.delenv("STEPFLOW_DATABASE_URL", raising=False)
    monkeypatch.setattr(store_module, "_store_instance", None)


def _setup_store() -> InMemoryExecutionStore:
    store = InMemoryExecutionStore()
    store_module._store_instance = store
    return store


def _finished_record(status: ExecutionStatus) -> ExecutionRecord:
    record = ExecutionRecord(
        execution_id=str(uuid.uuid4()),
        workflow_name="fail-mid",
        steps_snapshot=["ok", "boom", "unreached"],
        input_data=1,
        current_data=11,
        current_step_index=1,
    )
    record.transition(ExecutionStatus.RUNNING)
    if status is ExecutionStatus.FAILED:
        record.mark_failed(ExecutionError(kind="step", message="boom", step_index=1, step_ref="boom"))
    else:
        record.transition(status)
    return record


def test_workflow_run_with_steps_succeeds():
    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "workflow",
            "run",
            "double-add",
            str(STEPS_DIR / "double.py"),
            str(STEPS_DIR / "add1.py"),
            "--data",
            "5",
        ],
    )

    assert result.exit_code == 0, f"Command failed. Output: {result.output}"
    assert "succeeded" in result.output
    assert "Data: 11" in result.output


def test_workflow_run_failure_exits_nonzero():
    runner = CliRunner()
    result = runner.invoke(
        app,
        [
            "workflow",
            "run",
            "fail-mid",
            str(STEPS_DIR / "ok.py"),
            str(STEPS_DIR / "boom.py"),
            str(STEPS_DIR / "unreached.py"),
            "--data",
            "1",
        ],
    )

    assert result.exit_code == 1
    assert "failed" in result.output
    assert "2. " + str(STEPS_DIR / "unreached.py") + ": not run" in result.output


def test_workflow_run_uses_configured_workflow(tmp_path):
    config_path = tmp_path / "custom.yaml"
    config_path.write_text(
        f"""
steps:
  base_path: {STEPS_DIR}
workflows:
  double-add:
    - ./double.py
    - ./add1.py
"""
    )
    runner = CliRunner()

    result = runner.invoke(app, ["workflow", "run", "double-add", "--data", "2", "--config", str(config_path)])
    assert result.exit_code == 0, f"Command failed. Output: {result.output}"
    assert "Data: 5" in result.output

    listed = runner.invoke(app, ["workflow", "list", "--config", str(config_path)])
    assert "double-add\t./double.py -> ./add1.py" in listed.output


def test_workflow_run_unknown_workflow():
    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "run", "missing"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_workflow_run_rejects_bad_json():
    runner = CliRunner()
    result = runner.invoke(app, ["workflow", "run", "wf", "a.py", "--data", "{oops"])

    assert result.exit_code == 2


def test_execution_list_and_show():
    store = _setup_store()
    failed = _finished_record(ExecutionStatus.FAILED)
    succeeded = _finished_record(ExecutionStatus.SUCCEEDED)
    asyncio.run(store.create(failed))
    asyncio.run(store.create(succeeded))

    runner = CliRunner()
    result = runner.invoke(app, ["execution", "list"])
    assert result.exit_code == 0
    assert f"{failed.execution_id}\tfail-mid\tfailed" in result.output
    assert f"{succeeded.execution_id}\tfail-mid\tsucceeded" in result.output

    result = runner.invoke(app, ["execution", "show", failed.execution_id])
    assert result.exit_code == 0
    assert "0. ok: done" in result.output
    assert "1. boom: failed" in result.output
    assert "2. unreached: not run" in result.output
    assert "Error (step): boom" in result.output

    missing = runner.invoke(app, ["execution", "show", "missing-id"])
    assert missing.exit_code == 1
    assert "Execution not found" in missing.output


def test_execution_list_empty():
    _setup_store()

    result = CliRunner().invoke(app, ["execution", "list"])

    assert result.exit_code == 0
    assert "No executions found" in result.output
