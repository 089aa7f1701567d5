"""Workflow registry tests."""

import pytest

from stepflow.errors import NotFoundError, ValidationError
from stepflow.events import WORKFLOW_DEFINED, EventBus
from stepflow.registry import WorkflowRegistry


@pytest.mark.asyncio
async def test_define_and_get():
    registry = WorkflowRegistry()

    workflow_id = await registry.define("double-add", ["./double.py", "./add1.py"])

    assert workflow_id == "double-add"
    definition = registry.get("double-add")
    assert definition.name == "double-add"
    assert definition.steps == ("./double.py", "./add1.py")
    assert definition.defined_at is not None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name, steps",
    [
        ("", ["a"]),
        ("   ", ["a"]),
        ("wf", []),
        ("wf", None),
        ("wf", ["a", ""]),
        ("wf", "a"),
    ],
)
async def test_define_rejects_invalid_input(name, steps):
    registry = WorkflowRegistry()

    with pytest.raises(ValidationError):
        await registry.define(name, steps)

    assert len(registry) == 0


@pytest.mark.asyncio
async def test_rejected_redefinition_keeps_previous_definition():
    registry = WorkflowRegistry()
    await registry.define("wf", ["a", "b"])

    with pytest.raises(ValidationError):
        await registry.define("wf", [])

    assert registry.snapshot("wf") == ["a", "b"]


@pytest.mark.asyncio
async def test_redefine_is_last_writer_wins():
    registry = WorkflowRegistry()
    await registry.define("wf", ["a"])
    await registry.define("wf", ["b", "c"])

    assert registry.snapshot("wf") == ["b", "c"]
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_snapshot_is_independent_copy():
    registry = WorkflowRegistry()
    await registry.define("wf", ["a", "b"])

    snapshot = registry.snapshot("wf")
    snapshot.append("mutated")
    await registry.define("wf", ["x"])

    assert snapshot == ["a", "b", "mutated"]
    assert registry.snapshot("wf") == ["x"]


@pytest.mark.asyncio
async def test_define_copies_caller_list():
    registry = WorkflowRegistry()
    steps = ["a", "b"]
    await registry.define("wf", steps)

    steps.append("c")

    assert registry.snapshot("wf") == ["a", "b"]


def test_get_unknown_workflow():
    registry = WorkflowRegistry()

    with pytest.raises(NotFoundError):
        registry.get("missing")
    with pytest.raises(NotFoundError):
        registry.snapshot("missing")


@pytest.mark.asyncio
async def test_list_and_remove():
    registry = WorkflowRegistry()
    await registry.define("b", ["x"])
    await registry.define("a", ["y"])

    assert [d.name for d in registry.list_workflows()] == ["a", "b"]

    await registry.remove("a")
    assert "a" not in registry
    with pytest.raises(NotFoundError):
        await registry.remove("a")


@pytest.mark.asyncio
async def test_load_definitions_and_defined_event():
    events = EventBus()
    received = []
    events.subscribe(received.append)
    registry = WorkflowRegistry(events=events)

    await registry.load_definitions({"one": ["a"], "two": ["b", "c"]})

    assert registry.snapshot("two") == ["b", "c"]
    assert [e.name for e in received] == [WORKFLOW_DEFINED, WORKFLOW_DEFINED]
    assert received[1].workflow_name == "two"
    assert received[1].data == ["b", "c"]
