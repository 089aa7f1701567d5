import threading
import uuid

import pytest

from stepflow.errors import InternalError, NotFoundError
from stepflow.models import ExecutionError, ExecutionRecord, ExecutionStatus
from stepflow.store import InMemoryExecutionStore, SQLiteExecutionStore


def _record(data=None) -> ExecutionRecord:
    data = data if data is not None else {"foo": "bar"}
    return ExecutionRecord(
        execution_id=str(uuid.uuid4()),
        workflow_name="wf",
        steps_snapshot=["step1", "step2"],
        input_data=data,
        current_data=data,
        attempts=[0, 0],
    )


def _advance(record: ExecutionRecord) -> None:
    record.transition(ExecutionStatus.RUNNING)
    record.current_data = {"foo": "baz"}
    record.current_step_index = 1


@pytest.mark.asyncio
async def test_inmemory_store_crud():
    store = InMemoryExecutionStore()
    record = _record()

    await store.create(record)
    updated = await store.update(record.execution_id, _advance)

    assert updated.status is ExecutionStatus.RUNNING
    stored = await store.get(record.execution_id)
    assert stored.current_data == {"foo": "baz"}
    assert stored.current_step_index == 1
    assert stored.input_data == {"foo": "bar"}
    assert [r.execution_id for r in await store.list_executions()] == [record.execution_id]


@pytest.mark.asyncio
async def test_inmemory_store_returns_isolated_copies():
    store = InMemoryExecutionStore()
    record = _record()
    await store.create(record)

    record.current_data["foo"] = "changed by caller"
    fetched = await store.get(record.execution_id)
    fetched.current_data["foo"] = "changed by reader"
    fetched.status = ExecutionStatus.FAILED

    stored = await store.get(record.execution_id)
    assert stored.current_data == {"foo": "bar"}
    assert stored.status is ExecutionStatus.PENDING


@pytest.mark.asyncio
async def test_inmemory_store_failed_mutation_leaves_record_untouched():
    store = InMemoryExecutionStore()
    record = _record()
    await store.create(record)

    def _bad(r: ExecutionRecord) -> None:
        r.current_data = "half applied"
        r.transition(ExecutionStatus.SUCCEEDED)

    with pytest.raises(InternalError):
        await store.update(record.execution_id, _bad)

    stored = await store.get(record.execution_id)
    assert stored.current_data == {"foo": "bar"}


@pytest.mark.asyncio
async def test_inmemory_store_rejects_uncopyable_data():
    store = InMemoryExecutionStore()

    with pytest.raises(InternalError):
        await store.create(_record(data=(i for i in range(3))))
    assert await store.list_executions() == []

    record = _record()
    await store.create(record)

    def _store_lock(r: ExecutionRecord) -> None:
        r.current_data = threading.Lock()

    with pytest.raises(InternalError) as exc_info:
        await store.update(record.execution_id, _store_lock)

    assert "lock" not in str(exc_info.value)
    stored = await store.get(record.execution_id)
    assert stored.current_data == {"foo": "bar"}


@pytest.mark.asyncio
async def test_inmemory_store_errors():
    store = InMemoryExecutionStore()
    record = _record()
    await store.create(record)

    with pytest.raises(InternalError):
        await store.create(record)
    with pytest.raises(NotFoundError):
        await store.update("missing", _advance)
    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_sqlite_store_crud(tmp_path):
    store = SQLiteExecutionStore(tmp_path / "executions.db")
    record = _record()

    await store.create(record)
    await store.update(record.execution_id, _advance)

    def _fail(r: ExecutionRecord) -> None:
        r.mark_failed(ExecutionError(kind="step", message="boom", step_index=1, step_ref="step2"))

    await store.update(record.execution_id, _fail)

    reopened = SQLiteExecutionStore(tmp_path / "executions.db")
    stored = await reopened.get(record.execution_id)
    assert stored is not None
    assert stored.status is ExecutionStatus.FAILED
    assert stored.current_data == {"foo": "baz"}
    assert stored.failing_step == 1
    assert stored.steps_snapshot == ["step1", "step2"]
    assert stored.finished_at is not None

    all_records = await reopened.list_executions()
    assert [r.execution_id for r in all_records] == [record.execution_id]
    store.close()
    reopened.close()


@pytest.mark.asyncio
async def test_sqlite_store_errors(tmp_path):
    store = SQLiteExecutionStore(tmp_path / "executions.db")
    record = _record()
    await store.create(record)

    with pytest.raises(InternalError):
        await store.create(record)
    with pytest.raises(NotFoundError):
        await store.update("missing", _advance)
    with pytest.raises(InternalError):
        await store.create(_record(data=object()))
    store.close()
