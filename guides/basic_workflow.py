"""Simple example showing workflow definition, start and status polling."""

import asyncio
from pathlib import Path

from stepflow import EventBus, ExecutionCoordinator, StepLoader, WorkflowRegistry

STEPS = Path(__file__).parent / "steps"


async def main():
    """Define a two step workflow and poll it until it finishes."""
    events = EventBus()
    coordinator = ExecutionCoordinator(
        WorkflowRegistry(events=events),
        StepLoader(base_path=STEPS),
        events=events,
    )
    coordinator.subscribe(lambda event: print(f"event: {event.name} step={event.step_index}"))

    await coordinator.registry.define("customer-intake", ["./normalize.py", "./enrich.py"])

    execution_id = await coordinator.start(
        "customer-intake", {"name": "  Ada Lovelace ", "country": "DE"}
    )
    print(f"Execution started: {execution_id}")

    while True:
        record = await coordinator.status(execution_id)
        print(f"status={record.status.value} step={record.current_step_index}")
        if record.is_terminal:
            break
        await asyncio.sleep(0.05)

    print(f"Result: {record.current_data}")
    await coordinator.close()


if __name__ == "__main__":
    asyncio.run(main())
