import asyncio

import pytest

from app.services.background_task_service import BackgroundTaskService


@pytest.mark.asyncio
async def test_spawn_runs_and_forgets_task():
    service = BackgroundTaskService()
    done = []

    async def work():
        done.append(True)
        return "ok"

    task = service.spawn("job", work())
    assert await task == "ok"
    await asyncio.sleep(0)

    assert done == [True]
    assert service.get_running_tasks() == {}


@pytest.mark.asyncio
async def test_failures_do_not_reach_the_caller():
    service = BackgroundTaskService()

    async def explode():
        raise RuntimeError("boom")

    task = service.spawn("job", explode())

    assert await task is None


@pytest.mark.asyncio
async def test_task_ids_are_unique():
    service = BackgroundTaskService()
    gate = asyncio.Event()

    service.spawn("job", gate.wait())
    service.spawn("job", gate.wait())

    assert sorted(service.get_running_tasks()) == ["job:1", "job:2"]
    gate.set()
    await service.drain()


@pytest.mark.asyncio
async def test_drain_waits_for_nested_spawns():
    service = BackgroundTaskService()
    finished = []

    async def inner():
        await asyncio.sleep(0)
        finished.append("inner")

    async def outer():
        service.spawn("inner", inner())
        finished.append("outer")

    service.spawn("outer", outer())
    await service.drain(timeout=1)

    assert finished == ["outer", "inner"]


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_tasks():
    service = BackgroundTaskService()
    task = service.spawn("job", asyncio.sleep(10))
    await asyncio.sleep(0)

    await service.shutdown()

    assert task.cancelled()
    assert service.get_running_tasks() == {}
