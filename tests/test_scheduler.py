import asyncio

import httpx
import pytest
import respx

from aniupdater.api import ApiResponse
from aniupdater.commands import build_cmd_map
from aniupdater.cron import CronError
from aniupdater.scheduler import Scheduler
from aniupdater.task import Task, TaskMeta, build_tasks_from_meta

FAR_FUTURE = "0 0 0 1 1 * 2099"


async def _wait_until(predicate, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


async def _shutdown(scheduler, runner):
    scheduler.stop()
    return await asyncio.wait_for(runner, 5)


@pytest.mark.asyncio
async def test_scheduler_with_meta_to_task():
    metas = [
        TaskMeta(
            name="任务A",
            cmd="fetch_agedm_ani_data",
            arg="https://example.com/a",
            cron_expr="0/10 * * * * * *",
            retry_times=1,
        ),
        TaskMeta(
            name="任务B",
            cmd="unknown_cmd",
            arg="https://example.com/b",
            cron_expr="0/15 * * * * * *",
            retry_times=0,
        ),
    ]
    with respx.mock:
        respx.get("https://example.com/a").mock(
            return_value=httpx.Response(200, text="<html><body></body></html>")
        )
        tasks = build_tasks_from_meta(metas, build_cmd_map())
        scheduler = Scheduler(tasks, 2)
        queue = asyncio.Queue(100)
        runner = asyncio.create_task(scheduler.run(queue))
        result = await asyncio.wait_for(queue.get(), 5)
        assert result.name == "任务A"
        assert result.result == {}
        assert await _shutdown(scheduler, runner) is True


@pytest.mark.asyncio
async def test_tasks_run_immediately_at_start():
    async def action():
        return ApiResponse.ok({"星期一": []})

    scheduler = Scheduler([Task(name="t", cron_expr=FAR_FUTURE, action=action)])
    queue = asyncio.Queue()
    runner = asyncio.create_task(scheduler.run(queue))
    result = await asyncio.wait_for(queue.get(), 5)
    assert result.name == "t"
    assert result.result == {"星期一": []}
    assert await _shutdown(scheduler, runner) is True


@pytest.mark.asyncio
async def test_response_without_data_gives_empty_result():
    async def action():
        return ApiResponse.err("boom")

    scheduler = Scheduler([Task(name="e", cron_expr=FAR_FUTURE, action=action)])
    queue = asyncio.Queue()
    runner = asyncio.create_task(scheduler.run(queue))
    result = await asyncio.wait_for(queue.get(), 5)
    assert result.result == {}
    await _shutdown(scheduler, runner)


@pytest.mark.asyncio
async def test_failed_run_is_retried():
    calls = []

    async def action():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first try fails")
        return ApiResponse.ok({})

    task = Task(name="r", cron_expr=FAR_FUTURE, action=action, retry_times=1)
    scheduler = Scheduler([task], retry_delay=0)
    queue = asyncio.Queue()
    runner = asyncio.create_task(scheduler.run(queue))
    result = await asyncio.wait_for(queue.get(), 5)
    assert result.name == "r"
    assert len(calls) == 2
    await _shutdown(scheduler, runner)


@pytest.mark.asyncio
async def test_exhausted_retries_produce_no_result():
    calls = []

    async def action():
        calls.append(1)
        raise RuntimeError("always fails")

    task = Task(name="f", cron_expr=FAR_FUTURE, action=action, retry_times=2)
    scheduler = Scheduler([task], retry_delay=0)
    queue = asyncio.Queue()
    runner = asyncio.create_task(scheduler.run(queue))
    await _wait_until(lambda: len(calls) == 3)
    await asyncio.sleep(0.05)
    assert len(calls) == 3
    assert queue.empty()
    await _shutdown(scheduler, runner)


@pytest.mark.asyncio
async def test_unknown_command_never_reports():
    tasks = build_tasks_from_meta(
        [TaskMeta(name="x", cmd="nope", arg="", cron_expr=FAR_FUTURE, retry_times=0)], {}
    )
    scheduler = Scheduler(tasks, retry_delay=0)
    queue = asyncio.Queue()
    runner = asyncio.create_task(scheduler.run(queue))
    await asyncio.sleep(0.1)
    assert queue.empty()
    assert await _shutdown(scheduler, runner) is True


@pytest.mark.asyncio
async def test_run_ends_when_nothing_is_upcoming():
    async def action():
        return ApiResponse.ok({})

    scheduler = Scheduler([Task(name="old", cron_expr="0 0 0 1 1 * 1970", action=action)])
    queue = asyncio.Queue()
    assert await asyncio.wait_for(scheduler.run(queue), 5) is False
    result = await asyncio.wait_for(queue.get(), 5)
    assert result.name == "old"


@pytest.mark.asyncio
async def test_scheduled_runs_follow_cron():
    async def action():
        return ApiResponse.ok({})

    scheduler = Scheduler([Task(name="s", cron_expr="* * * * * *", action=action)])
    queue = asyncio.Queue()
    runner = asyncio.create_task(scheduler.run(queue))
    names = [(await asyncio.wait_for(queue.get(), 4)).name for _ in range(3)]
    assert names == ["s", "s", "s"]
    await _shutdown(scheduler, runner)


@pytest.mark.asyncio
async def test_invalid_cron_raises():
    async def action():
        return ApiResponse.ok({})

    scheduler = Scheduler([Task(name="bad", cron_expr="not a cron", action=action)])
    with pytest.raises(CronError):
        await scheduler.run(asyncio.Queue())


@pytest.mark.asyncio
async def test_stop_cancels_running_executions():
    started = asyncio.Event()
    cancelled = []

    async def action():
        started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.append(True)
            raise
        return ApiResponse.ok({})

    scheduler = Scheduler([Task(name="slow", cron_expr=FAR_FUTURE, action=action)])
    runner = asyncio.create_task(scheduler.run(asyncio.Queue()))
    await asyncio.wait_for(started.wait(), 5)
    assert await _shutdown(scheduler, runner) is True
    await _wait_until(lambda: bool(cancelled))
    assert cancelled == [True]