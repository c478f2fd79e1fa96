"""Saving scraped results and starting the background fetch schedule."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Set

from sqlalchemy.engine import Engine

from .api import AniItemResult, ApiResponse
from .commands import build_cmd_map
from .dao import upsert_ani_info
from .date_utils import get_today_weekday
from .scheduler import Scheduler
from .task import TaskMeta, TaskResult, build_tasks_from_meta

RESULT_QUEUE_SIZE = 128

log = logging.getLogger(__name__)

_background: Set[asyncio.Task] = set()


def _keep(coro: Any) -> asyncio.Task:
    task = asyncio.ensure_future(coro)
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


async def run_task_service(ani_item_result: AniItemResult, engine: Engine) -> ApiResponse:
    """Store today's items from a scrape result; problems come back as an error response."""
    items = ani_item_result.get(get_today_weekday().name_cn)
    if items is None:
        return ApiResponse.err("获取今日动漫数据失败")
    if not items:
        return ApiResponse.ok({"message": "没有可插入的数据"})

    for item in items:
        try:
            await asyncio.to_thread(upsert_ani_info, item, engine)
        except Exception as exc:
            return ApiResponse.err(f"插入失败：{exc}")
    return ApiResponse.ok({"message": "save success"})


async def _save(result: AniItemResult, engine: Engine) -> None:
    try:
        response = await run_task_service(result, engine)
    except Exception as exc:
        log.warning("task result could not be saved: %s", exc)
        return
    if response.status == "error":
        log.warning("task result could not be saved: %s", response.message)


async def _receive(queue: "asyncio.Queue[TaskResult]", engine: Engine) -> None:
    while True:
        result = await queue.get()
        if result.result is not None:
            _keep(_save(result.result, engine))


async def _serve(scheduler: Scheduler, queue: "asyncio.Queue[TaskResult]", engine: Engine) -> None:
    receiver = _keep(_receive(queue, engine))
    stopped = True
    try:
        stopped = await scheduler.run(queue)
    finally:
        if stopped:
            receiver.cancel()


async def start_async_timer_task(task_metas: Iterable[TaskMeta], engine: Engine) -> Scheduler:
    """Start the configured tasks in the background and save what they fetch.

    Returns the running scheduler; its ``stop()`` ends the background work.
    """
    tasks = build_tasks_from_meta(task_metas, build_cmd_map())
    scheduler = Scheduler(tasks, None)
    queue: "asyncio.Queue[TaskResult]" = asyncio.Queue(RESULT_QUEUE_SIZE)
    _keep(_serve(scheduler, queue, engine))
    return scheduler