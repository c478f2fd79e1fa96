"""Runs tasks once at start-up and then on their cron schedules."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime
from typing import Awaitable, Iterable, List, Optional, Set, Tuple

from .task import Task, TaskResult

RETRY_DELAY = 5.0

log = logging.getLogger(__name__)


class Scheduler:
    """Schedules tasks and puts a ``TaskResult`` on a queue for every success.

    Runs started by the schedule are limited to ``max_concurrent_tasks`` at a
    time (the number of CPUs by default); the runs made at start-up are not.
    A failing run is retried up to ``retry_times`` times, ``retry_delay``
    seconds apart.
    """

    def __init__(
        self,
        tasks: Iterable[Task],
        max_concurrent_tasks: Optional[int] = None,
        *,
        retry_delay: float = RETRY_DELAY,
    ) -> None:
        self.tasks: List[Task] = list(tasks)
        limit = max_concurrent_tasks if max_concurrent_tasks is not None else (os.cpu_count() or 1)
        self._semaphore = asyncio.Semaphore(limit)
        self._shutdown = asyncio.Event()
        self._running: Set[asyncio.Task] = set()
        self._retry_delay = retry_delay

    async def run(self, queue: "asyncio.Queue[TaskResult]") -> bool:
        """Run every task now, then on schedule until stopped.

        Returns True when ended by ``stop()`` (runs still in progress are then
        cancelled) and False when no task has any upcoming time left.
        """
        for task in self.tasks:
            self._spawn(self._execute(task, queue))

        last_fired: Optional[datetime] = None
        while not self._shutdown.is_set():
            now = datetime.now()
            if last_fired is not None and now < last_fired:
                now = last_fired
            next_runs: List[Tuple[datetime, Task]] = []
            for task in self.tasks:
                upcoming = task.schedule().next_after(now)
                if upcoming is not None:
                    next_runs.append((upcoming, task))
            if not next_runs:
                return False

            next_runs.sort(key=lambda pair: pair[0])
            for when, task in next_runs:
                delay = max((when - datetime.now()).total_seconds(), 0.0)
                if await self._wait_for_shutdown(delay):
                    log.warning("scheduler received a stop request")
                    break
                last_fired = when
                await self._semaphore.acquire()
                self._spawn(self._guarded(task, queue))

        for running in list(self._running):
            running.cancel()
        return True

    def stop(self) -> None:
        """Ask ``run`` to stop scheduling."""
        self._shutdown.set()

    async def _wait_for_shutdown(self, delay: float) -> bool:
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    def _spawn(self, coro: Awaitable[None]) -> None:
        running = asyncio.ensure_future(coro)
        self._running.add(running)
        running.add_done_callback(self._running.discard)

    async def _guarded(self, task: Task, queue: "asyncio.Queue[TaskResult]") -> None:
        try:
            await self._execute(task, queue)
        finally:
            self._semaphore.release()

    async def _execute(self, task: Task, queue: "asyncio.Queue[TaskResult]") -> None:
        for attempt in range(task.retry_times + 1):
            try:
                response = await task.run()
            except Exception as exc:
                log.info(
                    "task [%s] failed: %s, retry %d/%d",
                    task.name,
                    exc,
                    attempt + 1,
                    task.retry_times,
                )
                if attempt < task.retry_times:
                    await asyncio.sleep(self._retry_delay)
                continue
            log.info("task [%s] succeeded", task.name)
            data = response.data if response.data is not None else {}
            await queue.put(TaskResult(name=task.name, result=data))
            return