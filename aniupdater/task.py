"""Task definitions read from configuration and the tasks built from them."""

from __future__ import annotations

import functools
from dataclasses import dataclass, fields
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

from .api import AniItemResult, ApiResponse
from .commands import CmdFn
from .cron import CronSchedule

TaskAction = Callable[[], Awaitable[ApiResponse[AniItemResult]]]

_U8_MAX = 255


@dataclass
class TaskMeta:
    """A task as configured: a command name, its argument and a cron schedule."""

    name: str
    cmd: str
    arg: str
    cron_expr: str
    retry_times: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskMeta":
        values = {}
        for f in fields(cls):
            if f.name not in data:
                raise ValueError(f"missing field `{f.name}`")
            values[f.name] = data[f.name]
        for key in ("name", "cmd", "arg", "cron_expr"):
            if not isinstance(values[key], str):
                raise ValueError(f"field `{key}` must be a string")
        retry = values["retry_times"]
        if isinstance(retry, bool) or not isinstance(retry, int) or not 0 <= retry <= _U8_MAX:
            raise ValueError(f"field `retry_times` must be an integer from 0 to {_U8_MAX}")
        return cls(**values)


@dataclass
class Task:
    """A runnable task: its action is retried up to ``retry_times`` more times."""

    name: str
    cron_expr: str
    action: TaskAction
    retry_times: int = 0

    def schedule(self) -> CronSchedule:
        """The parsed schedule; raises CronError for an invalid expression."""
        return CronSchedule.parse(self.cron_expr)

    async def run(self) -> ApiResponse[AniItemResult]:
        return await self.action()


@dataclass
class TaskResult:
    name: str
    result: Optional[AniItemResult] = None


def _missing_command(cmd: str, name: str) -> TaskAction:
    async def action() -> ApiResponse[AniItemResult]:
        raise LookupError(f"cmd '{cmd}' not found for task '{name}'")

    return action


def build_tasks_from_meta(metas: Iterable[TaskMeta], cmd_map: Dict[str, CmdFn]) -> List[Task]:
    """Bind each configured task to its command; an unknown command fails when run."""
    tasks = []
    for meta in metas:
        cmd_fn = cmd_map.get(meta.cmd)
        if cmd_fn is not None:
            action = functools.partial(cmd_fn, meta.arg)
        else:
            action = _missing_command(meta.cmd, meta.name)
        tasks.append(
            Task(
                name=meta.name,
                cron_expr=meta.cron_expr,
                action=action,
                retry_times=meta.retry_times,
            )
        )
    return tasks