"""Log handler setup: coloured-free compact lines locally, bunyan-style JSON otherwise."""

from __future__ import annotations

import json
import logging
import os
import socket
from datetime import datetime, timezone
from typing import Dict, Optional, TextIO

FILTER_ENV = "LOG_LEVEL"
APP_ENV = "APP_ENV"

_OFF = logging.CRITICAL + 10
_LEVELS = {
    "off": _OFF,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}
_BUNYAN_LEVELS = (
    (logging.CRITICAL, 60),
    (logging.ERROR, 50),
    (logging.WARNING, 40),
    (logging.INFO, 30),
    (logging.DEBUG, 20),
)


def _level_name(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "ERROR"
    if levelno >= logging.WARNING:
        return "WARN"
    if levelno >= logging.INFO:
        return "INFO"
    if levelno >= logging.DEBUG:
        return "DEBUG"
    return "TRACE"


def _bunyan_level(levelno: int) -> int:
    for threshold, value in _BUNYAN_LEVELS:
        if levelno >= threshold:
            return value
    return 10


class _TargetFilter(logging.Filter):
    """Per-logger minimum levels with a default for everything else."""

    def __init__(self, default: int, targets: Dict[str, int]) -> None:
        super().__init__()
        self.default = default
        self.targets = targets

    @property
    def lowest(self) -> int:
        return min([self.default, *self.targets.values()])

    def _level_for(self, name: str) -> int:
        best: Optional[str] = None
        for target in self.targets:
            if name == target or name.startswith(target + "."):
                if best is None or len(target) > len(best):
                    best = target
        return self.default if best is None else self.targets[best]

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self._level_for(record.name)


def _parse_filter(spec: str, strict: bool) -> _TargetFilter:
    """Parse ``level`` / ``target=level`` / ``target`` directives separated by commas."""
    default: Optional[int] = None
    targets: Dict[str, int] = {}
    for raw in spec.split(","):
        part = raw.strip()
        if not part:
            continue
        target, sep, level_name = part.rpartition("=")
        level = _LEVELS.get(level_name.strip().lower())
        if not sep:
            if level is not None:
                default = level
            else:
                targets[part] = logging.DEBUG
            continue
        if level is None or not target.strip():
            if strict:
                raise ValueError(f"invalid filter directive: {part!r}")
            continue
        targets[target.strip()] = level
    return _TargetFilter(logging.ERROR if default is None else default, targets)


class MilliTimeFormatter(logging.Formatter):
    """Compact lines stamped with local time to the millisecond and a UTC offset."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        moment = datetime.fromtimestamp(record.created).astimezone()
        return moment.isoformat(timespec="milliseconds")

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{self.formatTime(record)} {_level_name(record.levelno):>5} {record.name}: {message}"


class JsonFormatter(logging.Formatter):
    """One bunyan-style JSON object per record."""

    def __init__(self, name: str) -> None:
        super().__init__()
        self.app_name = name
        self.hostname = socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        moment = datetime.fromtimestamp(record.created, timezone.utc)
        entry = {
            "v": 0,
            "name": self.app_name,
            "msg": record.getMessage(),
            "level": _bunyan_level(record.levelno),
            "hostname": self.hostname,
            "pid": os.getpid(),
            "time": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "target": record.name,
            "line": record.lineno,
            "file": record.pathname,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def get_subscriber(name: str, env_filter: str, sink: TextIO) -> logging.Handler:
    """A handler writing to ``sink``.

    The filter comes from the LOG_LEVEL variable when it is set and valid,
    else from ``env_filter``. Output is compact text unless Python runs
    optimised; APP_ENV=local forces compact text.
    """
    log_filter: Optional[_TargetFilter] = None
    from_env = os.environ.get(FILTER_ENV)
    if from_env is not None:
        try:
            log_filter = _parse_filter(from_env, strict=True)
        except ValueError:
            log_filter = None
    if log_filter is None:
        log_filter = _parse_filter(env_filter, strict=False)

    is_local = __debug__
    if os.environ.get(APP_ENV, "").lower() == "local":
        is_local = True

    handler = logging.StreamHandler(sink)
    handler.addFilter(log_filter)
    handler.setFormatter(MilliTimeFormatter() if is_local else JsonFormatter(name))
    return handler


def _is_subscriber(handler: logging.Handler) -> bool:
    return isinstance(handler.formatter, (MilliTimeFormatter, JsonFormatter))


def init_subscriber(subscriber: logging.Handler) -> None:
    """Install the handler on the root logger; raises RuntimeError if one is installed already."""
    root = logging.getLogger()
    if any(_is_subscriber(handler) for handler in root.handlers):
        raise RuntimeError("Failed to set subscriber: a global subscriber is already set")
    root.addHandler(subscriber)
    levels = [f.lowest for f in subscriber.filters if isinstance(f, _TargetFilter)]
    if levels:
        root.setLevel(min(levels))