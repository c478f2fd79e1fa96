import io
import json
import logging
import os
import re

import pytest

from aniupdater.telemetry import JsonFormatter, MilliTimeFormatter, get_subscriber, init_subscriber

LINE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}[+-]\d{2}:\d{2} +WARN svc: hello x$"
)
STAMP = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}[+-]\d{2}:\d{2}$")


def make_record(level=logging.WARNING, name="svc"):
    return logging.LogRecord(name, level, __file__, 7, "hello %s", ("x",), None)


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("APP_ENV", raising=False)
    return monkeypatch


def emit(handler, logger_name, level, message):
    logger = logging.getLogger(logger_name)
    logger.propagate = False
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    try:
        logger.log(level, message)
    finally:
        logger.removeHandler(handler)


def test_milli_time_formatter_layout():
    line = MilliTimeFormatter().format(make_record())
    assert line.split()[1:] == ["WARN", "svc:", "hello", "x"]
    assert STAMP.match(line.split()[0]) is not None
    assert bool(LINE.match(line)) is True


def test_json_formatter_fields():
    entry = json.loads(JsonFormatter("ani-updater").format(make_record()))
    assert entry["v"] == 0
    assert entry["name"] == "ani-updater"
    assert entry["msg"] == "hello x"
    assert entry["level"] == 40
    assert entry["target"] == "svc"
    assert entry["pid"] == os.getpid()
    assert entry["time"].endswith("Z")


def test_json_formatter_levels():
    formatter = JsonFormatter("n")
    levels = [json.loads(formatter.format(make_record(lv)))["level"] for lv in (logging.INFO, logging.ERROR)]
    assert levels == [30, 50]


def test_subscriber_applies_given_filter(clean_env):
    sink = io.StringIO()
    handler = get_subscriber("ani-updater", "warn", sink)
    emit(handler, "telemetry.t1", logging.INFO, "quiet")
    emit(handler, "telemetry.t1", logging.WARNING, "loud")
    output = sink.getvalue()
    assert "quiet" not in output
    assert "telemetry.t1: loud" in output


def test_environment_filter_overrides(clean_env):
    clean_env.setenv("LOG_LEVEL", "error")
    sink = io.StringIO()
    handler = get_subscriber("ani-updater", "info", sink)
    emit(handler, "telemetry.t2", logging.WARNING, "dropped")
    assert sink.getvalue() == ""


def test_invalid_environment_filter_falls_back(clean_env):
    clean_env.setenv("LOG_LEVEL", "a=bogus")
    sink = io.StringIO()
    handler = get_subscriber("ani-updater", "info", sink)
    emit(handler, "telemetry.t3", logging.INFO, "kept")
    assert "kept" in sink.getvalue()


def test_target_directives(clean_env):
    sink = io.StringIO()
    handler = get_subscriber("ani-updater", "info,noisy=error", sink)
    emit(handler, "noisy.sub", logging.WARNING, "hidden")
    emit(handler, "calm", logging.INFO, "shown")
    output = sink.getvalue()
    assert "hidden" not in output
    assert "calm: shown" in output


def test_local_env_gives_compact_lines(clean_env):
    clean_env.setenv("APP_ENV", "LOCAL")
    sink = io.StringIO()
    handler = get_subscriber("ani-updater", "info", sink)
    emit(handler, "telemetry.t4", logging.WARNING, "hi")
    lines = sink.getvalue().splitlines()
    assert len(lines) == 1
    assert lines[0].split()[1:] == ["WARN", "telemetry.t4:", "hi"]
    assert STAMP.match(lines[0].split()[0]) is not None


def test_init_subscriber_only_once(clean_env):
    root = logging.getLogger()
    old_level = root.level
    first = get_subscriber("ani-updater", "debug", io.StringIO())
    second = get_subscriber("ani-updater", "info", io.StringIO())
    try:
        init_subscriber(first)
        assert first in root.handlers
        assert root.level == logging.DEBUG
        with pytest.raises(RuntimeError):
            init_subscriber(second)
        assert second not in root.handlers
    finally:
        root.removeHandler(first)
        root.setLevel(old_level)