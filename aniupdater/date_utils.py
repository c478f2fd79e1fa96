"""Date formatting and parsing helpers working in local time."""

from __future__ import annotations

import calendar
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum


class DateFormat(Enum):
    """Common date layouts, each holding its strftime pattern."""

    ISO = "%Y-%m-%d"
    SLASH = "%Y/%m/%d"
    UNDERLINE = "%Y_%m_%d"
    CHINESE = "%Y年%m月%d日"
    COMPACT = "%y%m%d"


class DateParseError(ValueError):
    """A date string could not be turned into a timestamp."""


@dataclass(frozen=True)
class WeekdayInfo:
    name_cn: str
    num_from_mon: int
    num_from_sun: int


_WEEKDAY_CN = ("星期一", "星期二", "星期三", "星期四", "星期五", "星期六", "星期日")


def format_now(fmt: DateFormat) -> str:
    return datetime.now().strftime(fmt.value)


def unix_seconds_to_timestamp(t: int) -> datetime:
    """Local, timezone-aware datetime for a Unix timestamp in seconds."""
    return datetime.fromtimestamp(t).astimezone()


def timestamp_to_date_string(t: int, fmt: DateFormat) -> str:
    return unix_seconds_to_timestamp(t).strftime(fmt.value)


def _local_from_millis(ts: int) -> datetime:
    try:
        seconds, millis = divmod(ts, 1000)
        return datetime.fromtimestamp(seconds) + timedelta(milliseconds=millis)
    except (OverflowError, OSError, ValueError):
        return datetime.fromtimestamp(0)


def format_timestamp_millis2(ts: int, fmt: str) -> str:
    """Format a millisecond timestamp with a custom pattern; out-of-range falls back to the epoch."""
    return _local_from_millis(ts).strftime(fmt)


def format_timestamp_millis(ts: int) -> str:
    """Format a millisecond timestamp as ``YYYY/MM/DD``."""
    return _local_from_millis(ts).strftime("%Y/%m/%d")


_today_lock = threading.Lock()
_today_slash = format_now(DateFormat.SLASH)


def get_today_slash() -> str:
    """Today's date as ``YYYY/MM/DD``, cached and refreshed when the day changes."""
    global _today_slash
    now_str = format_now(DateFormat.SLASH)
    with _today_lock:
        if _today_slash != now_str:
            _today_slash = now_str
        return _today_slash


def get_unix_timestamp_millis_now() -> int:
    return time.time_ns() // 1_000_000


def get_today_weekday() -> WeekdayInfo:
    num_from_mon = datetime.now().weekday()
    return WeekdayInfo(
        name_cn=_WEEKDAY_CN[num_from_mon],
        num_from_mon=num_from_mon,
        num_from_sun=(num_from_mon + 1) % 7,
    )


def parse_date_to_millis(s: str, use_local: bool) -> int:
    """Parse ``YYYY/MM/DD`` into a Unix millisecond timestamp at midnight.

    With ``use_local`` midnight is taken in local time and must map to exactly
    one instant; otherwise it is taken in UTC.
    """
    try:
        midnight = datetime.strptime(s, "%Y/%m/%d")
    except ValueError as exc:
        raise DateParseError(f"failed to parse date: {exc}") from exc

    if not use_local:
        return calendar.timegm(midnight.timetuple()) * 1000

    first = midnight.replace(fold=0).timestamp()
    second = midnight.replace(fold=1).timestamp()
    if first != second:
        raise DateParseError(f"ambiguous local time for date: {s}")
    return round(first * 1000)