"""Cron expressions with a seconds field and an optional year field."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Iterator, List, Optional, Tuple

_MIN_YEAR = 1970
_MAX_YEAR = 2100
_ONE_SECOND = timedelta(seconds=1)


class CronError(ValueError):
    """A cron expression could not be parsed."""


def _name_table(names: List[str]) -> Dict[str, int]:
    table: Dict[str, int] = {}
    for number, full in enumerate(names, start=1):
        table[full] = number
        table[full[:3]] = number
    return table


_MONTH_NAMES = _name_table(
    [
        "JANUARY", "FEBRUARY", "MARCH", "APRIL", "MAY", "JUNE",
        "JULY", "AUGUST", "SEPTEMBER", "OCTOBER", "NOVEMBER", "DECEMBER",
    ]
)
_DAY_NAMES = _name_table(
    ["SUNDAY", "MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY"]
)


@dataclass(frozen=True)
class _FieldSpec:
    name: str
    low: int
    high: int
    names: Optional[Dict[str, int]] = None
    allows_question: bool = False


_FIELD_SPECS = (
    _FieldSpec("seconds", 0, 59),
    _FieldSpec("minutes", 0, 59),
    _FieldSpec("hours", 0, 23),
    _FieldSpec("days of month", 1, 31, allows_question=True),
    _FieldSpec("months", 1, 12, _MONTH_NAMES),
    _FieldSpec("days of week", 1, 7, _DAY_NAMES, allows_question=True),
    _FieldSpec("years", _MIN_YEAR, _MAX_YEAR),
)

_SHORTCUTS = {
    "@yearly": "0 0 0 1 1 * *",
    "@annually": "0 0 0 1 1 * *",
    "@monthly": "0 0 0 1 * * *",
    "@weekly": "0 0 0 * * 1 *",
    "@daily": "0 0 0 * * * *",
    "@midnight": "0 0 0 * * * *",
    "@hourly": "0 0 * * * * *",
}


def _parse_value(token: str, spec: _FieldSpec) -> int:
    if token.isascii() and token.isdigit():
        value = int(token)
    elif spec.names is not None and token.upper() in spec.names:
        value = spec.names[token.upper()]
    else:
        raise CronError(f"invalid value {token!r} in {spec.name} field")
    if not spec.low <= value <= spec.high:
        raise CronError(f"value {value} out of range {spec.low}-{spec.high} in {spec.name} field")
    return value


def _parse_range(text: str, spec: _FieldSpec, open_end: bool) -> Tuple[int, int]:
    if text == "*" or (text == "?" and spec.allows_question):
        return spec.low, spec.high
    if "-" in text:
        first, last = text.split("-", 1)
        start, end = _parse_value(first, spec), _parse_value(last, spec)
        if start > end:
            raise CronError(f"range {text!r} runs backwards in {spec.name} field")
        return start, end
    value = _parse_value(text, spec)
    return value, (spec.high if open_end else value)


def _parse_field(text: str, spec: _FieldSpec) -> FrozenSet[int]:
    values = set()
    for part in text.split(","):
        if "/" in part:
            base, step_text = part.split("/", 1)
            if not (step_text.isascii() and step_text.isdigit()) or int(step_text) == 0:
                raise CronError(f"invalid step {step_text!r} in {spec.name} field")
            start, end = _parse_range(base, spec, open_end=True)
            values.update(range(start, end + 1, int(step_text)))
        else:
            start, end = _parse_range(part, spec, open_end=False)
            values.update(range(start, end + 1))
    return frozenset(values)


def _cron_weekday(moment: datetime) -> int:
    """Day of week numbered from Sunday = 1 to Saturday = 7."""
    return (moment.weekday() + 1) % 7 + 1


def _start_of_next_month(moment: datetime) -> datetime:
    if moment.month == 12:
        return datetime(moment.year + 1, 1, 1)
    return datetime(moment.year, moment.month + 1, 1)


@dataclass(frozen=True)
class CronSchedule:
    """A parsed schedule: ``sec min hour day-of-month month day-of-week [year]``.

    Day of week runs from Sunday = 1 to Saturday = 7; both day fields must match.
    """

    expression: str
    seconds: FrozenSet[int]
    minutes: FrozenSet[int]
    hours: FrozenSet[int]
    days_of_month: FrozenSet[int]
    months: FrozenSet[int]
    days_of_week: FrozenSet[int]
    years: FrozenSet[int]

    @classmethod
    def parse(cls, expr: str) -> "CronSchedule":
        text = expr.strip()
        text = _SHORTCUTS.get(text.lower(), text)
        parts = text.split()
        if len(parts) == 6:
            parts.append("*")
        if len(parts) != 7:
            raise CronError(f"expected 6 or 7 fields in {expr!r}, got {len(parts)}")
        fields = [_parse_field(part, spec) for part, spec in zip(parts, _FIELD_SPECS)]
        return cls(expr, *fields)

    def _day_matches(self, moment: datetime) -> bool:
        return moment.day in self.days_of_month and _cron_weekday(moment) in self.days_of_week

    def next_after(self, after: datetime) -> Optional[datetime]:
        """The first matching moment strictly after ``after``, keeping its tzinfo; None if none."""
        if after.year > _MAX_YEAR:
            return None
        tz = after.tzinfo
        t = after.replace(tzinfo=None, microsecond=0) + _ONE_SECOND
        while t.year <= _MAX_YEAR:
            if t.year not in self.years:
                later = [year for year in self.years if year > t.year]
                if not later:
                    return None
                t = datetime(min(later), 1, 1)
            elif t.month not in self.months:
                t = _start_of_next_month(t)
            elif not self._day_matches(t):
                t = datetime(t.year, t.month, t.day) + timedelta(days=1)
            elif t.hour not in self.hours:
                t = t.replace(minute=0, second=0) + timedelta(hours=1)
            elif t.minute not in self.minutes:
                t = t.replace(second=0) + timedelta(minutes=1)
            elif t.second not in self.seconds:
                t += _ONE_SECOND
            else:
                return t.replace(tzinfo=tz)
        return None

    def upcoming(self, after: datetime) -> Iterator[datetime]:
        """Every matching moment after ``after``, in order."""
        current = after
        while True:
            following = self.next_after(current)
            if following is None:
                return
            yield following
            current = following