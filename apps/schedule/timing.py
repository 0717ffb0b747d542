"""
Schedule Timing - Intervals, Times of Day and Cron Expressions

Turns the human side of a trigger ("every 1 day at 12:01 am") into the cron
schedule expressions the OS scheduler understands, and previews when those
expressions fire using APScheduler's CronTrigger.

Supported intervals:
- "N unit", "N.unit" or a bare unit (minute, hour, day, week, month, year)
- datetime.timedelta or a number of seconds
- weekday names ("monday", "fri"), "weekday" and "weekend"
- "reboot" / "@reboot", the other @-macros and raw five-field cron lines

Usage:
    from apps.schedule.timing import cron_schedules

    cron_schedules("1 day", ["12:01 am"])  # ("1 0 * * *",)
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any, Iterable

from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger

from apps.schedule.errors import AmbiguousScheduleError, ScheduleError

logger = logging.getLogger(__name__)

_UNIT_ALIASES = {
    "hourly": "hour",
    "daily": "day",
    "weekly": "week",
    "monthly": "month",
    "yearly": "year",
    "annually": "year",
}

_COUNT_UNIT = re.compile(
    r"^(?:(\d+)\s*\.?\s*)?(second|minute|hour|day|week|month|year)s?$"
)

_WEEKDAYS = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}
_WEEKDAY_ABBREVIATIONS = {name[:3]: number for name, number in _WEEKDAYS.items()}
_DAY_GROUPS = {"weekday": "1-5", "weekend": "0,6"}

_MACROS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}
REBOOT = "@reboot"

_TIME_OF_DAY = re.compile(
    r"^(\d{1,2})(?:[:.](\d{2}))?\s*(?:([ap])\.?\s*m?\.?)?$", re.IGNORECASE
)
_TIME_WORDS = {"midnight": (0, 0), "noon": (12, 0), "midday": (12, 0)}

# APScheduler numbers weekdays from Monday; it gets names instead.
_APS_DAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


@dataclass(frozen=True)
class Interval:
    """A parsed trigger interval.

    unit is one of minute, hour, day, week, month, year, dow (fixed days of
    the week, expression holds the cron day-of-week field), reboot or cron
    (expression holds the full cron line).
    """

    unit: str
    count: int = 1
    expression: str | None = None

    def __str__(self) -> str:
        if self.unit == "dow":
            return f"days of week {self.expression}"
        if self.unit == "reboot":
            return "reboot"
        if self.unit == "cron":
            return f"cron '{self.expression}'"
        plural = "s" if self.count != 1 else ""
        return f"{self.count} {self.unit}{plural}"


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """A wall-clock time with minute resolution."""

    hour: int
    minute: int

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


def _from_seconds(total: int | float) -> Interval:
    if total < 60:
        raise AmbiguousScheduleError(
            f"interval of {total} seconds is below cron's one-minute resolution"
        )
    if total != int(total):
        raise AmbiguousScheduleError(f"interval of {total} seconds is not whole minutes")

    total = int(total)
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if total % size == 0:
            return Interval(unit, total // size)

    raise AmbiguousScheduleError(f"interval of {total} seconds is not whole minutes")


def _check_range(interval: Interval) -> Interval:
    count = interval.count
    if count < 1:
        raise AmbiguousScheduleError(f"interval '{interval}' must be at least 1")

    unit = interval.unit
    if unit == "minute" and 60 % count:
        raise AmbiguousScheduleError(f"'{interval}' does not divide an hour evenly")
    if unit == "hour" and 24 % count:
        raise AmbiguousScheduleError(f"'{interval}' does not divide a day evenly")
    if unit == "day" and count > 31:
        raise AmbiguousScheduleError(f"'{interval}' is longer than a month")
    if unit == "month" and 12 % count:
        raise AmbiguousScheduleError(f"'{interval}' does not divide a year evenly")
    if unit in ("week", "year") and count != 1:
        raise AmbiguousScheduleError(f"'{interval}' cannot be expressed in cron")
    return interval


def parse_interval(value: Any) -> Interval:
    """Parse an interval value into an Interval.

    Args:
        value: Interval string, timedelta, number of seconds or Interval

    Returns:
        Parsed and range-checked Interval

    Raises:
        AmbiguousScheduleError: If the value has no single cron meaning
    """
    if isinstance(value, Interval):
        return value
    if isinstance(value, bool):
        raise AmbiguousScheduleError(f"invalid interval {value!r}")
    if isinstance(value, timedelta):
        return _check_range(_from_seconds(value.total_seconds()))
    if isinstance(value, (int, float)):
        return _check_range(_from_seconds(value))
    if not isinstance(value, str):
        raise AmbiguousScheduleError(f"invalid interval {value!r}")

    text = " ".join(value.strip().split())
    lowered = text.lower()

    if lowered in ("reboot", REBOOT):
        return Interval("reboot")
    if lowered in _MACROS:
        return Interval("cron", expression=lowered)
    if lowered in _DAY_GROUPS:
        return Interval("dow", expression=_DAY_GROUPS[lowered])
    if lowered in _WEEKDAYS:
        return Interval("dow", expression=str(_WEEKDAYS[lowered]))
    if lowered in _WEEKDAY_ABBREVIATIONS:
        return Interval("dow", expression=str(_WEEKDAY_ABBREVIATIONS[lowered]))

    match = _COUNT_UNIT.match(_UNIT_ALIASES.get(lowered, lowered))
    if match:
        count = int(match.group(1) or 1)
        unit = match.group(2)
        if count < 1:
            raise AmbiguousScheduleError(f"interval '{text}' must be at least 1")
        size = {"second": 1, "minute": 60, "hour": 3600, "day": 86400}.get(unit)
        if size is not None:
            return _check_range(_from_seconds(count * size))
        return _check_range(Interval(unit, count))

    if len(text.split()) == 5:
        validate_cron(text)
        return Interval("cron", expression=text)

    raise AmbiguousScheduleError(f"unrecognised interval '{value}'")


def parse_time_of_day(value: Any) -> TimeOfDay:
    """Parse "12:01 am", "3pm", "14:30", "noon" and friends.

    Raises:
        AmbiguousScheduleError: If the value is not a wall-clock time
    """
    if isinstance(value, TimeOfDay):
        return value
    if isinstance(value, time):
        return TimeOfDay(value.hour, value.minute)
    if not isinstance(value, str):
        raise AmbiguousScheduleError(f"invalid time of day {value!r}")

    text = value.strip().lower()
    if text in _TIME_WORDS:
        return TimeOfDay(*_TIME_WORDS[text])

    match = _TIME_OF_DAY.match(text)
    if not match:
        raise AmbiguousScheduleError(f"unrecognised time of day '{value}'")

    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    meridiem = match.group(3)

    if minute > 59:
        raise AmbiguousScheduleError(f"invalid minute in time of day '{value}'")

    if meridiem:
        if not 1 <= hour <= 12:
            raise AmbiguousScheduleError(f"invalid 12-hour time '{value}'")
        hour = hour % 12 + (12 if meridiem == "p" else 0)
    elif hour > 23:
        raise AmbiguousScheduleError(f"invalid hour in time of day '{value}'")

    return TimeOfDay(hour, minute)


def _group_by_minute(times: Iterable[TimeOfDay]) -> list[tuple[int, str]]:
    groups: dict[int, set[int]] = {}
    for tod in times:
        groups.setdefault(tod.minute, set()).add(tod.hour)
    return [
        (minute, ",".join(str(hour) for hour in sorted(hours)))
        for minute, hours in groups.items()
    ]


def cron_schedules(
    interval: Any,
    times_of_day: Iterable[Any] = (),
    label: str | None = None,
) -> tuple[str, ...]:
    """
    Build the cron schedule expressions for an interval and times of day.

    Times that share a minute are folded into a single expression, so the
    result usually has one entry.

    Args:
        interval: Anything parse_interval() accepts
        times_of_day: Anything parse_time_of_day() accepts, per item
        label: Trigger label used in error messages

    Returns:
        Tuple of cron schedule expressions (five fields or @reboot)

    Raises:
        AmbiguousScheduleError: If the combination is not well-defined
    """
    try:
        parsed = parse_interval(interval)
        times = [parse_time_of_day(value) for value in times_of_day]
    except AmbiguousScheduleError as e:
        raise AmbiguousScheduleError(str(e), trigger=label) from e

    unit = parsed.unit
    step = "*" if parsed.count == 1 else f"*/{parsed.count}"

    if unit in ("minute", "reboot", "cron"):
        if times:
            raise AmbiguousScheduleError(
                f"interval '{parsed}' does not take a time of day", trigger=label
            )
        if unit == "minute":
            return (f"{step} * * * *",)
        if unit == "reboot":
            return (REBOOT,)
        return (parsed.expression,)

    if unit == "hour":
        if len(times) > 1:
            raise AmbiguousScheduleError(
                f"interval '{parsed}' accepts at most one time of day, got {len(times)}",
                trigger=label,
            )
        minute = times[0].minute if times else 0
        return (f"{minute} {step} * * *",)

    if unit == "day":
        tail = f"{step} * *"
    elif unit == "week":
        tail = "* * 0"
    elif unit == "month":
        tail = f"1 {step} *"
    elif unit == "year":
        tail = "1 1 *"
    else:
        tail = f"* * {parsed.expression}"

    times = times or [TimeOfDay(0, 0)]
    return tuple(f"{minute} {hours} {tail}" for minute, hours in _group_by_minute(times))


def _day_of_week_names(field: str) -> str:
    """Rewrite a cron day-of-week field as an explicit list of day names."""
    if field == "*":
        return field

    days: set[int] = set()
    for item in field.lower().split(","):
        base, _, stride = item.partition("/")
        step = int(stride) if stride else 1
        if base == "*":
            first, last = 0, 6
        else:
            start, _, end = base.partition("-")
            first = _day_number(start)
            last = _day_number(end) if end else (6 if stride else first)
        if step < 1 or last < first:
            raise ValueError(f"invalid day-of-week item '{item}'")
        days.update(day % 7 for day in range(first, last + 1, step))

    return ",".join(_APS_DAY_NAMES[day] for day in sorted(days))


def _day_number(token: str) -> int:
    if token.isdigit():
        number = int(token)
        if number > 7:
            raise ValueError(f"invalid day of week '{token}'")
        return number
    if token in _WEEKDAY_ABBREVIATIONS:
        return _WEEKDAY_ABBREVIATIONS[token]
    raise ValueError(f"invalid day of week '{token}'")


def cron_trigger(schedule: str, timezone: Any = None) -> BaseTrigger:
    """
    Build an APScheduler trigger for a crontab schedule expression.

    Day-of-week numbers follow crontab (0 and 7 are Sunday), unlike
    CronTrigger.from_crontab which counts from Monday. When both day of
    month and day of week are restricted, cron fires when either matches,
    so the result is an OrTrigger over the two.

    Raises:
        ValueError: If the expression is not a valid five-field schedule
    """
    expression = _MACROS.get(schedule.strip().lower(), schedule)
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"expected 5 fields, got {len(fields)}")

    minute, hour, day, month, day_of_week = fields
    weekdays = _day_of_week_names(day_of_week)

    if day.startswith("*") or day_of_week.startswith("*"):
        return CronTrigger(
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=weekdays,
            timezone=timezone,
        )

    return OrTrigger(
        [
            CronTrigger(minute=minute, hour=hour, day=day, month=month, timezone=timezone),
            CronTrigger(
                minute=minute, hour=hour, month=month, day_of_week=weekdays, timezone=timezone
            ),
        ]
    )


def _trigger_timezone(trigger: BaseTrigger) -> Any:
    if isinstance(trigger, OrTrigger):
        return trigger.triggers[0].timezone
    return trigger.timezone


def validate_cron(schedule: str) -> str:
    """Check a cron schedule expression, returning it unchanged.

    Raises:
        AmbiguousScheduleError: If APScheduler rejects the expression
    """
    if schedule.strip().lower() == REBOOT:
        return schedule
    try:
        cron_trigger(schedule, timezone="UTC")
    except (ValueError, TypeError) as e:
        raise AmbiguousScheduleError(f"invalid cron expression '{schedule}': {e}") from e
    return schedule


def next_fire_times(
    schedule: str,
    count: int = 5,
    now: datetime | None = None,
    timezone: Any = None,
) -> list[datetime]:
    """
    Preview the next fire times of a cron schedule expression.

    Args:
        schedule: Cron schedule expression
        count: Number of fire times to return
        now: Timezone-aware start point, defaults to the current time
        timezone: Timezone the schedule is evaluated in, defaults to local

    Returns:
        Up to count fire times in ascending order (none for @reboot)

    Raises:
        ScheduleError: If the schedule or the timezone cannot be evaluated
    """
    if schedule.strip().lower() == REBOOT:
        return []

    try:
        trigger = cron_trigger(schedule, timezone=timezone)
    except (ValueError, TypeError, KeyError) as e:
        raise ScheduleError(
            f"Cannot evaluate '{schedule}' in timezone {timezone!r}: {e}"
        ) from e
    start = now or datetime.now(_trigger_timezone(trigger))

    fire_times: list[datetime] = []
    previous = None
    while len(fire_times) < count:
        fire = trigger.get_next_fire_time(previous, previous or start)
        if fire is None:
            break
        fire_times.append(fire)
        previous = fire

    logger.debug(
        "Computed fire times",
        extra={"schedule": schedule, "count": len(fire_times)},
    )
    return fire_times
