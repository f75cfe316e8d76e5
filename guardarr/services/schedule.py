"""Schedule evaluation: is a rule's weekday/time window active right now?

Rule windows are civil times in the configured timezone, not UTC instants.
The evaluator works on a CivilTime (weekday tag + minute of day) so it stays
pure; resolving "now" into the configured timezone happens once per tick in
resolve_civil_time().
"""
from dataclasses import dataclass
from datetime import datetime, time
from typing import Iterable, Union

import pytz

WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
ALL_DAYS = "all"
MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class CivilTime:
    """A reference time already resolved into the configured timezone."""

    weekday: str
    minute: int  # minute of day, 0..1439

    @property
    def clock(self) -> str:
        return f"{self.minute // 60:02d}:{self.minute % 60:02d}"


def parse_clock(value: str) -> int:
    """'HH:MM' → minute of day."""
    hours, _, minutes = value.strip().partition(":")
    hour, minute = int(hours), int(minutes or 0)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid clock time: {value!r}")
    return hour * 60 + minute


def minute_of_day(value: Union[time, str]) -> int:
    if isinstance(value, str):
        return parse_clock(value)
    return value.hour * 60 + value.minute


def civil_time(weekday: str, clock: str) -> CivilTime:
    weekday = weekday.strip().lower()[:3]
    if weekday not in WEEKDAYS:
        raise ValueError(f"Unknown weekday: {weekday!r}")
    return CivilTime(weekday=weekday, minute=parse_clock(clock))


def resolve_civil_time(now: datetime, tz_name: str) -> CivilTime:
    """Resolve an instant into weekday + minute of day in ``tz_name``.

    Naive datetimes are taken as UTC. Raises pytz.UnknownTimeZoneError for
    an unknown zone name.
    """
    tz = pytz.timezone(tz_name)
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    local = now.astimezone(tz)
    # datetime.weekday() is Monday=0
    weekday = WEEKDAYS[(local.weekday() + 1) % 7]
    return CivilTime(weekday=weekday, minute=local.hour * 60 + local.minute)


def day_matches(days: Union[Iterable[str], str, None], weekday: str) -> bool:
    if isinstance(days, str):
        days = days.split(",")
    tags = {d.strip().lower() for d in days or ()}
    return weekday in tags or ALL_DAYS in tags


def window_contains(start: int, end: int, current: int) -> bool:
    """Inclusive window test on minutes of day.

    start <= end is a same-day window (start == end is active only at that
    minute); start > end crosses midnight.
    """
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def is_rule_active(rule, reference: CivilTime) -> bool:
    """True when ``reference`` falls inside the rule's day set and time window.

    Only the rule's schedule is considered here; ``rule.is_active`` is the
    caller's concern.
    """
    if not day_matches(rule.days, reference.weekday):
        return False
    return window_contains(
        minute_of_day(rule.start_time),
        minute_of_day(rule.end_time),
        reference.minute,
    )


def minutes_remaining(end_time: Union[time, str], reference: CivilTime) -> int:
    """Minutes from ``reference`` until the window end, wrapping past midnight."""
    end = minute_of_day(end_time)
    if end <= reference.minute:
        end += MINUTES_PER_DAY
    return end - reference.minute
