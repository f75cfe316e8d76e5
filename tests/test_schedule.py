"""Tests for rule window evaluation."""
from datetime import datetime, time, timezone
from types import SimpleNamespace

import pytest
import pytz

from guardarr.services.schedule import (
    civil_time,
    day_matches,
    is_rule_active,
    minutes_remaining,
    parse_clock,
    resolve_civil_time,
    window_contains,
)


def _rule(start, end, days=("all",)):
    return SimpleNamespace(start_time=start, end_time=end, days=list(days))


class TestWindows:
    """Same-day and overnight windows, both ends inclusive."""

    @pytest.mark.parametrize("clock", ["23:30", "00:15", "05:59"])
    def test_overnight_active(self, clock):
        rule = _rule(time(22, 0), time(6, 0))
        assert is_rule_active(rule, civil_time("mon", clock))

    @pytest.mark.parametrize("clock", ["12:00", "06:01", "21:59"])
    def test_overnight_inactive(self, clock):
        rule = _rule(time(22, 0), time(6, 0))
        assert not is_rule_active(rule, civil_time("mon", clock))

    @pytest.mark.parametrize("clock", ["08:00", "14:00", "20:00"])
    def test_same_day_active(self, clock):
        rule = _rule(time(8, 0), time(20, 0))
        assert is_rule_active(rule, civil_time("wed", clock))

    @pytest.mark.parametrize("clock", ["07:59", "20:01"])
    def test_same_day_inactive(self, clock):
        rule = _rule(time(8, 0), time(20, 0))
        assert not is_rule_active(rule, civil_time("wed", clock))

    def test_start_equals_end_is_a_single_minute(self):
        start = parse_clock("09:30")
        assert window_contains(start, start, start)
        assert not window_contains(start, start, start + 1)
        assert not window_contains(start, start, start - 1)

    def test_accepts_clock_strings(self):
        rule = _rule("22:00", "06:00")
        assert is_rule_active(rule, civil_time("fri", "23:00"))


class TestDays:
    def test_all_matches_every_day(self):
        assert day_matches(["all"], "sat")

    def test_listed_day(self):
        assert day_matches(["mon", "wed"], "wed")
        assert not day_matches(["mon", "wed"], "tue")

    def test_comma_string(self):
        assert day_matches("Sun, Sat", "sun")

    def test_overnight_window_uses_current_day(self):
        # 02:00 on Tuesday is not covered by a Monday-only rule
        rule = _rule(time(22, 0), time(6, 0), days=["mon"])
        assert not is_rule_active(rule, civil_time("tue", "02:00"))
        assert is_rule_active(rule, civil_time("mon", "02:00"))


class TestCivilTime:
    def test_resolves_weekday_in_timezone(self):
        # Monday 2026-10-19 03:00 UTC is still Sunday evening in Los Angeles
        now = datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc)
        ref = resolve_civil_time(now, "America/Los_Angeles")
        assert ref.weekday == "sun"
        assert ref.clock == "20:00"

    def test_naive_datetime_is_utc(self):
        ref = resolve_civil_time(datetime(2026, 10, 19, 21, 5), "UTC")
        assert (ref.weekday, ref.clock) == ("mon", "21:05")

    def test_unknown_timezone(self):
        with pytest.raises(pytz.UnknownTimeZoneError):
            resolve_civil_time(datetime.now(timezone.utc), "Mars/Olympus_Mons")

    def test_invalid_clock(self):
        with pytest.raises(ValueError):
            parse_clock("24:00")


class TestMinutesRemaining:
    def test_same_day(self):
        assert minutes_remaining(time(20, 0), civil_time("mon", "19:15")) == 45

    def test_wraps_past_midnight(self):
        assert minutes_remaining(time(6, 0), civil_time("mon", "23:00")) == 420
