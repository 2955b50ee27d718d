"""
Clock adapter tests.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from src.adapters.clock import FrozenClock, SystemClock, create_clock
from src.components.telemetry import day_key


class TestFrozenClock:
    def test_naive_input_is_utc(self) -> None:
        clock = FrozenClock(datetime(2026, 3, 10, 9, 0))
        assert clock.now_utc() == datetime(2026, 3, 10, 9, 0, tzinfo=UTC)

    def test_advance_seconds_and_timedelta(self) -> None:
        clock = FrozenClock(datetime(2026, 3, 10, 9, 0, tzinfo=UTC))
        clock.advance(30)
        clock.advance(timedelta(minutes=1))
        assert clock.now_utc() == datetime(2026, 3, 10, 9, 1, 30, tzinfo=UTC)

    def test_set_jumps(self) -> None:
        clock = FrozenClock(datetime(2026, 3, 10, 9, 0, tzinfo=UTC))
        clock.set(datetime(2026, 3, 12, 0, 0))
        assert clock.now_utc() == datetime(2026, 3, 12, 0, 0, tzinfo=UTC)

    def test_local_day_differs_from_utc_day(self) -> None:
        clock = FrozenClock(datetime(2026, 3, 10, 23, 30, tzinfo=UTC), tz_name="Asia/Tokyo")
        assert day_key(clock.now_utc()) == "2026-03-10"
        assert day_key(clock.now_local()) == "2026-03-11"
        assert clock.timezone_name == "Asia/Tokyo"


class TestSystemClock:
    def test_times_are_aware(self) -> None:
        clock = create_clock("Europe/London")
        assert isinstance(clock, SystemClock)
        assert clock.now_utc().tzinfo is not None
        assert clock.now_local().utcoffset() is not None
        assert abs(clock.now_utc() - clock.now_local()) < timedelta(seconds=5)
