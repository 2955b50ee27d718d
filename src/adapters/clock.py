"""
Clock adapters.

Implements TimePort for wall-clock time and for deterministic tests.

Key behaviors:
- now_utc: timezone-aware UTC time
- now_local: the same instant in the configured calendar timezone
  (day keys are derived from the local date, so a session crossing local
  midnight rolls over to a new bucket)
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo


class SystemClock:
    """Wall-clock time in a configurable timezone."""

    def __init__(self, tz_name: str = "UTC") -> None:
        self._tz_name = tz_name
        self._tz = ZoneInfo(tz_name)

    def now_utc(self) -> datetime:
        return datetime.now(UTC)

    def now_local(self) -> datetime:
        return datetime.now(self._tz)

    @property
    def timezone_name(self) -> str:
        return self._tz_name


class FrozenClock:
    """
    Clock that returns a fixed time until advanced.

    Useful for deterministic testing and for replaying recorded sessions.
    """

    def __init__(self, frozen_utc: datetime, tz_name: str = "UTC") -> None:
        """
        Initialize with frozen time.

        Args:
            frozen_utc: The UTC time to return from now_utc(). Naive values
                are taken as UTC.
            tz_name: IANA timezone name for local conversions
        """
        if frozen_utc.tzinfo is None:
            frozen_utc = frozen_utc.replace(tzinfo=UTC)
        self._frozen_utc = frozen_utc.astimezone(UTC)
        self._tz_name = tz_name
        self._tz = ZoneInfo(tz_name)

    def now_utc(self) -> datetime:
        return self._frozen_utc

    def now_local(self) -> datetime:
        return self._frozen_utc.astimezone(self._tz)

    @property
    def timezone_name(self) -> str:
        return self._tz_name

    def advance(self, delta: timedelta | float) -> None:
        """Advance frozen time by delta (a timedelta or seconds)."""
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        self._frozen_utc = self._frozen_utc + delta

    def set(self, utc_dt: datetime) -> None:
        """Jump to an absolute UTC time."""
        if utc_dt.tzinfo is None:
            utc_dt = utc_dt.replace(tzinfo=UTC)
        self._frozen_utc = utc_dt.astimezone(UTC)


def create_clock(tz_name: str = "UTC") -> SystemClock:
    """Factory function to create a clock."""
    return SystemClock(tz_name)
