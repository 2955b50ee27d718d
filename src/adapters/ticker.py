"""
Telemetry Ticker - background driver for a TelemetrySession.

Runs a daemon thread that ticks the session every ``tick_seconds`` and
flushes it every ``flush_interval_seconds``. An optional
LessonEngagementTimer is ticked alongside and saved every
``save_interval_seconds``. Process exit is treated as a page unload: an
atexit hook makes one best-effort flush and save.
"""

from __future__ import annotations

import atexit
import logging
import threading
import time

from src.adapters.clock import SystemClock
from src.components.lesson_timer import LessonEngagementTimer, ProgressStorePort
from src.components.telemetry import (
    BucketStorePort,
    IdentityPort,
    TelemetrySession,
    TimePort,
    create_session,
)
from src.rules.models import Rules

logger = logging.getLogger(__name__)


class TelemetryTicker:
    def __init__(
        self,
        session: TelemetrySession,
        tick_seconds: float | None = None,
        flush_interval_seconds: float | None = None,
        timer: LessonEngagementTimer | None = None,
        save_interval_seconds: float | None = None,
    ) -> None:
        """
        Initialize ticker.

        Args:
            session: Session to drive
            tick_seconds: Tick period (defaults to session config)
            flush_interval_seconds: Periodic flush period (defaults to session config)
            timer: Lesson timer to tick and save with the session
            save_interval_seconds: Periodic timer save period (defaults to the flush period)
        """
        self._session = session
        self._timer = timer
        self._tick = tick_seconds or session.config.tick_seconds
        self._flush_interval = flush_interval_seconds or session.config.flush_interval_seconds
        self._save_interval = save_interval_seconds or self._flush_interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._running = False

    def start(self) -> None:
        """Mount the session and start ticking."""
        if self._running:
            return

        self._session.mount()
        if self._timer is not None:
            self._timer.load()
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="telemetry-ticker")
        self._thread.start()
        atexit.register(self._on_exit)
        self._running = True
        logger.info(
            "Telemetry ticker started (tick %.1fs, flush every %.1fs)",
            self._tick,
            self._flush_interval,
        )

    def stop(self) -> None:
        """Stop ticking and tear the session down (final flush and save)."""
        if not self._running:
            return

        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
        atexit.unregister(self._on_exit)
        self._running = False
        self._session.teardown()
        if self._timer is not None:
            self._timer.teardown()
        logger.info("Telemetry ticker stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def session(self) -> TelemetrySession:
        return self._session

    @property
    def timer(self) -> LessonEngagementTimer | None:
        return self._timer

    def visibility_changed(self, hidden: bool) -> None:
        """Forward a page visibility change to the session and the timer."""
        self._session.visibility_changed(hidden)
        if self._timer is not None:
            self._timer.visibility_changed(hidden)

    def _loop(self) -> None:
        next_flush = time.monotonic() + self._flush_interval
        next_save = time.monotonic() + self._save_interval
        while not self._stop_event.wait(timeout=self._tick):
            try:
                self._session.tick()
                if self._timer is not None:
                    self._timer.tick()
                now = time.monotonic()
                if now >= next_flush:
                    next_flush += self._flush_interval
                    self._session.flush("interval")
                if self._timer is not None and now >= next_save:
                    next_save += self._save_interval
                    self._timer.save()
            except Exception:
                logger.exception("Error in telemetry ticker loop")

    def _on_exit(self) -> None:
        self._stop_event.set()
        self._session.page_unload()
        if self._timer is not None:
            self._timer.save()


def create_ticker(
    rules: Rules,
    store: BucketStorePort,
    identity: IdentityPort,
    course_id: str | None,
    lesson_id: str | None = None,
    progress: ProgressStorePort | None = None,
    clock: TimePort | None = None,
) -> TelemetryTicker:
    """
    Factory: session, optional lesson timer and ticker from rules.

    The timer is only built when a progress store and a full course/lesson
    context are given; it shares the session's activity classifier.
    """
    clock = clock or SystemClock(rules.telemetry.timezone)
    session = create_session(store, identity, clock, course_id, lesson_id, rules=rules.telemetry)

    timer = None
    if progress is not None and course_id and lesson_id:
        timer = LessonEngagementTimer(
            progress, identity, clock, course_id, lesson_id, activity=session.activity
        )

    return TelemetryTicker(
        session,
        timer=timer,
        save_interval_seconds=rules.lesson_timer.save_interval_seconds,
    )
