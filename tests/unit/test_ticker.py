"""
TelemetryTicker tests.

Runs the real thread with short periods and polls for the expected writes.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from src.adapters.bucket_store import InMemoryBucketStore
from src.adapters.clock import FrozenClock
from src.adapters.identity import StaticIdentity
from src.adapters.progress_store import InMemoryProgressStore
from src.adapters.ticker import TelemetryTicker, create_ticker
from src.components.lesson_timer import LessonEngagementTimer
from src.components.telemetry import TelemetrySession, day_key
from src.rules.models import Rules


def wait_for(condition: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return False


def written_fields(store: InMemoryBucketStore) -> set[str]:
    return {name for _, fields in store.writes for name in fields}


class TestTelemetryTicker:
    def test_start_mounts_and_flushes_on_interval(
        self, store: InMemoryBucketStore, clock: FrozenClock
    ) -> None:
        session = TelemetrySession(store, StaticIdentity("u1"), clock, "c1", "L1")
        ticker = TelemetryTicker(session, tick_seconds=0.01, flush_interval_seconds=0.05)

        ticker.start()
        try:
            assert ticker.is_running
            assert session.mounted
            assert wait_for(lambda: "activeTime" in written_fields(store))
        finally:
            ticker.stop()

        assert not ticker.is_running
        assert not session.mounted
        assert "lessonsOpened" in written_fields(store)
        assert session.snapshot().is_empty()

    def test_stop_flushes_remaining_deltas(
        self, store: InMemoryBucketStore, clock: FrozenClock
    ) -> None:
        session = TelemetrySession(store, StaticIdentity("u1"), clock, "c1", "L1")
        ticker = TelemetryTicker(session, tick_seconds=0.01, flush_interval_seconds=60)

        ticker.start()
        session.report_event("chat_message", {"blockId": "chat-1"})
        ticker.stop()

        doc = store.get(session.current_key())
        assert doc is not None
        assert doc["chatMessages"] == 1
        assert doc["lessons"]["L1"]["blocksInteracted"] == 1

    def test_start_and_stop_are_idempotent(
        self, store: InMemoryBucketStore, clock: FrozenClock
    ) -> None:
        session = TelemetrySession(store, StaticIdentity("u1"), clock, "c1", "L1")
        ticker = TelemetryTicker(session, tick_seconds=0.01, flush_interval_seconds=60)

        ticker.start()
        ticker.start()
        ticker.stop()
        ticker.stop()

        assert written_fields(store) >= {"lessonsOpened", "sessions"}
        assert sum(1 for _, f in store.writes if "sessions" in f) == 1

    def test_drives_lesson_timer(self, store: InMemoryBucketStore, clock: FrozenClock) -> None:
        progress = InMemoryProgressStore()
        progress.set_engagement_time("u1", "c1", "L1", 100)
        session = TelemetrySession(store, StaticIdentity("u1"), clock, "c1", "L1")
        timer = LessonEngagementTimer(
            progress, StaticIdentity("u1"), clock, "c1", "L1", activity=session.activity
        )
        ticker = TelemetryTicker(
            session,
            tick_seconds=0.01,
            flush_interval_seconds=60,
            timer=timer,
            save_interval_seconds=0.05,
        )

        ticker.start()
        try:
            assert wait_for(lambda: (progress.get_engagement_time("u1", "c1", "L1") or 0) > 100)
        finally:
            ticker.stop()

        assert progress.get_engagement_time("u1", "c1", "L1") == timer.seconds

    def test_restart_counts_a_new_session(
        self, store: InMemoryBucketStore, clock: FrozenClock
    ) -> None:
        session = TelemetrySession(store, StaticIdentity("u1"), clock, "c1", "L1")
        ticker = TelemetryTicker(session, tick_seconds=0.01, flush_interval_seconds=60)

        ticker.start()
        ticker.stop()
        ticker.start()
        ticker.stop()

        doc = store.get(session.current_key())
        assert doc is not None
        assert doc["sessions"] == 2
        assert doc["lessonsOpened"] == 2

    def test_visibility_saves_timer_and_flushes_session(
        self, store: InMemoryBucketStore, clock: FrozenClock
    ) -> None:
        progress = InMemoryProgressStore()
        session = TelemetrySession(store, StaticIdentity("u1"), clock, "c1", "L1")
        timer = LessonEngagementTimer(
            progress, StaticIdentity("u1"), clock, "c1", "L1", activity=session.activity
        )
        ticker = TelemetryTicker(session, tick_seconds=60, flush_interval_seconds=60, timer=timer)
        for _ in range(3):
            clock.advance(1)
            session.tick()
            timer.tick()

        ticker.visibility_changed(True)

        assert session.active is False
        assert session.snapshot().is_empty()
        assert progress.get_engagement_time("u1", "c1", "L1") == 3


class TestCreateTicker:
    def test_builds_session_and_timer_from_rules(
        self, store: InMemoryBucketStore, clock: FrozenClock
    ) -> None:
        rules = Rules.model_validate(
            {
                "telemetry": {"idle_timeout_seconds": 5, "flush_interval_seconds": 10},
                "lesson_timer": {"save_interval_seconds": 7},
            }
        )
        ticker = create_ticker(
            rules,
            store,
            StaticIdentity("u1"),
            "c1",
            "L1",
            progress=InMemoryProgressStore(),
            clock=clock,
        )

        assert ticker.session.config.idle_timeout_seconds == 5
        assert ticker.session.config.flush_interval_seconds == 10
        assert ticker.timer is not None
        assert ticker.session.lesson_id == "L1"

        # Timer follows the session's classifier
        for _ in range(8):
            clock.advance(1)
            ticker.session.tick()
            ticker.timer.tick()
        assert ticker.timer.seconds == 5

    def test_no_timer_without_lesson_or_progress(self, store: InMemoryBucketStore) -> None:
        rules = Rules()
        assert create_ticker(rules, store, StaticIdentity("u1"), "c1").timer is None
        assert create_ticker(rules, store, StaticIdentity("u1"), "c1", "L1").timer is None

    def test_default_clock_uses_rules_timezone(self, store: InMemoryBucketStore) -> None:
        rules = Rules.model_validate({"telemetry": {"timezone": "Asia/Tokyo"}})
        ticker = create_ticker(rules, store, StaticIdentity("u1"), "c1", "L1")
        key = ticker.session.current_key()
        assert key is not None
        assert key.day_key == day_key(datetime.now(ZoneInfo("Asia/Tokyo")))
