"""
Lesson timer component - Cumulative per-lesson engagement time.

Counts active seconds spent in one lesson, resuming from the stored total,
and saves the running total when it has grown.

Invariants:
- Only active seconds count; idle seconds are dropped
- The stored value is only ever overwritten by a larger total
"""

from __future__ import annotations

import logging
import math
import statistics
import threading
from collections.abc import Iterable
from datetime import datetime

from src.components.activity import DEFAULT_IDLE_TIMEOUT_SECONDS, ActivityClassifier
from src.components.telemetry.ports import IdentityPort, TimePort

from .models import EngagementStats, SaveOutput
from .ports import ProgressStorePort

logger = logging.getLogger(__name__)


# --- Pure Functions ---


def format_engagement_time(total_seconds: float | None) -> str:
    """Format seconds as "Ns" or "Mm Ss"."""
    if not total_seconds or total_seconds < 1:
        return "0s"
    total = int(total_seconds)
    minutes, seconds = divmod(total, 60)
    if minutes == 0:
        return f"{seconds}s"
    return f"{minutes}m {seconds}s"


def lesson_engagement_stats(times: Iterable[float]) -> EngagementStats:
    """
    Summarize one lesson's engagement across students.

    Students with no recorded time are excluded.
    """
    positive = [t for t in times if t > 0]
    if not positive:
        return EngagementStats(count=0, median=0, mean=0)
    mean = math.floor(sum(positive) / len(positive) + 0.5)
    return EngagementStats(count=len(positive), median=statistics.median(positive), mean=mean)


# --- Timer ---


class LessonEngagementTimer:
    """
    Active-time counter for one user in one lesson.

    Pass the telemetry session's classifier as ``activity`` to share one
    active/idle state; otherwise the timer keeps its own.
    """

    def __init__(
        self,
        store: ProgressStorePort,
        identity: IdentityPort,
        clock: TimePort,
        course_id: str,
        lesson_id: str,
        activity: ActivityClassifier | None = None,
        idle_timeout_seconds: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
    ) -> None:
        self._store = store
        self._identity = identity
        self._clock = clock
        self._course_id = course_id
        self._lesson_id = lesson_id
        self._owns_activity = activity is None
        self._activity = activity or ActivityClassifier(
            clock.now_utc(), idle_timeout_seconds=idle_timeout_seconds
        )
        self._lock = threading.Lock()
        # Saves are serialized so a smaller total never lands after a larger one
        self._save_lock = threading.Lock()
        self._seconds = 0
        self._saved = 0

    @property
    def seconds(self) -> int:
        return self._seconds

    @property
    def active(self) -> bool:
        return self._activity.active

    def load(self) -> int:
        """Resume from the stored total. Failures leave the timer at its current value."""
        user_id = self._identity.current_user_id()
        if not user_id:
            return self._seconds
        try:
            existing = self._store.get_engagement_time(user_id, self._course_id, self._lesson_id)
        except Exception as e:
            logger.warning("Could not load engagement time for %s: %s", self._lesson_id, e)
            return self._seconds
        with self._lock:
            if existing:
                self._seconds = max(self._seconds, existing)
                self._saved = max(self._saved, existing)
            return self._seconds

    def interaction(self, event_type: str) -> None:
        if self._owns_activity:
            self._activity.pulse(event_type, self._clock.now_utc())

    def tick(self, now: datetime | None = None) -> bool:
        """Count one second if active."""
        if self._owns_activity:
            active = self._activity.tick(now or self._clock.now_utc())
        else:
            active = self._activity.active
        if active:
            with self._lock:
                self._seconds += 1
        return active

    def visibility_changed(self, hidden: bool) -> SaveOutput | None:
        if hidden:
            if self._owns_activity:
                self._activity.page_hidden()
            return self.save()
        if self._owns_activity:
            self._activity.page_visible(self._clock.now_utc())
        return None

    def save(self) -> SaveOutput:
        """Overwrite the stored total if it has grown since the last save."""
        with self._save_lock:
            return self._save()

    def _save(self) -> SaveOutput:
        user_id = self._identity.current_user_id()
        with self._lock:
            total, saved = self._seconds, self._saved
        if not user_id or total <= saved:
            return SaveOutput(saved=False, seconds=total)
        try:
            self._store.set_engagement_time(user_id, self._course_id, self._lesson_id, total)
        except Exception as e:
            logger.warning("Failed to save engagement time for %s: %s", self._lesson_id, e)
            return SaveOutput(saved=False, seconds=total, error=str(e))
        with self._lock:
            self._saved = max(self._saved, total)
        return SaveOutput(saved=True, seconds=total)

    def teardown(self) -> SaveOutput:
        return self.save()
