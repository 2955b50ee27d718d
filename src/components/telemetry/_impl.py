"""
TelemetrySession - Owned accumulator, activity tracking and flush path.

One session per mounted lesson view. It is the single writer of its
DeltaAccumulator; calling code reaches it only through report_event and the
signal entry points below.

Flush algorithm:
1. Resolve the bucket key; skip if identity is not ready (deltas kept)
2. Skip if nothing accumulated
3. Build a sparse payload (+ lastActivity, + lessons.<id>.* when in a lesson)
4. Reset deltas before the write is confirmed
5. Merge-write with atomic increments; failures are logged, not retried

Steps 1-4 run under the session lock; the store write never does, so
reporting and ticking stay non-blocking while a write is pending.

Overlapping triggers coalesce: while a write is in flight, further flush
requests return ``in_flight`` and their deltas wait for the next trigger.
Teardown and unload cannot wait, so they run once more as soon as the
in-flight write finishes.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace

from src.components.activity import (
    DEFAULT_IDLE_TIMEOUT_SECONDS,
    DEFAULT_INTERACTION_EVENTS,
    ActivityClassifier,
)
from src.rules.models import TelemetryRules

from .component import (
    apply_event,
    apply_tick,
    build_merge_payload,
    lesson_opened_payload,
    parse_event_kind,
    resolve_bucket_key,
    session_payload,
    validate_lesson_id,
)
from .models import (
    BucketKey,
    DeltaAccumulator,
    EventKind,
    EventMetadata,
    FlushOutput,
    FlushTrigger,
    LessonDelta,
    MergePayload,
)
from .ports import BucketStorePort, EventReporterPort, IdentityPort, TimePort

logger = logging.getLogger(__name__)


# --- Configuration ---


@dataclass(frozen=True)
class TelemetryConfig:
    """Telemetry timing configuration."""

    tick_seconds: float = 1.0
    idle_timeout_seconds: float = DEFAULT_IDLE_TIMEOUT_SECONDS
    flush_interval_seconds: float = 30.0
    session_gap_seconds: float = 1800.0
    interaction_events: frozenset[str] = DEFAULT_INTERACTION_EVENTS


DEFAULT_CONFIG = TelemetryConfig()


def build_config(rules: TelemetryRules | None) -> TelemetryConfig:
    """Build telemetry config from rules."""
    if rules is None:
        return DEFAULT_CONFIG

    return TelemetryConfig(
        tick_seconds=rules.tick_seconds,
        idle_timeout_seconds=rules.idle_timeout_seconds,
        flush_interval_seconds=rules.flush_interval_seconds,
        session_gap_seconds=rules.session_gap_seconds,
        interaction_events=frozenset(rules.interaction_events),
    )


# --- Session ---

# Flushes that must not be dropped behind an in-flight write
_FOLLOW_UP_TRIGGERS: frozenset[str] = frozenset({"teardown", "unload"})


@dataclass(frozen=True)
class _PendingFlush:
    trigger: FlushTrigger
    key: BucketKey
    payload: MergePayload


_QuietWrite = tuple[BucketKey, MergePayload, str]


class TelemetrySession:
    """
    Engagement telemetry for one mounted lesson context.

    Entry points are safe to call from a host thread and a ticker thread;
    a re-entrant lock serializes all mutation. Store writes happen after the
    lock is released.
    """

    def __init__(
        self,
        store: BucketStorePort,
        identity: IdentityPort,
        clock: TimePort,
        course_id: str | None,
        lesson_id: str | None = None,
        config: TelemetryConfig | None = None,
    ) -> None:
        if lesson_id is not None:
            validate_lesson_id(lesson_id)

        self._store = store
        self._identity = identity
        self._clock = clock
        self._config = config or DEFAULT_CONFIG
        self._course_id = course_id
        self._lesson_id = lesson_id

        self._lock = threading.RLock()
        self._delta = DeltaAccumulator()
        self._activity = ActivityClassifier(
            clock.now_utc(),
            idle_timeout_seconds=self._config.idle_timeout_seconds,
            interaction_events=self._config.interaction_events,
        )
        self._lesson_opened = False
        self._session_tracked = False
        self._flushing = False
        self._follow_up: FlushTrigger | None = None
        self._mounted = False

    # --- Properties ---

    @property
    def config(self) -> TelemetryConfig:
        return self._config

    @property
    def course_id(self) -> str | None:
        return self._course_id

    @property
    def lesson_id(self) -> str | None:
        return self._lesson_id

    @property
    def active(self) -> bool:
        return self._activity.active

    @property
    def activity(self) -> ActivityClassifier:
        """Classifier shared with a LessonEngagementTimer on the same page."""
        return self._activity

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def interaction_events(self) -> frozenset[str]:
        return self._activity.interaction_events

    def snapshot(self) -> DeltaAccumulator:
        """Copy of the unflushed deltas (the live accumulator stays private)."""
        with self._lock:
            lesson = replace(
                self._delta.lesson,
                blocks_interacted=set(self._delta.lesson.blocks_interacted),
            )
            return replace(self._delta, lesson=lesson)

    def current_key(self) -> BucketKey | None:
        return resolve_bucket_key(
            self._identity.current_user_id(),
            self._course_id,
            self._clock.now_local(),
        )

    # --- Lifecycle ---

    def mount(self) -> None:
        with self._lock:
            if not self._mounted:
                # Every mount counts its own open and session
                self._lesson_opened = False
                self._session_tracked = False
            self._mounted = True
            writes = self._track_open()
        self._write_quiet(writes)

    def teardown(self) -> FlushOutput:
        """Component teardown: best-effort final flush."""
        with self._lock:
            self._mounted = False
        return self.flush("teardown")

    def page_unload(self) -> FlushOutput:
        return self.flush("unload")

    def identity_changed(self) -> None:
        """Call when the identity provider resolves or changes the user."""
        with self._lock:
            writes = self._track_open()
        self._write_quiet(writes)

    def set_context(self, course_id: str | None, lesson_id: str | None) -> None:
        """
        Move to a new course/lesson context.

        Deltas accumulated so far are flushed under the old context first so
        they are not attributed to the new lesson.
        """
        if lesson_id is not None:
            validate_lesson_id(lesson_id)
        with self._lock:
            if course_id == self._course_id and lesson_id == self._lesson_id:
                return
            pending: _PendingFlush | FlushOutput | None = None
            if self._course_id is not None:
                pending = self._begin_flush("context_change")
            # Lesson deltas never carry over to another lesson
            self._delta.lesson = LessonDelta()
            self._course_id = course_id
            self._lesson_id = lesson_id
            writes = self._track_open()

        if isinstance(pending, _PendingFlush):
            self._finish_flush(pending)
        self._write_quiet(writes)

    # --- Activity signals ---

    def interaction(self, event_type: str) -> bool:
        """Interaction pulse from the UI runtime."""
        with self._lock:
            return self._activity.pulse(event_type, self._clock.now_utc())

    def tick(self) -> bool:
        """One-second tick: classify and accumulate. Returns whether active."""
        with self._lock:
            active = self._activity.tick(self._clock.now_utc())
            apply_tick(self._delta, active, self._lesson_id)
            return active

    def visibility_changed(self, hidden: bool) -> FlushOutput | None:
        """Hidden pages go idle and flush immediately."""
        with self._lock:
            if not hidden:
                self._activity.page_visible(self._clock.now_utc())
                return None
            self._activity.page_hidden()
        return self.flush("hidden")

    # --- Reporting ---

    def report_event(
        self,
        kind: EventKind | str,
        metadata: Mapping[str, object] | EventMetadata | None = None,
    ) -> None:
        """
        Record an engagement event.

        Synchronous, never touches the store. Ignored while user or course
        identity is missing, and for unknown kinds.
        """
        parsed = parse_event_kind(kind)
        if parsed is None:
            logger.debug("Ignoring unknown telemetry event kind %r", kind)
            return

        if isinstance(metadata, EventMetadata):
            meta = metadata
        else:
            meta = EventMetadata.from_mapping(metadata)

        with self._lock:
            if not self._identity.current_user_id() or not self._course_id:
                return
            apply_event(self._delta, parsed, meta, self._lesson_id)

    def reporter(self) -> TelemetryReporter:
        return TelemetryReporter(self)

    # --- Flush ---

    def flush(self, trigger: FlushTrigger = "manual") -> FlushOutput:
        """Drain the accumulator into one merge write."""
        with self._lock:
            pending = self._begin_flush(trigger)
        if isinstance(pending, FlushOutput):
            return pending
        return self._finish_flush(pending)

    def _begin_flush(self, trigger: FlushTrigger) -> _PendingFlush | FlushOutput:
        """Steps 1-4 of a flush. Caller holds the lock."""
        if self._flushing:
            if trigger in _FOLLOW_UP_TRIGGERS:
                self._follow_up = trigger
            logger.debug("Telemetry flush (%s) coalesced into in-flight write", trigger)
            return FlushOutput(status="in_flight", trigger=trigger)

        key = self.current_key()
        if key is None:
            return FlushOutput(status="no_key", trigger=trigger)

        if self._delta.is_empty():
            return FlushOutput(status="empty", trigger=trigger, key=key)

        payload = build_merge_payload(self._delta, self._lesson_id, self._clock.now_utc())
        # Optimistic reset: a failed write loses this window
        self._delta.reset()
        self._flushing = True
        return _PendingFlush(trigger=trigger, key=key, payload=payload)

    def _finish_flush(self, pending: _PendingFlush) -> FlushOutput:
        """The store write. Called without the lock."""
        trigger, key, payload = pending.trigger, pending.key, pending.payload
        try:
            self._store.merge(key, payload)
        except Exception as e:
            logger.warning("Telemetry flush (%s) to %s failed: %s", trigger, key.path, e)
            output = FlushOutput(
                status="failed", trigger=trigger, key=key, payload=payload, error=str(e)
            )
        else:
            logger.debug(
                "Telemetry flush (%s) wrote %d fields to %s", trigger, len(payload), key.path
            )
            output = FlushOutput(status="written", trigger=trigger, key=key, payload=payload)
        finally:
            with self._lock:
                self._flushing = False
                follow_up, self._follow_up = self._follow_up, None

        if follow_up is not None:
            logger.debug("Running %s flush deferred behind in-flight write", follow_up)
            self.flush(follow_up)
        return output

    # --- Open/session bookkeeping ---

    def _track_open(self) -> list[_QuietWrite]:
        """
        Count the lesson open and the session, once per mount.

        Needs user, course and lesson; retried on later context or identity
        changes until it fires. Caller holds the lock and performs the
        returned writes after releasing it.
        """
        if not self._mounted or not self._lesson_id:
            return []
        key = self.current_key()
        if key is None:
            return []

        writes: list[_QuietWrite] = []
        if not self._lesson_opened:
            self._lesson_opened = True
            writes.append((key, lesson_opened_payload(self._clock.now_utc()), "lesson open"))

        if not self._session_tracked:
            self._session_tracked = True
            writes.append((key, session_payload(), "session"))
        return writes

    def _write_quiet(self, writes: list[_QuietWrite]) -> None:
        for key, payload, what in writes:
            try:
                self._store.merge(key, payload)
            except Exception as e:
                logger.warning("Telemetry %s write to %s failed: %s", what, key.path, e)


# --- Reporting Surface ---


class TelemetryReporter:
    """Exposes only report_event; handed to UI code in place of the session."""

    def __init__(self, session: TelemetrySession) -> None:
        self._session = session

    def report_event(
        self,
        kind: EventKind | str,
        metadata: Mapping[str, object] | None = None,
    ) -> None:
        self._session.report_event(kind, metadata)


class NullReporter:
    """Reporter used when no telemetry session is mounted."""

    def report_event(
        self,
        kind: EventKind | str,
        metadata: Mapping[str, object] | None = None,
    ) -> None:
        return None


NULL_REPORTER: EventReporterPort = NullReporter()


def create_session(
    store: BucketStorePort,
    identity: IdentityPort,
    clock: TimePort,
    course_id: str | None,
    lesson_id: str | None = None,
    rules: TelemetryRules | None = None,
    interaction_events: Iterable[str] | None = None,
) -> TelemetrySession:
    """Factory: build a session from rules (or defaults)."""
    config = build_config(rules)
    if interaction_events is not None:
        config = replace(config, interaction_events=frozenset(interaction_events))
    return TelemetrySession(store, identity, clock, course_id, lesson_id, config)
