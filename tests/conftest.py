from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from src.adapters.bucket_store import InMemoryBucketStore
from src.adapters.clock import FrozenClock
from src.adapters.identity import StaticIdentity
from src.components.telemetry import TelemetrySession

SESSION_START = datetime(2026, 3, 10, 9, 0, 0, tzinfo=UTC)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(SESSION_START)


@pytest.fixture
def store() -> InMemoryBucketStore:
    return InMemoryBucketStore()


@pytest.fixture
def identity() -> StaticIdentity:
    return StaticIdentity("student-1")


@pytest.fixture
def make_session(
    store: InMemoryBucketStore, identity: StaticIdentity, clock: FrozenClock
) -> Callable[..., TelemetrySession]:
    """Session factory bound to the shared fake store, identity and clock."""

    def _make(
        course_id: str | None = "course-1", lesson_id: str | None = "L1"
    ) -> TelemetrySession:
        return TelemetrySession(store, identity, clock, course_id, lesson_id)

    return _make


@pytest.fixture
def run_ticks(clock: FrozenClock) -> Callable[[TelemetrySession, int], None]:
    """Advance the clock one second per tick, as the ticker would."""

    def _run(session: TelemetrySession, count: int) -> None:
        for _ in range(count):
            clock.advance(1)
            session.tick()

    return _run
