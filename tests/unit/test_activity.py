"""
Activity classifier tests.

Verifies pulse handling, idle timeout on tick and visibility transitions.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from src.components.activity import (
    DEFAULT_INTERACTION_EVENTS,
    ActivityClassifier,
    is_idle,
)

T0 = datetime(2026, 3, 10, 9, 0, 0, tzinfo=UTC)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


@pytest.fixture
def classifier() -> ActivityClassifier:
    return ActivityClassifier(T0, idle_timeout_seconds=60)


class TestIsIdle:
    def test_exactly_timeout_is_not_idle(self) -> None:
        assert is_idle(T0, at(60), 60) is False

    def test_past_timeout_is_idle(self) -> None:
        assert is_idle(T0, at(60.5), 60) is True

    def test_recent_activity_is_not_idle(self) -> None:
        assert is_idle(T0, at(5), 60) is False


class TestPulse:
    def test_starts_active(self, classifier: ActivityClassifier) -> None:
        assert classifier.active is True
        assert classifier.state.last_activity_at == T0

    @pytest.mark.parametrize("event_type", sorted(DEFAULT_INTERACTION_EVENTS))
    def test_allow_listed_events_refresh_activity(
        self, classifier: ActivityClassifier, event_type: str
    ) -> None:
        assert classifier.pulse(event_type, at(30)) is True
        assert classifier.state.last_activity_at == at(30)

    def test_unknown_event_ignored(self, classifier: ActivityClassifier) -> None:
        assert classifier.pulse("resize", at(30)) is False
        assert classifier.state.last_activity_at == T0

    def test_pulse_reactivates_idle_user(self, classifier: ActivityClassifier) -> None:
        classifier.tick(at(61))
        assert classifier.active is False

        classifier.pulse("keydown", at(62))
        assert classifier.active is True

    def test_high_frequency_pulses_are_not_throttled(
        self, classifier: ActivityClassifier
    ) -> None:
        """Every pulse moves last_activity_at, however close together."""
        for ms in range(0, 100, 10):
            classifier.pulse("mousemove", at(ms / 1000))
            assert classifier.state.last_activity_at == at(ms / 1000)

    def test_custom_allow_list(self) -> None:
        classifier = ActivityClassifier(T0, interaction_events=["pointerdown"])
        assert classifier.pulse("pointerdown", at(1)) is True
        assert classifier.pulse("click", at(2)) is False


class TestTick:
    def test_active_within_timeout(self, classifier: ActivityClassifier) -> None:
        assert classifier.tick(at(60)) is True

    def test_idle_after_timeout(self, classifier: ActivityClassifier) -> None:
        assert classifier.tick(at(61)) is False
        assert classifier.active is False

    def test_stays_idle_until_pulse(self, classifier: ActivityClassifier) -> None:
        classifier.tick(at(61))
        assert classifier.tick(at(62)) is False


class TestVisibility:
    def test_hidden_forces_idle(self, classifier: ActivityClassifier) -> None:
        classifier.page_hidden()
        assert classifier.active is False
        # Still idle on the next tick even though the last pulse is recent
        assert classifier.tick(at(1)) is False

    def test_visible_resets_to_active(self, classifier: ActivityClassifier) -> None:
        classifier.page_hidden()
        classifier.page_visible(at(500))
        assert classifier.active is True
        assert classifier.state.last_activity_at == at(500)
        assert classifier.tick(at(501)) is True
