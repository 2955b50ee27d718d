"""
Activity component - Active/idle classification.

Turns raw interaction signals into a binary active/idle state.

Invariants:
- Every allow-listed interaction pulse marks the user active; no debounce
- A tick flips to idle once more than the idle timeout has elapsed since
  the last pulse
- Hidden pages are idle; becoming visible again counts as activity
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from .models import (
    DEFAULT_IDLE_TIMEOUT_SECONDS,
    DEFAULT_INTERACTION_EVENTS,
    ActivityState,
)


def is_idle(last_activity_at: datetime, now: datetime, idle_timeout_seconds: float) -> bool:
    """True when strictly more than the timeout has elapsed since the last pulse."""
    return (now - last_activity_at).total_seconds() > idle_timeout_seconds


class ActivityClassifier:
    """
    Maintains ActivityState from interaction pulses, ticks and visibility.

    All methods take the current time explicitly so the classifier stays
    deterministic; the caller owns the clock.
    """

    def __init__(
        self,
        now: datetime,
        idle_timeout_seconds: float = DEFAULT_IDLE_TIMEOUT_SECONDS,
        interaction_events: Iterable[str] | None = None,
    ) -> None:
        self._idle_timeout = idle_timeout_seconds
        self._events = (
            frozenset(interaction_events)
            if interaction_events is not None
            else DEFAULT_INTERACTION_EVENTS
        )
        self.state = ActivityState(active=True, last_activity_at=now)

    @property
    def active(self) -> bool:
        return self.state.active

    @property
    def interaction_events(self) -> frozenset[str]:
        return self._events

    def pulse(self, event_type: str, now: datetime) -> bool:
        """
        Record an interaction event.

        Returns False (and leaves state untouched) for event types outside
        the allow-list.
        """
        if event_type not in self._events:
            return False
        self.state.active = True
        self.state.last_activity_at = now
        return True

    def tick(self, now: datetime) -> bool:
        """Apply the idle check and return whether this second counts as active."""
        if is_idle(self.state.last_activity_at, now, self._idle_timeout):
            self.state.active = False
        return self.state.active

    def page_hidden(self) -> None:
        self.state.active = False

    def page_visible(self, now: datetime) -> None:
        self.state.active = True
        self.state.last_activity_at = now
