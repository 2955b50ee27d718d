"""
Activity component models.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# --- Interaction allow-list ---

DEFAULT_INTERACTION_EVENTS: frozenset[str] = frozenset(
    {"mousemove", "keydown", "scroll", "touchstart", "click"}
)

DEFAULT_IDLE_TIMEOUT_SECONDS = 60.0


@dataclass
class ActivityState:
    """
    Binary active/idle state.

    Not persisted. Edge-triggered by interaction pulses and visibility
    changes, level-checked by the one-second tick.
    """

    active: bool
    last_activity_at: datetime
