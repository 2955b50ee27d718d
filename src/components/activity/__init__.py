"""
Activity component - Active/idle classification from interaction signals.
"""

from .component import ActivityClassifier, is_idle
from .models import (
    DEFAULT_IDLE_TIMEOUT_SECONDS,
    DEFAULT_INTERACTION_EVENTS,
    ActivityState,
)

__all__ = [
    "ActivityClassifier",
    "is_idle",
    "ActivityState",
    "DEFAULT_IDLE_TIMEOUT_SECONDS",
    "DEFAULT_INTERACTION_EVENTS",
]
