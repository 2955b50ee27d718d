"""
Lesson timer component models.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EngagementStats:
    """Per-lesson engagement summary across students (seconds)."""

    count: int
    median: float
    mean: int


@dataclass(frozen=True)
class SaveOutput:
    """Outcome of a save attempt."""

    saved: bool
    seconds: int
    error: str | None = None
