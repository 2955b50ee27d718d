"""
Lesson timer component port definitions.
"""

from __future__ import annotations

from typing import Protocol


class ProgressStorePort(Protocol):
    """Per-lesson progress record holding cumulative engagement time."""

    def get_engagement_time(self, user_id: str, course_id: str, lesson_id: str) -> int | None:
        """Stored engagement seconds, or None if no record exists."""
        ...

    def set_engagement_time(
        self, user_id: str, course_id: str, lesson_id: str, seconds: int
    ) -> None:
        """Overwrite stored engagement seconds."""
        ...
