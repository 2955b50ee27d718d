"""
In-memory progress store (ProgressStorePort implementation) for testing/dev.
"""

from __future__ import annotations


class InMemoryProgressStore:
    def __init__(self) -> None:
        self._times: dict[tuple[str, str, str], int] = {}
        self.fail_next = 0

    def get_engagement_time(self, user_id: str, course_id: str, lesson_id: str) -> int | None:
        return self._times.get((user_id, course_id, lesson_id))

    def set_engagement_time(
        self, user_id: str, course_id: str, lesson_id: str, seconds: int
    ) -> None:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise ConnectionError("In-memory progress store unavailable (injected)")
        self._times[(user_id, course_id, lesson_id)] = seconds
