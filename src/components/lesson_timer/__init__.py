"""
Lesson timer component - Cumulative per-lesson engagement time.
"""

from .component import (
    LessonEngagementTimer,
    format_engagement_time,
    lesson_engagement_stats,
)
from .models import EngagementStats, SaveOutput
from .ports import ProgressStorePort

__all__ = [
    "LessonEngagementTimer",
    "format_engagement_time",
    "lesson_engagement_stats",
    "EngagementStats",
    "SaveOutput",
    "ProgressStorePort",
]
