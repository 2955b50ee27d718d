"""
Telemetry component port definitions.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Protocol

from .models import BucketKey, EventKind, MergeValue


class BucketStorePort(Protocol):
    """Remote store for engagement buckets."""

    def merge(self, key: BucketKey, fields: Mapping[str, MergeValue]) -> None:
        """
        Create-or-update only the given fields of the bucket document.

        Increment values are applied atomically store-side. Nested lesson
        fields are addressed as ``lessons.<lessonId>.<field>``.
        Raises on failure.
        """
        ...


class IdentityPort(Protocol):
    """Identity provider supplying the stable user id."""

    def current_user_id(self) -> str | None:
        """Return the signed-in user's id, or None while unresolved."""
        ...


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...

    def now_local(self) -> datetime:
        """Get current time in the calendar timezone used for day keys."""
        ...


class EventReporterPort(Protocol):
    """Reporting surface handed to calling UI code."""

    def report_event(
        self,
        kind: EventKind | str,
        metadata: Mapping[str, object] | None = None,
    ) -> None:
        """Record an engagement event. Never raises, never blocks."""
        ...
