"""
Bucket Store Adapters - merge payload validation and in-memory store.

Implements BucketStorePort for development and testing, plus the payload
parsing and JSON wire format shared by the SQLite and HTTP stores.

Key behaviors:
- Increment values add to the stored field (missing fields start at 0)
- Plain datetimes overwrite, SetOnce values only fill absent fields
- Lesson fields are addressed as lessons.<lessonId>.<field>
- Unknown fields and negative increments are rejected before any write
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.components.telemetry import (
    BUCKET_COUNTER_FIELDS,
    BUCKET_TIMESTAMP_FIELDS,
    LESSON_COUNTER_FIELDS,
    BucketKey,
    Increment,
    MergeValue,
    SetOnce,
)

# --- Errors ---


class BucketStoreError(Exception):
    """A bucket store write or read failed."""


class StoreUnavailableError(BucketStoreError):
    """The store could not be reached."""


# --- Payload Parsing ---


@dataclass
class ParsedMerge:
    """Merge payload split by write semantics."""

    increments: dict[str, int] = field(default_factory=dict)
    lesson_increments: dict[str, dict[str, int]] = field(default_factory=dict)
    sets: dict[str, datetime] = field(default_factory=dict)
    set_once: dict[str, datetime] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.increments or self.lesson_increments or self.sets or self.set_once)


def parse_merge(fields: Mapping[str, MergeValue]) -> ParsedMerge:
    """
    Validate and split a merge payload.

    Raises:
        ValueError: unknown field, wrong value type, or negative increment
    """
    parsed = ParsedMerge()

    for name, value in fields.items():
        parts = name.split(".")

        if len(parts) == 3 and parts[0] == "lessons":
            lesson_id, lesson_field = parts[1], parts[2]
            if not lesson_id or lesson_field not in LESSON_COUNTER_FIELDS:
                raise ValueError(f"Unknown lesson field: {name}")
            amount = _increment_amount(name, value)
            lesson = parsed.lesson_increments.setdefault(lesson_id, {})
            lesson[lesson_field] = lesson.get(lesson_field, 0) + amount
            continue

        if len(parts) != 1:
            raise ValueError(f"Unknown field: {name}")

        if name in BUCKET_COUNTER_FIELDS:
            parsed.increments[name] = _increment_amount(name, value)
        elif name in BUCKET_TIMESTAMP_FIELDS:
            if isinstance(value, SetOnce):
                parsed.set_once[name] = value.value
            elif isinstance(value, datetime):
                parsed.sets[name] = value
            else:
                raise ValueError(f"Field {name} takes a timestamp, got {value!r}")
        else:
            raise ValueError(f"Unknown field: {name}")

    return parsed


def _increment_amount(name: str, value: MergeValue) -> int:
    if not isinstance(value, Increment):
        raise ValueError(f"Counter {name} must be written as an increment, got {value!r}")
    if value.amount < 0:
        raise ValueError(f"Counter {name} cannot be decremented")
    return value.amount


# --- Wire Format ---


def encode_merge(fields: Mapping[str, MergeValue]) -> dict[str, dict[str, Any]]:
    """Encode a merge payload as JSON-safe dicts."""
    body: dict[str, dict[str, Any]] = {"increments": {}, "set": {}, "set_once": {}}
    for name, value in fields.items():
        if isinstance(value, Increment):
            body["increments"][name] = value.amount
        elif isinstance(value, SetOnce):
            body["set_once"][name] = value.value.isoformat()
        elif isinstance(value, datetime):
            body["set"][name] = value.isoformat()
        else:
            raise ValueError(f"Unsupported merge value for {name}: {value!r}")
    return body


def decode_merge(
    increments: Mapping[str, int],
    sets: Mapping[str, datetime | str],
    set_once: Mapping[str, datetime | str],
) -> dict[str, MergeValue]:
    """Inverse of encode_merge."""
    fields: dict[str, MergeValue] = {}
    for name, amount in increments.items():
        fields[name] = Increment(int(amount))
    for name, ts in sets.items():
        fields[name] = _as_datetime(ts)
    for name, ts in set_once.items():
        fields[name] = SetOnce(_as_datetime(ts))
    return fields


def _as_datetime(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# --- In-Memory Store ---


class InMemoryBucketStore:
    """
    In-memory bucket store for testing/dev.

    Applies increments additively under a lock, so any interleaving of
    writers yields the same totals.
    """

    def __init__(self) -> None:
        self._docs: dict[BucketKey, dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.writes: list[tuple[BucketKey, dict[str, MergeValue]]] = []
        self.fail_next = 0

    def merge(self, key: BucketKey, fields: Mapping[str, MergeValue]) -> None:
        parsed = parse_merge(fields)

        with self._lock:
            if self.fail_next > 0:
                self.fail_next -= 1
                raise StoreUnavailableError("In-memory store unavailable (injected)")

            self.writes.append((key, dict(fields)))
            doc = self._docs.setdefault(key, {})
            apply_merge(doc, parsed)

    def get(self, key: BucketKey) -> dict[str, Any] | None:
        with self._lock:
            doc = self._docs.get(key)
            return copy.deepcopy(doc) if doc is not None else None

    def keys(self) -> list[BucketKey]:
        with self._lock:
            return sorted(self._docs, key=lambda k: (k.user_id, k.course_id, k.day_key))

    def list_days(self, user_id: str, course_id: str) -> list[str]:
        return [
            k.day_key for k in self.keys() if k.user_id == user_id and k.course_id == course_id
        ]


def apply_merge(doc: dict[str, Any], parsed: ParsedMerge) -> None:
    """Apply a parsed merge to a nested bucket document in place."""
    for name, amount in parsed.increments.items():
        doc[name] = doc.get(name, 0) + amount

    if parsed.lesson_increments:
        lessons = doc.setdefault("lessons", {})
        for lesson_id, counters in parsed.lesson_increments.items():
            lesson = lessons.setdefault(lesson_id, {})
            for name, amount in counters.items():
                lesson[name] = lesson.get(name, 0) + amount

    for name, ts in parsed.sets.items():
        doc[name] = ts

    for name, ts in parsed.set_once.items():
        doc.setdefault(name, ts)
