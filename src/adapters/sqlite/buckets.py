"""
SQLite Bucket Store (BucketStorePort implementation).

Each merge is a single UPSERT per table where every counter column is
written as ``col = col + excluded.col``, so concurrent writers compose
additively inside the database rather than by read-modify-write.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from src.adapters.bucket_store import BucketStoreError, StoreUnavailableError, parse_merge
from src.components.telemetry import BucketKey, MergeValue

# Document field -> column
BUCKET_COLUMNS: dict[str, str] = {
    "activeTime": "active_time",
    "idleTime": "idle_time",
    "questionsAnswered": "questions_answered",
    "questionsCorrect": "questions_correct",
    "chatMessages": "chat_messages",
    "reflectionsSubmitted": "reflections_submitted",
    "lessonsCompleted": "lessons_completed",
    "lessonsOpened": "lessons_opened",
    "sessions": "sessions",
}

TIMESTAMP_COLUMNS: dict[str, str] = {
    "firstActivity": "first_activity",
    "lastActivity": "last_activity",
}

LESSON_COLUMNS: dict[str, str] = {
    "activeTime": "active_time",
    "questionsAnswered": "questions_answered",
    "questionsCorrect": "questions_correct",
    "chatMessages": "chat_messages",
    "blocksInteracted": "blocks_interacted",
}

_KEY_COLUMNS = ("user_id", "course_id", "day_key")


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def parse_dt(s: str | None) -> datetime | None:
    """Parse ISO datetime string."""
    return datetime.fromisoformat(s) if s else None


class SQLiteBucketStore:
    """SQLite implementation of BucketStorePort."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn

        conn = sqlite3.connect(self.db_path, timeout=10.0)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _should_close(self) -> bool:
        """Whether to close connection after use."""
        return self._external_conn is None

    # --- Writes ---

    def merge(self, key: BucketKey, fields: Mapping[str, MergeValue]) -> None:
        """
        Create-or-update the bucket with the given fields.

        Raises:
            ValueError: invalid payload (nothing written)
            BucketStoreError: database failure
        """
        parsed = parse_merge(fields)
        key_values = (key.user_id, key.course_id, key.day_key)

        bucket_values = [parsed.increments.get(f, 0) for f in BUCKET_COLUMNS]
        ts_values: list[str | None] = []
        ts_updates: list[str] = []
        for name, col in TIMESTAMP_COLUMNS.items():
            if name in parsed.sets:
                ts_values.append(parsed.sets[name].isoformat())
                ts_updates.append(f"{col} = excluded.{col}")
            elif name in parsed.set_once:
                ts_values.append(parsed.set_once[name].isoformat())
                ts_updates.append(f"{col} = COALESCE({col}, excluded.{col})")
            else:
                ts_values.append(None)

        columns = [*_KEY_COLUMNS, *BUCKET_COLUMNS.values(), *TIMESTAMP_COLUMNS.values()]
        updates = [f"{col} = {col} + excluded.{col}" for col in BUCKET_COLUMNS.values()]
        updates.extend(ts_updates)
        bucket_sql = (
            f"INSERT INTO engagement_buckets ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT (user_id, course_id, day_key) DO UPDATE SET {', '.join(updates)}"
        )

        lesson_columns = [*_KEY_COLUMNS, "lesson_id", *LESSON_COLUMNS.values()]
        lesson_updates = [f"{col} = {col} + excluded.{col}" for col in LESSON_COLUMNS.values()]
        lesson_sql = (
            f"INSERT INTO engagement_lesson_buckets ({', '.join(lesson_columns)}) "
            f"VALUES ({', '.join('?' for _ in lesson_columns)}) "
            "ON CONFLICT (user_id, course_id, day_key, lesson_id) "
            f"DO UPDATE SET {', '.join(lesson_updates)}"
        )

        conn = self._get_conn()
        try:
            conn.execute(bucket_sql, (*key_values, *bucket_values, *ts_values))
            for lesson_id, counters in parsed.lesson_increments.items():
                values = [counters.get(f, 0) for f in LESSON_COLUMNS]
                conn.execute(lesson_sql, (*key_values, lesson_id, *values))
            if self._should_close():
                conn.commit()
        except sqlite3.OperationalError as e:
            if self._should_close():
                conn.rollback()
            raise StoreUnavailableError(f"Bucket write to {key.path} failed: {e}") from e
        except sqlite3.Error as e:
            if self._should_close():
                conn.rollback()
            raise BucketStoreError(f"Bucket write to {key.path} failed: {e}") from e
        finally:
            if self._should_close():
                conn.close()

    # --- Reads ---

    def get(self, key: BucketKey) -> dict[str, Any] | None:
        """Reassemble the bucket document, or None if it does not exist."""
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM engagement_buckets "
                "WHERE user_id = ? AND course_id = ? AND day_key = ?",
                (key.user_id, key.course_id, key.day_key),
            ).fetchone()
            if row is None:
                return None
            lesson_rows = conn.execute(
                "SELECT * FROM engagement_lesson_buckets "
                "WHERE user_id = ? AND course_id = ? AND day_key = ? ORDER BY lesson_id",
                (key.user_id, key.course_id, key.day_key),
            ).fetchall()
        except sqlite3.Error as e:
            raise BucketStoreError(f"Bucket read of {key.path} failed: {e}") from e
        finally:
            if self._should_close():
                conn.close()

        row = _as_dict(row)
        doc: dict[str, Any] = {name: row[col] for name, col in BUCKET_COLUMNS.items()}
        for name, col in TIMESTAMP_COLUMNS.items():
            ts = parse_dt(row[col])
            if ts is not None:
                doc[name] = ts
        if lesson_rows:
            doc["lessons"] = {
                r["lesson_id"]: {name: r[col] for name, col in LESSON_COLUMNS.items()}
                for r in map(_as_dict, lesson_rows)
            }
        return doc

    def list_days(self, user_id: str, course_id: str) -> list[str]:
        """Day keys with a bucket for this user and course, oldest first."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT day_key FROM engagement_buckets "
                "WHERE user_id = ? AND course_id = ? ORDER BY day_key",
                (user_id, course_id),
            ).fetchall()
        except sqlite3.Error as e:
            raise BucketStoreError(f"Bucket listing failed: {e}") from e
        finally:
            if self._should_close():
                conn.close()
        return [_as_dict(r)["day_key"] for r in rows]


def _as_dict(row: Any) -> dict[str, Any]:
    # External connections may not use dict_factory
    if isinstance(row, dict):
        return row
    if isinstance(row, sqlite3.Row):
        return dict(row)
    raise TypeError("Connection must use dict_factory or sqlite3.Row")
