"""
SQLite Progress Store (ProgressStorePort implementation).

Holds the cumulative per-lesson engagement time. Unlike telemetry buckets
this is an absolute value written by overwrite.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime

from src.adapters.bucket_store import BucketStoreError
from src.adapters.sqlite.buckets import dict_factory


class SQLiteProgressStore:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0)
        conn.row_factory = dict_factory
        return conn

    def get_engagement_time(self, user_id: str, course_id: str, lesson_id: str) -> int | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT engagement_time FROM lesson_progress "
                "WHERE user_id = ? AND course_id = ? AND lesson_id = ?",
                (user_id, course_id, lesson_id),
            ).fetchone()
        except sqlite3.Error as e:
            raise BucketStoreError(f"Progress read failed: {e}") from e
        finally:
            conn.close()
        return row["engagement_time"] if row else None

    def set_engagement_time(
        self, user_id: str, course_id: str, lesson_id: str, seconds: int
    ) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO lesson_progress "
                "(user_id, course_id, lesson_id, engagement_time, updated_at) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT (user_id, course_id, lesson_id) DO UPDATE SET "
                "engagement_time = excluded.engagement_time, updated_at = excluded.updated_at",
                (user_id, course_id, lesson_id, seconds, datetime.now(UTC).isoformat()),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise BucketStoreError(f"Progress write failed: {e}") from e
        finally:
            conn.close()
