"""
Store factories: build the configured bucket and progress stores from rules.
"""

from __future__ import annotations

import logging

from src.adapters.bucket_store import InMemoryBucketStore
from src.adapters.http_store import HttpBucketStore
from src.adapters.progress_store import InMemoryProgressStore
from src.adapters.sqlite.buckets import SQLiteBucketStore
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.progress import SQLiteProgressStore
from src.rules.models import StoreRules

logger = logging.getLogger(__name__)

BucketStore = InMemoryBucketStore | SQLiteBucketStore | HttpBucketStore
ProgressStore = InMemoryProgressStore | SQLiteProgressStore


def create_bucket_store(rules: StoreRules, migrate: bool = True) -> BucketStore:
    """Create the store selected by ``rules.backend``."""
    if rules.backend == "memory":
        return InMemoryBucketStore()

    if rules.backend == "sqlite":
        if migrate:
            SQLiteMigrator(rules.sqlite_path).run_migrations()
        logger.debug("Using SQLite bucket store at %s", rules.sqlite_path)
        return SQLiteBucketStore(rules.sqlite_path)

    if rules.backend == "http":
        return HttpBucketStore(rules.http_base_url, timeout_seconds=rules.http_timeout_seconds)

    raise ValueError(f"Unknown store backend: {rules.backend}")


def create_progress_store(rules: StoreRules, migrate: bool = True) -> ProgressStore | None:
    """
    Create the lesson progress store for ``rules.backend``.

    The telemetry service has no progress endpoint, so the http backend
    yields None and the lesson timer is disabled.
    """
    if rules.backend == "memory":
        return InMemoryProgressStore()

    if rules.backend == "sqlite":
        if migrate:
            SQLiteMigrator(rules.sqlite_path).run_migrations()
        return SQLiteProgressStore(rules.sqlite_path)

    logger.info("No progress store for the %s backend; lesson timer disabled", rules.backend)
    return None
