import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol

from src.adapters.bucket_store import InMemoryBucketStore
from src.adapters.sqlite.buckets import SQLiteBucketStore
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.components.telemetry import BucketKey, BucketStorePort
from src.rules.loader import load_rules, resolve_rules_path
from src.rules.models import Rules


class QueryableBucketStore(BucketStorePort, Protocol):
    def get(self, key: BucketKey) -> dict[str, Any] | None: ...

    def list_days(self, user_id: str, course_id: str) -> list[str]: ...


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.rules_path = resolve_rules_path()


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules() -> Rules:
    settings = get_settings()
    if not settings.rules_path.exists():
        # Defaults are a complete configuration
        return Rules()
    return load_rules(settings.rules_path)


# --- Store ---
@lru_cache
def get_bucket_store() -> QueryableBucketStore:
    """
    Store backing the service.

    The service is the remote store, so it cannot itself use the http backend.
    """
    store_rules = get_rules().store
    if store_rules.backend == "memory":
        return InMemoryBucketStore()
    if store_rules.backend == "http":
        raise ValueError("The telemetry store service needs a memory or sqlite backend")
    SQLiteMigrator(store_rules.sqlite_path).run_migrations()
    return SQLiteBucketStore(store_rules.sqlite_path)
