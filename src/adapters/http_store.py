"""
HTTP Bucket Store (BucketStorePort implementation).

Client for the telemetry store service in ``src.api``. Payloads are sent in
the JSON wire format from ``src.adapters.bucket_store``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import requests

from src.adapters.bucket_store import (
    BucketStoreError,
    StoreUnavailableError,
    encode_merge,
)
from src.components.telemetry import BucketKey, MergeValue

logger = logging.getLogger(__name__)


class HttpBucketStore:
    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 5.0,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()

    def _url(self, *segments: str) -> str:
        # Ids are opaque; a "/" or "?" must not change the addressed bucket
        path = "/".join(quote(s, safe="") for s in segments)
        return f"{self._base_url}/api/telemetry/{path}"

    def _bucket_url(self, key: BucketKey) -> str:
        return self._url(key.user_id, key.course_id, key.day_key)

    def merge(self, key: BucketKey, fields: Mapping[str, MergeValue]) -> None:
        body = encode_merge(fields)
        try:
            response = self._session.post(self._bucket_url(key), json=body, timeout=self._timeout)
        except requests.RequestException as e:
            raise StoreUnavailableError(f"Telemetry store unreachable: {e}") from e

        if response.status_code >= 400:
            raise BucketStoreError(
                f"Telemetry store rejected merge for {key.path}: "
                f"{response.status_code} {response.text[:200]}"
            )

    def get(self, key: BucketKey) -> dict[str, Any] | None:
        try:
            response = self._session.get(self._bucket_url(key), timeout=self._timeout)
        except requests.RequestException as e:
            raise StoreUnavailableError(f"Telemetry store unreachable: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise BucketStoreError(
                f"Telemetry store read failed for {key.path}: {response.status_code}"
            )
        data: dict[str, Any] = response.json()
        return data

    def list_days(self, user_id: str, course_id: str) -> list[str]:
        url = self._url(user_id, course_id)
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            raise StoreUnavailableError(f"Telemetry store unreachable: {e}") from e

        if response.status_code >= 400:
            raise BucketStoreError(f"Telemetry store listing failed: {response.status_code}")
        days: list[str] = response.json()["days"]
        return days
