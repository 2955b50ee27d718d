"""
HttpBucketStore tests against a fake requests session.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest
import requests

from src.adapters.bucket_store import BucketStoreError, StoreUnavailableError
from src.adapters.http_store import HttpBucketStore
from src.components.telemetry import BucketKey, Increment, SetOnce

KEY = BucketKey("u1", "c1", "2026-03-10")
T1 = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


class FakeResponse:
    def __init__(self, status_code: int = 200, data: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self) -> Any:
        return self._data


class FakeSession:
    def __init__(self, response: FakeResponse | None = None, error: Exception | None = None):
        self.response = response or FakeResponse(data={"ok": True})
        self.error = error
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._call("POST", url, kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._call("GET", url, kwargs)

    def _call(self, method: str, url: str, kwargs: dict[str, Any]) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def make_store(session: FakeSession) -> HttpBucketStore:
    return HttpBucketStore("http://store.local/", timeout_seconds=2.5, session=session)


class TestMerge:
    def test_posts_wire_format(self) -> None:
        session = FakeSession()
        make_store(session).merge(
            KEY,
            {
                "activeTime": Increment(30),
                "lastActivity": T1,
                "firstActivity": SetOnce(T1),
            },
        )

        method, url, kwargs = session.calls[0]
        assert method == "POST"
        assert url == "http://store.local/api/telemetry/u1/c1/2026-03-10"
        assert kwargs["timeout"] == 2.5
        assert kwargs["json"] == {
            "increments": {"activeTime": 30},
            "set": {"lastActivity": T1.isoformat()},
            "set_once": {"firstActivity": T1.isoformat()},
        }

    def test_connection_error_is_unavailable(self) -> None:
        session = FakeSession(error=requests.ConnectionError("refused"))
        with pytest.raises(StoreUnavailableError):
            make_store(session).merge(KEY, {"sessions": Increment(1)})

    def test_rejection_is_store_error(self) -> None:
        session = FakeSession(FakeResponse(400, text="Unknown field: score"))
        with pytest.raises(BucketStoreError, match="400"):
            make_store(session).merge(KEY, {"sessions": Increment(1)})


class TestReads:
    def test_get_returns_document(self) -> None:
        session = FakeSession(FakeResponse(200, {"sessions": 2}))
        assert make_store(session).get(KEY) == {"sessions": 2}

    def test_get_missing_is_none(self) -> None:
        session = FakeSession(FakeResponse(404, {"detail": "Bucket not found"}))
        assert make_store(session).get(KEY) is None

    def test_get_server_error(self) -> None:
        session = FakeSession(FakeResponse(503, {"detail": "Store unavailable"}))
        with pytest.raises(BucketStoreError):
            make_store(session).get(KEY)

    def test_list_days(self) -> None:
        session = FakeSession(
            FakeResponse(200, {"user_id": "u1", "course_id": "c1", "days": ["2026-03-10"]})
        )
        assert make_store(session).list_days("u1", "c1") == ["2026-03-10"]
        assert session.calls[0][1] == "http://store.local/api/telemetry/u1/c1"

    def test_ids_are_escaped(self) -> None:
        session = FakeSession(FakeResponse(200, {"sessions": 1, "days": []}))
        store = make_store(session)

        store.get(BucketKey("a/b", "c?d=1", "2026-03-10"))
        store.list_days("a/b", "c#1")

        assert session.calls[0][1] == (
            "http://store.local/api/telemetry/a%2Fb/c%3Fd%3D1/2026-03-10"
        )
        assert session.calls[1][1] == "http://store.local/api/telemetry/a%2Fb/c%231"

    def test_timeout_is_unavailable(self) -> None:
        session = FakeSession(error=requests.Timeout("slow"))
        with pytest.raises(StoreUnavailableError):
            make_store(session).list_days("u1", "c1")
