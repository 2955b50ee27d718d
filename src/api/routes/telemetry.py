"""
Telemetry Store API Routes.

Remote side of the bucket store contract: merge writes with atomic
increments, and bucket reads for dashboards and tooling.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from src.adapters.bucket_store import BucketStoreError
from src.api.deps import QueryableBucketStore, get_bucket_store
from src.api.schemas import DaysResponse, ErrorResponse, MergeRequest, MergeResponse
from src.components.telemetry import BucketKey

logger = logging.getLogger(__name__)

router = APIRouter()


def _bucket_key(user_id: str, course_id: str, day_key: str) -> BucketKey:
    try:
        parsed = date.fromisoformat(day_key)
    except ValueError:
        parsed = None
    if parsed is None or parsed.isoformat() != day_key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid day key: {day_key} (expected YYYY-MM-DD)",
        )
    return BucketKey(user_id=user_id, course_id=course_id, day_key=day_key)


def _unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable"
    )


@router.post(
    "/{user_id}/{course_id}/{day_key}",
    response_model=MergeResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
def merge_bucket(
    user_id: str,
    course_id: str,
    day_key: str,
    body: MergeRequest,
    store: QueryableBucketStore = Depends(get_bucket_store),
) -> MergeResponse:
    key = _bucket_key(user_id, course_id, day_key)
    try:
        store.merge(key, body.to_fields())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except BucketStoreError as e:
        logger.warning("Merge into %s failed: %s", key.path, e)
        raise _unavailable() from e
    return MergeResponse()


@router.get(
    "/{user_id}/{course_id}/{day_key}",
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
def get_bucket(
    user_id: str,
    course_id: str,
    day_key: str,
    store: QueryableBucketStore = Depends(get_bucket_store),
) -> dict[str, Any]:
    key = _bucket_key(user_id, course_id, day_key)
    try:
        doc = store.get(key)
    except BucketStoreError as e:
        logger.warning("Read of %s failed: %s", key.path, e)
        raise _unavailable() from e
    if doc is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bucket not found")
    return doc


@router.get(
    "/{user_id}/{course_id}",
    response_model=DaysResponse,
    responses={503: {"model": ErrorResponse}},
)
def list_bucket_days(
    user_id: str,
    course_id: str,
    store: QueryableBucketStore = Depends(get_bucket_store),
) -> DaysResponse:
    try:
        days = store.list_days(user_id, course_id)
    except BucketStoreError as e:
        logger.warning("Listing days for %s/%s failed: %s", user_id, course_id, e)
        raise _unavailable() from e
    return DaysResponse(user_id=user_id, course_id=course_id, days=days)
