"""
Telemetry store API request/response models.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.adapters.bucket_store import decode_merge
from src.components.telemetry import MergeValue


class MergeRequest(BaseModel):
    """Merge payload in wire format."""

    increments: dict[str, int] = Field(default_factory=dict)
    sets: dict[str, datetime] = Field(default_factory=dict, alias="set")
    set_once: dict[str, datetime] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def to_fields(self) -> dict[str, MergeValue]:
        return decode_merge(self.increments, self.sets, self.set_once)


class MergeResponse(BaseModel):
    ok: bool = True


class DaysResponse(BaseModel):
    user_id: str
    course_id: str
    days: list[str]


class ErrorResponse(BaseModel):
    ok: bool = False
    detail: str
