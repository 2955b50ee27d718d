"""
Telemetry component models.

Covers the in-memory delta accumulator, the bucket key and the merge payload
value types understood by bucket stores.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

# --- Event Kinds ---


class EventKind(str, Enum):
    """Closed set of reportable engagement events."""

    QUESTION_ANSWERED = "question_answered"
    CHAT_MESSAGE = "chat_message"
    LESSON_COMPLETED = "lesson_completed"
    REFLECTION_SUBMITTED = "reflection_submitted"
    BLOCK_INTERACTION = "block_interaction"


@dataclass(frozen=True)
class EventMetadata:
    """Metadata attached to a reported event."""

    correct: bool = False
    block_id: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> EventMetadata:
        """Accept both ``blockId`` (UI payloads) and ``block_id`` keys."""
        if not data:
            return cls()
        block_id = data.get("blockId", data.get("block_id"))
        return cls(
            correct=bool(data.get("correct", False)),
            block_id=str(block_id) if block_id else None,
        )


# --- Bucket Document Field Names ---

ACTIVE_TIME = "activeTime"
IDLE_TIME = "idleTime"
QUESTIONS_ANSWERED = "questionsAnswered"
QUESTIONS_CORRECT = "questionsCorrect"
CHAT_MESSAGES = "chatMessages"
REFLECTIONS_SUBMITTED = "reflectionsSubmitted"
LESSONS_COMPLETED = "lessonsCompleted"
LESSONS_OPENED = "lessonsOpened"
SESSIONS = "sessions"
FIRST_ACTIVITY = "firstActivity"
LAST_ACTIVITY = "lastActivity"
BLOCKS_INTERACTED = "blocksInteracted"
LESSONS = "lessons"

BUCKET_COUNTER_FIELDS: tuple[str, ...] = (
    ACTIVE_TIME,
    IDLE_TIME,
    QUESTIONS_ANSWERED,
    QUESTIONS_CORRECT,
    CHAT_MESSAGES,
    REFLECTIONS_SUBMITTED,
    LESSONS_COMPLETED,
    LESSONS_OPENED,
    SESSIONS,
)

BUCKET_TIMESTAMP_FIELDS: tuple[str, ...] = (FIRST_ACTIVITY, LAST_ACTIVITY)

LESSON_COUNTER_FIELDS: tuple[str, ...] = (
    ACTIVE_TIME,
    QUESTIONS_ANSWERED,
    QUESTIONS_CORRECT,
    CHAT_MESSAGES,
    BLOCKS_INTERACTED,
)


# --- Merge Payload Values ---


@dataclass(frozen=True)
class Increment:
    """Atomic add applied store-side; composes across concurrent writers."""

    amount: int


@dataclass(frozen=True)
class SetOnce:
    """Written only when the field is absent from the stored document."""

    value: datetime


# Plain datetimes overwrite.
MergeValue = Increment | SetOnce | datetime
MergePayload = dict[str, MergeValue]


# --- Bucket Key ---


@dataclass(frozen=True)
class BucketKey:
    """Identity of one remote aggregate: user x course x calendar day."""

    user_id: str
    course_id: str
    day_key: str  # YYYY-MM-DD, local calendar date

    @property
    def path(self) -> str:
        return f"telemetry/{self.user_id}/courses/{self.course_id}/days/{self.day_key}"


# --- Delta Accumulator ---


@dataclass
class LessonDelta:
    """Per-lesson share of the unflushed deltas."""

    active_time: int = 0
    questions_answered: int = 0
    questions_correct: int = 0
    chat_messages: int = 0
    blocks_interacted: set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return (
            self.active_time == 0
            and self.questions_answered == 0
            and self.questions_correct == 0
            and self.chat_messages == 0
            and not self.blocks_interacted
        )


@dataclass
class DeltaAccumulator:
    """
    Locally accumulated, not-yet-committed counters.

    One instance per mounted session; mutated only by the owning session.
    """

    active_time: int = 0
    idle_time: int = 0
    questions_answered: int = 0
    questions_correct: int = 0
    chat_messages: int = 0
    reflections_submitted: int = 0
    lessons_completed: int = 0
    lesson: LessonDelta = field(default_factory=LessonDelta)

    def is_empty(self) -> bool:
        return (
            self.active_time == 0
            and self.idle_time == 0
            and self.questions_answered == 0
            and self.questions_correct == 0
            and self.chat_messages == 0
            and self.reflections_submitted == 0
            and self.lessons_completed == 0
            and self.lesson.is_empty()
        )

    def reset(self) -> None:
        self.active_time = 0
        self.idle_time = 0
        self.questions_answered = 0
        self.questions_correct = 0
        self.chat_messages = 0
        self.reflections_submitted = 0
        self.lessons_completed = 0
        self.lesson = LessonDelta()


# --- Flush Output ---

FlushTrigger = Literal["interval", "hidden", "teardown", "unload", "context_change", "manual"]
FlushStatus = Literal["written", "no_key", "empty", "in_flight", "failed"]


@dataclass(frozen=True)
class FlushOutput:
    """Outcome of one flush attempt."""

    status: FlushStatus
    trigger: FlushTrigger
    key: BucketKey | None = None
    payload: MergePayload = field(default_factory=dict)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == "written"
