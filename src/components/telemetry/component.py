"""
Telemetry component - Delta accumulation and merge payload building.

Pure functions only; the session in ``_impl`` owns state and I/O.

Invariants:
- Counters are only ever sent as increments, never as absolute values
- Payloads are sparse: zero counters are omitted, lastActivity is always set
- Per-lesson counters are independent of the top-level counters
- Unknown event kinds never raise and never mutate
"""

from __future__ import annotations

from datetime import datetime
from typing import assert_never

from .models import (
    ACTIVE_TIME,
    BLOCKS_INTERACTED,
    CHAT_MESSAGES,
    FIRST_ACTIVITY,
    IDLE_TIME,
    LAST_ACTIVITY,
    LESSONS,
    LESSONS_COMPLETED,
    LESSONS_OPENED,
    QUESTIONS_ANSWERED,
    QUESTIONS_CORRECT,
    REFLECTIONS_SUBMITTED,
    SESSIONS,
    BucketKey,
    DeltaAccumulator,
    EventKind,
    EventMetadata,
    Increment,
    MergePayload,
    SetOnce,
)

# --- Bucket Key Resolution ---


def day_key(local_dt: datetime) -> str:
    """Calendar date of a local datetime as YYYY-MM-DD."""
    return local_dt.strftime("%Y-%m-%d")


def resolve_bucket_key(
    user_id: str | None,
    course_id: str | None,
    now_local: datetime,
) -> BucketKey | None:
    """
    Resolve the bucket the current deltas belong to.

    Recomputed per call so a session spanning midnight rolls over.
    Returns None until both user and course identity are known.
    """
    if not user_id or not course_id:
        return None
    return BucketKey(user_id=user_id, course_id=course_id, day_key=day_key(now_local))


def validate_lesson_id(lesson_id: str) -> None:
    """Lesson ids become path segments; dots would split them."""
    if not lesson_id or "." in lesson_id:
        raise ValueError(f"Invalid lesson id: {lesson_id!r}")


def lesson_field(lesson_id: str, name: str) -> str:
    return f"{LESSONS}.{lesson_id}.{name}"


# --- Accumulation ---


def parse_event_kind(kind: EventKind | str) -> EventKind | None:
    """Map a reported kind onto the closed enum; None for unknown kinds."""
    if isinstance(kind, EventKind):
        return kind
    try:
        return EventKind(kind)
    except ValueError:
        return None


def apply_tick(delta: DeltaAccumulator, active: bool, lesson_id: str | None) -> None:
    """Attribute one second to active or idle time."""
    if active:
        delta.active_time += 1
        if lesson_id:
            delta.lesson.active_time += 1
    else:
        delta.idle_time += 1


def apply_event(
    delta: DeltaAccumulator,
    kind: EventKind,
    metadata: EventMetadata,
    lesson_id: str | None,
) -> None:
    """Apply one reported event to the accumulator."""
    lesson = delta.lesson if lesson_id else None

    if kind is EventKind.QUESTION_ANSWERED:
        delta.questions_answered += 1
        if metadata.correct:
            delta.questions_correct += 1
        if lesson is not None:
            lesson.questions_answered += 1
            if metadata.correct:
                lesson.questions_correct += 1
            if metadata.block_id:
                lesson.blocks_interacted.add(metadata.block_id)
    elif kind is EventKind.CHAT_MESSAGE:
        delta.chat_messages += 1
        if lesson is not None:
            lesson.chat_messages += 1
            if metadata.block_id:
                lesson.blocks_interacted.add(metadata.block_id)
    elif kind is EventKind.LESSON_COMPLETED:
        delta.lessons_completed += 1
    elif kind is EventKind.REFLECTION_SUBMITTED:
        delta.reflections_submitted += 1
    elif kind is EventKind.BLOCK_INTERACTION:
        if lesson is not None and metadata.block_id:
            lesson.blocks_interacted.add(metadata.block_id)
    else:
        assert_never(kind)


# --- Payload Building ---


def build_merge_payload(
    delta: DeltaAccumulator,
    lesson_id: str | None,
    now_utc: datetime,
) -> MergePayload:
    """
    Build the sparse merge patch for the current deltas.

    Does not reset the accumulator.
    """
    payload: MergePayload = {LAST_ACTIVITY: now_utc}

    top_level = (
        (ACTIVE_TIME, delta.active_time),
        (IDLE_TIME, delta.idle_time),
        (QUESTIONS_ANSWERED, delta.questions_answered),
        (QUESTIONS_CORRECT, delta.questions_correct),
        (CHAT_MESSAGES, delta.chat_messages),
        (REFLECTIONS_SUBMITTED, delta.reflections_submitted),
        (LESSONS_COMPLETED, delta.lessons_completed),
    )
    for name, value in top_level:
        if value > 0:
            payload[name] = Increment(value)

    if lesson_id and not delta.lesson.is_empty():
        lesson = delta.lesson
        per_lesson = (
            (ACTIVE_TIME, lesson.active_time),
            (QUESTIONS_ANSWERED, lesson.questions_answered),
            (QUESTIONS_CORRECT, lesson.questions_correct),
            (CHAT_MESSAGES, lesson.chat_messages),
            (BLOCKS_INTERACTED, len(lesson.blocks_interacted)),
        )
        for name, value in per_lesson:
            if value > 0:
                payload[lesson_field(lesson_id, name)] = Increment(value)

    return payload


def lesson_opened_payload(now_utc: datetime) -> MergePayload:
    return {
        LESSONS_OPENED: Increment(1),
        FIRST_ACTIVITY: SetOnce(now_utc),
        LAST_ACTIVITY: now_utc,
    }


def session_payload() -> MergePayload:
    return {SESSIONS: Increment(1)}
