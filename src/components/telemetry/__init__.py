"""
Telemetry component - Engagement delta accumulation and bucket flushing.
"""

from ._impl import (
    DEFAULT_CONFIG,
    NULL_REPORTER,
    NullReporter,
    TelemetryConfig,
    TelemetryReporter,
    TelemetrySession,
    build_config,
    create_session,
)
from .component import (
    apply_event,
    apply_tick,
    build_merge_payload,
    day_key,
    lesson_field,
    lesson_opened_payload,
    parse_event_kind,
    resolve_bucket_key,
    session_payload,
    validate_lesson_id,
)
from .models import (
    BUCKET_COUNTER_FIELDS,
    BUCKET_TIMESTAMP_FIELDS,
    LESSON_COUNTER_FIELDS,
    BucketKey,
    DeltaAccumulator,
    EventKind,
    EventMetadata,
    FlushOutput,
    FlushStatus,
    FlushTrigger,
    Increment,
    LessonDelta,
    MergePayload,
    MergeValue,
    SetOnce,
)
from .ports import BucketStorePort, EventReporterPort, IdentityPort, TimePort

__all__ = [
    # Session
    "TelemetrySession",
    "TelemetryConfig",
    "TelemetryReporter",
    "NullReporter",
    "NULL_REPORTER",
    "DEFAULT_CONFIG",
    "build_config",
    "create_session",
    # Pure functions
    "apply_event",
    "apply_tick",
    "build_merge_payload",
    "day_key",
    "lesson_field",
    "lesson_opened_payload",
    "parse_event_kind",
    "resolve_bucket_key",
    "session_payload",
    "validate_lesson_id",
    # Models
    "BucketKey",
    "DeltaAccumulator",
    "LessonDelta",
    "EventKind",
    "EventMetadata",
    "FlushOutput",
    "FlushStatus",
    "FlushTrigger",
    "Increment",
    "SetOnce",
    "MergePayload",
    "MergeValue",
    "BUCKET_COUNTER_FIELDS",
    "BUCKET_TIMESTAMP_FIELDS",
    "LESSON_COUNTER_FIELDS",
    # Ports
    "BucketStorePort",
    "EventReporterPort",
    "IdentityPort",
    "TimePort",
]
