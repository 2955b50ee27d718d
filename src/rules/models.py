from typing import Literal

from pydantic import BaseModel, Field


class TelemetryRules(BaseModel):
    tick_seconds: float = Field(default=1.0, gt=0)
    idle_timeout_seconds: float = Field(default=60.0, gt=0)
    flush_interval_seconds: float = Field(default=30.0, gt=0)
    # Declared inactivity gap for a new session; sessions are counted once per mount.
    session_gap_seconds: float = Field(default=1800.0, gt=0)
    timezone: str = "UTC"
    interaction_events: list[str] = Field(
        default_factory=lambda: ["mousemove", "keydown", "scroll", "touchstart", "click"]
    )


class LessonTimerRules(BaseModel):
    save_interval_seconds: float = Field(default=30.0, gt=0)


class StoreRules(BaseModel):
    backend: Literal["memory", "sqlite", "http"] = "sqlite"
    sqlite_path: str = "telemetry.db"
    http_base_url: str = "http://127.0.0.1:8000"
    http_timeout_seconds: float = Field(default=5.0, gt=0)


class LoggingRules(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class Rules(BaseModel):
    telemetry: TelemetryRules = Field(default_factory=TelemetryRules)
    lesson_timer: LessonTimerRules = Field(default_factory=LessonTimerRules)
    store: StoreRules = Field(default_factory=StoreRules)
    logging: LoggingRules = Field(default_factory=LoggingRules)
