"""
Session replay: drive a TelemetrySession from a scripted list of steps.

Each step is a mapping with an ``op`` and optional ``at`` (ISO timestamp the
frozen clock jumps to before the step). Ops:

- mount, teardown, unload, flush
- interaction {event}
- tick {count}            one clock second per tick
- advance {seconds}       move the clock without ticking
- event {kind, metadata}
- hidden, visible
- context {course, lesson}
- user {user_id}          identity resolves/changes
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.adapters.clock import FrozenClock
from src.adapters.identity import StaticIdentity
from src.components.telemetry import (
    BucketStorePort,
    FlushOutput,
    TelemetryConfig,
    TelemetrySession,
)

logger = logging.getLogger(__name__)


class ReplayError(ValueError):
    """A replay step is malformed."""


def parse_steps(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    """Parse JSON-lines steps, skipping blank lines and # comments."""
    for lineno, line in enumerate(lines, start=1):
        text = line.strip()
        if not text or text.startswith("#"):
            continue
        try:
            step = json.loads(text)
        except json.JSONDecodeError as e:
            raise ReplayError(f"Line {lineno}: invalid JSON ({e})") from e
        if not isinstance(step, dict) or "op" not in step:
            raise ReplayError(f"Line {lineno}: each step needs an 'op'")
        yield step


def read_steps(path: Path) -> Iterator[dict[str, Any]]:
    """Read JSON-lines steps from a file."""
    with open(path) as f:
        yield from parse_steps(f)


def _parse_at(value: str) -> datetime:
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ts if ts.tzinfo else ts.replace(tzinfo=UTC)


def replay(
    steps: Iterable[Mapping[str, Any]],
    store: BucketStorePort,
    user_id: str | None,
    course_id: str | None,
    lesson_id: str | None = None,
    start: datetime | None = None,
    tz_name: str = "UTC",
    config: TelemetryConfig | None = None,
) -> list[FlushOutput]:
    """Run steps against a fresh session; returns every flush outcome."""
    clock = FrozenClock(start or datetime.now(UTC), tz_name=tz_name)
    identity = StaticIdentity(user_id)
    session = TelemetrySession(store, identity, clock, course_id, lesson_id, config)
    outputs: list[FlushOutput] = []

    for step in steps:
        if "at" in step:
            clock.set(_parse_at(step["at"]))
        op = step["op"]

        if op == "mount":
            session.mount()
        elif op == "teardown":
            outputs.append(session.teardown())
        elif op == "unload":
            outputs.append(session.page_unload())
        elif op == "flush":
            outputs.append(session.flush("manual"))
        elif op == "interaction":
            session.interaction(step.get("event", "click"))
        elif op == "tick":
            for _ in range(int(step.get("count", 1))):
                clock.advance(session.config.tick_seconds)
                session.tick()
        elif op == "advance":
            clock.advance(float(step.get("seconds", 0)))
        elif op == "event":
            session.report_event(step.get("kind", ""), step.get("metadata"))
        elif op == "hidden":
            result = session.visibility_changed(True)
            if result is not None:
                outputs.append(result)
        elif op == "visible":
            session.visibility_changed(False)
        elif op == "context":
            session.set_context(step.get("course"), step.get("lesson"))
        elif op == "user":
            identity.user_id = step.get("user_id")
            session.identity_changed()
        else:
            raise ReplayError(f"Unknown replay op: {op}")

    return outputs


def describe(output: FlushOutput) -> dict[str, Any]:
    """JSON-friendly summary of a flush outcome."""
    fields: dict[str, Any] = {}
    for name, value in output.payload.items():
        if isinstance(value, datetime):
            fields[name] = value.isoformat()
        else:
            fields[name] = getattr(value, "amount", None)
    return {
        "trigger": output.trigger,
        "status": output.status,
        "bucket": output.key.path if output.key else None,
        "fields": fields,
        "error": output.error,
    }
