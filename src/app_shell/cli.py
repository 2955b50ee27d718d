import argparse
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from src.adapters.clock import SystemClock
from src.adapters.identity import StaticIdentity
from src.adapters.store_factory import create_bucket_store, create_progress_store
from src.adapters.ticker import TelemetryTicker, create_ticker
from src.app_shell.replay import ReplayError, describe, parse_steps, read_steps, replay
from src.components.telemetry import BucketKey, EventReporterPort, build_config, day_key
from src.rules.loader import load_rules, resolve_rules_path
from src.rules.models import Rules

logger = logging.getLogger("cli")


def get_rules(path: str | None) -> Rules:
    rules_path = resolve_rules_path(path)
    if not rules_path.exists():
        if path is not None:
            logger.error(f"Rules file {rules_path} not found.")
            sys.exit(1)
        return Rules()
    return load_rules(rules_path)


def handle_show(rules: Rules, args: argparse.Namespace) -> None:
    store = create_bucket_store(rules.store)

    if args.day is None and args.today:
        args.day = day_key(SystemClock(rules.telemetry.timezone).now_local())

    if args.day is None:
        days = store.list_days(args.user, args.course)
        print(json.dumps({"user_id": args.user, "course_id": args.course, "days": days}))
        return

    key = BucketKey(user_id=args.user, course_id=args.course, day_key=args.day)
    doc = store.get(key)
    if doc is None:
        logger.error(f"No bucket at {key.path}.")
        sys.exit(1)
    print(json.dumps(doc, indent=2, default=str, sort_keys=True))


def handle_replay(rules: Rules, args: argparse.Namespace) -> None:
    store = create_bucket_store(rules.store)
    start = datetime.fromisoformat(args.start) if args.start else datetime.now(UTC)

    try:
        outputs = replay(
            read_steps(Path(args.file)),
            store,
            user_id=args.user,
            course_id=args.course,
            lesson_id=args.lesson,
            start=start,
            tz_name=rules.telemetry.timezone,
            config=build_config(rules.telemetry),
        )
    except (ReplayError, FileNotFoundError) as e:
        logger.error(str(e))
        sys.exit(1)

    for output in outputs:
        print(json.dumps(describe(output), sort_keys=True))


def handle_track(rules: Rules, args: argparse.Namespace) -> None:
    store = create_bucket_store(rules.store)
    progress = create_progress_store(rules.store) if args.lesson else None
    ticker = create_ticker(
        rules, store, StaticIdentity(args.user), args.course, args.lesson, progress=progress
    )
    reporter = ticker.session.reporter()

    ticker.start()
    try:
        for step in parse_steps(sys.stdin):
            apply_live_step(ticker, reporter, step)
    except ReplayError as e:
        logger.error(str(e))
        sys.exit(1)
    finally:
        ticker.stop()

    if ticker.timer is not None:
        logger.info(f"Lesson engagement time: {ticker.timer.seconds}s")


def apply_live_step(
    ticker: TelemetryTicker, reporter: EventReporterPort, step: dict[str, object]
) -> None:
    """Feed one stdin step into a running ticker."""
    op = step["op"]
    if op == "interaction":
        ticker.session.interaction(str(step.get("event", "click")))
    elif op == "event":
        metadata = step.get("metadata")
        reporter.report_event(
            str(step.get("kind", "")), metadata if isinstance(metadata, dict) else None
        )
    elif op == "hidden":
        ticker.visibility_changed(True)
    elif op == "visible":
        ticker.visibility_changed(False)
    else:
        raise ReplayError(f"Unknown live op: {op}")


def handle_serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("src.api.main:app", host=args.host, port=args.port)


def main() -> None:
    parser = argparse.ArgumentParser(description="Engagement telemetry CLI")
    parser.add_argument(
        "--rules", help="Path to rules.yaml (default: $TELEMETRY_RULES or ./rules.yaml)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # show
    show_parser = subparsers.add_parser("show", help="Print a bucket or list bucket days")
    show_parser.add_argument("user", help="User id")
    show_parser.add_argument("course", help="Course id")
    show_parser.add_argument("--day", help="Day key (YYYY-MM-DD); omit to list days")
    show_parser.add_argument("--today", action="store_true", help="Show today's bucket")

    # replay
    replay_parser = subparsers.add_parser("replay", help="Replay a scripted session")
    replay_parser.add_argument("file", help="JSON-lines step file")
    replay_parser.add_argument("--user", required=True, help="User id")
    replay_parser.add_argument("--course", required=True, help="Course id")
    replay_parser.add_argument("--lesson", help="Lesson id")
    replay_parser.add_argument("--start", help="Session start (ISO timestamp, default now)")

    # track
    track_parser = subparsers.add_parser(
        "track", help="Track a live session; reads interaction/event steps from stdin"
    )
    track_parser.add_argument("--user", required=True, help="User id")
    track_parser.add_argument("--course", required=True, help="Course id")
    track_parser.add_argument("--lesson", help="Lesson id (enables the lesson timer)")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the telemetry store API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    rules = get_rules(args.rules)
    logging.basicConfig(level=rules.logging.level)

    if args.command == "show":
        handle_show(rules, args)
    elif args.command == "replay":
        handle_replay(rules, args)
    elif args.command == "track":
        handle_track(rules, args)
    elif args.command == "serve":
        handle_serve(args)


if __name__ == "__main__":
    main()
