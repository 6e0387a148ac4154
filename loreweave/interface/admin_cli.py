# ABOUTME: Admin command-line tool for inspecting and managing a session's World.
# ABOUTME: Subcommands: status, init (from files), reset, recover, events.

import argparse
import json
import sys
from pathlib import Path

from loguru import logger
from redis import Redis

from loreweave.config.settings import Settings, get_settings
from loreweave.narration import build_pipeline
from loreweave.orchestration.event_log import EventLog
from loreweave.orchestration.exceptions import SessionError
from loreweave.orchestration.roster import extract_roster
from loreweave.orchestration.session_engine import SessionEngine
from loreweave.store.session_store import RedisSessionStore
from loreweave.utils.logging import setup_logging
from loreweave.workers.queue_config import create_redis_connection


def build_engine(
    settings: Settings,
    redis_client: Redis,
    session_id: str | None = None,
) -> SessionEngine:
    """
    Wire a SessionEngine from settings.

    Args:
        settings: Application settings
        redis_client: Shared Redis connection (decode_responses=False)
        session_id: Override for settings.session_id

    Returns:
        Configured SessionEngine
    """
    return SessionEngine(
        store=RedisSessionStore(redis_client, max_retries=settings.store_max_retries),
        narration=build_pipeline(settings, redis_client),
        events=EventLog(redis_client, ttl_seconds=settings.event_ttl_seconds),
        session_id=session_id or settings.session_id,
        default_choice_options=settings.choice_options_list,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="loreweave",
        description="Manage a loreweave session",
    )
    parser.add_argument(
        "--session",
        default=None,
        help="Session id (default: LOREWEAVE session_id setting)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show the World status")

    init_parser = subparsers.add_parser("init", help="Initialize the World from setup files")
    init_parser.add_argument("--roles-file", type=Path, required=True,
                             help="Role prompt with numbered roles ('1. THE HUNTER (HUMAN)')")
    init_parser.add_argument("--lore-file", type=Path, required=True, help="World lore text")
    init_parser.add_argument("--rules-file", type=Path, required=True, help="Rules text")
    init_parser.add_argument("--capacity", type=int, default=None,
                             help="Maximum players (default: number of roles)")
    init_parser.add_argument("--choices", default=None,
                             help="Comma-separated choice alphabet (default from settings)")

    subparsers.add_parser("reset", help="Discard the World and start a fresh setup")
    subparsers.add_parser("recover", help="Finish rounds interrupted by a crash")

    events_parser = subparsers.add_parser("events", help="Show recent session events")
    events_parser.add_argument("--limit", type=int, default=20, help="Number of events")

    return parser.parse_args(argv)


def run_command(args: argparse.Namespace, engine: SessionEngine, events: EventLog) -> dict:
    """
    Execute one admin command.

    Returns:
        JSON-serializable result dict
    """
    if args.command == "status":
        return engine.status().model_dump(mode="json")

    if args.command == "init":
        roster = extract_roster(args.roles_file.read_text(encoding="utf-8"))
        choices = args.choices.split(",") if args.choices else None
        status = engine.initialize(
            roster=roster,
            capacity=args.capacity if args.capacity is not None else len(roster),
            lore=args.lore_file.read_text(encoding="utf-8"),
            rules=args.rules_file.read_text(encoding="utf-8"),
            choice_options=choices,
        )
        return status.model_dump(mode="json")

    if args.command == "reset":
        return engine.reset().model_dump(mode="json")

    if args.command == "recover":
        outcomes = engine.recover()
        return {"recovered": [o.model_dump(mode="json") for o in outcomes]}

    if args.command == "events":
        recent = events.recent(engine.session_id, limit=args.limit)
        return {"events": [e.model_dump(mode="json") for e in recent]}

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Entry point for the admin CLI"""
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(
        log_level=settings.log_level,
        log_dir=settings.log_dir,
        file_output=settings.log_dir is not None,
    )

    try:
        redis_client = create_redis_connection(settings.redis_url)
    except ConnectionError as e:
        print(f"Error: Could not connect to Redis: {e}", file=sys.stderr)
        return 1

    engine = build_engine(settings, redis_client, session_id=args.session)
    events = EventLog(redis_client, ttl_seconds=settings.event_ttl_seconds)

    try:
        result = run_command(args, engine, events)
    except SessionError as e:
        print(f"{e.error_type}: {e}", file=sys.stderr)
        return 2
    except Exception:
        logger.exception(f"Admin command '{args.command}' failed")
        return 1
    finally:
        engine.narration.close()

    print(json.dumps(result, indent=2, default=str))
    return 0
