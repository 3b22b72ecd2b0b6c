"""Command line entry point for the airline ticket system."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable

from . import config
from .database import init_db, session_scope
from .demo import run_demo
from .logging_setup import configure_logging
from .seed import seed_database
from .shell import run_shell

logger = logging.getLogger(__name__)


def parse_args(argv: Iterable[str], settings: config.Settings) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Book airline tickets from the console.")
    parser.add_argument(
        "command",
        nargs="?",
        choices=["shell", "demo", "seed"],
        default="shell",
        help="What to run (default: shell).",
    )
    parser.add_argument(
        "--db-url",
        default=settings.db_url,
        help=f"SQLAlchemy database URL (default: {settings.db_url}).",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help=f"Logging verbosity (default: {settings.log_level}).",
    )
    parser.add_argument("--log-file", default=settings.log_file, help="Also write logs to this file.")
    parser.add_argument(
        "--echo-sql",
        action="store_true",
        default=settings.echo_sql,
        help="Log every SQL statement.",
    )
    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    settings = config.load_settings()
    args = parse_args(sys.argv[1:] if argv is None else argv, settings)
    configure_logging(args.log_level, args.log_file)

    try:
        session_factory = init_db(args.db_url, echo=args.echo_sql)
        with session_scope(session_factory) as session:
            seeded = seed_database(session)
    except Exception as exc:  # pragma: no cover - CLI entry point
        logger.exception("Start-up failed")
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.command == "seed":
        print(f"Inserted {seeded['airlines']} airline(s) and {seeded['flights']} flight(s).")
        return 0
    if args.command == "demo":
        return run_demo(session_factory)
    return run_shell(session_factory)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
