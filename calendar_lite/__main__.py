"""Command-line entry for calendar_lite.

This module keeps top-level imports cheap and hands the parsed arguments to
the package's run() entrypoint.
"""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from . import run


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for calendar_lite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calendar_lite",
        description="calendar_lite - day timeline layout and event reminders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calendar_lite layout events.json --day 2025-03-10
  python -m calendar_lite layout events.json --tz Europe/Berlin
  python -m calendar_lite --tz Europe/Berlin layout events.json
  python -m calendar_lite watch events.json --poll-interval 15
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="YAML/JSON config file")
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        help="Log level (DEBUG, INFO, WARNING, ERROR); overrides CALENDARLITE_LOG_LEVEL",
    )
    parser.add_argument("--tz", metavar="ZONE", help="Viewing timezone (IANA name)")

    # --tz after the subcommand; absent there, the top-level value stands
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--tz", metavar="ZONE", default=argparse.SUPPRESS, help="Viewing timezone (IANA name)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    layout = subparsers.add_parser(
        "layout", parents=[common], help="Print the render plan for one day"
    )
    layout.add_argument("events", help="JSON file containing an array of events")
    layout.add_argument("--day", metavar="YYYY-MM-DD", help="Day to lay out (default: today)")

    watch = subparsers.add_parser(
        "watch", parents=[common], help="Arm reminders and print alerts as they fire"
    )
    watch.add_argument("events", help="JSON file containing an array of events")
    watch.add_argument(
        "--poll-interval",
        type=int,
        metavar="SECONDS",
        help="Dispatcher poll interval (default: 15, or CALENDARLITE_POLL_INTERVAL)",
    )
    watch.add_argument("--store", metavar="PATH", help="Reminder store JSON file")

    return parser


def main() -> NoReturn:
    """Run the calendar_lite CLI."""
    parser = _create_parser()
    args = parser.parse_args()
    sys.exit(run(args))


if __name__ == "__main__":
    main()
