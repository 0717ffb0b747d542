"""
Schedule CLI - Show, Install, Update and Clear Crontab Entries

Loads the schedule file, materializes it and hands the result to cron.

Usage:
    # Print the generated crontab block
    python -m apps.schedule show

    # Replace only our block in the current user's crontab
    python -m apps.schedule update

    # Replace the whole crontab / remove our block
    python -m apps.schedule install
    python -m apps.schedule clear

    # Preview the next fire times
    python -m apps.schedule next --count 3

Exit code is 0 on success and 1 on any schedule or crontab failure.
"""

import argparse
import logging
import sys
from typing import Sequence

import orjson

from apps.schedule.crontab import CrontabManager, render_block
from apps.schedule.errors import ScheduleError
from apps.schedule.loader import load_schedule
from apps.schedule.timing import next_fire_times
from utils.config import settings
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


def _binding(value: str) -> tuple[str, str]:
    name, sep, bound = value.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected name=value, got '{value}'")
    return name, bound


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m apps.schedule",
        description="Generate and install crontab entries from a schedule file",
    )
    parser.add_argument(
        "-f", "--load-file",
        default=settings.SCHEDULE_FILE,
        help="schedule file (default: %(default)s)",
    )
    parser.add_argument(
        "-s", "--set",
        dest="bindings",
        action="append",
        type=_binding,
        default=[],
        metavar="NAME=VALUE",
        help="override a schedule setting; repeatable",
    )
    parser.add_argument(
        "-i", "--identifier",
        default=settings.CRONTAB_IDENTIFIER,
        help="crontab block identifier (default: %(default)s)",
    )
    parser.add_argument("-u", "--user", default=settings.CRONTAB_USER, help="crontab owner")
    parser.add_argument(
        "--crontab-command",
        default=settings.CRONTAB_COMMAND,
        help="crontab executable (default: %(default)s)",
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="log level")

    subparsers = parser.add_subparsers(dest="command")

    show = subparsers.add_parser("show", help="print the generated crontab block")
    show.add_argument("--format", choices=("crontab", "json"), default="crontab")

    subparsers.add_parser("install", help="replace the whole crontab with the block")
    subparsers.add_parser("update", help="replace or append the block in the crontab")
    subparsers.add_parser("clear", help="remove the block from the crontab")

    preview = subparsers.add_parser("next", help="preview upcoming fire times")
    preview.add_argument("--count", type=int, default=5, help="fire times per schedule")

    return parser


def _as_json(resolved: list) -> str:
    payload = [
        {
            "trigger": command.trigger,
            "template": command.template_id,
            "schedules": list(command.schedules),
            "command": command.command,
        }
        for command in resolved
    ]
    return orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode("utf-8")


def run(args: argparse.Namespace) -> None:
    """Execute one CLI command. Raises ScheduleError on failure."""
    command = args.command or "show"
    manager = CrontabManager(
        identifier=args.identifier,
        command=args.crontab_command,
        user=args.user,
    )

    if command == "clear":
        if manager.clear():
            print(f"[write] crontab block '{args.identifier}' cleared")
        else:
            print(f"[skip] no crontab block '{args.identifier}' to clear")
        return

    schedule = load_schedule(args.load_file, overrides=dict(args.bindings))
    resolved = schedule.materialize()

    if command == "next":
        for entry in resolved:
            for cron in entry.schedules:
                fire_times = next_fire_times(cron, args.count, timezone=settings.CRON_TIMEZONE)
                upcoming = ", ".join(t.isoformat() for t in fire_times) or "at boot"
                print(f"{entry.trigger} [{cron}]: {upcoming}")
        return

    if command == "show" and getattr(args, "format", "crontab") == "json":
        print(_as_json(resolved))
        return

    block = render_block(resolved, schedule.environment, args.identifier)

    if command == "show":
        sys.stdout.write(block)
    elif command == "install":
        manager.install(block)
        print(f"[write] crontab file written with block '{args.identifier}'")
    elif command == "update":
        manager.update(block)
        print(f"[write] crontab block '{args.identifier}' updated")


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the schedule CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, format_type=settings.LOG_FORMAT)

    try:
        run(args)
    except ScheduleError as e:
        logger.error(
            "Schedule command failed",
            extra={"command": args.command or "show", "error": str(e)},
        )
        logger.debug("Failure details", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
