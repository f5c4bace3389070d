"""Command-line entry for recurbot.

Prints the occurrences of a recurrence rule, one ISO-8601 instant per line.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from itertools import islice
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

from .config import load_settings
from .exceptions import RuleParseError
from .generator import occurrences, occurrences_after, occurrences_between
from .logging_config import configure_logging
from .parser import parse_rule

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_RULE_ERROR = 2
EXIT_ITERATION_LIMIT = 3


def _datetime_arg(value: str) -> datetime:
    try:
        return date_parser.isoparse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 date-time: {value!r}") from exc


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the recurbot CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="recurbot",
        description="Expand an RRULE into concrete occurrences",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  recurbot "FREQ=DAILY;COUNT=5" --start 2024-01-31T09:00
  recurbot "FREQ=MONTHLY;BYDAY=-1FR" --start 2024-01-01T10:00 --tz Europe/Berlin --limit 12
  recurbot "FREQ=WEEKLY;BYDAY=MO,WE" --start 2024-01-01T08:00 --between 2024-03-01 2024-03-31
        """,
    )
    parser.add_argument("rule", help="Recurrence rule, e.g. FREQ=WEEKLY;BYDAY=MO,WE")
    parser.add_argument(
        "--start",
        type=_datetime_arg,
        metavar="DATETIME",
        help="Anchor (DTSTART) as ISO-8601 (default: now)",
    )
    parser.add_argument(
        "--tz", metavar="ZONE", help="IANA zone attached to naive --start/--between/--after values"
    )
    parser.add_argument(
        "--limit", type=int, metavar="N", help="Maximum occurrences to print (default: 10)"
    )

    window = parser.add_mutually_exclusive_group()
    window.add_argument(
        "--between",
        nargs=2,
        type=_datetime_arg,
        metavar=("START", "END"),
        help="Only print occurrences inside this window",
    )
    window.add_argument(
        "--after", type=_datetime_arg, metavar="DATETIME", help="Only print occurrences after this"
    )
    parser.add_argument(
        "--inclusive",
        action="store_true",
        help="Treat --after as inclusive (--between is always inclusive)",
    )
    parser.add_argument("--config", metavar="FILE", help="YAML settings file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def _localize(value: Optional[datetime], zone: Optional[ZoneInfo]) -> Optional[datetime]:
    if value is None or zone is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=zone)


def main(argv: Optional[list[str]] = None) -> int:
    """Run the recurbot CLI and return its exit code."""
    args = _create_parser().parse_args(argv)

    settings = load_settings(args.config)
    configure_logging(debug_mode=args.debug or settings.debug, level_name=settings.log_level)

    zone = None
    if args.tz:
        try:
            zone = ZoneInfo(args.tz)
        except (ZoneInfoNotFoundError, ValueError):
            print(f"error: unknown time zone {args.tz!r}", file=sys.stderr)
            return EXIT_RULE_ERROR

    try:
        spec = parse_rule(args.rule)
    except RuleParseError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return EXIT_RULE_ERROR

    anchor = _localize(args.start or datetime.now().replace(microsecond=0), zone)
    limit = args.limit if args.limit is not None else settings.default_limit

    if args.between:
        start, end = (_localize(value, zone) for value in args.between)
        generator = occurrences_between(spec, anchor, start, end, settings=settings)
    elif args.after:
        generator = occurrences_after(
            spec, anchor, _localize(args.after, zone), inclusive=args.inclusive, settings=settings
        )
    else:
        generator = occurrences(spec, anchor, settings=settings)

    logger.debug("Expanding %s from %s (limit %d)", spec, anchor.isoformat(), limit)
    for occurrence in islice(generator, limit):
        print(occurrence.isoformat())

    if generator.hit_iteration_limit:
        print(
            f"warning: no further occurrences within {generator.bounds.max_empty_periods} empty periods",
            file=sys.stderr,
        )
        return EXIT_ITERATION_LIMIT
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
