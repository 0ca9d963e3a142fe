"""Command-line entry for appointment_engine.

Expands the series stored in a JSON series store over a date window and prints
the occurrences as JSON:

    python -m appointment_engine expand series.json --start 2024-01-01 --end 2024-01-31
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from typing import Optional

from .calendar_math import parse_local
from .config_manager import ConfigManager
from .engine_logging import configure_engine_logging
from .exceptions import ConverterUnavailableError
from .lunar import get_default_converter
from .occurrence_expander import OccurrenceExpander, exclude_categories
from .series_store import JsonSeriesStore

logger = logging.getLogger(__name__)


def _local_date(value: str) -> date:
    try:
        return parse_local(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for appointment_engine CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="appointment_engine",
        description="Appointment engine - expand recurring appointment series",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m appointment_engine expand series.json --start 2024-01-01 --end 2024-01-31
  python -m appointment_engine expand series.json --start 2024-01-01 --end 2024-12-31 --exclude-category TA
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    expand_parser = subparsers.add_parser("expand", help="Print occurrences inside a window")
    expand_parser.add_argument("store", help="Path to a JSON series store")
    expand_parser.add_argument("--start", type=_local_date, required=True, help="YYYY-MM-DD")
    expand_parser.add_argument("--end", type=_local_date, required=True, help="YYYY-MM-DD")
    expand_parser.add_argument(
        "--exclude-category",
        action="append",
        default=[],
        metavar="CATEGORY",
        help="Hide occurrences of this meeting type (repeatable)",
    )
    expand_parser.add_argument(
        "--lunar",
        action="store_true",
        help="Require the lunar converter (fails if korean-lunar-calendar is missing)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Run the appointment_engine CLI and return the process exit code."""
    parser = _create_parser()
    args = parser.parse_args(argv)
    configure_engine_logging(debug_mode=args.debug)

    if args.start > args.end:
        parser.error("--start must not be after --end")

    try:
        converter = get_default_converter(required=args.lunar)
    except ConverterUnavailableError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    settings = ConfigManager().load_settings()
    store = JsonSeriesStore(args.store)
    occurrence_filter = exclude_categories(*args.exclude_category) if args.exclude_category else None
    occurrences = OccurrenceExpander(settings, converter).expand_all(
        store.list_all(), args.start, args.end, occurrence_filter=occurrence_filter
    )
    logger.debug("Expanded %d occurrences from %s", len(occurrences), args.store)

    json.dump(
        [occ.model_dump(mode="json") for occ in occurrences],
        sys.stdout,
        ensure_ascii=False,
        indent=2,
    )
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
