"""Command-line entry for caldav_lite.

Parses an .ics file and prints a JSON summary, or with ``--expand`` the
resolved occurrences inside a time window.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import UTC, datetime, timedelta
from typing import Any, NoReturn

import yaml

from . import _init_logging
from .config_loader import Config, load_config
from .lite_datetime_utils import parse_caldav_time
from .lite_exceptions import LiteCalDAVError, LiteICSStreamError
from .lite_logging import configure_lite_logging
from .lite_models import CalendarDocument
from .lite_parser import parse_icalendar
from .lite_rrule_expander import expand_document

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for caldav_lite CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="caldav_lite",
        description="caldav_lite - parse iCalendar data and expand recurring events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m caldav_lite calendar.ics                       # Summarize the document
  python -m caldav_lite calendar.ics --expand              # Occurrences for the next year
  python -m caldav_lite calendar.ics --expand \\
      --start 2025-09-01 --end 2025-09-30T23:59:59Z        # Occurrences in September
        """,
    )

    parser.add_argument("file", metavar="FILE", help="Path to an .ics file")
    parser.add_argument(
        "--expand",
        action="store_true",
        help="Print expanded event occurrences instead of the document summary",
    )
    parser.add_argument(
        "--start",
        metavar="WHEN",
        help="Window start (ISO 8601 or iCalendar form; default: now)",
    )
    parser.add_argument(
        "--end",
        metavar="WHEN",
        help="Window end (default: start + expansion_days_window from config)",
    )
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        help="Logging level (default: from config or CALDAV_LITE_LOG_LEVEL env var)",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to a YAML/JSON config file (default: ./caldav_lite/config.yaml)",
    )

    return parser


def _parse_when(parser: argparse.ArgumentParser, option: str, value: str) -> datetime:
    when = parse_caldav_time(value)
    if when is None:
        parser.error(f"{option}: unrecognized date/time {value!r}")
    return when


def _resolve_window(
    parser: argparse.ArgumentParser, args: argparse.Namespace, config: Config
) -> tuple[datetime, datetime]:
    start = _parse_when(parser, "--start", args.start) if args.start else datetime.now(UTC)
    if args.end:
        end = _parse_when(parser, "--end", args.end)
    else:
        end = start + timedelta(days=config.expansion_days_window)
    if end < start:
        parser.error("--end must not be before --start")
    return start, end


def _summarize(document: CalendarDocument) -> dict[str, Any]:
    return {
        "version": document.version,
        "prodid": document.prodid,
        "method": document.method,
        "counts": {
            "events": len(document.events),
            "todos": len(document.todos),
            "journals": len(document.journals),
            "free_busy": len(document.free_busy),
            "timezones": len(document.timezones),
        },
        "events": [
            {
                "uid": event.uid,
                "summary": event.summary,
                "dtstart": event.dtstart.isoformat() if event.dtstart else None,
                "recurring": event.is_recurring,
                "recurrence_id": event.recurrence_id.isoformat() if event.recurrence_id else None,
            }
            for event in document.events
        ],
    }


def main(argv: list[str] | None = None) -> NoReturn:
    """Run the caldav_lite CLI.

    Exits 0 on success and 1 when the config or the input cannot be read.
    Invalid recurrence rules do not fail the run; their events fall back to
    single occurrences.
    """
    parser = _create_parser()
    args = parser.parse_args(argv)

    _init_logging(args.log_level or os.environ.get("CALDAV_LITE_LOG_LEVEL"))

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: could not load config: {exc}", file=sys.stderr)
        sys.exit(1)
    if not args.log_level:
        _init_logging(config.log_level)
    if logging.getLogger().level == logging.DEBUG:
        # per-line parser and per-rule expansion logs, third-party held at WARNING
        configure_lite_logging(debug_mode=True)

    try:
        try:
            with open(args.file, "rb") as fh:
                document = parse_icalendar(fh, max_size_bytes=config.size_limit)
        except OSError as exc:
            raise LiteICSStreamError(f"Cannot read {args.file}: {exc}") from exc

        if args.expand:
            start, end = _resolve_window(parser, args, config)
            occurrences = expand_document(document, start, end)
            output: dict[str, Any] = {
                "window": {"start": start.isoformat(), "end": end.isoformat()},
                "occurrences": [occ.model_dump(mode="json", exclude={"item"}) for occ in occurrences],
            }
        else:
            output = _summarize(document)
    except LiteCalDAVError as exc:
        logger.error("caldav_lite failed: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(output, indent=2))
    sys.exit(0)


if __name__ == "__main__":
    main()
