"""caldav_lite - client-side CalDAV core for iCloud calendars.

Parses RFC 5545 iCalendar payloads into typed models, expands recurrence
rules into concrete occurrences and applies per-instance overrides. The
transport (discovery, REPORT queries, auth) lives elsewhere; this package
only consumes the calendar data a server returns.
"""

__version__ = "0.1.0"

from typing import Optional

from .lite_exceptions import (
    LiteCalDAVError,
    LiteICSContentTooLargeError,
    LiteICSStreamError,
    LiteNotApplicableError,
    LiteRRuleValidationError,
)
from .lite_extraction import extract_calendar_object, extract_calendar_objects
from .lite_ics_writer import serialize_document
from .lite_models import CalendarDocument, CalendarObject, Occurrence, RecurrenceRule
from .lite_parser import parse_icalendar
from .lite_rrule_expander import (
    expand_document,
    expand_item,
    expand_recurrence,
    expand_recurring_item,
    generate_occurrences,
)
from .lite_rrule_parser import build_rrule, parse_rrule, validate_rrule


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Installs a colorized stream handler on the root logger when none is
    present, then applies the requested level. Callers may adjust the level
    later (e.g. from config).

    The CALDAV_LITE_DEBUG environment variable (truthy values: "1", "true",
    "yes", "on") forces DEBUG verbosity to surface per-line parser and
    per-rule expansion logs without changing code.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("CALDAV_LITE_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message
        # Only the level is colorized; it is left-aligned to 7 chars.
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


__all__ = [
    "CalendarDocument",
    "CalendarObject",
    "LiteCalDAVError",
    "LiteICSContentTooLargeError",
    "LiteICSStreamError",
    "LiteNotApplicableError",
    "LiteRRuleValidationError",
    "Occurrence",
    "RecurrenceRule",
    "__version__",
    "build_rrule",
    "expand_document",
    "expand_item",
    "expand_recurrence",
    "expand_recurring_item",
    "extract_calendar_object",
    "extract_calendar_objects",
    "generate_occurrences",
    "parse_icalendar",
    "parse_rrule",
    "serialize_document",
    "validate_rrule",
]
