"""Structural extraction of listing fields from CalDAV response entries - caldav_lite.

This is the cheap path run for every calendar object a server returns: a
single pass over the content lines picking out the handful of fields a
listing view needs. Full typed parsing is opt-in.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .lite_attendee_parser import extract_email
from .lite_line_reader import LiteLineReader
from .lite_models import CalendarObject
from .lite_parser import parse_icalendar
from .lite_value_decoders import parse_date_time, unescape_text

logger = logging.getLogger(__name__)

_TEXT_FIELDS = {
    "SUMMARY": "summary",
    "DESCRIPTION": "description",
    "LOCATION": "location",
}
_RAW_FIELDS = {
    "UID": "uid",
    "STATUS": "status",
    "ORGANIZER": "organizer",
}
_TIME_FIELDS = {
    "DTSTART": "dtstart",
    "DTEND": "dtend",
    "CREATED": "created",
    "LAST-MODIFIED": "last_modified",
}
_ITEM_COMPONENTS = ("VEVENT", "VTODO", "VJOURNAL")


def extract_calendar_object(
    calendar_data: str,
    href: str = "",
    etag: str = "",
    full_parse: bool = False,
) -> CalendarObject:
    """Extract listing fields from one calendar object resource.

    Only properties that sit directly inside a VEVENT, VTODO or VJOURNAL are
    considered; alarm and timezone sub-components are skipped. When the
    resource holds several events (a master plus overrides) every field takes
    the value of the last one seen; ``vevent_count`` records how many there
    were so callers can fall back to ``full_parse``.

    Args:
        calendar_data: Raw iCalendar text
        href: Resource href from the multistatus entry
        etag: Resource ETag from the multistatus entry
        full_parse: Also run the typed parser and attach its result

    Returns:
        CalendarObject
    """
    fields: dict[str, Any] = {}
    attendees: list[str] = []
    vevent_count = 0
    stack: list[str] = []

    for line in LiteLineReader().iter_content_lines(calendar_data):
        if line.name == "BEGIN":
            kind = line.value.strip().upper()
            stack.append(kind)
            if kind == "VEVENT":
                vevent_count += 1
            continue
        if line.name == "END":
            kind = line.value.strip().upper()
            if kind in stack:
                del stack[len(stack) - 1 - stack[::-1].index(kind) :]
            continue
        if not stack or stack[-1] not in _ITEM_COMPONENTS:
            continue

        if line.name in _TEXT_FIELDS:
            fields[_TEXT_FIELDS[line.name]] = unescape_text(line.value)
        elif line.name in _RAW_FIELDS:
            fields[_RAW_FIELDS[line.name]] = line.value.strip()
        elif line.name in _TIME_FIELDS:
            parsed = parse_date_time(line)
            if parsed is not None:
                fields[_TIME_FIELDS[line.name]] = parsed
        elif line.name == "ATTENDEE":
            attendees.append(extract_email(line.value, line.param("EMAIL")) or line.value)

    if vevent_count > 1:
        logger.warning(
            "Calendar object %s holds %d VEVENTs; listing fields reflect the last one",
            href or "<inline>",
            vevent_count,
        )

    return CalendarObject(
        href=href,
        etag=etag,
        calendar_data=calendar_data,
        attendees=attendees,
        vevent_count=vevent_count,
        parsed=parse_icalendar(calendar_data) if full_parse else None,
        **fields,
    )


def extract_calendar_objects(
    entries: Iterable[Mapping[str, Any]],
    full_parse: bool = False,
) -> list[CalendarObject]:
    """Build CalendarObjects from decoded multistatus response entries.

    Each entry is a mapping with ``href``, ``etag``, ``calendar_data`` and an
    optional ``status`` (default 200). Entries with a non-200 status are
    skipped. Entries carrying only an ETag are kept without extracted fields.

    Args:
        entries: Decoded response entries
        full_parse: Run the typed parser on every entry with calendar data

    Returns:
        CalendarObjects in entry order
    """
    objects = []
    for entry in entries:
        if not entry_is_ok(entry):
            logger.debug("Skipping %s with status %s", entry.get("href", ""), entry.get("status"))
            continue
        href = str(entry.get("href") or "")
        etag = str(entry.get("etag") or "")
        data = entry.get("calendar_data") or ""
        if data:
            objects.append(extract_calendar_object(data, href=href, etag=etag, full_parse=full_parse))
        elif etag:
            objects.append(CalendarObject(href=href, etag=etag))
    logger.debug("Extracted %d calendar objects", len(objects))
    return objects


def entry_is_ok(entry: Mapping[str, Any]) -> bool:
    """True when a response entry's status (default 200) is 200.

    Accepts a bare code (``200`` or ``"200"``) or a multistatus status line
    such as ``"HTTP/1.1 200 OK"``.
    """
    status = entry.get("status", 200)
    if isinstance(status, str) and status.upper().startswith("HTTP/"):
        parts = status.split()
        return len(parts) >= 2 and parts[1] == "200"
    try:
        return int(status) == 200
    except (TypeError, ValueError):
        return False
