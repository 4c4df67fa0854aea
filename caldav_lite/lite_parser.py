"""Lenient iCalendar (RFC 5545) parser producing typed documents - caldav_lite.

Components are assembled on an explicit stack of in-progress frames. A frame
is a mutable bag of decoded fields while its BEGIN/END block is open; on END
it is converted into the matching frozen model and attached to its parent.

Malformed content never raises. Unknown properties land in the component's
``custom_properties``, unknown components are consumed and dropped, an END
without a matching BEGIN is ignored, and frames still open at end of input
are closed as if their END had been seen.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional

from .lite_attendee_parser import LiteAttendeeParser
from .lite_datetime_utils import parse_duration
from .lite_line_reader import ContentLine, ICSSource, LiteLineReader
from .lite_models import (
    CalendarDocument,
    ParsedAlarm,
    ParsedEvent,
    ParsedFreeBusy,
    ParsedJournal,
    ParsedTimeZone,
    ParsedTodo,
    TimeZoneRule,
)
from .lite_value_decoders import (
    parse_attachment,
    parse_date_time,
    parse_date_time_list,
    parse_free_busy,
    parse_geo,
    parse_int,
    parse_related_to,
    parse_request_status,
    split_text_list,
    unescape_text,
)

logger = logging.getLogger(__name__)

ROOT = "VCALENDAR"
ITEM_COMPONENTS = ("VEVENT", "VTODO", "VJOURNAL")
TIMEZONE_RULES = ("STANDARD", "DAYLIGHT")


@dataclass
class _Frame:
    """In-progress component."""

    kind: str
    data: dict[str, Any] = field(default_factory=dict)
    custom: dict[str, str] = field(default_factory=dict)
    discard: bool = False

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def append(self, key: str, value: Any) -> None:
        self.data.setdefault(key, []).append(value)

    def extend(self, key: str, values: list[Any]) -> None:
        self.data.setdefault(key, []).extend(values)


Handler = Callable[[_Frame, ContentLine], None]

_attendee_parser = LiteAttendeeParser()


def _raw(name: str) -> Handler:
    return lambda frame, line: frame.set(name, line.value.strip())


def _text(name: str) -> Handler:
    return lambda frame, line: frame.set(name, unescape_text(line.value))


def _text_append(name: str) -> Handler:
    return lambda frame, line: frame.append(name, unescape_text(line.value))


def _time(name: str) -> Handler:
    return lambda frame, line: frame.set(name, parse_date_time(line))


def _time_list(name: str) -> Handler:
    return lambda frame, line: frame.extend(name, parse_date_time_list(line))


def _integer(name: str) -> Handler:
    return lambda frame, line: frame.set(name, parse_int(line.value))


def _duration(name: str) -> Handler:
    return lambda frame, line: frame.set(name, parse_duration(line.value))


def _organizer(frame: _Frame, line: ContentLine) -> None:
    frame.set("organizer", _attendee_parser.parse_organizer(line))


def _attendee(frame: _Frame, line: ContentLine) -> None:
    frame.append("attendees", _attendee_parser.parse_attendee(line))


def _categories(frame: _Frame, line: ContentLine) -> None:
    frame.extend("categories", split_text_list(line.value))


def _geo(frame: _Frame, line: ContentLine) -> None:
    frame.set("geo", parse_geo(line.value))


def _attach(frame: _Frame, line: ContentLine) -> None:
    frame.append("attachments", parse_attachment(line))


def _related_to(frame: _Frame, line: ContentLine) -> None:
    frame.append("related_to", parse_related_to(line))


def _request_status(frame: _Frame, line: ContentLine) -> None:
    frame.append("request_status", parse_request_status(line.value))


def _free_busy(frame: _Frame, line: ContentLine) -> None:
    frame.extend("free_busy", parse_free_busy(line))


_ITEM_HANDLERS: dict[str, Handler] = {
    "UID": _raw("uid"),
    "DTSTAMP": _time("dtstamp"),
    "CREATED": _time("created"),
    "LAST-MODIFIED": _time("last_modified"),
    "DTSTART": _time("dtstart"),
    "SUMMARY": _text("summary"),
    "DESCRIPTION": _text("description"),
    "STATUS": _raw("status"),
    "CLASS": _raw("classification"),
    "SEQUENCE": _integer("sequence"),
    "PRIORITY": _integer("priority"),
    "URL": _raw("url"),
    "ORGANIZER": _organizer,
    "ATTENDEE": _attendee,
    "CATEGORIES": _categories,
    "RRULE": _raw("rrule"),
    "EXRULE": _raw("exrule"),
    "RDATE": _time_list("rdates"),
    "EXDATE": _time_list("exdates"),
    "RECURRENCE-ID": _time("recurrence_id"),
    "RELATED-TO": _related_to,
    "ATTACH": _attach,
    "CONTACT": _text_append("contacts"),
    "COMMENT": _text_append("comments"),
    "REQUEST-STATUS": _request_status,
}

_EVENT_HANDLERS: dict[str, Handler] = {
    **_ITEM_HANDLERS,
    "DTEND": _time("dtend"),
    "DURATION": _duration("duration"),
    "LOCATION": _text("location"),
    "TRANSP": _raw("transparency"),
    "GEO": _geo,
}

_TODO_HANDLERS: dict[str, Handler] = {
    **_ITEM_HANDLERS,
    "DUE": _time("due"),
    "COMPLETED": _time("completed"),
    "PERCENT-COMPLETE": _integer("percent_complete"),
    "DURATION": _duration("duration"),
    "LOCATION": _text("location"),
    "GEO": _geo,
}

_ALARM_HANDLERS: dict[str, Handler] = {
    "ACTION": _raw("action"),
    "TRIGGER": _raw("trigger"),
    "DURATION": _duration("duration"),
    "REPEAT": _integer("repeat"),
    "DESCRIPTION": _text("description"),
    "SUMMARY": _text("summary"),
    "ATTENDEE": _attendee,
}

_FREEBUSY_HANDLERS: dict[str, Handler] = {
    "UID": _raw("uid"),
    "DTSTAMP": _time("dtstamp"),
    "DTSTART": _time("dtstart"),
    "DTEND": _time("dtend"),
    "ORGANIZER": _organizer,
    "ATTENDEE": _attendee,
    "URL": _raw("url"),
    "COMMENT": _text_append("comments"),
    "FREEBUSY": _free_busy,
    "REQUEST-STATUS": _request_status,
}

_TIMEZONE_HANDLERS: dict[str, Handler] = {
    "TZID": _raw("tzid"),
    "LAST-MODIFIED": _time("last_modified"),
    "TZURL": _raw("tz_url"),
}

_TIMEZONE_RULE_HANDLERS: dict[str, Handler] = {
    "DTSTART": _time("dtstart"),
    "TZOFFSETFROM": _raw("tz_offset_from"),
    "TZOFFSETTO": _raw("tz_offset_to"),
    "TZNAME": _raw("tz_name"),
    "RRULE": _raw("rrule"),
    "RDATE": _time_list("rdates"),
    "EXDATE": _time_list("exdates"),
    "COMMENT": _text_append("comments"),
}

_CALENDAR_HANDLERS: dict[str, Handler] = {
    "VERSION": _raw("version"),
    "PRODID": _raw("prodid"),
    "CALSCALE": _raw("calscale"),
    "METHOD": _raw("method"),
}

_HANDLERS: dict[str, dict[str, Handler]] = {
    ROOT: _CALENDAR_HANDLERS,
    "VEVENT": _EVENT_HANDLERS,
    "VTODO": _TODO_HANDLERS,
    "VJOURNAL": _ITEM_HANDLERS,
    "VALARM": _ALARM_HANDLERS,
    "VFREEBUSY": _FREEBUSY_HANDLERS,
    "VTIMEZONE": _TIMEZONE_HANDLERS,
    "STANDARD": _TIMEZONE_RULE_HANDLERS,
    "DAYLIGHT": _TIMEZONE_RULE_HANDLERS,
}

_MODELS: dict[str, Any] = {
    "VEVENT": ParsedEvent,
    "VTODO": ParsedTodo,
    "VJOURNAL": ParsedJournal,
    "VALARM": ParsedAlarm,
    "VFREEBUSY": ParsedFreeBusy,
    "VTIMEZONE": ParsedTimeZone,
    "STANDARD": TimeZoneRule,
    "DAYLIGHT": TimeZoneRule,
}

# Document list each top-level component is appended to.
_DOCUMENT_LISTS = {
    "VEVENT": "events",
    "VTODO": "todos",
    "VJOURNAL": "journals",
    "VFREEBUSY": "free_busy",
    "VTIMEZONE": "timezones",
}


class LiteICalendarParser:
    """Stack-based assembler turning content lines into a CalendarDocument.

    Instances hold no state between ``parse`` calls and can be reused.
    """

    def __init__(self, max_size_bytes: Optional[int] = None) -> None:
        """Initialize parser.

        Args:
            max_size_bytes: Optional input size limit passed to the line reader
        """
        self._reader = LiteLineReader(max_size_bytes=max_size_bytes)

    def parse(self, source: ICSSource) -> CalendarDocument:
        """Parse iCalendar content into a CalendarDocument.

        Args:
            source: ICS text, UTF-8 bytes, or a readable file object

        Returns:
            CalendarDocument with components in document order

        Raises:
            LiteICSStreamError: Only when the underlying stream cannot be read
        """
        stack = [_Frame(kind=ROOT)]
        line_count = 0

        for line in self._reader.iter_content_lines(source):
            line_count += 1
            if line.name == "BEGIN":
                self._begin(stack, line.value.strip().upper())
            elif line.name == "END":
                self._end(stack, line.value.strip().upper())
            else:
                self._property(stack[-1], line)

        while len(stack) > 1:
            logger.debug("Closing unterminated %s at end of input", stack[-1].kind)
            self._close(stack)

        document = self._build_document(stack[0])
        logger.debug(
            "Parsed %d lines: %d events, %d todos, %d journals, %d free/busy, %d timezones",
            line_count,
            len(document.events),
            len(document.todos),
            len(document.journals),
            len(document.free_busy),
            len(document.timezones),
        )
        return document

    def _begin(self, stack: list[_Frame], kind: str) -> None:
        if kind == ROOT:
            return
        discard = stack[-1].discard or kind not in _MODELS
        if kind in TIMEZONE_RULES and stack[-1].kind != "VTIMEZONE":
            discard = True
        if discard and not stack[-1].discard:
            logger.debug("Discarding component %s", kind)
        stack.append(_Frame(kind=kind, discard=discard))

    def _end(self, stack: list[_Frame], kind: str) -> None:
        if kind == ROOT:
            while len(stack) > 1:
                self._close(stack)
            return
        for depth in range(len(stack) - 1, 0, -1):
            if stack[depth].kind == kind:
                while len(stack) > depth:
                    self._close(stack)
                return
        logger.debug("Ignoring END:%s without matching BEGIN", kind)

    def _property(self, frame: _Frame, line: ContentLine) -> None:
        if frame.discard:
            return
        handler = _HANDLERS[frame.kind].get(line.name)
        if handler is None:
            frame.custom[line.name] = line.value
            return
        handler(frame, line)

    def _close(self, stack: list[_Frame]) -> None:
        frame = stack.pop()
        if frame.discard:
            return
        parent = stack[-1]
        model = _MODELS[frame.kind](**frame.data, custom_properties=frame.custom)

        if frame.kind == "VALARM":
            if parent.kind in ("VEVENT", "VTODO") and not parent.discard:
                parent.append("alarms", model)
            else:
                stack[0].append("alarms", model)
        elif frame.kind in TIMEZONE_RULES:
            parent.set(frame.kind.lower(), model)
        else:
            stack[0].append(_DOCUMENT_LISTS[frame.kind], model)

    @staticmethod
    def _build_document(root: _Frame) -> CalendarDocument:
        return CalendarDocument(**root.data, custom_properties=root.custom)


def parse_icalendar(data: ICSSource, max_size_bytes: Optional[int] = None) -> CalendarDocument:
    """Parse iCalendar content into a typed CalendarDocument.

    Args:
        data: ICS text, UTF-8 bytes, or a readable file object
        max_size_bytes: Optional input size limit

    Returns:
        CalendarDocument
    """
    return LiteICalendarParser(max_size_bytes=max_size_bytes).parse(data)
