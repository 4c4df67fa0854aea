"""iCalendar serialization for parsed documents - caldav_lite.

Builds ``icalendar`` components from the typed models and lets the library
handle escaping, parameter quoting and line folding. Values the models keep
as raw text (custom properties, REQUEST-STATUS, UTC offsets) are written
verbatim through ``vInline``.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from icalendar import (
    Alarm,
    Calendar,
    Component,
    Event,
    FreeBusy,
    Journal,
    Timezone,
    TimezoneDaylight,
    TimezoneStandard,
    Todo,
)
from icalendar.prop import vCalAddress, vInline, vRecur, vText

from .lite_datetime_utils import parse_caldav_time, parse_duration
from .lite_models import (
    CalendarDocument,
    CalendarItem,
    ParsedAlarm,
    ParsedAttendee,
    ParsedEvent,
    ParsedFreeBusy,
    ParsedOrganizer,
    ParsedTimeZone,
    ParsedTodo,
    TimeZoneRule,
)

logger = logging.getLogger(__name__)

DEFAULT_PRODID = "-//caldav-lite//caldav_lite//EN"

_ATTENDEE_PARAMS = (
    ("ROLE", "role"),
    ("PARTSTAT", "partstat"),
    ("CUTYPE", "cutype"),
    ("MEMBER", "member"),
    ("DELEGATED-TO", "delegated_to"),
    ("DELEGATED-FROM", "delegated_from"),
)


def serialize_document(document: CalendarDocument) -> str:
    """Serialize a CalendarDocument to iCalendar text.

    Args:
        document: Parsed (or hand-built) document

    Returns:
        CRLF-terminated, folded iCalendar text
    """
    calendar = build_calendar(document)
    text = calendar.to_ical().decode("utf-8")
    logger.debug(
        "Serialized document: %d events, %d todos, %d journals (%d bytes)",
        len(document.events),
        len(document.todos),
        len(document.journals),
        len(text),
    )
    return text


def build_calendar(document: CalendarDocument) -> Calendar:
    """Build an ``icalendar.Calendar`` mirroring the document."""
    calendar = Calendar()
    calendar.add("prodid", document.prodid or DEFAULT_PRODID)
    calendar.add("version", document.version or "2.0")
    if document.calscale:
        calendar.add("calscale", document.calscale)
    if document.method:
        calendar.add("method", document.method)
    _add_custom(calendar, document.custom_properties)

    for tz in document.timezones:
        calendar.add_component(_build_timezone(tz))
    for event in document.events:
        calendar.add_component(_build_event(event))
    for todo in document.todos:
        calendar.add_component(_build_todo(todo))
    for journal in document.journals:
        calendar.add_component(_build_item(Journal(), journal))
    for free_busy in document.free_busy:
        calendar.add_component(_build_free_busy(free_busy))
    for alarm in document.alarms:
        calendar.add_component(_build_alarm(alarm))
    return calendar


def _portable(dt: datetime) -> datetime:
    """Keep named zones (written as TZID) and move fixed offsets to UTC."""
    if dt.tzinfo is None or isinstance(dt.tzinfo, ZoneInfo):
        return dt
    return dt.astimezone(UTC)


def _add(component: Component, name: str, value: Any, parameters: Optional[dict] = None) -> None:
    if value is None or value == "" or value == []:
        return
    if isinstance(value, datetime):
        value = _portable(value)
    elif isinstance(value, list) and value and isinstance(value[0], datetime):
        value = [_portable(dt) for dt in value]
    component.add(name, value, parameters=parameters)


def _add_recur(component: Component, name: str, rule: str) -> None:
    if not rule:
        return
    try:
        component.add(name, vRecur.from_ical(rule))
    except ValueError:
        logger.debug("Writing unparsable %s %r verbatim", name.upper(), rule)
        _add_raw(component, name, rule)


def _add_raw(component: Component, name: str, value: str) -> None:
    if value:
        component.add(name, vInline(value))


def _add_custom(component: Component, custom: dict[str, str]) -> None:
    for name, value in custom.items():
        component.add(name, vInline(value))


def _address(entry: Union[ParsedOrganizer, ParsedAttendee]) -> vCalAddress:
    address = vCalAddress(entry.value or (f"mailto:{entry.email}" if entry.email else ""))
    if entry.cn:
        address.params["CN"] = entry.cn
    if entry.dir:
        address.params["DIR"] = entry.dir
    if entry.sent_by:
        address.params["SENT-BY"] = entry.sent_by
    if entry.email and not entry.value.lower().startswith("mailto:"):
        address.params["EMAIL"] = entry.email
    if isinstance(entry, ParsedAttendee):
        for param, attr in _ATTENDEE_PARAMS:
            value = getattr(entry, attr)
            if value:
                address.params[param] = value
        if entry.rsvp:
            address.params["RSVP"] = "TRUE"
    for key, value in entry.custom_params.items():
        address.params[key] = value
    return address


def _build_item(component: Component, item: CalendarItem) -> Component:
    """Add the properties shared by events, to-dos and journals."""
    _add(component, "uid", item.uid)
    _add(component, "dtstamp", item.dtstamp)
    _add(component, "created", item.created)
    _add(component, "last-modified", item.last_modified)
    _add(component, "dtstart", item.dtstart)
    _add(component, "summary", item.summary)
    _add(component, "description", item.description)
    _add(component, "status", item.status)
    _add(component, "class", item.classification)
    if item.sequence:
        component.add("sequence", item.sequence)
    if item.priority:
        component.add("priority", item.priority)
    _add(component, "url", item.url)
    if item.organizer is not None:
        component.add("organizer", _address(item.organizer))
    for attendee in item.attendees:
        component.add("attendee", _address(attendee))
    _add(component, "categories", item.categories)

    _add_recur(component, "rrule", item.rrule)
    _add_recur(component, "exrule", item.exrule)
    _add(component, "rdate", item.rdates)
    _add(component, "exdate", item.exdates)
    _add(component, "recurrence-id", item.recurrence_id)

    for related in item.related_to:
        component.add("related-to", related.uid, parameters={"RELTYPE": related.relation_type})
    for attachment in item.attachments:
        params = dict(attachment.custom_params)
        if attachment.format_type:
            params["FMTTYPE"] = attachment.format_type
        if attachment.filename:
            params["FILENAME"] = attachment.filename
        if attachment.size > 0:
            params["SIZE"] = str(attachment.size)
        if attachment.value:
            params["VALUE"] = "BINARY"
            params["ENCODING"] = attachment.encoding or "BASE64"
            component.add("attach", vInline(attachment.value), parameters=params)
        elif attachment.uri:
            component.add("attach", attachment.uri, parameters=params)
    for contact in item.contacts:
        component.add("contact", contact)
    for comment in item.comments:
        component.add("comment", comment)
    for status in item.request_status:
        parts = [status.code, vText(status.description).to_ical().decode("utf-8")]
        if status.extra_data:
            parts.append(status.extra_data)
        _add_raw(component, "request-status", ";".join(parts))
    _add_custom(component, item.custom_properties)
    return component


def _build_event(event: ParsedEvent) -> Event:
    component = _build_item(Event(), event)
    _add(component, "dtend", event.dtend)
    _add(component, "duration", event.duration)
    _add(component, "location", event.location)
    _add(component, "transp", event.transparency)
    if event.geo is not None:
        component.add("geo", (event.geo.latitude, event.geo.longitude))
    for alarm in event.alarms:
        component.add_component(_build_alarm(alarm))
    return component


def _build_todo(todo: ParsedTodo) -> Todo:
    component = _build_item(Todo(), todo)
    _add(component, "due", todo.due)
    _add(component, "completed", todo.completed)
    if todo.percent_complete:
        component.add("percent-complete", todo.percent_complete)
    _add(component, "duration", todo.duration)
    _add(component, "location", todo.location)
    if todo.geo is not None:
        component.add("geo", (todo.geo.latitude, todo.geo.longitude))
    for alarm in todo.alarms:
        component.add_component(_build_alarm(alarm))
    return component


def _trigger_value(trigger: str) -> Any:
    duration = parse_duration(trigger)
    if duration is not None:
        return duration
    return parse_caldav_time(trigger)


def _build_alarm(alarm: ParsedAlarm) -> Alarm:
    component = Alarm()
    _add(component, "action", alarm.action)
    if alarm.trigger:
        value = _trigger_value(alarm.trigger)
        if value is None:
            logger.debug("Writing unrecognized TRIGGER %r verbatim", alarm.trigger)
            _add_raw(component, "trigger", alarm.trigger)
        else:
            component.add("trigger", value)
    _add(component, "duration", alarm.duration)
    if alarm.repeat:
        component.add("repeat", alarm.repeat)
    _add(component, "description", alarm.description)
    _add(component, "summary", alarm.summary)
    for attendee in alarm.attendees:
        component.add("attendee", _address(attendee))
    _add_custom(component, alarm.custom_properties)
    return component


def _build_free_busy(free_busy: ParsedFreeBusy) -> FreeBusy:
    component = FreeBusy()
    _add(component, "uid", free_busy.uid)
    _add(component, "dtstamp", free_busy.dtstamp)
    _add(component, "dtstart", free_busy.dtstart)
    _add(component, "dtend", free_busy.dtend)
    if free_busy.organizer is not None:
        component.add("organizer", _address(free_busy.organizer))
    for attendee in free_busy.attendees:
        component.add("attendee", _address(attendee))
    _add(component, "url", free_busy.url)
    for comment in free_busy.comments:
        component.add("comment", comment)
    for period in free_busy.free_busy:
        component.add(
            "freebusy",
            (_portable(period.start), _portable(period.end)),
            parameters={"FBTYPE": period.fb_type},
        )
    _add_custom(component, free_busy.custom_properties)
    return component


def _local(dt: Optional[datetime]) -> Optional[datetime]:
    # VTIMEZONE onsets are written as local wall-clock time
    return dt.replace(tzinfo=None) if dt is not None else None


def _build_timezone_rule(component: Component, rule: TimeZoneRule) -> Component:
    _add(component, "dtstart", _local(rule.dtstart))
    _add_raw(component, "tzoffsetfrom", rule.tz_offset_from)
    _add_raw(component, "tzoffsetto", rule.tz_offset_to)
    _add(component, "tzname", rule.tz_name)
    _add_recur(component, "rrule", rule.rrule)
    _add(component, "rdate", [_local(dt) for dt in rule.rdates])
    for comment in rule.comments:
        component.add("comment", comment)
    _add_custom(component, rule.custom_properties)
    return component


def _build_timezone(tz: ParsedTimeZone) -> Timezone:
    component = Timezone()
    _add(component, "tzid", tz.tzid)
    _add(component, "last-modified", tz.last_modified)
    _add(component, "tzurl", tz.tz_url)
    if tz.standard is not None:
        component.add_component(_build_timezone_rule(TimezoneStandard(), tz.standard))
    if tz.daylight is not None:
        component.add_component(_build_timezone_rule(TimezoneDaylight(), tz.daylight))
    _add_custom(component, tz.custom_properties)
    return component

