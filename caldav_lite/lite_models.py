"""Data models for iCalendar documents and recurrence expansion - caldav_lite."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer

_FROZEN = ConfigDict(frozen=True)


class Frequency(str, Enum):
    """RRULE FREQ values."""

    SECONDLY = "SECONDLY"
    MINUTELY = "MINUTELY"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class Weekday(str, Enum):
    """Two-letter weekday codes, in Python weekday() order."""

    MO = "MO"
    TU = "TU"
    WE = "WE"
    TH = "TH"
    FR = "FR"
    SA = "SA"
    SU = "SU"

    @property
    def day_index(self) -> int:
        """Return 0 for Monday through 6 for Sunday."""
        return list(Weekday).index(self)


class WeekdayNum(BaseModel):
    """A BYDAY entry: weekday with optional signed ordinal (e.g. 2TU, -1FR)."""

    ordinal: Optional[int] = None
    weekday: Weekday

    model_config = _FROZEN

    def __str__(self) -> str:
        if self.ordinal is None:
            return self.weekday.value
        return f"{self.ordinal}{self.weekday.value}"


class RecurrenceRule(BaseModel):
    """Validated RRULE/EXRULE.

    Only produced by ``lite_rrule_parser.parse_rrule`` or ``build_rrule``, so
    every instance already satisfies the validation rules (interval >= 1,
    count and until mutually exclusive, BY-list ranges).
    """

    freq: Frequency
    interval: int = 1
    count: Optional[int] = None
    until: Optional[datetime] = None
    by_second: list[int] = Field(default_factory=list)
    by_minute: list[int] = Field(default_factory=list)
    by_hour: list[int] = Field(default_factory=list)
    by_day: list[WeekdayNum] = Field(default_factory=list)
    by_month_day: list[int] = Field(default_factory=list)
    by_year_day: list[int] = Field(default_factory=list)
    by_week_no: list[int] = Field(default_factory=list)
    by_month: list[int] = Field(default_factory=list)
    by_set_pos: list[int] = Field(default_factory=list)
    week_start: Weekday = Weekday.MO

    model_config = _FROZEN

    def to_rrule_string(self) -> str:
        """Render the rule back to its RFC 5545 text form (without the RRULE: prefix)."""
        parts = [f"FREQ={self.freq.value}"]
        if self.interval != 1:
            parts.append(f"INTERVAL={self.interval}")
        if self.count is not None:
            parts.append(f"COUNT={self.count}")
        if self.until is not None:
            parts.append(f"UNTIL={self.until.strftime('%Y%m%dT%H%M%SZ')}")
        for key, values in (
            ("BYSECOND", self.by_second),
            ("BYMINUTE", self.by_minute),
            ("BYHOUR", self.by_hour),
            ("BYDAY", self.by_day),
            ("BYMONTHDAY", self.by_month_day),
            ("BYYEARDAY", self.by_year_day),
            ("BYWEEKNO", self.by_week_no),
            ("BYMONTH", self.by_month),
            ("BYSETPOS", self.by_set_pos),
        ):
            if values:
                parts.append(f"{key}={','.join(str(v) for v in values)}")
        if self.week_start != Weekday.MO:
            parts.append(f"WKST={self.week_start.value}")
        return ";".join(parts)


class ParsedOrganizer(BaseModel):
    """ORGANIZER property with its parameters."""

    value: str = ""
    cn: str = ""
    email: str = ""
    dir: str = ""
    sent_by: str = ""
    custom_params: dict[str, str] = Field(default_factory=dict)

    model_config = _FROZEN


class ParsedAttendee(ParsedOrganizer):
    """ATTENDEE property with its parameters."""

    role: str = ""
    partstat: str = ""
    rsvp: bool = False
    cutype: str = ""
    member: str = ""
    delegated_to: str = ""
    delegated_from: str = ""


class GeoLocation(BaseModel):
    latitude: float
    longitude: float

    model_config = _FROZEN


class Attachment(BaseModel):
    """ATTACH property. Either ``uri`` or ``value`` (inline binary) is set."""

    uri: str = ""
    value: str = ""
    encoding: str = ""
    format_type: str = ""
    filename: str = ""
    size: int = 0
    custom_params: dict[str, str] = Field(default_factory=dict)

    model_config = _FROZEN


class RelatedTo(BaseModel):
    uid: str
    relation_type: str = "PARENT"

    model_config = _FROZEN


class RequestStatus(BaseModel):
    code: str = ""
    description: str = ""
    extra_data: str = ""

    model_config = _FROZEN


class FreeBusyPeriod(BaseModel):
    start: datetime
    end: datetime
    fb_type: str = "BUSY"

    model_config = _FROZEN


class ParsedAlarm(BaseModel):
    """VALARM component."""

    action: str = ""
    trigger: str = ""
    duration: Optional[timedelta] = None
    repeat: int = 0
    description: str = ""
    summary: str = ""
    attendees: list[ParsedAttendee] = Field(default_factory=list)
    custom_properties: dict[str, str] = Field(default_factory=dict)

    model_config = _FROZEN


class CalendarItem(BaseModel):
    """Properties shared by VEVENT, VTODO and VJOURNAL."""

    uid: str = ""
    dtstamp: Optional[datetime] = None
    created: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    dtstart: Optional[datetime] = None
    summary: str = ""
    description: str = ""
    status: str = ""
    classification: str = ""
    sequence: int = 0
    priority: int = 0
    url: str = ""
    organizer: Optional[ParsedOrganizer] = None
    attendees: list[ParsedAttendee] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    rrule: str = ""
    rdates: list[datetime] = Field(default_factory=list)
    exdates: list[datetime] = Field(default_factory=list)
    exrule: str = ""
    recurrence_id: Optional[datetime] = None
    related_to: list[RelatedTo] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    contacts: list[str] = Field(default_factory=list)
    comments: list[str] = Field(default_factory=list)
    request_status: list[RequestStatus] = Field(default_factory=list)
    custom_properties: dict[str, str] = Field(default_factory=dict)

    model_config = _FROZEN

    @property
    def is_recurring(self) -> bool:
        """True when the item carries an RRULE or at least one RDATE."""
        return bool(self.rrule) or bool(self.rdates)


class ParsedEvent(CalendarItem):
    """VEVENT component."""

    dtend: Optional[datetime] = None
    duration: Optional[timedelta] = None
    location: str = ""
    transparency: str = ""
    geo: Optional[GeoLocation] = None
    alarms: list[ParsedAlarm] = Field(default_factory=list)

    @property
    def effective_end(self) -> Optional[datetime]:
        """DTEND, or DTSTART + DURATION when only a duration was given."""
        if self.dtend is not None:
            return self.dtend
        if self.dtstart is not None and self.duration is not None:
            return self.dtstart + self.duration
        return None


class ParsedTodo(CalendarItem):
    """VTODO component."""

    due: Optional[datetime] = None
    completed: Optional[datetime] = None
    percent_complete: int = 0
    duration: Optional[timedelta] = None
    location: str = ""
    geo: Optional[GeoLocation] = None
    alarms: list[ParsedAlarm] = Field(default_factory=list)


class ParsedJournal(CalendarItem):
    """VJOURNAL component."""


class ParsedFreeBusy(BaseModel):
    """VFREEBUSY component."""

    uid: str = ""
    dtstamp: Optional[datetime] = None
    dtstart: Optional[datetime] = None
    dtend: Optional[datetime] = None
    organizer: Optional[ParsedOrganizer] = None
    attendees: list[ParsedAttendee] = Field(default_factory=list)
    url: str = ""
    comments: list[str] = Field(default_factory=list)
    free_busy: list[FreeBusyPeriod] = Field(default_factory=list)
    request_status: list[RequestStatus] = Field(default_factory=list)
    custom_properties: dict[str, str] = Field(default_factory=dict)

    model_config = _FROZEN


class TimeZoneRule(BaseModel):
    """STANDARD or DAYLIGHT sub-component of a VTIMEZONE."""

    dtstart: Optional[datetime] = None
    tz_offset_from: str = ""
    tz_offset_to: str = ""
    tz_name: str = ""
    rrule: str = ""
    rdates: list[datetime] = Field(default_factory=list)
    exdates: list[datetime] = Field(default_factory=list)
    comments: list[str] = Field(default_factory=list)
    custom_properties: dict[str, str] = Field(default_factory=dict)

    model_config = _FROZEN


class ParsedTimeZone(BaseModel):
    """VTIMEZONE component."""

    tzid: str = ""
    last_modified: Optional[datetime] = None
    tz_url: str = ""
    standard: Optional[TimeZoneRule] = None
    daylight: Optional[TimeZoneRule] = None
    custom_properties: dict[str, str] = Field(default_factory=dict)

    model_config = _FROZEN


class CalendarDocument(BaseModel):
    """Typed result of a full parse.

    Component lists keep document order. Alarms found outside any event or
    to-do are kept in ``alarms`` rather than dropped.
    """

    version: str = ""
    prodid: str = ""
    calscale: str = ""
    method: str = ""
    events: list[ParsedEvent] = Field(default_factory=list)
    todos: list[ParsedTodo] = Field(default_factory=list)
    journals: list[ParsedJournal] = Field(default_factory=list)
    free_busy: list[ParsedFreeBusy] = Field(default_factory=list)
    timezones: list[ParsedTimeZone] = Field(default_factory=list)
    alarms: list[ParsedAlarm] = Field(default_factory=list)
    custom_properties: dict[str, str] = Field(default_factory=dict)

    model_config = _FROZEN

    def find_timezone(self, tzid: str) -> Optional[ParsedTimeZone]:
        """Return the VTIMEZONE with the given TZID, if present."""
        for tz in self.timezones:
            if tz.tzid == tzid:
                return tz
        return None


class CalendarObject(BaseModel):
    """One CalDAV response entry with the fields extracted for listing views.

    ``parsed`` is only populated when full parsing was requested.
    """

    href: str = ""
    etag: str = ""
    calendar_data: str = ""
    uid: str = ""
    summary: str = ""
    description: str = ""
    location: str = ""
    status: str = ""
    organizer: str = ""
    dtstart: Optional[datetime] = None
    dtend: Optional[datetime] = None
    created: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    attendees: list[str] = Field(default_factory=list)
    vevent_count: int = 0
    parsed: Optional[CalendarDocument] = None

    model_config = _FROZEN


class Occurrence(BaseModel):
    """One concrete instance produced by recurrence expansion."""

    uid: str = ""
    summary: str = ""
    description: str = ""
    location: str = ""
    status: str = ""
    start: datetime
    end: Optional[datetime] = None
    recurrence_id: Optional[datetime] = None
    is_override: bool = False
    item: Union[ParsedEvent, ParsedTodo, ParsedJournal]

    model_config = _FROZEN

    @field_serializer("start", "end", "recurrence_id", when_used="unless-none")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()
