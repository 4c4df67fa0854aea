"""Unit tests for caldav_lite.lite_parser."""

import io
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from caldav_lite.lite_exceptions import LiteICSContentTooLargeError
from caldav_lite.lite_parser import LiteICalendarParser, parse_icalendar

pytestmark = pytest.mark.unit


def _ics(*lines: str) -> str:
    return "\r\n".join(lines) + "\r\n"


class TestDocumentParsing:
    """Tests for a complete, well-formed document."""

    def test_calendar_properties(self, full_calendar_ics):
        document = parse_icalendar(full_calendar_ics)

        assert document.version == "2.0"
        assert document.prodid == "-//Apple Inc.//iCloud 2.0//EN"
        assert document.calscale == "GREGORIAN"
        assert document.method == "PUBLISH"
        assert document.custom_properties == {"X-WR-CALNAME": "Work"}

    def test_component_counts(self, full_calendar_ics):
        document = parse_icalendar(full_calendar_ics)

        assert len(document.events) == 1
        assert len(document.todos) == 1
        assert len(document.journals) == 1
        assert len(document.free_busy) == 1
        assert len(document.timezones) == 1
        assert document.alarms == []

    def test_event_fields(self, full_calendar_ics):
        event = parse_icalendar(full_calendar_ics).events[0]
        new_york = ZoneInfo("America/New_York")

        assert event.uid == "planning@example.com"
        assert event.dtstart == datetime(2025, 1, 15, 9, 0, tzinfo=new_york)
        assert event.dtend == datetime(2025, 1, 15, 10, 0, tzinfo=new_york)
        assert event.summary == "Quarterly planning, Q1"
        assert event.description == "Agenda:\n1. Review\n2. Plan"
        assert event.location == "Room 4"
        assert event.status == "CONFIRMED"
        assert event.classification == "PUBLIC"
        assert event.sequence == 2
        assert event.priority == 5
        assert event.transparency == "OPAQUE"
        assert event.categories == ["Work", "Planning"]
        assert event.geo is not None
        assert event.geo.latitude == pytest.approx(37.386013)
        assert event.is_recurring is False

    def test_event_people(self, full_calendar_ics):
        event = parse_icalendar(full_calendar_ics).events[0]

        assert event.organizer is not None
        assert event.organizer.cn == "Alice Smith"
        assert event.organizer.email == "alice@example.com"
        assert [a.email for a in event.attendees] == ["bob@example.com", ""]
        bob, projector = event.attendees
        assert bob.rsvp is True
        assert bob.partstat == "ACCEPTED"
        assert projector.cutype == "RESOURCE"
        assert projector.custom_params == {"X-APPLE-HIDDEN": "1"}

    def test_event_structured_properties(self, full_calendar_ics):
        event = parse_icalendar(full_calendar_ics).events[0]

        assert event.attachments[0].uri == "https://example.com/agenda.pdf"
        assert event.attachments[0].size == 2048
        assert event.related_to[0].uid == "parent@example.com"
        assert event.related_to[0].relation_type == "PARENT"
        assert event.request_status[0].code == "2.0"
        assert event.request_status[0].description == "Success"
        assert event.custom_properties == {"X-APPLE-TRAVEL-ADVISORY-BEHAVIOR": "AUTOMATIC"}

    def test_alarm_attached_to_event(self, full_calendar_ics):
        event = parse_icalendar(full_calendar_ics).events[0]

        assert len(event.alarms) == 1
        alarm = event.alarms[0]
        assert alarm.action == "DISPLAY"
        assert alarm.trigger == "-PT15M"
        assert alarm.description == "Reminder"

    def test_todo_journal_freebusy(self, full_calendar_ics):
        document = parse_icalendar(full_calendar_ics)
        todo = document.todos[0]
        journal = document.journals[0]
        free_busy = document.free_busy[0]

        assert todo.due == datetime(2025, 1, 20, 17, 0, tzinfo=UTC)
        assert todo.percent_complete == 40
        assert todo.status == "IN-PROCESS"
        assert journal.dtstart == datetime(2025, 1, 15, tzinfo=UTC)
        assert journal.summary == "Planning notes"
        assert [(p.fb_type, p.start.hour) for p in free_busy.free_busy] == [
            ("BUSY-TENTATIVE", 14),
            ("BUSY", 16),
        ]

    def test_timezone_rules(self, full_calendar_ics):
        document = parse_icalendar(full_calendar_ics)
        tz = document.find_timezone("America/New_York")

        assert tz is not None
        assert tz.daylight is not None and tz.standard is not None
        assert tz.daylight.tz_offset_to == "-0400"
        assert tz.daylight.tz_name == "EDT"
        assert tz.standard.rrule == "FREQ=YEARLY;BYMONTH=11;BYDAY=1SU"
        assert document.find_timezone("Europe/Paris") is None


class TestLenientParsing:
    """Malformed input is absorbed, never raised."""

    def test_unknown_component_discarded_with_its_children(self):
        document = parse_icalendar(
            _ics(
                "BEGIN:VCALENDAR",
                "BEGIN:X-WIDGET",
                "SUMMARY:ignored",
                "BEGIN:VEVENT",
                "UID:nested-in-unknown",
                "END:VEVENT",
                "END:X-WIDGET",
                "BEGIN:VEVENT",
                "UID:kept",
                "END:VEVENT",
                "END:VCALENDAR",
            )
        )

        assert [e.uid for e in document.events] == ["kept"]

    def test_unterminated_components_closed_at_end_of_input(self):
        document = parse_icalendar(
            _ics("BEGIN:VCALENDAR", "BEGIN:VEVENT", "UID:open", "BEGIN:VALARM", "ACTION:AUDIO")
        )

        assert len(document.events) == 1
        assert document.events[0].uid == "open"
        assert document.events[0].alarms[0].action == "AUDIO"

    def test_unmatched_end_ignored(self):
        document = parse_icalendar(
            _ics("BEGIN:VCALENDAR", "END:VTODO", "BEGIN:VEVENT", "UID:a", "END:VEVENT", "END:VCALENDAR")
        )

        assert [e.uid for e in document.events] == ["a"]
        assert document.todos == []

    def test_end_of_outer_component_closes_inner(self):
        document = parse_icalendar(
            _ics(
                "BEGIN:VCALENDAR",
                "BEGIN:VEVENT",
                "UID:outer",
                "BEGIN:VALARM",
                "ACTION:DISPLAY",
                "END:VEVENT",
                "END:VCALENDAR",
            )
        )

        assert document.events[0].alarms[0].action == "DISPLAY"

    def test_bad_values_become_defaults(self):
        document = parse_icalendar(
            _ics(
                "BEGIN:VCALENDAR",
                "BEGIN:VEVENT",
                "UID:bad",
                "DTSTART:not-a-date",
                "SEQUENCE:abc",
                "GEO:north;south",
                "DURATION:forever",
                "this line has no colon",
                "END:VEVENT",
                "END:VCALENDAR",
            )
        )

        event = document.events[0]
        assert event.dtstart is None
        assert event.sequence == 0
        assert event.geo is None
        assert event.duration is None

    def test_alarm_outside_event_kept_on_document(self):
        document = parse_icalendar(
            _ics("BEGIN:VCALENDAR", "BEGIN:VALARM", "ACTION:EMAIL", "END:VALARM", "END:VCALENDAR")
        )

        assert [a.action for a in document.alarms] == ["EMAIL"]

    def test_timezone_rule_outside_vtimezone_discarded(self):
        document = parse_icalendar(
            _ics(
                "BEGIN:VCALENDAR",
                "BEGIN:STANDARD",
                "TZOFFSETTO:+0100",
                "END:STANDARD",
                "BEGIN:VEVENT",
                "UID:after",
                "END:VEVENT",
                "END:VCALENDAR",
            )
        )

        assert [e.uid for e in document.events] == ["after"]
        assert document.custom_properties == {}

    def test_empty_input_gives_empty_document(self):
        document = parse_icalendar("")

        assert document.events == []
        assert document.version == ""


class TestRecurrenceProperties:
    """Tests for RRULE/RDATE/EXDATE capture."""

    def test_recurrence_fields(self):
        document = parse_icalendar(
            _ics(
                "BEGIN:VCALENDAR",
                "BEGIN:VEVENT",
                "UID:r",
                "DTSTART:20250101T100000Z",
                "DURATION:PT45M",
                "RRULE:FREQ=DAILY;COUNT=10",
                "RDATE:20250201T100000Z,20250202T100000Z",
                "EXDATE:20250103T100000Z",
                "EXDATE:20250104T100000Z",
                "END:VEVENT",
                "END:VCALENDAR",
            )
        )

        event = document.events[0]
        assert event.rrule == "FREQ=DAILY;COUNT=10"
        assert len(event.rdates) == 2
        assert event.exdates == [
            datetime(2025, 1, 3, 10, 0, tzinfo=UTC),
            datetime(2025, 1, 4, 10, 0, tzinfo=UTC),
        ]
        assert event.duration == timedelta(minutes=45)
        assert event.effective_end == datetime(2025, 1, 1, 10, 45, tzinfo=UTC)
        assert event.is_recurring is True

    def test_recurrence_id_captured(self, override_ics):
        document = parse_icalendar(override_ics)

        assert document.events[0].recurrence_id is None
        assert document.events[1].recurrence_id == datetime(2025, 1, 8, 9, 0, tzinfo=UTC)


class TestParserInputs:
    """Tests for accepted input forms and limits."""

    def test_bytes_and_stream_inputs_match_text(self, weekly_event_ics):
        from_text = parse_icalendar(weekly_event_ics)
        from_bytes = parse_icalendar(weekly_event_ics.encode("utf-8"))
        from_stream = parse_icalendar(io.BytesIO(weekly_event_ics.encode("utf-8")))

        assert from_text == from_bytes == from_stream

    def test_size_limit_enforced(self, weekly_event_ics):
        with pytest.raises(LiteICSContentTooLargeError):
            LiteICalendarParser(max_size_bytes=64).parse(weekly_event_ics)

    def test_parser_reusable(self, weekly_event_ics, override_ics):
        parser = LiteICalendarParser()

        first = parser.parse(weekly_event_ics)
        second = parser.parse(override_ics)

        assert len(first.events) == 1
        assert len(second.events) == 2

    def test_parsing_is_idempotent(self, full_calendar_ics):
        assert parse_icalendar(full_calendar_ics) == parse_icalendar(full_calendar_ics)


_UNFOLDED_EVENT = (
    "SUMMARY:Quarterly planning review with the platform team",
    "DESCRIPTION:Agenda:\\n1. Roadmap\\, risks\\; staffing",
    "ATTENDEE;CN=Alice Example;ROLE=REQ-PARTICIPANT;PARTSTAT=ACCEPTED:mailto:alice@example.com",
)


class TestLineFolding:
    """Folded properties decode the same as their unfolded form."""

    @staticmethod
    def _document(*properties: str) -> str:
        return _ics(
            "BEGIN:VCALENDAR",
            "BEGIN:VEVENT",
            "UID:folded-1",
            "DTSTART:20250115T090000Z",
            *properties,
            "END:VEVENT",
            "END:VCALENDAR",
        )

    @pytest.mark.parametrize("fold", [" ", "\t"])
    def test_folded_text_and_attendee_match_unfolded(self, fold):
        folded = tuple(f"{line[:20]}\r\n{fold}{line[20:40]}\r\n{fold}{line[40:]}" for line in _UNFOLDED_EVENT)

        expected = parse_icalendar(self._document(*_UNFOLDED_EVENT)).events[0]
        actual = parse_icalendar(self._document(*folded)).events[0]

        assert actual == expected
        assert actual.summary == "Quarterly planning review with the platform team"
        assert actual.description == "Agenda:\n1. Roadmap, risks; staffing"
        assert actual.attendees[0].cn == "Alice Example"
        assert actual.attendees[0].email == "alice@example.com"
