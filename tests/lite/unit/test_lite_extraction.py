"""Unit tests for caldav_lite.lite_extraction."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from caldav_lite.lite_extraction import (
    entry_is_ok,
    extract_calendar_object,
    extract_calendar_objects,
)

pytestmark = pytest.mark.unit


class TestExtractCalendarObject:
    """Tests for single-resource extraction."""

    def test_extract_listing_fields(self, full_calendar_ics):
        obj = extract_calendar_object(full_calendar_ics, href="/cal/planning.ics", etag='"abc"')

        assert obj.href == "/cal/planning.ics"
        assert obj.etag == '"abc"'
        # last item component wins; VFREEBUSY is not an item
        assert obj.uid == "journal-1@example.com"
        assert obj.summary == "Planning notes"
        assert obj.location == "Room 4"
        assert obj.attendees == ["bob@example.com", "urn:uuid:projector-1"]
        assert obj.vevent_count == 1
        assert obj.calendar_data == full_calendar_ics
        assert obj.parsed is None

    def test_extract_event_fields(self, weekly_event_ics):
        obj = extract_calendar_object(weekly_event_ics)

        assert obj.uid == "weekly-1@example.com"
        assert obj.dtstart == datetime(2023, 12, 14, 17, 0, tzinfo=UTC)
        assert obj.dtend == datetime(2023, 12, 14, 17, 30, tzinfo=UTC)
        assert obj.vevent_count == 1

    def test_alarm_and_timezone_properties_skipped(self):
        data = (
            "BEGIN:VCALENDAR\r\n"
            "BEGIN:VTIMEZONE\r\nTZID:America/New_York\r\n"
            "BEGIN:STANDARD\r\nDTSTART:19701101T020000\r\nTZOFFSETTO:-0500\r\nEND:STANDARD\r\n"
            "END:VTIMEZONE\r\n"
            "BEGIN:VEVENT\r\n"
            "UID:meeting\r\n"
            "DTSTART;TZID=America/New_York:20250115T090000\r\n"
            "SUMMARY:Design review\\, round 2\r\n"
            "ORGANIZER;CN=Alice:mailto:alice@example.com\r\n"
            "ATTENDEE:mailto:bob@example.com\r\n"
            "ATTENDEE;EMAIL=room@example.com:urn:uuid:room-1\r\n"
            "ATTENDEE:urn:uuid:anonymous\r\n"
            "BEGIN:VALARM\r\nACTION:DISPLAY\r\nDESCRIPTION:Alarm text\r\nEND:VALARM\r\n"
            "STATUS:CONFIRMED\r\n"
            "END:VEVENT\r\n"
            "END:VCALENDAR\r\n"
        )

        obj = extract_calendar_object(data)

        assert obj.dtstart == datetime(2025, 1, 15, 9, 0, tzinfo=ZoneInfo("America/New_York"))
        assert obj.summary == "Design review, round 2"
        assert obj.description == ""
        assert obj.status == "CONFIRMED"
        assert obj.organizer == "mailto:alice@example.com"
        assert obj.attendees == ["bob@example.com", "room@example.com", "urn:uuid:anonymous"]

    def test_multiple_events_reflect_last_and_warn(self, override_ics, caplog):
        with caplog.at_level("WARNING", logger="caldav_lite.lite_extraction"):
            obj = extract_calendar_object(override_ics, href="/cal/standup.ics")

        assert obj.vevent_count == 2
        assert obj.summary == "Standup (moved)"
        assert obj.dtstart == datetime(2025, 1, 8, 14, 0, tzinfo=UTC)
        assert "holds 2 VEVENTs" in caplog.text

    def test_full_parse_attaches_document(self, override_ics):
        obj = extract_calendar_object(override_ics, full_parse=True)

        assert obj.parsed is not None
        assert len(obj.parsed.events) == 2


class TestExtractCalendarObjects:
    """Tests for multistatus entry handling."""

    def test_entries_filtered_by_status_and_content(self, weekly_event_ics):
        entries = [
            {"href": "/cal/a.ics", "etag": '"1"', "calendar_data": weekly_event_ics},
            {"href": "/cal/b.ics", "etag": '"2"', "status": 404},
            {"href": "/cal/c.ics", "etag": '"3"'},
            {"href": "/cal/d.ics"},
            {"href": "/cal/e.ics", "etag": '"5"', "status": "200", "calendar_data": weekly_event_ics},
        ]

        objects = extract_calendar_objects(entries)

        assert [o.href for o in objects] == ["/cal/a.ics", "/cal/c.ics", "/cal/e.ics"]
        assert objects[0].uid == "weekly-1@example.com"
        assert objects[1].uid == ""
        assert objects[1].etag == '"3"'

    def test_multistatus_status_lines_are_honoured(self, weekly_event_ics):
        entries = [
            {"href": "/cal/a.ics", "etag": '"1"', "status": "HTTP/1.1 200 OK", "calendar_data": weekly_event_ics},
            {"href": "/cal/b.ics", "etag": '"2"', "status": "HTTP/1.1 404 Not Found"},
        ]

        objects = extract_calendar_objects(entries)

        assert [o.href for o in objects] == ["/cal/a.ics"]
        assert objects[0].uid == "weekly-1@example.com"

    def test_full_parse_flag_propagates(self, weekly_event_ics):
        objects = extract_calendar_objects([{"href": "/a", "calendar_data": weekly_event_ics}], full_parse=True)

        assert objects[0].parsed is not None

    def test_empty_entries(self):
        assert extract_calendar_objects([]) == []


class TestEntryIsOk:
    """Tests for response status checks."""

    @pytest.mark.parametrize(
        ("entry", "expected"),
        [
            ({}, True),
            ({"status": 200}, True),
            ({"status": "200"}, True),
            ({"status": 207}, False),
            ({"status": 404}, False),
            ({"status": "HTTP/1.1 200 OK"}, True),
            ({"status": "HTTP/1.1 404 Not Found"}, False),
            ({"status": "HTTP/1.1 2000 OK"}, False),
            ({"status": None}, False),
        ],
    )
    def test_entry_is_ok(self, entry, expected):
        assert entry_is_ok(entry) is expected
