from collections.abc import Generator
from types import SimpleNamespace
from typing import Any

import pytest


def _ics(*lines: str) -> str:
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight settings object used across lite tests.

    Mirrors the attributes of caldav_lite.config_loader.Config that the
    worker pool reads, without touching the filesystem.
    """
    return SimpleNamespace(
        worker_concurrency=2,
        max_ics_size_bytes=0,
        enable_full_parsing=False,
        expansion_days_window=30,
    )


@pytest.fixture
def test_timezone() -> str:
    """Return a deterministic timezone identifier for tests."""
    return "America/New_York"


@pytest.fixture(autouse=True)
def reset_worker_pool() -> Generator[None, Any, None]:
    """Reset the global worker pool between tests.

    The pool's semaphore binds to the event loop it is first used on, so a
    pool surviving into another test's loop would fail.
    """
    yield
    import caldav_lite.worker_pool

    caldav_lite.worker_pool._worker_pool = None


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear caldav_lite environment overrides around each test."""
    for name in ("CALDAV_LITE_DEBUG", "CALDAV_LITE_LOG_LEVEL", "CALDAV_LITE_FULL_PARSING"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def weekly_event_ics() -> str:
    """Weekly Thursday event starting 2023-12-14 17:00 UTC."""
    return _ics(
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Apple Inc.//iCloud 2.0//EN",
        "BEGIN:VEVENT",
        "UID:weekly-1@example.com",
        "DTSTAMP:20231201T120000Z",
        "DTSTART:20231214T170000Z",
        "DTEND:20231214T173000Z",
        "SUMMARY:Weekly sync",
        "RRULE:FREQ=WEEKLY;BYDAY=TH",
        "END:VEVENT",
        "END:VCALENDAR",
    )


@pytest.fixture
def override_ics() -> str:
    """Daily master with one moved instance and one excluded instance."""
    return _ics(
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Example Corp//Test//EN",
        "BEGIN:VEVENT",
        "UID:standup@example.com",
        "DTSTART:20250106T090000Z",
        "DTEND:20250106T091500Z",
        "SUMMARY:Standup",
        "RRULE:FREQ=DAILY;COUNT=5",
        "EXDATE:20250109T090000Z",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "UID:standup@example.com",
        "RECURRENCE-ID:20250108T090000Z",
        "DTSTART:20250108T140000Z",
        "DTEND:20250108T143000Z",
        "SUMMARY:Standup (moved)",
        "END:VEVENT",
        "END:VCALENDAR",
    )


@pytest.fixture
def full_calendar_ics() -> str:
    """Document exercising most component and property kinds."""
    return _ics(
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Apple Inc.//iCloud 2.0//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "X-WR-CALNAME:Work",
        "BEGIN:VTIMEZONE",
        "TZID:America/New_York",
        "BEGIN:DAYLIGHT",
        "DTSTART:20070311T020000",
        "TZOFFSETFROM:-0500",
        "TZOFFSETTO:-0400",
        "TZNAME:EDT",
        "RRULE:FREQ=YEARLY;BYMONTH=3;BYDAY=2SU",
        "END:DAYLIGHT",
        "BEGIN:STANDARD",
        "DTSTART:20071104T020000",
        "TZOFFSETFROM:-0400",
        "TZOFFSETTO:-0500",
        "TZNAME:EST",
        "RRULE:FREQ=YEARLY;BYMONTH=11;BYDAY=1SU",
        "END:STANDARD",
        "END:VTIMEZONE",
        "BEGIN:VEVENT",
        "UID:planning@example.com",
        "DTSTAMP:20250101T000000Z",
        "DTSTART;TZID=America/New_York:20250115T090000",
        "DTEND;TZID=America/New_York:20250115T100000",
        "SUMMARY:Quarterly planning\\, Q1",
        "DESCRIPTION:Agenda:\\n1. Review\\n2. Plan",
        "LOCATION:Room 4",
        "STATUS:CONFIRMED",
        "CLASS:PUBLIC",
        "SEQUENCE:2",
        "PRIORITY:5",
        "TRANSP:OPAQUE",
        "GEO:37.386013;-122.082932",
        "CATEGORIES:Work,Planning",
        'ORGANIZER;CN="Alice Smith":mailto:alice@example.com',
        "ATTENDEE;CN=Bob;ROLE=REQ-PARTICIPANT;PARTSTAT=ACCEPTED;RSVP=TRUE:mailto:bob@ex",
        " ample.com",
        "ATTENDEE;CN=Projector;CUTYPE=RESOURCE;X-APPLE-HIDDEN=1:urn:uuid:projector-1",
        "ATTACH;FMTTYPE=application/pdf;SIZE=2048:https://example.com/agenda.pdf",
        "RELATED-TO:parent@example.com",
        "REQUEST-STATUS:2.0;Success",
        "X-APPLE-TRAVEL-ADVISORY-BEHAVIOR:AUTOMATIC",
        "BEGIN:VALARM",
        "ACTION:DISPLAY",
        "TRIGGER:-PT15M",
        "DESCRIPTION:Reminder",
        "END:VALARM",
        "END:VEVENT",
        "BEGIN:VTODO",
        "UID:todo-1@example.com",
        "DTSTAMP:20250101T000000Z",
        "DUE:20250120T170000Z",
        "SUMMARY:Send minutes",
        "PERCENT-COMPLETE:40",
        "STATUS:IN-PROCESS",
        "END:VTODO",
        "BEGIN:VJOURNAL",
        "UID:journal-1@example.com",
        "DTSTART:20250115",
        "SUMMARY:Planning notes",
        "END:VJOURNAL",
        "BEGIN:VFREEBUSY",
        "UID:fb-1@example.com",
        "DTSTART:20250115T000000Z",
        "DTEND:20250116T000000Z",
        "FREEBUSY;FBTYPE=BUSY-TENTATIVE:20250115T140000Z/20250115T150000Z",
        "FREEBUSY:20250115T160000Z/20250115T170000Z,bogus",
        "END:VFREEBUSY",
        "END:VCALENDAR",
    )
