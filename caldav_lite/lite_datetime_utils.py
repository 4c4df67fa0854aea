"""DateTime and duration parsing utilities for iCalendar values - caldav_lite.

CalDAV servers (iCloud in particular) are inconsistent about date formats,
so values are tried against a fixed list of layouts and the first match wins.
"""

import logging
import re
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from icalendar.prop import vDuration

logger = logging.getLogger(__name__)

# Tried in order after the RFC 3339 check. Values matching a "Z" layout are UTC.
CALDAV_TIME_FORMATS: tuple[tuple[str, bool], ...] = (
    ("%Y-%m-%dT%H:%M:%SZ", True),
    ("%Y%m%dT%H%M%SZ", True),
    ("%Y-%m-%dT%H:%M:%S", False),
    ("%Y%m%dT%H%M%S", False),
    ("%Y-%m-%d", False),
    ("%Y%m%d", False),
)

_RFC3339_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})$", re.IGNORECASE
)


def ensure_timezone_aware(dt: datetime) -> datetime:
    """Ensure datetime is timezone-aware.

    Args:
        dt: Datetime to make timezone-aware

    Returns:
        Timezone-aware datetime (UTC if originally naive)
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def resolve_tzid(tzid: Optional[str]) -> Optional[tzinfo]:
    """Resolve a TZID parameter to a tzinfo, or None when it is unknown."""
    if not tzid:
        return None
    name = tzid.strip().strip('"')
    # Some producers prefix TZID with a "/" to mark a globally unique id
    if name.startswith("/"):
        name = name[1:]
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown TZID %r, treating value as UTC", tzid)
        return None


def parse_caldav_time(value: str, tzid: Optional[str] = None) -> Optional[datetime]:
    """Parse an iCalendar date or date-time value.

    Args:
        value: Raw property value, e.g. "20250904T170000Z" or "2025-09-04"
        tzid: Optional TZID parameter for floating (unzoned) values

    Returns:
        Timezone-aware datetime, or None if no known layout matches
    """
    if not value:
        return None
    value = value.strip()

    if _RFC3339_RE.match(value):
        try:
            return datetime.fromisoformat(value.upper().replace("Z", "+00:00"))
        except ValueError:
            pass

    for layout, is_utc in CALDAV_TIME_FORMATS:
        try:
            parsed = datetime.strptime(value, layout)
        except ValueError:
            continue
        if is_utc:
            return parsed.replace(tzinfo=UTC)
        zone = resolve_tzid(tzid)
        return parsed.replace(tzinfo=zone or UTC)

    logger.debug("Unable to parse time value %r", value)
    return None


def parse_caldav_time_list(value: str, tzid: Optional[str] = None) -> list[datetime]:
    """Parse a comma-separated list of date/date-time values, skipping bad entries."""
    times = []
    for part in value.split(","):
        parsed = parse_caldav_time(part.strip(), tzid)
        if parsed is not None:
            times.append(parsed)
    return times


def format_caldav_time(dt: datetime) -> str:
    """Format a datetime as a UTC iCalendar date-time ("YYYYMMDDTHHMMSSZ")."""
    return ensure_timezone_aware(dt).astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")


def parse_duration(value: str) -> Optional[timedelta]:
    """Parse an ISO 8601 / RFC 5545 duration such as "PT15M", "-P1D" or "P1W".

    Args:
        value: Duration string

    Returns:
        timedelta (negative for a leading "-"), or None if malformed
    """
    if not value:
        return None
    value = value.strip().upper()
    # icalendar accepts a bare "P" or "PT" as zero
    if not any(ch.isdigit() for ch in value):
        logger.debug("Duration %r has no components", value)
        return None
    try:
        return vDuration.from_ical(value)
    except ValueError:
        logger.debug("Invalid duration %r", value)
        return None


def format_duration(delta: timedelta) -> str:
    """Format a timedelta as an RFC 5545 duration string."""
    return vDuration(delta).to_ical().decode("ascii")
