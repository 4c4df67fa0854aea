"""Typed value decoders for iCalendar properties - caldav_lite.

Every decoder here is total: malformed input yields a default (0, "", None
or an empty list) instead of raising, so one bad property never costs the
rest of the component.
"""

import logging
import re
from datetime import datetime
from typing import Optional

from icalendar.prop import vText

from .lite_datetime_utils import parse_caldav_time, parse_caldav_time_list
from .lite_line_reader import ContentLine
from .lite_models import Attachment, FreeBusyPeriod, GeoLocation, RelatedTo, RequestStatus

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")

_ATTACH_KNOWN_PARAMS = ("VALUE", "ENCODING", "FMTTYPE", "FILENAME", "SIZE")


def parse_int(value: Optional[str]) -> int:
    """Return the leading signed integer of ``value``, or 0 when there is none."""
    if not value:
        return 0
    match = _LEADING_INT_RE.match(value)
    return int(match.group(1)) if match else 0


def _parse_float(token: str) -> Optional[float]:
    match = _FLOAT_RE.match(token)
    if match is None:
        return None
    return float(match.group(0))


def unescape_text(value: str) -> str:
    """Decode RFC 5545 TEXT escapes (\\n, \\N, \\, \\; and \\\\)."""
    if "\\" not in value:
        return value
    return str(vText.from_ical(value))


def split_text_list(value: str) -> list[str]:
    """Split a multi-valued TEXT property on unescaped commas and unescape each entry."""
    items = []
    current = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value):
            current.append(value[i : i + 2])
            i += 2
            continue
        if ch == ",":
            items.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    items.append("".join(current))
    return [unescape_text(item.strip()) for item in items if item.strip()]


def parse_date_time(line: ContentLine) -> Optional[datetime]:
    """Decode a DATE or DATE-TIME property honoring its TZID parameter."""
    return parse_caldav_time(line.value, line.param("TZID") or None)


def parse_date_time_list(line: ContentLine) -> list[datetime]:
    """Decode a comma-separated RDATE/EXDATE property."""
    return parse_caldav_time_list(line.value, line.param("TZID") or None)


def parse_geo(value: str) -> Optional[GeoLocation]:
    """Decode GEO ("lat;lon"); anything but exactly two numeric tokens yields None."""
    parts = value.split(";")
    if len(parts) != 2:
        return None
    lat = _parse_float(parts[0])
    lon = _parse_float(parts[1])
    if lat is None or lon is None:
        logger.debug("Discarding malformed GEO %r", value)
        return None
    return GeoLocation(latitude=lat, longitude=lon)


def parse_free_busy(line: ContentLine) -> list[FreeBusyPeriod]:
    """Decode a FREEBUSY line into its periods.

    Each comma-separated "start/end" pair becomes one period. A pair with the
    wrong number of parts, or an undecodable bound, is dropped silently. The
    FBTYPE parameter defaults to BUSY.
    """
    fb_type = line.param("FBTYPE") or "BUSY"
    periods = []
    for raw in line.value.split(","):
        parts = raw.strip().split("/")
        if len(parts) != 2:
            continue
        start = parse_caldav_time(parts[0])
        end = parse_caldav_time(parts[1])
        if start is None or end is None:
            continue
        periods.append(FreeBusyPeriod(start=start, end=end, fb_type=fb_type))
    return periods


def parse_related_to(line: ContentLine) -> RelatedTo:
    return RelatedTo(uid=line.value, relation_type=line.param("RELTYPE") or "PARENT")


def parse_request_status(value: str) -> RequestStatus:
    """Decode REQUEST-STATUS into code, description and extra data."""
    parts = value.split(";", 2)
    return RequestStatus(
        code=parts[0],
        description=unescape_text(parts[1]) if len(parts) > 1 else "",
        extra_data=parts[2] if len(parts) > 2 else "",
    )


def parse_attachment(line: ContentLine) -> Attachment:
    """Decode ATTACH.

    VALUE=BINARY keeps the payload in ``value`` along with ENCODING; any other
    form is a URI. SIZE is kept only when positive.
    """
    params = line.params
    if params.get("VALUE", "").upper() == "BINARY":
        uri, value, encoding = "", line.value, params.get("ENCODING", "")
    else:
        uri, value, encoding = line.value, "", ""

    size = parse_int(params.get("SIZE"))
    return Attachment(
        uri=uri,
        value=value,
        encoding=encoding,
        format_type=params.get("FMTTYPE", ""),
        filename=params.get("FILENAME", ""),
        size=size if size > 0 else 0,
        custom_params={k: v for k, v in params.items() if k not in _ATTACH_KNOWN_PARAMS},
    )
