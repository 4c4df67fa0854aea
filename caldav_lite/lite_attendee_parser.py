"""ATTENDEE and ORGANIZER parsing for iCalendar content lines - caldav_lite.

The raw property value is always kept in ``value``. The email is taken from a
``mailto:`` URI when present (case-insensitive prefix, remainder kept as-is),
otherwise from the EMAIL parameter.
"""

import logging
from typing import Optional

from .lite_line_reader import ContentLine
from .lite_models import ParsedAttendee, ParsedOrganizer

logger = logging.getLogger(__name__)

MAILTO_PREFIX = "mailto:"

_ORGANIZER_PARAMS = {
    "CN": "cn",
    "EMAIL": "email",
    "DIR": "dir",
    "SENT-BY": "sent_by",
}

_ATTENDEE_PARAMS = {
    **_ORGANIZER_PARAMS,
    "ROLE": "role",
    "PARTSTAT": "partstat",
    "CUTYPE": "cutype",
    "MEMBER": "member",
    "DELEGATED-TO": "delegated_to",
    "DELEGATED-FROM": "delegated_from",
}


def extract_email(value: str, email_param: Optional[str] = None) -> str:
    """Return the address of a calendar user value.

    Args:
        value: Raw CAL-ADDRESS value, e.g. "mailto:Alice@Example.com"
        email_param: Value of the EMAIL parameter, if any

    Returns:
        The mailto remainder, else the EMAIL parameter, else ""
    """
    if value[: len(MAILTO_PREFIX)].lower() == MAILTO_PREFIX:
        return value[len(MAILTO_PREFIX) :]
    return email_param or ""


class LiteAttendeeParser:
    """Parser for ORGANIZER and ATTENDEE content lines."""

    def parse_organizer(self, line: ContentLine) -> ParsedOrganizer:
        """Parse an ORGANIZER line.

        Args:
            line: Tokenized ORGANIZER content line

        Returns:
            ParsedOrganizer with known parameters mapped and the rest in custom_params
        """
        fields, custom = self._map_params(line, _ORGANIZER_PARAMS)
        fields["email"] = extract_email(line.value, fields.get("email"))
        return ParsedOrganizer(value=line.value, custom_params=custom, **fields)

    def parse_attendee(self, line: ContentLine) -> ParsedAttendee:
        """Parse an ATTENDEE line.

        Args:
            line: Tokenized ATTENDEE content line

        Returns:
            ParsedAttendee; RSVP is true only for a case-insensitive "TRUE"
        """
        params = dict(line.params)
        rsvp = params.pop("RSVP", "").upper() == "TRUE"
        fields, custom = self._map_params(
            ContentLine(name=line.name, value=line.value, params=params), _ATTENDEE_PARAMS
        )
        fields["email"] = extract_email(line.value, fields.get("email"))
        attendee = ParsedAttendee(value=line.value, rsvp=rsvp, custom_params=custom, **fields)
        logger.debug("Parsed attendee %r role=%s partstat=%s", attendee.email, attendee.role, attendee.partstat)
        return attendee

    @staticmethod
    def _map_params(
        line: ContentLine, known: dict[str, str]
    ) -> tuple[dict[str, str], dict[str, str]]:
        fields: dict[str, str] = {}
        custom: dict[str, str] = {}
        for key, val in line.params.items():
            if key in known:
                fields[known[key]] = val
            else:
                custom[key] = val
        return fields, custom
