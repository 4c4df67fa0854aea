"""Strict RRULE/EXRULE parsing and validation - caldav_lite.

Unlike content parsing, rule parsing fails fast: a rule that cannot be
understood exactly raises LiteRRuleValidationError before any occurrence is
generated.
"""

import logging
import re
from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Optional

from .lite_datetime_utils import format_caldav_time, parse_caldav_time
from .lite_exceptions import LiteRRuleValidationError
from .lite_models import Frequency, RecurrenceRule, Weekday, WeekdayNum

logger = logging.getLogger(__name__)

_BYDAY_RE = re.compile(r"^([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)$")
_DATE_ONLY_RE = re.compile(r"^\d{8}$|^\d{4}-\d{2}-\d{2}$")

# key -> (model field, minimum, maximum, zero allowed)
_INT_LISTS: dict[str, tuple[str, int, int, bool]] = {
    "BYSECOND": ("by_second", 0, 60, True),
    "BYMINUTE": ("by_minute", 0, 59, True),
    "BYHOUR": ("by_hour", 0, 23, True),
    "BYMONTHDAY": ("by_month_day", -31, 31, False),
    "BYYEARDAY": ("by_year_day", -366, 366, False),
    "BYWEEKNO": ("by_week_no", -53, 53, False),
    "BYMONTH": ("by_month", 1, 12, False),
    "BYSETPOS": ("by_set_pos", -366, 366, False),
}


def _fail(message: str, rule: str) -> LiteRRuleValidationError:
    logger.debug("Rejecting RRULE %r: %s", rule, message)
    return LiteRRuleValidationError(message, rule=rule)


def _parse_int(key: str, value: str, rule: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise _fail(f"{key} must be an integer, got {value!r}", rule) from None


def _parse_int_list(key: str, value: str, rule: str) -> list[int]:
    field_name, low, high, zero_ok = _INT_LISTS[key]
    values = []
    for token in value.split(","):
        number = _parse_int(key, token, rule)
        if number < low or number > high or (number == 0 and not zero_ok):
            raise _fail(f"{key} value {number} out of range", rule)
        values.append(number)
    return values


def _parse_weekday(value: str, rule: str) -> Weekday:
    try:
        return Weekday(value.strip().upper())
    except ValueError:
        raise _fail(f"invalid weekday {value!r}", rule) from None


def _parse_by_day(value: str, rule: str) -> list[WeekdayNum]:
    days = []
    for token in value.split(","):
        match = _BYDAY_RE.match(token.strip().upper())
        if match is None:
            raise _fail(f"invalid BYDAY token {token!r}", rule)
        ordinal = int(match.group(1)) if match.group(1) else None
        if ordinal is not None and (ordinal == 0 or abs(ordinal) > 53):
            raise _fail(f"BYDAY ordinal out of range in {token!r}", rule)
        days.append(WeekdayNum(ordinal=ordinal, weekday=Weekday(match.group(2))))
    return days


def _parse_until(value: str, rule: str) -> datetime:
    until = parse_caldav_time(value)
    if until is None:
        raise _fail(f"invalid UNTIL {value!r}", rule)
    if _DATE_ONLY_RE.match(value.strip()):
        # A DATE bound includes the whole day
        until = until + timedelta(days=1) - timedelta(seconds=1)
    return until


def parse_rrule(text: str) -> RecurrenceRule:
    """Parse and validate a recurrence rule string.

    Accepts an optional leading "RRULE:" or "EXRULE:". Unknown keys are
    ignored; an empty trailing segment (from a trailing ";") is tolerated.

    Args:
        text: Rule such as "FREQ=MONTHLY;BYDAY=2TU"

    Returns:
        RecurrenceRule

    Raises:
        LiteRRuleValidationError: If the rule is empty, lacks or has an unknown
            FREQ, has INTERVAL < 1, negative COUNT, both COUNT and UNTIL, or any
            malformed value
    """
    rule = (text or "").strip()
    for prefix in ("RRULE:", "EXRULE:"):
        if rule.upper().startswith(prefix):
            rule = rule[len(prefix) :]
    if not rule:
        raise _fail("RRULE cannot be empty", text or "")

    fields: dict = {}
    count_seen = False
    for segment in rule.split(";"):
        if not segment.strip():
            continue
        key, sep, value = segment.partition("=")
        if not sep:
            raise _fail(f"segment {segment!r} is not KEY=VALUE", rule)
        key = key.strip().upper()
        value = value.strip()

        if key == "FREQ":
            try:
                fields["freq"] = Frequency(value.upper())
            except ValueError:
                raise _fail(f"invalid FREQ value: {value}", rule) from None
        elif key == "INTERVAL":
            interval = _parse_int(key, value, rule)
            if interval < 1:
                raise _fail("INTERVAL must be >= 1", rule)
            fields["interval"] = interval
        elif key == "COUNT":
            count = _parse_int(key, value, rule)
            if count < 0:
                raise _fail("COUNT must be >= 0", rule)
            count_seen = count > 0
            # COUNT=0 is treated as "no count bound"
            fields["count"] = count if count > 0 else None
        elif key == "UNTIL":
            fields["until"] = _parse_until(value, rule)
        elif key == "BYDAY":
            fields["by_day"] = _parse_by_day(value, rule)
        elif key == "WKST":
            fields["week_start"] = _parse_weekday(value, rule)
        elif key in _INT_LISTS:
            fields[_INT_LISTS[key][0]] = _parse_int_list(key, value, rule)
        else:
            logger.debug("Ignoring unknown RRULE key %s in %r", key, rule)

    if "freq" not in fields:
        raise _fail("RRULE must specify FREQ", rule)
    if count_seen and "until" in fields:
        raise _fail("COUNT and UNTIL cannot both be specified", rule)

    return RecurrenceRule(**fields)


def validate_rrule(text: str) -> None:
    """Validate a rule string, raising LiteRRuleValidationError if it is invalid."""
    parse_rrule(text)


def build_rrule(
    freq: str,
    interval: int = 1,
    count: int = 0,
    until: Optional[datetime] = None,
    by_day: Optional[Sequence[str]] = None,
    week_start: str = "MO",
) -> str:
    """Build a rule string from common parameters.

    COUNT wins over UNTIL when both are given, so the result is always valid
    with respect to the COUNT/UNTIL exclusion.

    Args:
        freq: Frequency name, any case
        interval: Interval; omitted from the output when 1
        count: Occurrence count; omitted when 0
        until: Inclusive end bound, written in UTC
        by_day: BYDAY tokens such as ["MO", "2TU"]
        week_start: WKST; omitted when MO (e.g. Config.default_week_start)

    Returns:
        Rule string without the "RRULE:" prefix

    Raises:
        LiteRRuleValidationError: If the resulting rule does not validate
    """
    parts = [f"FREQ={freq.upper()}"]
    if interval > 1:
        parts.append(f"INTERVAL={interval}")
    if count > 0:
        parts.append(f"COUNT={count}")
    elif until is not None:
        parts.append(f"UNTIL={format_caldav_time(until)}")
    if by_day:
        parts.append(f"BYDAY={','.join(by_day)}")
    if week_start.upper() != "MO":
        parts.append(f"WKST={week_start.upper()}")

    rule = ";".join(parts)
    validate_rrule(rule)
    return rule
