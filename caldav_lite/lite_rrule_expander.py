"""RRULE expansion engine and exception resolver - caldav_lite.

Rules are validated by ``lite_rrule_parser`` first and then expanded with
``dateutil.rrule``. RDATE, EXDATE and EXRULE are resolved through a
``rruleset``, and detached overrides are swapped in per instant.

Wall-clock arithmetic is done in DTSTART's own zone so a 09:00 meeting stays
at 09:00 across DST changes. The requested window is the only bound on
rules without COUNT or UNTIL.
"""

import logging
from collections.abc import Generator, Iterable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Optional, Union

from dateutil.rrule import (
    DAILY,
    FR,
    HOURLY,
    MINUTELY,
    MO,
    MONTHLY,
    SA,
    SECONDLY,
    SU,
    TH,
    TU,
    WE,
    WEEKLY,
    YEARLY,
    rrule,
    rruleset,
)

from .lite_datetime_utils import ensure_timezone_aware
from .lite_exceptions import LiteNotApplicableError, LiteRRuleValidationError
from .lite_models import (
    CalendarDocument,
    CalendarItem,
    Frequency,
    Occurrence,
    ParsedEvent,
    ParsedJournal,
    ParsedTodo,
    RecurrenceRule,
)
from .lite_rrule_parser import parse_rrule

logger = logging.getLogger(__name__)

ItemType = Union[ParsedEvent, ParsedTodo, ParsedJournal]

_FREQUENCIES = {
    Frequency.YEARLY: YEARLY,
    Frequency.MONTHLY: MONTHLY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.DAILY: DAILY,
    Frequency.HOURLY: HOURLY,
    Frequency.MINUTELY: MINUTELY,
    Frequency.SECONDLY: SECONDLY,
}

# Indexed by Weekday.day_index
_WEEKDAYS = (MO, TU, WE, TH, FR, SA, SU)


def to_dateutil_rule(
    rule: RecurrenceRule, dtstart: datetime, until: Optional[datetime] = None
) -> rrule:
    """Build the ``dateutil`` rule for a validated RecurrenceRule.

    COUNT is not passed on; ``generate_occurrences`` applies it so that
    nonexistent local times are not counted. Leap seconds (BYSECOND=60) are
    dropped.

    Args:
        rule: Validated recurrence rule
        dtstart: Timezone-aware reference instant
        until: Inclusive bound on generated instants, usually the tighter of
            UNTIL and the window end

    Returns:
        Non-caching dateutil rrule

    Raises:
        LiteRRuleValidationError: If dateutil finds the BY-lists can never match
    """
    by_day = [_WEEKDAYS[entry.weekday.day_index](entry.ordinal) for entry in rule.by_day]
    try:
        return rrule(
            _FREQUENCIES[rule.freq],
            dtstart=dtstart,
            interval=rule.interval,
            wkst=rule.week_start.day_index,
            until=until,
            bysetpos=rule.by_set_pos or None,
            bymonth=rule.by_month or None,
            bymonthday=rule.by_month_day or None,
            byyearday=rule.by_year_day or None,
            byweekno=rule.by_week_no or None,
            byweekday=by_day or None,
            byhour=rule.by_hour or None,
            byminute=rule.by_minute or None,
            bysecond=[s for s in rule.by_second if s < 60] or None,
            cache=False,
        )
    except ValueError as exc:
        raise LiteRRuleValidationError(
            f"Rule generates no occurrences: {exc}", rule=rule.to_rrule_string()
        ) from exc


def _is_nonexistent(instant: datetime) -> bool:
    """True when the wall-clock time falls in a DST gap of its zone."""
    round_trip = instant.astimezone(UTC).astimezone(instant.tzinfo)
    return round_trip.replace(tzinfo=None) != instant.replace(tzinfo=None)


def generate_occurrences(
    rule: RecurrenceRule,
    dtstart: datetime,
    window_start: datetime,
    window_end: datetime,
) -> Generator[datetime, None, None]:
    """Lazily yield the rule's instants inside the closed window, ascending.

    COUNT is counted from DTSTART, so a window that starts after DTSTART
    still sees the correct remaining instants. Local times skipped by a DST
    transition are neither yielded nor counted.

    Args:
        rule: Validated recurrence rule
        dtstart: Reference instant (naive values are treated as UTC)
        window_start: Inclusive window start
        window_end: Inclusive window end

    Yields:
        Timezone-aware instants in DTSTART's zone

    Raises:
        LiteRRuleValidationError: If the BY-lists can never match
    """
    dtstart = ensure_timezone_aware(dtstart).replace(microsecond=0)
    window_start = ensure_timezone_aware(window_start)
    window_end = ensure_timezone_aware(window_end)
    if window_end < window_start:
        return
    if rule.by_second and all(second >= 60 for second in rule.by_second):
        logger.debug("Rule %s only names leap seconds", rule.to_rrule_string())
        return

    until = window_end if rule.until is None else min(rule.until, window_end)
    if until < dtstart:
        return

    emitted = 0
    for instant in to_dateutil_rule(rule, dtstart, until):
        if _is_nonexistent(instant):
            logger.debug("Skipping nonexistent local time %s", instant.replace(tzinfo=None))
            continue
        emitted += 1
        if rule.count is not None and emitted > rule.count:
            return
        if instant >= window_start:
            yield instant


def _exact(dt: datetime) -> datetime:
    return ensure_timezone_aware(dt).replace(microsecond=0)


def _override_key(dt: datetime) -> datetime:
    """Override lookup key: the UTC instant to the minute."""
    return ensure_timezone_aware(dt).astimezone(UTC).replace(second=0, microsecond=0)


def expand_recurrence(
    rrule: Optional[str],
    dtstart: Optional[datetime],
    window_start: datetime,
    window_end: datetime,
    rdates: Iterable[datetime] = (),
    exdates: Iterable[datetime] = (),
    exrule: Optional[str] = None,
) -> list[datetime]:
    """Resolve the final instant set of a recurring item inside a window.

    The result is the rule's instants plus in-window RDATEs, minus EXDATEs,
    minus the instants of EXRULE (run from the same DTSTART over the same
    window), sorted ascending. Instants match exactly, to the second.

    Args:
        rrule: Rule string, or empty/None for RDATE-only items
        dtstart: Reference instant for the rule(s)
        window_start: Inclusive window start
        window_end: Inclusive window end
        rdates: Extra instants, included independently of the rule
        exdates: Excluded instants
        exrule: Optional exclusion rule string

    Returns:
        Sorted, de-duplicated instants

    Raises:
        LiteRRuleValidationError: If RRULE or EXRULE is invalid
    """
    rule = parse_rrule(rrule) if rrule else None
    exclusion_rule = parse_rrule(exrule) if exrule else None
    window_start = ensure_timezone_aware(window_start)
    window_end = ensure_timezone_aware(window_end)

    # Generators are single-pass; the set is iterated exactly once below
    rule_set = rruleset()
    if rule is not None:
        if dtstart is None:
            logger.warning("Ignoring RRULE %r without DTSTART", rrule)
        else:
            rule_set.rrule(generate_occurrences(rule, dtstart, window_start, window_end))
    for rdate in rdates:
        rule_set.rdate(_exact(rdate))
    for exdate in exdates:
        rule_set.exdate(_exact(exdate))
    if exclusion_rule is not None and dtstart is not None:
        rule_set.exrule(generate_occurrences(exclusion_rule, dtstart, window_start, window_end))

    return list(rule_set.between(window_start, window_end, inc=True))


def _item_span(item: CalendarItem) -> Optional[timedelta]:
    if item.dtstart is None:
        return None
    end: Optional[datetime] = None
    if isinstance(item, ParsedEvent):
        end = item.effective_end
    elif isinstance(item, ParsedTodo):
        end = item.due
        if end is None and item.duration is not None:
            end = item.dtstart + item.duration
    return end - item.dtstart if end is not None else None


def _occurrence(
    item: ItemType,
    start: datetime,
    end: Optional[datetime],
    recurrence_id: Optional[datetime],
    is_override: bool,
) -> Occurrence:
    return Occurrence(
        uid=item.uid,
        summary=item.summary,
        description=item.description,
        location=getattr(item, "location", ""),
        status=item.status,
        start=start,
        end=end,
        recurrence_id=recurrence_id,
        is_override=is_override,
        item=item,
    )


def _instance_of(item: ItemType, instant: datetime, span: Optional[timedelta]) -> ItemType:
    update: dict = {"dtstart": instant, "recurrence_id": instant}
    if isinstance(item, ParsedEvent) and item.dtend is not None and span is not None:
        update["dtend"] = instant + span
    elif isinstance(item, ParsedTodo) and item.due is not None and span is not None:
        update["due"] = instant + span
    return item.model_copy(update=update)


def single_occurrence(item: ItemType) -> list[Occurrence]:
    """The one occurrence of a non-recurring item, or [] when it has no DTSTART."""
    if item.dtstart is None:
        logger.debug("Item %s has no DTSTART; no occurrence", item.uid or "<no-uid>")
        return []
    span = _item_span(item)
    end = item.dtstart + span if span is not None else None
    return [_occurrence(item, item.dtstart, end, item.recurrence_id, item.recurrence_id is not None)]


def expand_item(
    item: ItemType,
    window_start: datetime,
    window_end: datetime,
    overrides: Optional[Mapping[datetime, ItemType]] = None,
) -> list[Occurrence]:
    """Expand an item into occurrences within a window.

    A non-recurring item (no RRULE and no RDATE) yields exactly its own
    occurrence, whatever the window. For recurring items each resolved
    instant becomes an occurrence; when ``overrides`` holds a detached
    instance keyed by that instant (matched to the minute), the override
    replaces the template. Overrides whose key was not generated are ignored.

    Args:
        item: Event, to-do or journal
        window_start: Inclusive window start
        window_end: Inclusive window end
        overrides: Detached instances keyed by the instant they replace

    Returns:
        Occurrences sorted by start

    Raises:
        LiteRRuleValidationError: If the item's RRULE or EXRULE is invalid
    """
    if not item.is_recurring:
        return single_occurrence(item)

    instants = expand_recurrence(
        item.rrule,
        item.dtstart,
        window_start,
        window_end,
        rdates=item.rdates,
        exdates=item.exdates,
        exrule=item.exrule or None,
    )

    override_map = {_override_key(k): v for k, v in (overrides or {}).items()}
    span = _item_span(item)
    occurrences = []
    for instant in instants:
        override = override_map.pop(_override_key(instant), None)
        if override is not None:
            start = override.dtstart or instant
            override_span = _item_span(override)
            if override_span is None:
                override_span = span
            end = start + override_span if override_span is not None else None
            occurrences.append(_occurrence(override, start, end, instant, True))
            continue
        end = instant + span if span is not None else None
        occurrences.append(_occurrence(_instance_of(item, instant, span), instant, end, instant, False))

    if override_map:
        logger.debug(
            "Ignoring %d override(s) of %s that match no generated instant",
            len(override_map),
            item.uid or "<no-uid>",
        )

    logger.debug(
        "Expanded %s into %d occurrence(s) between %s and %s",
        item.uid or "<no-uid>",
        len(occurrences),
        window_start.isoformat(),
        window_end.isoformat(),
    )
    occurrences.sort(key=lambda occ: occ.start)
    return occurrences


def expand_recurring_item(
    item: ItemType,
    window_start: datetime,
    window_end: datetime,
    overrides: Optional[Mapping[datetime, ItemType]] = None,
) -> list[Occurrence]:
    """Like ``expand_item`` but only for items that actually recur.

    Raises:
        LiteNotApplicableError: If the item has no RRULE/RDATE, or has an RRULE
            but no DTSTART
        LiteRRuleValidationError: If the item's RRULE or EXRULE is invalid
    """
    if not item.is_recurring:
        raise LiteNotApplicableError(f"Item {item.uid or '<no-uid>'} is not recurring")
    if item.rrule and item.dtstart is None:
        raise LiteNotApplicableError(f"Recurring item {item.uid or '<no-uid>'} has no DTSTART")
    return expand_item(item, window_start, window_end, overrides)


def expand_document(
    document: CalendarDocument,
    window_start: datetime,
    window_end: datetime,
) -> list[Occurrence]:
    """Expand every event of a document, pairing masters with their overrides.

    Events are grouped by UID. Within a group the item without RECURRENCE-ID
    is the master and the others are detached overrides keyed by their
    RECURRENCE-ID. A group whose master has an invalid rule falls back to
    one occurrence per event, with a warning. Groups without a recurring
    master emit every event as its own occurrence.

    Args:
        document: Parsed calendar document
        window_start: Inclusive window start
        window_end: Inclusive window end

    Returns:
        Occurrences of all events, sorted by start
    """
    groups: dict[str, list[ParsedEvent]] = {}
    for event in document.events:
        groups.setdefault(event.uid, []).append(event)

    occurrences: list[Occurrence] = []
    for uid, events in groups.items():
        masters = [e for e in events if e.recurrence_id is None]
        overrides = {e.recurrence_id: e for e in events if e.recurrence_id is not None}

        if not any(master.is_recurring for master in masters):
            for event in events:
                occurrences.extend(single_occurrence(event))
            continue

        try:
            expanded = [
                occ
                for master in masters
                for occ in expand_item(master, window_start, window_end, overrides)
            ]
        except LiteRRuleValidationError as exc:
            logger.warning("Not expanding %s: invalid recurrence rule (%s)", uid or "<no-uid>", exc)
            expanded = [occ for event in events for occ in single_occurrence(event)]
        occurrences.extend(expanded)

    occurrences.sort(key=lambda occ: occ.start)
    return occurrences
