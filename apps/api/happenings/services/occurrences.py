from __future__ import annotations

import itertools
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any

import structlog
from dateutil import rrule

from happenings.core.config import settings
from happenings.services.date_keys import (
    add_days,
    is_valid_date_key,
    parse_date_key,
    to_date_key,
    today_key,
    weekday_name,
)
from happenings.services.overrides import (
    apply_occurrence_override,
    event_base_fields,
    is_override_cancelled,
    rescheduled_date,
)
from happenings.services.recurrence import (
    Frequency,
    Recurrence,
    interpret_recurrence,
    should_expand_to_multiple,
)

__all__ = [
    "ExpandedOccurrence",
    "DateSelection",
    "GroupedOccurrences",
    "OccurrenceEntry",
    "add_days",
    "expand_and_group",
    "expand_occurrences",
    "is_valid_date_key",
    "next_occurrence",
    "recurrence_for",
    "select_occurrence_date",
    "today_key",
    "weekday_name",
]

log = structlog.get_logger(__name__)

MAX_GROUPED_EVENTS = 200
MAX_GROUPED_OCCURRENCES = 500

_WEEKDAYS = (rrule.MO, rrule.TU, rrule.WE, rrule.TH, rrule.FR, rrule.SA, rrule.SU)
_RRULE_FREQ = {
    Frequency.DAILY: rrule.DAILY,
    Frequency.WEEKLY: rrule.WEEKLY,
    Frequency.BIWEEKLY: rrule.WEEKLY,
    Frequency.MONTHLY: rrule.MONTHLY,
    Frequency.YEARLY: rrule.YEARLY,
}


@dataclass(frozen=True)
class ExpandedOccurrence:
    date_key: str
    is_confident: bool
    is_anchor: bool = False


@dataclass(frozen=True)
class DateSelection:
    date_key: str | None
    notice: str | None = None


@dataclass
class OccurrenceEntry:
    event_id: Any
    date_key: str
    display_date: str
    fields: dict[str, Any]
    is_cancelled: bool
    is_confident: bool
    override: Any | None = None


@dataclass
class GroupedOccurrences:
    by_date: dict[str, list[OccurrenceEntry]] = field(default_factory=dict)
    cancelled: list[OccurrenceEntry] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)


def _get(event: Any, name: str) -> Any:
    if isinstance(event, Mapping):
        return event.get(name)
    return getattr(event, name, None)


def recurrence_for(event: Any) -> Recurrence:
    return interpret_recurrence(
        _get(event, "event_date"),
        _get(event, "day_of_week"),
        _get(event, "recurrence_rule"),
        _get(event, "recurrence_end_date"),
    )


def _as_datetime(value: date) -> datetime:
    return datetime.combine(value, time())


def _rule_dates(rec: Recurrence, start: date, until: date, limit: int) -> Iterator[date]:
    kwargs: dict[str, Any] = {
        "interval": rec.interval,
        "dtstart": _as_datetime(rec.start_date or start),
    }
    if rec.count:
        kwargs["count"] = rec.count
    if rec.frequency in (Frequency.WEEKLY, Frequency.BIWEEKLY):
        kwargs["byweekday"] = _WEEKDAYS[rec.weekday]
        if rec.frequency is Frequency.BIWEEKLY:
            kwargs["interval"] = 2
    elif rec.frequency is Frequency.MONTHLY:
        kwargs["byweekday"] = [_WEEKDAYS[rec.weekday](n) for n in rec.ordinals]

    rule = rrule.rrule(_RRULE_FREQ[rec.frequency], **kwargs)
    upper = _as_datetime(until)
    for moment in itertools.islice(rule.xafter(_as_datetime(start), inc=True), limit):
        if moment > upper:
            return
        yield moment.date()


def _custom_dates(event: Any, start: date, until: date, limit: int) -> list[date]:
    raw = _get(event, "custom_dates") or []
    dates = sorted({d for d in (parse_date_key(v) for v in raw) if d is not None})
    return [d for d in dates if start <= d <= until][:limit]


def expand_occurrences(
    event: Any,
    start_key: str | None = None,
    end_key: str | None = None,
    *,
    max_occurrences: int | None = None,
    always_include_anchor: bool = False,
) -> list[ExpandedOccurrence]:
    """
    Concrete date keys for ``event`` within ``[start_key, end_key]``.

    The window defaults to today (reference time zone) through the configured
    horizon. Output is ascending, deduplicated and capped per event; the same
    inputs always produce the same list. An empty list means "no upcoming
    dates" and is not an error.
    """
    rec = recurrence_for(event)
    start = parse_date_key(start_key) or date.fromisoformat(today_key())
    end = parse_date_key(end_key) or start + timedelta(days=settings.occurrence_window_days)
    limit = max_occurrences or settings.max_occurrences_per_event
    anchor = rec.start_date

    dates: list[date] = []
    if end >= start:
        if rec.frequency is Frequency.CUSTOM and _get(event, "custom_dates"):
            until = min(end, rec.end_date) if rec.end_date else end
            dates = _custom_dates(event, start, until, limit)
        elif should_expand_to_multiple(rec) and rec.frequency in _RRULE_FREQ:
            effective_start = max(anchor, start) if anchor else start
            until = min(end, rec.end_date) if rec.end_date else end
            if until >= effective_start:
                dates = list(_rule_dates(rec, effective_start, until, limit))
        elif anchor is not None and start <= anchor <= end:
            dates = [anchor]

    if always_include_anchor and anchor is not None and anchor not in dates:
        dates = sorted([*dates, anchor])

    return [
        ExpandedOccurrence(date_key=to_date_key(d), is_confident=rec.is_confident, is_anchor=d == anchor)
        for d in dates
    ]


def next_occurrence(event: Any, today: str | None = None) -> str | None:
    found = expand_occurrences(event, today or today_key(), max_occurrences=1)
    return found[0].date_key if found else None


def occurs_on(event: Any, date_key: str) -> bool:
    """Whether the series has an occurrence on ``date_key``, past dates included."""
    return bool(expand_occurrences(event, date_key, date_key))


def select_occurrence_date(
    requested: str | None,
    available: Iterable[str],
    *,
    today: str,
    allow_historical: bool = False,
) -> DateSelection:
    """
    Pick the occurrence a request is about.

    A requested date that is a real occurrence wins. Invalid or unknown dates
    fall back to the nearest upcoming occurrence with a notice for the caller
    to show; with no occurrences at all the fallback is ``today``.
    ``allow_historical`` lets kiosk views pin a past date.
    """
    dates = list(available)
    if requested:
        if not is_valid_date_key(requested):
            notice = f"'{requested}' is not a valid date; showing the next occurrence"
        elif requested in dates:
            return DateSelection(requested)
        elif allow_historical and requested < today:
            return DateSelection(requested)
        else:
            notice = f"No occurrence on {requested}; showing the next occurrence"
    else:
        notice = None

    upcoming = [d for d in dates if d >= today] or dates
    if upcoming:
        return DateSelection(upcoming[0], notice)
    return DateSelection(today, notice)


def expand_and_group(
    events: Iterable[Any],
    overrides: Mapping[tuple[Any, str], Any] | None = None,
    start_key: str | None = None,
    end_key: str | None = None,
    *,
    max_events: int = MAX_GROUPED_EVENTS,
    max_total: int = MAX_GROUPED_OCCURRENCES,
) -> GroupedOccurrences:
    """Expand many events and bucket them by display date, overrides applied."""
    overrides = overrides or {}
    result = GroupedOccurrences()
    processed = 0
    total = 0
    truncated = False
    skipped = 0

    for event in events:
        if processed >= max_events:
            skipped += 1
            truncated = True
            continue
        processed += 1

        base = event_base_fields(event)
        for occ in expand_occurrences(event, start_key, end_key):
            if total >= max_total:
                truncated = True
                break
            override = overrides.get((_get(event, "id"), occ.date_key))
            entry = OccurrenceEntry(
                event_id=_get(event, "id"),
                date_key=occ.date_key,
                display_date=rescheduled_date(override) or occ.date_key,
                fields=apply_occurrence_override(base, override),
                is_cancelled=is_override_cancelled(override),
                is_confident=occ.is_confident,
                override=override,
            )
            total += 1
            if entry.is_cancelled:
                result.cancelled.append(entry)
            else:
                result.by_date.setdefault(entry.display_date, []).append(entry)

    result.by_date = dict(sorted(result.by_date.items()))
    result.metrics = {
        "events_processed": processed,
        "events_skipped": skipped,
        "occurrences_total": total,
        "truncated": truncated,
    }
    if truncated:
        log.warning("occurrence_grouping_truncated", **result.metrics)
    return result
