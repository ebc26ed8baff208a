"""
Recurrence interpretation.

Events store their schedule loosely: an anchor date, an optional weekday name
and an optional rule that is either RFC 5545 style (``FREQ=WEEKLY;BYDAY=WE``)
or one of the legacy text forms hosts typed over the years (``biweekly``,
``2nd/4th``, ``last``...). Everything here turns that into a single immutable
``Recurrence`` that the expander and labels agree on. Nothing in this module
raises for bad input; unclear rules come back with ``is_confident=False``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum

from happenings.services.date_keys import parse_date_key

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
DAY_ABBREVS = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

_DAY_LOOKUP: dict[str, int] = {}
for _i, _name in enumerate(DAY_NAMES):
    _DAY_LOOKUP[_name.lower()] = _i
    _DAY_LOOKUP[_name[:3].lower()] = _i
    _DAY_LOOKUP[DAY_ABBREVS[_i].lower()] = _i
_DAY_LOOKUP.update({"tues": 1, "weds": 2, "thur": 3, "thurs": 3})

_ORDINAL_WORDS = {
    "1st": 1,
    "first": 1,
    "2nd": 2,
    "second": 2,
    "3rd": 3,
    "third": 3,
    "4th": 4,
    "fourth": 4,
    "5th": 5,
    "fifth": 5,
    "last": -1,
}
_ORDINAL_SUFFIX = {1: "1st", 2: "2nd", 3: "3rd", 4: "4th", 5: "5th", -1: "Last"}

_BYDAY_RE = re.compile(r"^([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)$")
_ORDINAL_SPLIT_RE = re.compile(r"\s*(?:/|&|,|\band\b)\s*")


class Frequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    DAILY = "daily"
    YEARLY = "yearly"
    CUSTOM = "custom"
    ONE_TIME = "one-time"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Recurrence:
    is_recurring: bool
    frequency: Frequency
    is_confident: bool
    weekday: int | None = None
    ordinals: tuple[int, ...] = ()
    interval: int = 1
    start_date: date | None = None
    end_date: date | None = None
    count: int | None = None

    @property
    def day_name(self) -> str | None:
        return DAY_NAMES[self.weekday] if self.weekday is not None else None

    @property
    def day_abbrev(self) -> str | None:
        return DAY_ABBREVS[self.weekday] if self.weekday is not None else None


@dataclass(frozen=True)
class ParsedRule:
    freq: str
    interval: int = 1
    byday: tuple[tuple[int | None, int], ...] = ()
    count: int | None = None
    until: date | None = None
    # BYDAY tokens were present but none of their ordinals were usable
    byday_rejected: bool = False


def weekday_index(value: str | None) -> int | None:
    """Map a weekday name or abbreviation (``Wednesday``, ``wed``, ``WE``) to 0=Monday."""
    if not value:
        return None
    return _DAY_LOOKUP.get(value.strip().lower().rstrip("s"), _DAY_LOOKUP.get(value.strip().lower()))


def _parse_until(value: str) -> date | None:
    raw = value.strip()
    for fmt in ("%Y%m%dT%H%M%SZ", "%Y%m%dT%H%M%S", "%Y%m%d"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return parse_date_key(raw)


def parse_rrule(rule: str | None) -> ParsedRule | None:
    """Parse an RFC 5545 style rule; returns None when ``rule`` is not one."""
    if not rule:
        return None
    text = rule.strip()
    if text.upper().startswith("RRULE:"):
        text = text[6:]
    if "FREQ=" not in text.upper():
        return None

    parts: dict[str, str] = {}
    for chunk in text.split(";"):
        if "=" not in chunk:
            continue
        key, _, value = chunk.partition("=")
        parts[key.strip().upper()] = value.strip()

    freq = parts.get("FREQ", "").upper()
    if freq not in {"DAILY", "WEEKLY", "MONTHLY", "YEARLY"}:
        return None

    interval = 1
    if parts.get("INTERVAL", "").isdigit():
        interval = max(1, int(parts["INTERVAL"]))

    byday: list[tuple[int | None, int]] = []
    rejected = False
    for token in filter(None, (t.strip().upper() for t in parts.get("BYDAY", "").split(","))):
        m = _BYDAY_RE.match(token)
        if not m:
            continue
        ordinal = int(m.group(1)) if m.group(1) else None
        if ordinal is not None and not 1 <= abs(ordinal) <= 5:
            rejected = True
            continue
        byday.append((ordinal, DAY_ABBREVS.index(m.group(2))))

    count = None
    if parts.get("COUNT", "").isdigit():
        count = int(parts["COUNT"]) or None

    until = _parse_until(parts["UNTIL"]) if parts.get("UNTIL") else None

    return ParsedRule(
        freq=freq,
        interval=interval,
        byday=tuple(byday),
        count=count,
        until=until,
        byday_rejected=rejected and not byday,
    )


def parse_ordinals(rule: str | None) -> list[int]:
    """Ordinals out of a legacy monthly rule: ``"2nd/4th"`` -> ``[2, 4]``, ``"last"`` -> ``[-1]``."""
    if not rule:
        return []
    found: list[int] = []
    for token in _ORDINAL_SPLIT_RE.split(rule.strip().lower()):
        value = _ORDINAL_WORDS.get(token.strip())
        if value is None:
            return []
        if value not in found:
            found.append(value)
    return found


def build_rule_from_ordinals(ordinals: list[int] | tuple[int, ...]) -> str:
    """Inverse of ``parse_ordinals``: ``[1, 3]`` -> ``"1st/3rd"``."""
    labels = [_ORDINAL_SUFFIX[o].lower() for o in ordinals if o in _ORDINAL_SUFFIX]
    return "/".join(labels)


def _from_rrule(
    parsed: ParsedRule,
    anchor: date | None,
    weekday_hint: int | None,
    end_date: date | None,
) -> Recurrence:
    weekday = parsed.byday[0][1] if parsed.byday else weekday_hint
    ordinals = tuple(o for o, _ in parsed.byday if o is not None)
    end = parsed.until or end_date

    if parsed.freq == "DAILY":
        return Recurrence(
            is_recurring=True,
            frequency=Frequency.DAILY,
            is_confident=True,
            weekday=weekday,
            interval=parsed.interval,
            start_date=anchor,
            end_date=end,
            count=parsed.count,
        )
    if parsed.freq == "YEARLY":
        return Recurrence(
            is_recurring=True,
            frequency=Frequency.YEARLY,
            is_confident=anchor is not None,
            weekday=weekday,
            interval=parsed.interval,
            start_date=anchor,
            end_date=end,
            count=parsed.count,
        )
    if parsed.freq == "MONTHLY":
        if weekday is None and anchor is not None:
            weekday = anchor.weekday()
        if not ordinals and anchor is not None and not parsed.byday_rejected:
            # BYDAY without an ordinal: the anchor's position in its month
            ordinals = (min((anchor.day - 1) // 7 + 1, 4),)
        return Recurrence(
            is_recurring=True,
            frequency=Frequency.MONTHLY,
            is_confident=weekday is not None and bool(ordinals),
            weekday=weekday,
            ordinals=ordinals,
            interval=parsed.interval,
            start_date=anchor,
            end_date=end,
            count=parsed.count,
        )

    if weekday is None and anchor is not None:
        weekday = anchor.weekday()
    frequency = Frequency.BIWEEKLY if parsed.interval == 2 else Frequency.WEEKLY
    return Recurrence(
        is_recurring=True,
        frequency=frequency,
        is_confident=weekday is not None,
        weekday=weekday,
        interval=parsed.interval,
        start_date=anchor,
        end_date=end,
        count=parsed.count,
    )


def _from_legacy(
    rule: str,
    anchor: date | None,
    explicit_weekday: int | None,
    end_date: date | None,
) -> Recurrence:
    text = rule.strip().lower()
    weekday = explicit_weekday
    if weekday is None and anchor is not None:
        weekday = anchor.weekday()

    def make(frequency: Frequency, *, interval: int = 1, ordinals: tuple[int, ...] = ()) -> Recurrence:
        return Recurrence(
            is_recurring=True,
            frequency=frequency,
            is_confident=weekday is not None,
            weekday=weekday,
            ordinals=ordinals,
            interval=interval,
            start_date=anchor,
            end_date=end_date,
        )

    if text in {"none", "one-time", "once", "single"}:
        # Only an explicit weekday turns "none" into a weekly series
        if explicit_weekday is not None:
            return make(Frequency.WEEKLY)
        return _one_time(anchor, end_date)
    if text in {"weekly", "every week"}:
        return make(Frequency.WEEKLY)
    if text in {"biweekly", "bi-weekly", "every other week", "every 2 weeks"}:
        return make(Frequency.BIWEEKLY, interval=2)
    if text in {"daily", "every day"}:
        return Recurrence(
            is_recurring=True,
            frequency=Frequency.DAILY,
            is_confident=True,
            weekday=weekday,
            start_date=anchor,
            end_date=end_date,
        )
    if text == "custom":
        return Recurrence(
            is_recurring=True,
            frequency=Frequency.CUSTOM,
            is_confident=True,
            weekday=weekday,
            start_date=anchor,
            end_date=end_date,
        )
    if text == "seasonal":
        return Recurrence(
            is_recurring=True,
            frequency=Frequency.UNKNOWN,
            is_confident=False,
            weekday=weekday,
            start_date=anchor,
            end_date=end_date,
        )
    if text == "monthly":
        ordinal = min((anchor.day - 1) // 7 + 1, 4) if anchor is not None else None
        rec = make(Frequency.MONTHLY, ordinals=(ordinal,) if ordinal else ())
        if not rec.ordinals:
            return replace(rec, is_confident=False)
        return rec

    ordinals = parse_ordinals(text)
    if ordinals:
        return make(Frequency.MONTHLY, ordinals=tuple(ordinals))

    return Recurrence(
        is_recurring=False,
        frequency=Frequency.UNKNOWN,
        is_confident=False,
        weekday=weekday,
        start_date=anchor,
        end_date=end_date,
    )


def _one_time(anchor: date | None, end_date: date | None) -> Recurrence:
    return Recurrence(
        is_recurring=False,
        frequency=Frequency.ONE_TIME if anchor is not None else Frequency.UNKNOWN,
        is_confident=anchor is not None,
        weekday=anchor.weekday() if anchor is not None else None,
        start_date=anchor,
        end_date=end_date,
    )


def interpret_recurrence(
    event_date: str | date | None,
    day_of_week: str | None = None,
    recurrence_rule: str | None = None,
    recurrence_end_date: str | date | None = None,
) -> Recurrence:
    anchor = parse_date_key(event_date)
    end_date = parse_date_key(recurrence_end_date)
    explicit_weekday = weekday_index(day_of_week)
    rule = (recurrence_rule or "").strip()

    parsed = parse_rrule(rule)
    if parsed is not None:
        return _from_rrule(parsed, anchor, explicit_weekday, end_date)
    if rule:
        return _from_legacy(rule, anchor, explicit_weekday, end_date)
    if explicit_weekday is not None:
        return Recurrence(
            is_recurring=True,
            frequency=Frequency.WEEKLY,
            is_confident=True,
            weekday=explicit_weekday,
            start_date=anchor,
            end_date=end_date,
        )
    return _one_time(anchor, end_date)


def should_expand_to_multiple(rec: Recurrence) -> bool:
    return rec.is_recurring and rec.is_confident


def _plural(day: str) -> str:
    return f"{day}s"


def recurrence_label(rec: Recurrence) -> str:
    day = rec.day_name
    if rec.frequency is Frequency.ONE_TIME:
        return "One-time"
    if rec.frequency is Frequency.DAILY:
        return "Every day" if rec.interval == 1 else f"Every {rec.interval} days"
    if rec.frequency is Frequency.CUSTOM:
        return "Custom dates"
    if rec.frequency is Frequency.YEARLY:
        return "Every year" if rec.interval == 1 else f"Every {rec.interval} years"
    if day is None:
        return "Schedule varies"
    if rec.frequency is Frequency.WEEKLY:
        return f"Every {day}" if rec.interval == 1 else f"Every {rec.interval} weeks on {day}"
    if rec.frequency is Frequency.BIWEEKLY:
        return f"Every other {day}"
    if rec.frequency is Frequency.MONTHLY and rec.ordinals:
        names = [_ORDINAL_SUFFIX.get(o, str(o)) for o in rec.ordinals]
        if len(names) == 1:
            return f"{names[0]} {day} of the month"
        return f"{' & '.join(names)} {_plural(day)}"
    return "Schedule varies"
