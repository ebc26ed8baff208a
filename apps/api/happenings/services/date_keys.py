from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from happenings.core.config import settings

DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@lru_cache(maxsize=8)
def reference_zone(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or settings.reference_timezone)


def is_valid_date_key(value: object) -> bool:
    if not isinstance(value, str) or not DATE_KEY_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_date_key(value: str | date | None) -> date | None:
    """Lenient parse: anything that is not a real YYYY-MM-DD date becomes None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not is_valid_date_key(value):
        return None
    return date.fromisoformat(value)


def to_date_key(value: date) -> str:
    return value.isoformat()


def today_key(now: datetime | None = None) -> str:
    """Today's date key in the reference time zone (never UTC)."""
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(reference_zone()).date().isoformat()


def add_days(date_key: str, days: int) -> str:
    return (date.fromisoformat(date_key) + timedelta(days=days)).isoformat()


def weekday_name(date_key: str) -> str:
    return date.fromisoformat(date_key).strftime("%A")
