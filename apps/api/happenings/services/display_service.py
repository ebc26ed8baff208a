from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from happenings.core.config import settings
from happenings.models import Event
from happenings.models.timeslot import ClaimStatus
from happenings.services.date_keys import today_key
from happenings.services.error_codes import ErrorCode
from happenings.services.events_service import available_dates, get_event
from happenings.services.exceptions import NotFoundError
from happenings.services.lineup_service import NowPlaying, get_now_playing
from happenings.services.occurrences import select_occurrence_date
from happenings.services.overrides import ResolvedOccurrence, resolve_occurrence
from happenings.services.timeslot_service import TimeslotView, list_timeslots


@dataclass
class LineupSnapshot:
    event: Event
    resolved: ResolvedOccurrence
    now_playing: NowPlaying
    slots: list[TimeslotView]
    available_dates: list[str]
    notice: str | None
    poll_interval_seconds: float
    now_playing_index: int | None = None
    up_next: list[TimeslotView] = field(default_factory=list)


def _assemble(
    db: Session,
    event: Event,
    requested_date: str | None,
    *,
    allow_historical: bool,
    private: bool,
    poll_interval: float,
) -> LineupSnapshot:
    today = today_key()
    dates = available_dates(event, today)
    selection = select_occurrence_date(
        requested_date, dates, today=today, allow_historical=allow_historical
    )
    date_key = selection.date_key

    slots = list_timeslots(db, event.id, date_key, private=private)
    now = get_now_playing(db, event.id, date_key)

    index: dict[Any, int] = {view.slot.id: i for i, view in enumerate(slots)}
    current = index.get(now.now_playing_timeslot_id)
    after = slots[current + 1 :] if current is not None else slots
    up_next = [v for v in after if v.claim is not None and v.claim.claim.status == ClaimStatus.CONFIRMED]

    return LineupSnapshot(
        event=event,
        resolved=resolve_occurrence(db, event, date_key),
        now_playing=now,
        slots=slots,
        available_dates=dates,
        notice=selection.notice,
        poll_interval_seconds=poll_interval,
        now_playing_index=current,
        up_next=up_next[:3],
    )


def build_display_snapshot(
    db: Session,
    id_or_slug: Any,
    requested_date: str | None = None,
    *,
    tv: bool = False,
) -> LineupSnapshot:
    """Public kiosk view. ``tv`` mode may pin a historical date."""
    event = get_event(db, id_or_slug)
    if not event.is_published:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
    return _assemble(
        db,
        event,
        requested_date,
        allow_historical=tv,
        private=False,
        poll_interval=settings.display_poll_interval_seconds,
    )


def build_control_snapshot(
    db: Session,
    event: Event,
    requested_date: str | None = None,
) -> LineupSnapshot:
    """Host control view; caller has already checked ``lineup_access``."""
    return _assemble(
        db,
        event,
        requested_date,
        allow_historical=True,
        private=True,
        poll_interval=settings.lineup_poll_interval_seconds,
    )
