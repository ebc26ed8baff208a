from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from happenings.models import Event, EventLineupState, EventTimeslot, Profile, TimeslotClaim
from happenings.models.timeslot import ClaimStatus
from happenings.services.date_keys import is_valid_date_key
from happenings.services.error_codes import ErrorCode
from happenings.services.exceptions import NotFoundError, ValidationError
from happenings.services.permissions import is_event_manager, require_event_manager

log = structlog.get_logger(__name__)

LINEUP_STEPS = ("start", "next", "previous", "stop")

_PLAYABLE_STATUSES = (ClaimStatus.CONFIRMED, ClaimStatus.PERFORMED)


class LineupAccess(str, Enum):
    LOGIN_REQUIRED = "login_required"
    ACCESS_DENIED = "access_denied"
    FULL_CONTROL = "full_control"


@dataclass(frozen=True)
class NowPlaying:
    event_id: uuid.UUID
    date_key: str
    now_playing_timeslot_id: uuid.UUID | None = None
    updated_by: uuid.UUID | None = None
    updated_at: datetime | None = None


def _load_event(db: Session, event_id: Any) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
    return event


def _check_date_key(date_key: str) -> None:
    if not is_valid_date_key(date_key):
        raise ValidationError(ErrorCode.INVALID_DATE_KEY, "date must be YYYY-MM-DD")


def _state_row(db: Session, event_id: Any, date_key: str) -> EventLineupState | None:
    return db.scalar(
        select(EventLineupState).where(
            EventLineupState.event_id == event_id,
            EventLineupState.date_key == date_key,
        )
    )


def _snapshot(event_id: Any, date_key: str, row: EventLineupState | None) -> NowPlaying:
    if row is None:
        return NowPlaying(event_id=event_id, date_key=date_key)
    return NowPlaying(
        event_id=row.event_id,
        date_key=row.date_key,
        now_playing_timeslot_id=row.now_playing_timeslot_id,
        updated_by=row.updated_by,
        updated_at=row.updated_at,
    )


def lineup_access(user: Profile | None, event: Event, db: Session) -> LineupAccess:
    if user is None:
        return LineupAccess.LOGIN_REQUIRED
    if not is_event_manager(db, user, event):
        return LineupAccess.ACCESS_DENIED
    return LineupAccess.FULL_CONTROL


def get_now_playing(db: Session, event_id: Any, date_key: str) -> NowPlaying:
    """Public read. No row yet means nothing is playing."""
    _check_date_key(date_key)
    return _snapshot(event_id, date_key, _state_row(db, event_id, date_key))


def set_now_playing(
    db: Session,
    user: Profile,
    event_id: Any,
    date_key: str,
    timeslot_id: Any | None,
) -> NowPlaying:
    event = _load_event(db, event_id)
    require_event_manager(db, user, event)
    _check_date_key(date_key)

    if timeslot_id is not None:
        slot = db.get(EventTimeslot, timeslot_id)
        if slot is None:
            raise NotFoundError(ErrorCode.TIMESLOT_NOT_FOUND, "timeslot not found")
        if slot.event_id != event.id or slot.date_key != date_key:
            raise ValidationError(
                ErrorCode.TIMESLOT_MISMATCH, "timeslot belongs to a different occurrence"
            )

    # Two hosts can race on the first write for a date; the loser retries as an update
    for attempt in range(2):
        row = _state_row(db, event.id, date_key)
        if row is None:
            row = EventLineupState(event_id=event.id, date_key=date_key)
        row.now_playing_timeslot_id = timeslot_id
        row.updated_by = user.id
        db.add(row)
        try:
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            if attempt:
                raise

    db.refresh(row)
    log.info(
        "lineup_updated",
        event_id=str(event.id),
        date_key=date_key,
        timeslot_id=str(timeslot_id) if timeslot_id else None,
        updated_by=str(user.id),
    )
    return _snapshot(event.id, date_key, row)


def _playable_slot_ids(db: Session, event_id: Any, date_key: str) -> list[uuid.UUID]:
    slots = list(
        db.scalars(
            select(EventTimeslot)
            .where(EventTimeslot.event_id == event_id, EventTimeslot.date_key == date_key)
            .order_by(EventTimeslot.slot_index)
        )
    )
    if not slots:
        return []
    claimed = set(
        db.scalars(
            select(TimeslotClaim.timeslot_id).where(
                TimeslotClaim.timeslot_id.in_([s.id for s in slots]),
                TimeslotClaim.status.in_(_PLAYABLE_STATUSES),
            )
        )
    )
    ordered = [s.id for s in slots if s.id in claimed]
    return ordered or [s.id for s in slots]


def step_now_playing(
    db: Session,
    user: Profile,
    event_id: Any,
    date_key: str,
    step: str,
) -> NowPlaying:
    """Host shortcut over ``set_now_playing`` that walks the claimed slots in order."""
    if step not in LINEUP_STEPS:
        raise ValidationError(ErrorCode.INVALID_LINEUP_STEP, f"unknown step {step!r}")

    event = _load_event(db, event_id)
    require_event_manager(db, user, event)
    _check_date_key(date_key)

    if step == "stop":
        return set_now_playing(db, user, event.id, date_key, None)

    order = _playable_slot_ids(db, event.id, date_key)
    if not order:
        raise ValidationError(ErrorCode.TIMESLOTS_DISABLED, "no timeslots for this occurrence")

    current = _state_row(db, event.id, date_key)
    current_id = current.now_playing_timeslot_id if current else None

    if step == "start" or current_id not in order:
        target = order[0]
    elif step == "next":
        target = order[min(order.index(current_id) + 1, len(order) - 1)]
    else:
        target = order[max(order.index(current_id) - 1, 0)]

    return set_now_playing(db, user, event.id, date_key, target)
