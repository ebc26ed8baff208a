from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from happenings.models import Event, EventRSVP, Profile
from happenings.models.event import EventStatus
from happenings.models.rsvp import RSVPStatus
from happenings.services.date_keys import is_valid_date_key, today_key
from happenings.services.error_codes import ErrorCode
from happenings.services.exceptions import ConflictError, NotFoundError, ValidationError
from happenings.services.occurrences import occurs_on
from happenings.services.overrides import resolve_occurrence
from happenings.services.permissions import require_event_manager

log = structlog.get_logger(__name__)

_ACTIVE = (RSVPStatus.CONFIRMED, RSVPStatus.WAITLIST)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _confirmed_count(db: Session, event_id: Any, date_key: str) -> int:
    return int(
        db.scalar(
            select(func.count())
            .select_from(EventRSVP)
            .where(
                EventRSVP.event_id == event_id,
                EventRSVP.date_key == date_key,
                EventRSVP.status == RSVPStatus.CONFIRMED,
            )
        )
        or 0
    )


def _find(db: Session, event_id: Any, date_key: str, user_id: Any) -> EventRSVP | None:
    return db.scalar(
        select(EventRSVP).where(
            EventRSVP.event_id == event_id,
            EventRSVP.date_key == date_key,
            EventRSVP.user_id == user_id,
        )
    )


def rsvp(db: Session, user: Profile, event_id: Any, date_key: str) -> tuple[RSVPStatus, bool]:
    """RSVP to one occurrence. Returns ``(status, already)``; a full occurrence waitlists."""
    if not is_valid_date_key(date_key):
        raise ValidationError(ErrorCode.INVALID_DATE_KEY, "date must be YYYY-MM-DD")

    try:
        event = db.scalar(select(Event).where(Event.id == event_id).with_for_update())
        if not event:
            raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
        if event.status == EventStatus.CANCELLED:
            raise ConflictError(ErrorCode.EVENT_CANCELLED, "event is cancelled")
        if not event.is_published:
            raise ConflictError(ErrorCode.EVENT_NOT_PUBLISHED, "event is not published")
        if date_key < today_key():
            raise ConflictError(ErrorCode.OCCURRENCE_PAST, "this occurrence has already happened")
        if not occurs_on(event, date_key):
            raise ValidationError(ErrorCode.INVALID_DATE_KEY, "event does not occur on that date")

        resolved = resolve_occurrence(db, event, date_key)
        if resolved.is_cancelled:
            raise ConflictError(ErrorCode.OCCURRENCE_CANCELLED, "this occurrence is cancelled")

        existing = _find(db, event.id, date_key, user.id)
        if existing and existing.status in _ACTIVE:
            return existing.status, True

        capacity = resolved.fields.get("capacity")
        status = RSVPStatus.CONFIRMED
        if capacity is not None and _confirmed_count(db, event.id, date_key) >= int(capacity):
            status = RSVPStatus.WAITLIST

        if existing:
            existing.status = status
            existing.cancelled_at = None
            db.add(existing)
        else:
            db.add(
                EventRSVP(
                    event_id=event.id,
                    date_key=date_key,
                    user_id=user.id,
                    status=status,
                    created_at=_now(),
                )
            )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        existing = _find(db, event_id, date_key, user.id)
        if existing and existing.status in _ACTIVE:
            return existing.status, True
        raise ConflictError(ErrorCode.INVALID_EVENT, "rsvp changed concurrently; retry") from exc

    log.info(
        "rsvp_created",
        event_id=str(event_id),
        date_key=date_key,
        user_id=str(user.id),
        status=status.value,
    )
    return status, False


def _promote_waitlist(db: Session, event: Event, date_key: str) -> EventRSVP | None:
    resolved = resolve_occurrence(db, event, date_key)
    capacity = resolved.fields.get("capacity")
    if capacity is not None and _confirmed_count(db, event.id, date_key) >= int(capacity):
        return None

    nxt = db.scalar(
        select(EventRSVP)
        .where(
            EventRSVP.event_id == event.id,
            EventRSVP.date_key == date_key,
            EventRSVP.status == RSVPStatus.WAITLIST,
        )
        .order_by(EventRSVP.created_at, EventRSVP.id)
        .limit(1)
    )
    if nxt is not None:
        nxt.status = RSVPStatus.CONFIRMED
        db.add(nxt)
    return nxt


def cancel_rsvp(db: Session, user: Profile, event_id: Any, date_key: str) -> EventRSVP | None:
    """Cancel the caller's RSVP; returns the waitlisted RSVP promoted into the freed seat, if any."""
    event = db.scalar(select(Event).where(Event.id == event_id).with_for_update())
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")

    row = _find(db, event.id, date_key, user.id)
    if not row or row.status == RSVPStatus.CANCELLED:
        raise NotFoundError(ErrorCode.RSVP_NOT_FOUND, "not currently RSVPed")

    freed_seat = row.status == RSVPStatus.CONFIRMED
    row.status = RSVPStatus.CANCELLED
    row.cancelled_at = _now()
    db.add(row)
    db.flush()

    promoted = _promote_waitlist(db, event, date_key) if freed_seat else None
    db.commit()

    log.info(
        "rsvp_cancelled",
        event_id=str(event.id),
        date_key=date_key,
        user_id=str(user.id),
        promoted=str(promoted.user_id) if promoted else None,
    )
    return promoted


def list_rsvps(db: Session, user: Profile, event_id: Any, date_key: str) -> list[EventRSVP]:
    event = db.get(Event, event_id)
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
    require_event_manager(db, user, event)
    if not is_valid_date_key(date_key):
        raise ValidationError(ErrorCode.INVALID_DATE_KEY, "date must be YYYY-MM-DD")

    return list(
        db.scalars(
            select(EventRSVP)
            .where(
                EventRSVP.event_id == event.id,
                EventRSVP.date_key == date_key,
                EventRSVP.status.in_(_ACTIVE),
            )
            .order_by(EventRSVP.created_at, EventRSVP.id)
        )
    )
