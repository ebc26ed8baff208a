from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from happenings.models import Event, EventTimeslot, Profile, TimeslotClaim
from happenings.models.event import EventStatus
from happenings.models.timeslot import ACTIVE_CLAIM_STATUSES, ClaimStatus
from happenings.services.date_keys import is_valid_date_key
from happenings.services.error_codes import ErrorCode
from happenings.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from happenings.services.occurrences import occurs_on
from happenings.services.overrides import resolve_occurrence
from happenings.services.permissions import is_event_manager, require_event_manager

log = structlog.get_logger(__name__)

DEFAULT_SLOT_MINUTES = 15

# Host-driven status changes; members may only cancel their own active claim
CLAIM_TRANSITIONS: dict[ClaimStatus, frozenset[ClaimStatus]] = {
    ClaimStatus.CONFIRMED: frozenset(
        {ClaimStatus.PERFORMED, ClaimStatus.NO_SHOW, ClaimStatus.CANCELLED, ClaimStatus.WAITLIST}
    ),
    ClaimStatus.WAITLIST: frozenset({ClaimStatus.CONFIRMED, ClaimStatus.CANCELLED}),
    ClaimStatus.PERFORMED: frozenset({ClaimStatus.CONFIRMED}),
    ClaimStatus.NO_SHOW: frozenset({ClaimStatus.CONFIRMED}),
    ClaimStatus.CANCELLED: frozenset(),
}


@dataclass
class ClaimView:
    claim: TimeslotClaim
    performer_name: str | None
    no_show_count: int | None = None


@dataclass
class TimeslotView:
    slot: EventTimeslot
    claim: ClaimView | None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _check_date_key(date_key: str) -> None:
    if not is_valid_date_key(date_key):
        raise ValidationError(ErrorCode.INVALID_DATE_KEY, "date must be YYYY-MM-DD")


def _load_event(db: Session, event_id: Any) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
    return event


def _load_slot(db: Session, timeslot_id: Any) -> EventTimeslot:
    slot = db.get(EventTimeslot, timeslot_id)
    if not slot:
        raise NotFoundError(ErrorCode.TIMESLOT_NOT_FOUND, "timeslot not found")
    return slot


def _load_claim(db: Session, claim_id: Any) -> TimeslotClaim:
    claim = db.get(TimeslotClaim, claim_id)
    if not claim:
        raise NotFoundError(ErrorCode.CLAIM_NOT_FOUND, "claim not found")
    return claim


def _require_open_occurrence(db: Session, event: Event, date_key: str) -> dict[str, Any]:
    if event.status == EventStatus.CANCELLED:
        raise ConflictError(ErrorCode.EVENT_CANCELLED, "event is cancelled")
    if not occurs_on(event, date_key):
        raise ValidationError(ErrorCode.INVALID_DATE_KEY, "event does not occur on that date")
    resolved = resolve_occurrence(db, event, date_key)
    if resolved.is_cancelled:
        raise ConflictError(ErrorCode.OCCURRENCE_CANCELLED, "this occurrence is cancelled")
    return resolved.fields


def _slot_claims(db: Session, slot_ids: list[uuid.UUID]) -> dict[uuid.UUID, TimeslotClaim]:
    """Latest non-cancelled claim per slot."""
    if not slot_ids:
        return {}
    rows = db.scalars(
        select(TimeslotClaim)
        .where(
            TimeslotClaim.timeslot_id.in_(slot_ids),
            TimeslotClaim.status != ClaimStatus.CANCELLED,
        )
        .order_by(TimeslotClaim.claimed_at)
    )
    return {row.timeslot_id: row for row in rows}


def _performers(db: Session, claims: list[TimeslotClaim]) -> dict[uuid.UUID, Profile]:
    member_ids = {c.member_id for c in claims if c.member_id}
    if not member_ids:
        return {}
    return {p.id: p for p in db.scalars(select(Profile).where(Profile.id.in_(member_ids)))}


def _claim_view(claim: TimeslotClaim, profiles: dict[uuid.UUID, Profile], *, private: bool) -> ClaimView:
    profile = profiles.get(claim.member_id) if claim.member_id else None
    name = claim.guest_name or (profile.full_name or profile.email if profile else None)
    return ClaimView(
        claim=claim,
        performer_name=name,
        no_show_count=profile.no_show_count if (profile and private) else None,
    )


def _occurrence_slots(db: Session, event_id: Any, date_key: str) -> list[EventTimeslot]:
    return list(
        db.scalars(
            select(EventTimeslot)
            .where(EventTimeslot.event_id == event_id, EventTimeslot.date_key == date_key)
            .order_by(EventTimeslot.slot_index)
        )
    )


def generate_timeslots(
    db: Session,
    user: Profile,
    event_id: Any,
    date_key: str,
    regenerate: bool = False,
) -> list[EventTimeslot]:
    event = _load_event(db, event_id)
    require_event_manager(db, user, event)
    _check_date_key(date_key)
    fields = _require_open_occurrence(db, event, date_key)

    if not fields.get("has_timeslots"):
        raise ConflictError(ErrorCode.TIMESLOTS_DISABLED, "timeslots are not enabled for this event")
    total = fields.get("total_slots")
    if not total or int(total) < 1:
        raise ValidationError(ErrorCode.TIMESLOTS_DISABLED, "total_slots must be set")
    duration = int(fields.get("slot_duration_minutes") or DEFAULT_SLOT_MINUTES)

    existing = _occurrence_slots(db, event.id, date_key)
    if existing:
        if not regenerate:
            raise ConflictError(ErrorCode.TIMESLOTS_EXIST, "timeslots already exist for this date")
        active = db.scalar(
            select(TimeslotClaim.id).where(
                TimeslotClaim.timeslot_id.in_([s.id for s in existing]),
                TimeslotClaim.status.in_(ACTIVE_CLAIM_STATUSES),
            )
        )
        if active is not None:
            raise ConflictError(
                ErrorCode.TIMESLOTS_CLAIMED, "cannot regenerate while slots have active claims"
            )
        slot_ids = [s.id for s in existing]
        db.execute(delete(TimeslotClaim).where(TimeslotClaim.timeslot_id.in_(slot_ids)))
        db.execute(delete(EventTimeslot).where(EventTimeslot.id.in_(slot_ids)))

    has_start = bool(fields.get("start_time"))
    slots = [
        EventTimeslot(
            event_id=event.id,
            date_key=date_key,
            slot_index=index,
            start_offset_minutes=index * duration if has_start else None,
            duration_minutes=duration,
        )
        for index in range(int(total))
    ]
    db.add_all(slots)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(ErrorCode.TIMESLOTS_EXIST, "timeslots already exist for this date") from exc

    log.info(
        "timeslots_generated",
        event_id=str(event.id),
        date_key=date_key,
        count=len(slots),
        regenerated=bool(existing),
    )
    return slots


def list_timeslots(
    db: Session,
    event_id: Any,
    date_key: str,
    *,
    private: bool = False,
) -> list[TimeslotView]:
    _check_date_key(date_key)
    slots = _occurrence_slots(db, event_id, date_key)
    claims = _slot_claims(db, [s.id for s in slots])
    profiles = _performers(db, list(claims.values()))
    return [
        TimeslotView(
            slot=slot,
            claim=_claim_view(claims[slot.id], profiles, private=private) if slot.id in claims else None,
        )
        for slot in slots
    ]


def claim_timeslot(
    db: Session,
    user: Profile,
    timeslot_id: Any,
    guest_name: str | None = None,
) -> TimeslotClaim:
    slot = _load_slot(db, timeslot_id)
    event = _load_event(db, slot.event_id)
    if not event.is_published:
        raise ConflictError(ErrorCode.EVENT_NOT_PUBLISHED, "event is not published")
    fields = _require_open_occurrence(db, event, slot.date_key)
    if not fields.get("has_timeslots"):
        raise ConflictError(ErrorCode.TIMESLOTS_DISABLED, "timeslots are not enabled for this event")

    guest_name = (guest_name or "").strip() or None
    if guest_name:
        if not is_event_manager(db, user, event):
            raise PermissionDeniedError(
                ErrorCode.NOT_EVENT_MANAGER, "only hosts can add guest performers"
            )
        member_id = None
    else:
        member_id = user.id
        mine = db.scalar(
            select(TimeslotClaim.id)
            .join(EventTimeslot, EventTimeslot.id == TimeslotClaim.timeslot_id)
            .where(
                EventTimeslot.event_id == event.id,
                EventTimeslot.date_key == slot.date_key,
                TimeslotClaim.member_id == user.id,
                TimeslotClaim.status.in_(ACTIVE_CLAIM_STATUSES),
            )
        )
        if mine is not None:
            raise ConflictError(ErrorCode.ALREADY_CLAIMED, "you already have a slot for this date")

    taken = db.scalar(
        select(TimeslotClaim.id).where(
            TimeslotClaim.timeslot_id == slot.id,
            TimeslotClaim.status.in_(ACTIVE_CLAIM_STATUSES),
        )
    )
    if taken is not None:
        raise ConflictError(ErrorCode.TIMESLOT_TAKEN, "timeslot is already claimed")

    claim = TimeslotClaim(
        timeslot_id=slot.id,
        member_id=member_id,
        guest_name=guest_name,
        status=ClaimStatus.CONFIRMED,
        claimed_at=_now(),
        updated_by=user.id,
    )
    db.add(claim)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(ErrorCode.TIMESLOT_TAKEN, "timeslot is already claimed") from exc

    db.refresh(claim)
    log.info(
        "timeslot_claimed",
        event_id=str(event.id),
        date_key=slot.date_key,
        slot_index=slot.slot_index,
        guest=bool(guest_name),
    )
    return claim


def update_claim_status(
    db: Session,
    user: Profile,
    claim_id: Any,
    status: ClaimStatus | str,
) -> TimeslotClaim:
    claim = _load_claim(db, claim_id)
    slot = _load_slot(db, claim.timeslot_id)
    event = _load_event(db, slot.event_id)

    try:
        target = ClaimStatus(status)
    except ValueError:
        raise ValidationError(ErrorCode.INVALID_CLAIM_TRANSITION, f"unknown status {status!r}") from None

    manager = is_event_manager(db, user, event)
    own_cancel = (
        claim.member_id == user.id
        and target == ClaimStatus.CANCELLED
        and claim.status in ACTIVE_CLAIM_STATUSES
    )
    if not manager and not own_cancel:
        raise PermissionDeniedError(
            ErrorCode.NOT_EVENT_MANAGER, "only the event's hosts can change this claim"
        )

    if target == claim.status:
        return claim
    if target not in CLAIM_TRANSITIONS[claim.status]:
        raise ConflictError(
            ErrorCode.INVALID_CLAIM_TRANSITION,
            f"cannot move a claim from {claim.status.value} to {target.value}",
        )

    if target == ClaimStatus.CONFIRMED:
        taken = db.scalar(
            select(TimeslotClaim.id).where(
                TimeslotClaim.timeslot_id == slot.id,
                TimeslotClaim.id != claim.id,
                TimeslotClaim.status.in_(ACTIVE_CLAIM_STATUSES),
            )
        )
        if taken is not None:
            raise ConflictError(ErrorCode.TIMESLOT_TAKEN, "timeslot is already claimed")

    performer = db.get(Profile, claim.member_id) if claim.member_id else None
    if performer is not None:
        if target == ClaimStatus.NO_SHOW:
            performer.no_show_count = (performer.no_show_count or 0) + 1
        elif claim.status == ClaimStatus.NO_SHOW:
            performer.no_show_count = max((performer.no_show_count or 0) - 1, 0)
        db.add(performer)

    previous = claim.status
    claim.status = target
    claim.updated_by = user.id
    db.add(claim)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(ErrorCode.TIMESLOT_TAKEN, "timeslot is already claimed") from exc

    db.refresh(claim)
    log.info(
        "claim_status_changed",
        claim_id=str(claim.id),
        event_id=str(event.id),
        previous=previous.value,
        status=target.value,
    )
    return claim


def remove_claim(db: Session, user: Profile, claim_id: Any) -> TimeslotClaim:
    claim = _load_claim(db, claim_id)
    slot = _load_slot(db, claim.timeslot_id)
    event = _load_event(db, slot.event_id)
    require_event_manager(db, user, event)

    if claim.status == ClaimStatus.CANCELLED:
        return claim
    claim.status = ClaimStatus.CANCELLED
    claim.updated_by = user.id
    db.add(claim)
    db.commit()
    db.refresh(claim)
    log.info("claim_removed", claim_id=str(claim.id), event_id=str(event.id))
    return claim


def list_claims(db: Session, user: Profile, event_id: Any, date_key: str) -> list[ClaimView]:
    event = _load_event(db, event_id)
    require_event_manager(db, user, event)
    _check_date_key(date_key)

    claims = list(
        db.scalars(
            select(TimeslotClaim)
            .join(EventTimeslot, EventTimeslot.id == TimeslotClaim.timeslot_id)
            .where(EventTimeslot.event_id == event.id, EventTimeslot.date_key == date_key)
            .order_by(EventTimeslot.slot_index, TimeslotClaim.claimed_at)
        )
    )
    profiles = _performers(db, claims)
    return [_claim_view(c, profiles, private=True) for c in claims]
