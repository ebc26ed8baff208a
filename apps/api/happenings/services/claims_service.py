from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from happenings.models import Event, EventClaim, EventHost, Profile, Venue, VenueClaim, VenueManager
from happenings.models.claim import ClaimReviewStatus
from happenings.models.event import EventHostRole, InvitationStatus
from happenings.models.profile import ProfileRole
from happenings.models.venue import VenueManagerRole
from happenings.services.error_codes import ErrorCode
from happenings.services.exceptions import ConflictError, NotFoundError
from happenings.services.permissions import require_admin

log = structlog.get_logger(__name__)

CLAIM_KINDS = ("event", "venue")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _pending_claim(db: Session, model: type, target_column, target_id: Any, user_id: Any):
    return db.scalar(
        select(model).where(
            target_column == target_id,
            model.requester_id == user_id,
            model.status == ClaimReviewStatus.PENDING,
        )
    )


def submit_event_claim(db: Session, user: Profile, event_id: Any, message: str | None = None) -> EventClaim:
    event = db.get(Event, event_id)
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
    if event.host_id == user.id:
        raise ConflictError(ErrorCode.OWNERSHIP_CLAIM_REVIEWED, "you already host this event")
    if _pending_claim(db, EventClaim, EventClaim.event_id, event.id, user.id):
        raise ConflictError(ErrorCode.OWNERSHIP_CLAIM_PENDING, "a claim is already pending")

    claim = EventClaim(event_id=event.id, requester_id=user.id, message=message)
    db.add(claim)
    db.commit()
    db.refresh(claim)
    log.info("event_claim_submitted", claim_id=str(claim.id), event_id=str(event.id))
    return claim


def submit_venue_claim(db: Session, user: Profile, venue_id: Any, message: str | None = None) -> VenueClaim:
    venue = db.get(Venue, venue_id)
    if not venue:
        raise NotFoundError(ErrorCode.VENUE_NOT_FOUND, "venue not found")
    if _pending_claim(db, VenueClaim, VenueClaim.venue_id, venue.id, user.id):
        raise ConflictError(ErrorCode.OWNERSHIP_CLAIM_PENDING, "a claim is already pending")

    claim = VenueClaim(venue_id=venue.id, requester_id=user.id, message=message)
    db.add(claim)
    db.commit()
    db.refresh(claim)
    log.info("venue_claim_submitted", claim_id=str(claim.id), venue_id=str(venue.id))
    return claim


def _load_pending(db: Session, model: type, claim_id: Any):
    claim = db.get(model, claim_id)
    if not claim:
        raise NotFoundError(ErrorCode.OWNERSHIP_CLAIM_NOT_FOUND, "claim not found")
    if claim.status != ClaimReviewStatus.PENDING:
        raise ConflictError(ErrorCode.OWNERSHIP_CLAIM_REVIEWED, "claim was already reviewed")
    return claim


def _mark_reviewed(claim, admin: Profile, status: ClaimReviewStatus, reason: str | None = None) -> None:
    claim.status = status
    claim.reviewed_by = admin.id
    claim.reviewed_at = _now()
    claim.rejection_reason = reason


def _promote_to_host(db: Session, user_id: Any) -> None:
    profile = db.get(Profile, user_id)
    if profile is not None and profile.role == ProfileRole.MEMBER:
        profile.role = ProfileRole.HOST
        db.add(profile)


def approve_event_claim(db: Session, admin: Profile, claim_id: Any) -> EventClaim:
    require_admin(admin)
    claim = _load_pending(db, EventClaim, claim_id)
    event = db.get(Event, claim.event_id)
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")

    event.host_id = claim.requester_id
    host_row = db.scalar(
        select(EventHost).where(EventHost.event_id == event.id, EventHost.user_id == claim.requester_id)
    )
    if host_row is None:
        host_row = EventHost(event_id=event.id, user_id=claim.requester_id)
    host_row.role = EventHostRole.HOST
    host_row.invitation_status = InvitationStatus.ACCEPTED
    db.add_all([event, host_row])
    _promote_to_host(db, claim.requester_id)

    _mark_reviewed(claim, admin, ClaimReviewStatus.APPROVED)
    db.add(claim)
    db.commit()
    db.refresh(claim)
    log.info("event_claim_approved", claim_id=str(claim.id), event_id=str(event.id))
    return claim


def approve_venue_claim(db: Session, admin: Profile, claim_id: Any) -> VenueClaim:
    require_admin(admin)
    claim = _load_pending(db, VenueClaim, claim_id)

    manager = db.scalar(
        select(VenueManager).where(
            VenueManager.venue_id == claim.venue_id, VenueManager.user_id == claim.requester_id
        )
    )
    if manager is None:
        manager = VenueManager(venue_id=claim.venue_id, user_id=claim.requester_id)
    manager.role = VenueManagerRole.OWNER
    db.add(manager)
    _promote_to_host(db, claim.requester_id)

    _mark_reviewed(claim, admin, ClaimReviewStatus.APPROVED)
    db.add(claim)
    db.commit()
    db.refresh(claim)
    log.info("venue_claim_approved", claim_id=str(claim.id), venue_id=str(claim.venue_id))
    return claim


def reject_claim(
    db: Session,
    admin: Profile,
    kind: str,
    claim_id: Any,
    reason: str | None = None,
) -> EventClaim | VenueClaim:
    require_admin(admin)
    model = EventClaim if kind == "event" else VenueClaim
    claim = _load_pending(db, model, claim_id)
    _mark_reviewed(claim, admin, ClaimReviewStatus.REJECTED, reason)
    db.add(claim)
    db.commit()
    db.refresh(claim)
    log.info("ownership_claim_rejected", kind=kind, claim_id=str(claim.id))
    return claim


def approve_claim(db: Session, admin: Profile, kind: str, claim_id: Any) -> EventClaim | VenueClaim:
    if kind == "event":
        return approve_event_claim(db, admin, claim_id)
    return approve_venue_claim(db, admin, claim_id)


def reject_event_claim(db: Session, admin: Profile, claim_id: Any, reason: str | None = None) -> EventClaim:
    return reject_claim(db, admin, "event", claim_id, reason)


def reject_venue_claim(db: Session, admin: Profile, claim_id: Any, reason: str | None = None) -> VenueClaim:
    return reject_claim(db, admin, "venue", claim_id, reason)
