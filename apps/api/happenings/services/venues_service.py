from __future__ import annotations

import re
import secrets
from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from happenings.models import Profile, Venue, VenueManager
from happenings.models.venue import VenueManagerRole
from happenings.services.error_codes import ErrorCode
from happenings.services.exceptions import ConflictError, NotFoundError, PermissionDeniedError
from happenings.services.permissions import is_host_or_admin

log = structlog.get_logger(__name__)


def create_venue(
    db: Session,
    user: Profile,
    name: str,
    address: str | None = None,
    city: str | None = None,
    state: str | None = None,
) -> Venue:
    if not is_host_or_admin(user):
        raise PermissionDeniedError(ErrorCode.HOST_REQUIRED, "only hosts or admins can add venues")

    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")[:80] or "venue"
    venue = Venue(
        name=name.strip(),
        slug=f"{slug}-{secrets.token_hex(3)}",
        address=address,
        city=city,
        state=state,
    )
    db.add(venue)
    try:
        db.flush()
        db.add(VenueManager(venue_id=venue.id, user_id=user.id, role=VenueManagerRole.OWNER))
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(ErrorCode.INVALID_EVENT, "venue slug already exists") from exc

    db.refresh(venue)
    log.info("venue_created", venue_id=str(venue.id))
    return venue


def get_venue(db: Session, venue_id: Any) -> Venue:
    venue = db.get(Venue, venue_id)
    if not venue:
        raise NotFoundError(ErrorCode.VENUE_NOT_FOUND, "venue not found")
    return venue
