from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from happenings.models import Event, EventHost, Profile
from happenings.models.event import InvitationStatus
from happenings.models.profile import ProfileRole
from happenings.services.error_codes import ErrorCode
from happenings.services.exceptions import PermissionDeniedError


def is_admin(user: Profile | None) -> bool:
    return user is not None and user.role == ProfileRole.ADMIN


def is_host_or_admin(user: Profile | None) -> bool:
    return user is not None and user.role in {ProfileRole.HOST, ProfileRole.ADMIN}


def is_event_manager(db: Session, user: Profile | None, event: Event) -> bool:
    """Primary host, an accepted co-host, or an admin."""
    if user is None:
        return False
    if is_admin(user) or event.host_id == user.id:
        return True
    cohost = db.scalar(
        select(EventHost.id).where(
            EventHost.event_id == event.id,
            EventHost.user_id == user.id,
            EventHost.invitation_status == InvitationStatus.ACCEPTED,
        )
    )
    return cohost is not None


def require_event_manager(db: Session, user: Profile, event: Event) -> None:
    if not is_event_manager(db, user, event):
        raise PermissionDeniedError(
            ErrorCode.NOT_EVENT_MANAGER, "only the event's hosts or an admin can do this"
        )


def require_admin(user: Profile) -> None:
    if not is_admin(user):
        raise PermissionDeniedError(ErrorCode.ADMIN_REQUIRED, "admin role required")
