from __future__ import annotations

import re
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from happenings.api.v1.schemas.events import EventCreate, EventUpdate
from happenings.core.config import settings
from happenings.models import Event, EventHost, Profile, Venue
from happenings.models.event import EventHostRole, EventStatus, InvitationStatus
from happenings.services.date_keys import add_days, is_valid_date_key, today_key
from happenings.services.error_codes import ErrorCode
from happenings.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from happenings.services.occurrences import (
    expand_occurrences,
    recurrence_for,
    select_occurrence_date,
)
from happenings.services.overrides import (
    ResolvedOccurrence,
    is_override_cancelled,
    overrides_by_key,
    rescheduled_date,
    resolve_occurrence,
)
from happenings.services.permissions import is_event_manager, is_host_or_admin, require_event_manager
from happenings.services.recurrence import (
    DAY_NAMES,
    Frequency,
    interpret_recurrence,
    recurrence_label,
    weekday_index,
)

log = structlog.get_logger(__name__)

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")


@dataclass
class EventOccurrenceView:
    event: Event
    resolved: ResolvedOccurrence
    available_dates: list[str]
    notice: str | None
    label: str


@dataclass
class OccurrenceRow:
    date_key: str
    display_date: str
    is_cancelled: bool
    is_confident: bool


@dataclass
class OccurrenceListing:
    event: Event
    label: str
    items: list[OccurrenceRow] = field(default_factory=list)


def _slugify(title: str) -> str:
    base = _SLUG_STRIP_RE.sub("-", title.lower()).strip("-")[:80] or "event"
    return f"{base}-{secrets.token_hex(3)}"


def _canonical_day_of_week(
    event_date: str | None, day_of_week: str | None, recurrence_rule: str | None
) -> str | None:
    """Normalize the weekday name; recurring series without one get the anchor's."""
    index = weekday_index(day_of_week)
    if index is not None:
        return DAY_NAMES[index]
    if not recurrence_rule:
        return day_of_week
    rec = interpret_recurrence(event_date, None, recurrence_rule)
    if rec.is_recurring and rec.frequency in (
        Frequency.WEEKLY,
        Frequency.BIWEEKLY,
        Frequency.MONTHLY,
    ):
        return rec.day_name
    return day_of_week


def _load_event(db: Session, event_id: Any) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
    return event


def get_event(db: Session, id_or_slug: Any) -> Event:
    event: Event | None = None
    try:
        event_uuid = id_or_slug if isinstance(id_or_slug, uuid.UUID) else uuid.UUID(str(id_or_slug))
    except ValueError:
        event = db.scalar(select(Event).where(Event.slug == str(id_or_slug)))
    else:
        event = db.get(Event, event_uuid)
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
    return event


def create_event(db: Session, host: Profile, payload: EventCreate) -> Event:
    if not is_host_or_admin(host):
        raise PermissionDeniedError(ErrorCode.HOST_REQUIRED, "only hosts or admins can create events")

    if payload.venue_id is not None and db.get(Venue, payload.venue_id) is None:
        raise NotFoundError(ErrorCode.VENUE_NOT_FOUND, "venue not found")

    data = payload.model_dump()
    data["slug"] = payload.slug or _slugify(payload.title)
    data["title"] = payload.title.strip()
    data["day_of_week"] = _canonical_day_of_week(
        payload.event_date, payload.day_of_week, payload.recurrence_rule
    )

    event = Event(**data, host_id=host.id, status=EventStatus.ACTIVE)
    db.add(event)

    try:
        db.flush()
        db.add(
            EventHost(
                event_id=event.id,
                user_id=host.id,
                role=EventHostRole.HOST,
                invitation_status=InvitationStatus.ACCEPTED,
            )
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(ErrorCode.INVALID_EVENT, "slug already exists") from exc

    db.refresh(event)
    log.info("event_created", event_id=str(event.id), host_id=str(host.id))
    return event


def update_event(db: Session, user: Profile, event_id: Any, patch: EventUpdate) -> Event:
    event = _load_event(db, event_id)
    require_event_manager(db, user, event)

    patch_data = patch.model_dump(exclude_unset=True)
    if "title" in patch_data and not (patch_data["title"] or "").strip():
        raise ValidationError(ErrorCode.INVALID_EVENT, "title cannot be empty")
    if patch_data.get("venue_id") is not None and db.get(Venue, patch_data["venue_id"]) is None:
        raise NotFoundError(ErrorCode.VENUE_NOT_FOUND, "venue not found")

    schedule_keys = {"event_date", "day_of_week", "recurrence_rule"}
    if schedule_keys & patch_data.keys():
        patch_data["day_of_week"] = _canonical_day_of_week(
            patch_data.get("event_date", event.event_date),
            patch_data.get("day_of_week", event.day_of_week),
            patch_data.get("recurrence_rule", event.recurrence_rule),
        )

    has_timeslots = patch_data.get("has_timeslots", event.has_timeslots)
    total_slots = patch_data.get("total_slots", event.total_slots)
    if has_timeslots and not total_slots:
        raise ValidationError(ErrorCode.INVALID_EVENT, "total_slots is required for timeslots")

    for key, value in patch_data.items():
        setattr(event, key, value)

    db.add(event)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(ErrorCode.INVALID_EVENT, "slug already exists") from exc
    db.refresh(event)
    log.info("event_updated", event_id=str(event.id), fields=sorted(patch_data))
    return event


def publish_event(db: Session, user: Profile, event_id: Any) -> Event:
    event = _load_event(db, event_id)
    require_event_manager(db, user, event)

    if event.status == EventStatus.CANCELLED:
        raise ConflictError(ErrorCode.EVENT_CANCELLED, "cannot publish a cancelled event")

    event.is_published = True
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def cancel_event(db: Session, user: Profile, event_id: Any) -> Event:
    event = _load_event(db, event_id)
    require_event_manager(db, user, event)

    event.status = EventStatus.CANCELLED
    event.cancelled_at = datetime.now(timezone.utc)
    db.add(event)
    db.commit()
    db.refresh(event)
    log.info("event_cancelled", event_id=str(event.id))
    return event


def _require_visible(db: Session, user: Profile | None, event: Event) -> None:
    # Drafts look missing to everyone but their managers
    if not event.is_published and not is_event_manager(db, user, event):
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")


def available_dates(event: Event, today: str | None = None) -> list[str]:
    today = today or today_key()
    rec = recurrence_for(event)
    if not rec.is_recurring:
        return [o.date_key for o in expand_occurrences(event, today, always_include_anchor=True)]
    return [o.date_key for o in expand_occurrences(event, today)]


def get_event_occurrence(
    db: Session,
    user: Profile | None,
    id_or_slug: Any,
    requested_date: str | None = None,
) -> EventOccurrenceView:
    """Event page: the requested (or next) occurrence with overrides applied."""
    event = get_event(db, id_or_slug)
    _require_visible(db, user, event)

    today = today_key()
    dates = available_dates(event, today)
    selection = select_occurrence_date(requested_date, dates, today=today)
    resolved = resolve_occurrence(db, event, selection.date_key)
    return EventOccurrenceView(
        event=event,
        resolved=resolved,
        available_dates=dates,
        notice=selection.notice,
        label=recurrence_label(recurrence_for(event)),
    )


def list_event_occurrences(
    db: Session,
    user: Profile | None,
    event_id: Any,
    start_key: str | None = None,
    end_key: str | None = None,
) -> OccurrenceListing:
    event = get_event(db, event_id)
    _require_visible(db, user, event)

    for key in (start_key, end_key):
        if key is not None and not is_valid_date_key(key):
            raise ValidationError(ErrorCode.INVALID_DATE_KEY, "dates must be YYYY-MM-DD")
    start_key = start_key or today_key()
    end_key = end_key or add_days(start_key, settings.occurrence_window_days)
    occurrences = expand_occurrences(event, start_key, end_key)
    overrides = overrides_by_key(db, [event.id], start_key, end_key)

    listing = OccurrenceListing(event=event, label=recurrence_label(recurrence_for(event)))
    for occ in occurrences:
        override = overrides.get((event.id, occ.date_key))
        listing.items.append(
            OccurrenceRow(
                date_key=occ.date_key,
                display_date=rescheduled_date(override) or occ.date_key,
                is_cancelled=is_override_cancelled(override),
                is_confident=occ.is_confident,
            )
        )
    return listing
