"""
Per-occurrence overrides.

A recurring event stores one set of base fields. Hosts adjust a single date
through an ``OccurrenceOverride`` row keyed by (event, date_key): a status
(normal/cancelled), three legacy single-field columns and a JSON patch of
allowlisted fields. ``apply_occurrence_override`` is the one place that merges
them; every read path (event page, listings, display, RSVP capacity) goes
through it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from happenings.api.v1.schemas.overrides import OverrideUpsert
from happenings.models import Event, OccurrenceOverride, Profile
from happenings.models.event import EventStatus
from happenings.models.occurrence_override import OccurrenceStatus
from happenings.services.date_keys import is_valid_date_key, today_key
from happenings.services.error_codes import ErrorCode
from happenings.services.exceptions import ConflictError, NotFoundError, ValidationError
from happenings.services.permissions import require_event_manager

log = structlog.get_logger(__name__)

ALLOWED_OVERRIDE_FIELDS = frozenset(
    {
        "title",
        "description",
        "event_date",
        "start_time",
        "end_time",
        "venue_id",
        "location_mode",
        "custom_location_name",
        "custom_address",
        "custom_city",
        "custom_state",
        "online_url",
        "location_notes",
        "capacity",
        "has_timeslots",
        "total_slots",
        "slot_duration_minutes",
        "is_free",
        "cost_label",
        "signup_url",
        "signup_deadline",
        "signup_time",
        "age_policy",
        "external_url",
        "categories",
        "cover_image_url",
        "host_notes",
        "is_published",
    }
)

LEGACY_OVERRIDE_COLUMNS = {
    "override_start_time": "start_time",
    "override_cover_image_url": "cover_image_url",
    "override_notes": "host_notes",
}

_BASE_EVENT_FIELDS = (
    "id",
    "slug",
    "title",
    "description",
    "venue_id",
    "host_id",
    "event_date",
    "day_of_week",
    "recurrence_rule",
    "recurrence_end_date",
    "custom_dates",
    "start_time",
    "end_time",
    "cover_image_url",
    "host_notes",
    "capacity",
    "is_published",
    "status",
    "has_timeslots",
    "total_slots",
    "slot_duration_minutes",
)


@dataclass
class ResolvedOccurrence:
    event_id: Any
    date_key: str
    display_date: str
    fields: dict[str, Any]
    is_cancelled: bool
    series_cancelled: bool
    override: OccurrenceOverride | None = None
    overridden_fields: list[str] = field(default_factory=list)

    @property
    def is_rescheduled(self) -> bool:
        return self.display_date != self.date_key


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def event_base_fields(event: Any) -> dict[str, Any]:
    if isinstance(event, Mapping):
        return dict(event)
    return {name: getattr(event, name, None) for name in _BASE_EVENT_FIELDS}


def sanitize_override_patch(patch: Any) -> dict[str, Any] | None:
    """Drop keys outside the allowlist. A non-object patch is rejected."""
    if patch is None:
        return None
    if not isinstance(patch, Mapping):
        raise ValidationError(ErrorCode.INVALID_OVERRIDE, "override_patch must be an object")
    cleaned = {k: v for k, v in patch.items() if k in ALLOWED_OVERRIDE_FIELDS}
    return cleaned or None


def _stored_patch(override: Any) -> dict[str, Any]:
    patch = _get(override, "override_patch")
    if not isinstance(patch, Mapping):
        return {}
    return {k: v for k, v in patch.items() if k in ALLOWED_OVERRIDE_FIELDS}


def apply_occurrence_override(base_fields: Mapping[str, Any], override: Any | None) -> dict[str, Any]:
    """
    Merged fields for one occurrence: patch > legacy column > base.

    Returns a new dict; ``base_fields`` is never touched. A legacy column only
    applies when it holds a value, while a patch key applies even when its
    value is null (explicitly clearing the field for that date).
    """
    merged = dict(base_fields)
    if override is None:
        return merged

    for column, target in LEGACY_OVERRIDE_COLUMNS.items():
        value = _get(override, column)
        if value is not None:
            merged[target] = value

    merged.update(_stored_patch(override))
    return merged


def overridden_field_names(override: Any | None) -> list[str]:
    if override is None:
        return []
    names = {t for c, t in LEGACY_OVERRIDE_COLUMNS.items() if _get(override, c) is not None}
    names.update(_stored_patch(override))
    return sorted(names)


def is_override_cancelled(override: Any | None) -> bool:
    if override is None:
        return False
    status = _get(override, "status")
    return status == OccurrenceStatus.CANCELLED or status == OccurrenceStatus.CANCELLED.value


def rescheduled_date(override: Any | None) -> str | None:
    target = _stored_patch(override).get("event_date") if override is not None else None
    if is_valid_date_key(target) and target != _get(override, "date_key"):
        return target
    return None


def _get_event(db: Session, event_id: Any) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise NotFoundError(ErrorCode.EVENT_NOT_FOUND, "event not found")
    return event


def get_override(db: Session, event_id: Any, date_key: str) -> OccurrenceOverride | None:
    return db.scalar(
        select(OccurrenceOverride).where(
            OccurrenceOverride.event_id == event_id,
            OccurrenceOverride.date_key == date_key,
        )
    )


def list_overrides(
    db: Session,
    event_id: Any,
    start_key: str | None = None,
    end_key: str | None = None,
) -> list[OccurrenceOverride]:
    stmt = select(OccurrenceOverride).where(OccurrenceOverride.event_id == event_id)
    if start_key:
        stmt = stmt.where(OccurrenceOverride.date_key >= start_key)
    if end_key:
        stmt = stmt.where(OccurrenceOverride.date_key <= end_key)
    return list(db.scalars(stmt.order_by(OccurrenceOverride.date_key)))


def overrides_by_key(
    db: Session,
    event_ids: list[Any],
    start_key: str | None = None,
    end_key: str | None = None,
) -> dict[tuple[Any, str], OccurrenceOverride]:
    if not event_ids:
        return {}
    stmt = select(OccurrenceOverride).where(OccurrenceOverride.event_id.in_(event_ids))
    if start_key:
        stmt = stmt.where(OccurrenceOverride.date_key >= start_key)
    if end_key:
        stmt = stmt.where(OccurrenceOverride.date_key <= end_key)
    return {(o.event_id, o.date_key): o for o in db.scalars(stmt)}


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def upsert_override(
    db: Session,
    user: Profile,
    event_id: Any,
    payload: OverrideUpsert,
) -> tuple[OccurrenceOverride | None, str]:
    """
    Create, update or revert the override for one date.

    Returns ``(row, action)`` where action is ``created``, ``updated`` or
    ``reverted``; a revert (nothing left to override) deletes the row and
    returns ``None``.
    """
    event = _get_event(db, event_id)
    require_event_manager(db, user, event)

    date_key = payload.date_key
    if not is_valid_date_key(date_key):
        raise ValidationError(ErrorCode.INVALID_DATE_KEY, "date_key must be YYYY-MM-DD")

    try:
        status = OccurrenceStatus(payload.status)
    except ValueError:
        raise ValidationError(
            ErrorCode.INVALID_OVERRIDE, "status must be 'normal' or 'cancelled'"
        ) from None

    patch = sanitize_override_patch(payload.override_patch)
    if patch and "event_date" in patch:
        target = patch["event_date"]
        if target == date_key or _blank(target):
            patch.pop("event_date")
        elif not is_valid_date_key(target):
            raise ValidationError(ErrorCode.INVALID_DATE_KEY, "event_date must be YYYY-MM-DD")
        elif target < today_key():
            raise ValidationError(
                ErrorCode.INVALID_OVERRIDE, "cannot reschedule an occurrence into the past"
            )
        patch = patch or None

    legacy = {
        column: None if _blank(getattr(payload, column)) else getattr(payload, column)
        for column in LEGACY_OVERRIDE_COLUMNS
    }

    existing = get_override(db, event.id, date_key)

    if status == OccurrenceStatus.NORMAL and not patch and all(v is None for v in legacy.values()):
        if existing is not None:
            db.delete(existing)
            db.commit()
        log.info("override_reverted", event_id=str(event.id), date_key=date_key)
        return None, "reverted"

    action = "updated" if existing else "created"
    row = existing or OccurrenceOverride(event_id=event.id, date_key=date_key)
    row.status = status
    for column, value in legacy.items():
        setattr(row, column, value)
    row.override_patch = patch
    db.add(row)

    try:
        db.commit()
    except IntegrityError as exc:
        # Racing insert for the same (event, date)
        db.rollback()
        raise ConflictError(
            ErrorCode.INVALID_OVERRIDE, "override was modified concurrently; retry"
        ) from exc

    db.refresh(row)
    log.info(
        "override_upserted",
        event_id=str(event.id),
        date_key=date_key,
        action=action,
        status=status.value,
        fields=overridden_field_names(row),
    )
    return row, action


def delete_override(db: Session, user: Profile, event_id: Any, date_key: str) -> None:
    event = _get_event(db, event_id)
    require_event_manager(db, user, event)

    row = get_override(db, event.id, date_key)
    if row is None:
        raise NotFoundError(ErrorCode.OVERRIDE_NOT_FOUND, "no override for that date")
    db.delete(row)
    db.commit()
    log.info("override_deleted", event_id=str(event.id), date_key=date_key)


def resolve_occurrence(db: Session, event: Event, date_key: str) -> ResolvedOccurrence:
    override = get_override(db, event.id, date_key)
    return ResolvedOccurrence(
        event_id=event.id,
        date_key=date_key,
        display_date=rescheduled_date(override) or date_key,
        fields=apply_occurrence_override(event_base_fields(event), override),
        is_cancelled=is_override_cancelled(override),
        series_cancelled=event.status == EventStatus.CANCELLED,
        override=override,
        overridden_fields=overridden_field_names(override),
    )


def is_occurrence_cancelled(db: Session, event_id: Any, date_key: str) -> bool:
    status = db.scalar(
        select(OccurrenceOverride.status).where(
            OccurrenceOverride.event_id == event_id,
            OccurrenceOverride.date_key == date_key,
        )
    )
    return status == OccurrenceStatus.CANCELLED
