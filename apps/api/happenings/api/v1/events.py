from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from happenings.api.errors import http_error_from_service
from happenings.api.v1.schemas.events import (
    EventCreate,
    EventDetailOut,
    EventOut,
    EventUpdate,
    OccurrenceListOut,
    OccurrenceOut,
    RSVPListOut,
    RSVPOut,
)
from happenings.auth.deps import CurrentUser, OptionalUser
from happenings.db import get_db
from happenings.models.rsvp import RSVPStatus
from happenings.services import events_service, rsvp_service
from happenings.services.exceptions import ServiceError

router = APIRouter(prefix="/events", tags=["events"])

DBSession = Annotated[Session, Depends(get_db)]
DateQuery = Annotated[str, Query(description="Occurrence date, YYYY-MM-DD")]


@router.post("", response_model=EventOut, status_code=201)
def create_event(payload: EventCreate, user: CurrentUser, db: DBSession):
    try:
        return events_service.create_event(db, user, payload)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.patch("/{event_id}", response_model=EventOut)
def update_event(event_id: UUID, payload: EventUpdate, user: CurrentUser, db: DBSession):
    try:
        return events_service.update_event(db, user, event_id, payload)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post("/{event_id}/publish", response_model=EventOut)
def publish_event(event_id: UUID, user: CurrentUser, db: DBSession):
    try:
        return events_service.publish_event(db, user, event_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post("/{event_id}/cancel", response_model=EventOut)
def cancel_event(event_id: UUID, user: CurrentUser, db: DBSession):
    try:
        return events_service.cancel_event(db, user, event_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.get("/{id_or_slug}", response_model=EventDetailOut)
def get_event(
    id_or_slug: str,
    user: OptionalUser,
    db: DBSession,
    date: Annotated[str | None, Query()] = None,
):
    try:
        view = events_service.get_event_occurrence(db, user, id_or_slug, date)
    except ServiceError as err:
        raise http_error_from_service(err) from err

    resolved = view.resolved
    return EventDetailOut(
        event=EventOut.model_validate(view.event),
        date_key=resolved.date_key,
        display_date=resolved.display_date,
        is_rescheduled=resolved.is_rescheduled,
        is_cancelled=resolved.is_cancelled,
        series_cancelled=resolved.series_cancelled,
        occurrence=jsonable_encoder(resolved.fields),
        overridden_fields=resolved.overridden_fields,
        recurrence_label=view.label,
        available_dates=view.available_dates,
        notice=view.notice,
    )


@router.get("/{event_id}/occurrences", response_model=OccurrenceListOut)
def list_occurrences(
    event_id: UUID,
    user: OptionalUser,
    db: DBSession,
    start: Annotated[str | None, Query()] = None,
    end: Annotated[str | None, Query()] = None,
):
    try:
        listing = events_service.list_event_occurrences(db, user, event_id, start, end)
    except ServiceError as err:
        raise http_error_from_service(err) from err

    return OccurrenceListOut(
        event_id=listing.event.id,
        recurrence_label=listing.label,
        items=[OccurrenceOut.model_validate(row) for row in listing.items],
    )


@router.post("/{event_id}/rsvp", response_model=RSVPOut)
def rsvp(event_id: UUID, date: DateQuery, user: CurrentUser, db: DBSession):
    try:
        status, already = rsvp_service.rsvp(db, user, event_id, date)
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return RSVPOut(event_id=event_id, date_key=date, user_id=user.id, status=status, already=already)


@router.delete("/{event_id}/rsvp", response_model=RSVPOut)
def cancel_rsvp(event_id: UUID, date: DateQuery, user: CurrentUser, db: DBSession):
    try:
        rsvp_service.cancel_rsvp(db, user, event_id, date)
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return RSVPOut(event_id=event_id, date_key=date, user_id=user.id, status=RSVPStatus.CANCELLED)


@router.get("/{event_id}/rsvps", response_model=RSVPListOut)
def list_rsvps(event_id: UUID, date: DateQuery, user: CurrentUser, db: DBSession):
    try:
        rows = rsvp_service.list_rsvps(db, user, event_id, date)
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return RSVPListOut(
        items=[RSVPOut.model_validate(r) for r in rows],
        confirmed=sum(1 for r in rows if r.status == RSVPStatus.CONFIRMED),
        waitlist=sum(1 for r in rows if r.status == RSVPStatus.WAITLIST),
    )
