from __future__ import annotations

from typing import Annotated
from urllib.parse import urlencode
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from happenings.api.errors import http_error_from_service, login_required
from happenings.api.v1.schemas.lineup import (
    LineupSlotOut,
    LineupSnapshotOut,
    LineupStepIn,
    NowPlayingIn,
    NowPlayingOut,
)
from happenings.auth.deps import CurrentUser, OptionalUser
from happenings.core.config import settings
from happenings.db import get_db
from happenings.services import display_service, lineup_service
from happenings.services.display_service import LineupSnapshot
from happenings.services.events_service import get_event
from happenings.services.exceptions import ServiceError
from happenings.services.lineup_service import LineupAccess

router = APIRouter(prefix="/events", tags=["lineup"])

DBSession = Annotated[Session, Depends(get_db)]


def _snapshot_out(snap: LineupSnapshot) -> LineupSnapshotOut:
    resolved = snap.resolved
    return LineupSnapshotOut(
        event_id=snap.event.id,
        title=resolved.fields.get("title"),
        date_key=resolved.date_key,
        display_date=resolved.display_date,
        is_cancelled=resolved.is_cancelled,
        series_cancelled=resolved.series_cancelled,
        occurrence=jsonable_encoder(resolved.fields),
        now_playing=NowPlayingOut.model_validate(snap.now_playing),
        now_playing_index=snap.now_playing_index,
        up_next=[LineupSlotOut.model_validate(v) for v in snap.up_next],
        slots=[LineupSlotOut.model_validate(v) for v in snap.slots],
        available_dates=snap.available_dates,
        notice=snap.notice,
        poll_interval_seconds=snap.poll_interval_seconds,
    )


@router.get("/{event_id}/lineup", response_model=NowPlayingOut)
def get_now_playing(event_id: UUID, db: DBSession, date: Annotated[str, Query()]):
    try:
        event = get_event(db, event_id)
        return lineup_service.get_now_playing(db, event.id, date)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.put("/{event_id}/lineup", response_model=NowPlayingOut)
def set_now_playing(event_id: UUID, payload: NowPlayingIn, user: CurrentUser, db: DBSession):
    try:
        return lineup_service.set_now_playing(
            db, user, event_id, payload.date_key, payload.timeslot_id
        )
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post("/{event_id}/lineup/step", response_model=NowPlayingOut)
def step_now_playing(event_id: UUID, payload: LineupStepIn, user: CurrentUser, db: DBSession):
    try:
        return lineup_service.step_now_playing(db, user, event_id, payload.date_key, payload.step)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.get("/{event_id}/lineup/control", response_model=LineupSnapshotOut)
def lineup_control(
    event_id: UUID,
    user: OptionalUser,
    db: DBSession,
    date: Annotated[str | None, Query()] = None,
):
    try:
        event = get_event(db, event_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err

    access = lineup_service.lineup_access(user, event, db)
    if access == LineupAccess.LOGIN_REQUIRED:
        next_path = f"/events/{event_id}/lineup" + (f"?date={date}" if date else "")
        raise login_required(f"{settings.login_path}?{urlencode({'next': next_path})}")
    if access == LineupAccess.ACCESS_DENIED:
        raise HTTPException(
            status_code=403,
            detail={"code": "ACCESS_DENIED", "message": "only the event's hosts can run the lineup"},
        )

    return _snapshot_out(display_service.build_control_snapshot(db, event, date))


@router.get("/{id_or_slug}/display", response_model=LineupSnapshotOut)
def display(
    id_or_slug: str,
    db: DBSession,
    date: Annotated[str | None, Query()] = None,
    tv: Annotated[str | None, Query()] = None,
):
    try:
        snap = display_service.build_display_snapshot(db, id_or_slug, date, tv=tv == "1")
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return _snapshot_out(snap)
