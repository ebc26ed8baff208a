from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from happenings.api.errors import http_error_from_service
from happenings.api.v1.schemas.lineup import ClaimOut, LineupClaimOut, LineupSlotOut, TimeslotOut
from happenings.api.v1.schemas.timeslots import (
    ClaimListOut,
    ClaimStatusIn,
    ClaimTimeslotIn,
    GenerateTimeslotsIn,
    TimeslotListOut,
)
from happenings.auth.deps import CurrentUser, OptionalUser
from happenings.db import get_db
from happenings.services import timeslot_service
from happenings.services.events_service import get_event
from happenings.services.exceptions import ServiceError
from happenings.services.permissions import is_event_manager

router = APIRouter(tags=["timeslots"])

DBSession = Annotated[Session, Depends(get_db)]


@router.post("/events/{event_id}/timeslots/generate", response_model=TimeslotListOut, status_code=201)
def generate_timeslots(event_id: UUID, payload: GenerateTimeslotsIn, user: CurrentUser, db: DBSession):
    try:
        slots = timeslot_service.generate_timeslots(
            db, user, event_id, payload.date_key, regenerate=payload.regenerate
        )
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return TimeslotListOut(
        date_key=payload.date_key,
        items=[LineupSlotOut(slot=TimeslotOut.model_validate(s)) for s in slots],
    )


@router.get("/events/{event_id}/timeslots", response_model=TimeslotListOut)
def list_timeslots(
    event_id: UUID,
    user: OptionalUser,
    db: DBSession,
    date: Annotated[str, Query()],
):
    try:
        event = get_event(db, event_id)
        views = timeslot_service.list_timeslots(
            db, event.id, date, private=is_event_manager(db, user, event)
        )
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return TimeslotListOut(date_key=date, items=[LineupSlotOut.model_validate(v) for v in views])


@router.post("/timeslots/{timeslot_id}/claim", response_model=ClaimOut, status_code=201)
def claim_timeslot(
    timeslot_id: UUID,
    user: CurrentUser,
    db: DBSession,
    payload: ClaimTimeslotIn | None = None,
):
    try:
        return timeslot_service.claim_timeslot(
            db, user, timeslot_id, guest_name=payload.guest_name if payload else None
        )
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.patch("/claims/{claim_id}", response_model=ClaimOut)
def update_claim(claim_id: UUID, payload: ClaimStatusIn, user: CurrentUser, db: DBSession):
    try:
        return timeslot_service.update_claim_status(db, user, claim_id, payload.status)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.delete("/claims/{claim_id}", response_model=ClaimOut)
def remove_claim(claim_id: UUID, user: CurrentUser, db: DBSession):
    try:
        return timeslot_service.remove_claim(db, user, claim_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.get("/events/{event_id}/claims", response_model=ClaimListOut)
def list_claims(
    event_id: UUID,
    user: CurrentUser,
    db: DBSession,
    date: Annotated[str, Query()],
):
    try:
        views = timeslot_service.list_claims(db, user, event_id, date)
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return ClaimListOut(items=[LineupClaimOut.model_validate(v) for v in views])
