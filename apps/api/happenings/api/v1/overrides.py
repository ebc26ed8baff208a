from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from happenings.api.errors import http_error_from_service
from happenings.api.v1.schemas.overrides import (
    OverrideListOut,
    OverrideOut,
    OverrideUpsert,
    OverrideUpsertOut,
)
from happenings.auth.deps import CurrentUser
from happenings.db import get_db
from happenings.services import overrides as overrides_service
from happenings.services.events_service import get_event
from happenings.services.exceptions import ServiceError
from happenings.services.permissions import require_event_manager

router = APIRouter(prefix="/events/{event_id}/overrides", tags=["overrides"])

DBSession = Annotated[Session, Depends(get_db)]


@router.get("", response_model=OverrideListOut)
def list_overrides(
    event_id: UUID,
    user: CurrentUser,
    db: DBSession,
    start: Annotated[str | None, Query()] = None,
    end: Annotated[str | None, Query()] = None,
):
    try:
        event = get_event(db, event_id)
        require_event_manager(db, user, event)
        rows = overrides_service.list_overrides(db, event.id, start, end)
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return OverrideListOut(items=[OverrideOut.model_validate(r) for r in rows])


@router.post("", response_model=OverrideUpsertOut)
def upsert_override(event_id: UUID, payload: OverrideUpsert, user: CurrentUser, db: DBSession):
    try:
        row, action = overrides_service.upsert_override(db, user, event_id, payload)
    except ServiceError as err:
        raise http_error_from_service(err) from err
    return OverrideUpsertOut(
        action=action,
        override=OverrideOut.model_validate(row) if row is not None else None,
    )


@router.delete("", status_code=204)
def delete_override(
    event_id: UUID,
    user: CurrentUser,
    db: DBSession,
    date: Annotated[str, Query()],
):
    try:
        overrides_service.delete_override(db, user, event_id, date)
    except ServiceError as err:
        raise http_error_from_service(err) from err
