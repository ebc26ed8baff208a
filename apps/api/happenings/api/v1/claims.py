from __future__ import annotations

from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from happenings.api.errors import http_error_from_service
from happenings.api.v1.schemas.claims import (
    OwnershipClaimIn,
    OwnershipClaimOut,
    OwnershipReviewIn,
    VenueCreate,
    VenueOut,
)
from happenings.auth.deps import AdminUser, CurrentUser
from happenings.db import get_db
from happenings.services import claims_service, venues_service
from happenings.services.exceptions import ServiceError

router = APIRouter(tags=["claims"])

DBSession = Annotated[Session, Depends(get_db)]
ClaimKind = Literal["event", "venue"]


@router.post("/events/{event_id}/claims", response_model=OwnershipClaimOut, status_code=201)
def claim_event(event_id: UUID, user: CurrentUser, db: DBSession, payload: OwnershipClaimIn | None = None):
    try:
        return claims_service.submit_event_claim(db, user, event_id, payload.message if payload else None)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post("/venues", response_model=VenueOut, status_code=201)
def create_venue(payload: VenueCreate, user: CurrentUser, db: DBSession):
    try:
        return venues_service.create_venue(
            db, user, payload.name, payload.address, payload.city, payload.state
        )
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.get("/venues/{venue_id}", response_model=VenueOut)
def get_venue(venue_id: UUID, db: DBSession):
    try:
        return venues_service.get_venue(db, venue_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post("/venues/{venue_id}/claims", response_model=OwnershipClaimOut, status_code=201)
def claim_venue(venue_id: UUID, user: CurrentUser, db: DBSession, payload: OwnershipClaimIn | None = None):
    try:
        return claims_service.submit_venue_claim(db, user, venue_id, payload.message if payload else None)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post("/admin/claims/{kind}/{claim_id}/approve", response_model=OwnershipClaimOut)
def approve_claim(kind: ClaimKind, claim_id: UUID, admin: AdminUser, db: DBSession):
    try:
        return claims_service.approve_claim(db, admin, kind, claim_id)
    except ServiceError as err:
        raise http_error_from_service(err) from err


@router.post("/admin/claims/{kind}/{claim_id}/reject", response_model=OwnershipClaimOut)
def reject_claim(
    kind: ClaimKind,
    claim_id: UUID,
    admin: AdminUser,
    db: DBSession,
    payload: OwnershipReviewIn | None = None,
):
    try:
        return claims_service.reject_claim(db, admin, kind, claim_id, payload.reason if payload else None)
    except ServiceError as err:
        raise http_error_from_service(err) from err
