from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from happenings.api.v1.schemas.events import SchemaBase
from happenings.models.claim import ClaimReviewStatus


class OwnershipClaimIn(SchemaBase):
    message: str | None = Field(default=None, max_length=2000)


class OwnershipReviewIn(SchemaBase):
    reason: str | None = Field(default=None, max_length=2000)


class OwnershipClaimOut(SchemaBase):
    id: UUID
    requester_id: UUID
    status: ClaimReviewStatus
    message: str | None = None
    rejection_reason: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    event_id: UUID | None = None
    venue_id: UUID | None = None


class VenueCreate(SchemaBase):
    name: str = Field(min_length=1, max_length=200)
    address: str | None = None
    city: str | None = None
    state: str | None = None


class VenueOut(SchemaBase):
    id: UUID
    name: str
    slug: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
