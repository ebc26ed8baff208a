from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from happenings.api.v1.schemas.events import SchemaBase
from happenings.models.occurrence_override import OccurrenceStatus


class OverrideUpsert(SchemaBase):
    date_key: str = Field(description="Occurrence being overridden, YYYY-MM-DD")
    status: str = "normal"
    override_start_time: str | None = None
    override_cover_image_url: str | None = None
    override_notes: str | None = None
    # Shape is checked by the service so bad patches get INVALID_OVERRIDE
    override_patch: Any | None = None


class OverrideOut(SchemaBase):
    id: UUID
    event_id: UUID
    date_key: str
    status: OccurrenceStatus
    override_start_time: str | None = None
    override_cover_image_url: str | None = None
    override_notes: str | None = None
    override_patch: dict[str, Any] | None = None
    updated_at: datetime | None = None


class OverrideUpsertOut(SchemaBase):
    action: str
    override: OverrideOut | None = None


class OverrideListOut(SchemaBase):
    items: list[OverrideOut]
