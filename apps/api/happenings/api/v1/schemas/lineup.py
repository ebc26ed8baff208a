from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from happenings.api.v1.schemas.events import SchemaBase
from happenings.models.timeslot import ClaimStatus


class NowPlayingOut(SchemaBase):
    event_id: UUID
    date_key: str
    now_playing_timeslot_id: UUID | None = None
    updated_by: UUID | None = None
    updated_at: datetime | None = None


class NowPlayingIn(SchemaBase):
    date_key: str
    timeslot_id: UUID | None = None


class LineupStepIn(SchemaBase):
    date_key: str
    step: Literal["start", "next", "previous", "stop"]


class ClaimOut(SchemaBase):
    id: UUID
    timeslot_id: UUID
    member_id: UUID | None = None
    guest_name: str | None = None
    status: ClaimStatus
    claimed_at: datetime | None = None


class LineupClaimOut(SchemaBase):
    claim: ClaimOut
    performer_name: str | None = None
    no_show_count: int | None = None


class TimeslotOut(SchemaBase):
    id: UUID
    event_id: UUID
    date_key: str
    slot_index: int
    start_offset_minutes: int | None = None
    duration_minutes: int


class LineupSlotOut(SchemaBase):
    slot: TimeslotOut
    claim: LineupClaimOut | None = None


class LineupSnapshotOut(SchemaBase):
    event_id: UUID
    title: str | None = None
    date_key: str
    display_date: str
    is_cancelled: bool
    series_cancelled: bool
    occurrence: dict[str, Any]
    now_playing: NowPlayingOut
    now_playing_index: int | None = None
    up_next: list[LineupSlotOut] = Field(default_factory=list)
    slots: list[LineupSlotOut] = Field(default_factory=list)
    available_dates: list[str] = Field(default_factory=list)
    notice: str | None = None
    poll_interval_seconds: float
