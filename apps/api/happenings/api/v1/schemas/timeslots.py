from __future__ import annotations

from pydantic import Field

from happenings.api.v1.schemas.events import SchemaBase
from happenings.api.v1.schemas.lineup import LineupClaimOut, LineupSlotOut


class GenerateTimeslotsIn(SchemaBase):
    date_key: str
    regenerate: bool = False


class TimeslotListOut(SchemaBase):
    date_key: str
    items: list[LineupSlotOut]


class ClaimTimeslotIn(SchemaBase):
    guest_name: str | None = Field(default=None, max_length=200)


class ClaimStatusIn(SchemaBase):
    status: str


class ClaimListOut(SchemaBase):
    items: list[LineupClaimOut]
