from __future__ import annotations

import re
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from happenings.models.event import EventStatus
from happenings.models.rsvp import RSVPStatus

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$")


def _check_date_key(value: str | None) -> str | None:
    if value is None:
        return value
    if not _DATE_KEY_RE.match(value):
        raise ValueError("date must be YYYY-MM-DD")
    datetime.strptime(value, "%Y-%m-%d")
    return value


class SchemaBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class ScheduleFieldsMixin(BaseModel):
    @field_validator("event_date", "recurrence_end_date", mode="after", check_fields=False)
    @classmethod
    def _validate_date_key(cls, value: str | None) -> str | None:
        return _check_date_key(value)

    @field_validator("custom_dates", mode="after", check_fields=False)
    @classmethod
    def _validate_custom_dates(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        return sorted({_check_date_key(v) for v in value})

    @field_validator("start_time", "end_time", mode="after", check_fields=False)
    @classmethod
    def _validate_time(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if not _TIME_RE.match(value):
            raise ValueError("time must be HH:MM or HH:MM:SS")
        return value


class EventCreate(ScheduleFieldsMixin, SchemaBase):
    title: str
    slug: str | None = None
    description: str | None = None
    venue_id: UUID | None = None
    event_date: str | None = None
    day_of_week: str | None = None
    recurrence_rule: str | None = None
    recurrence_end_date: str | None = None
    custom_dates: list[str] | None = None
    start_time: str | None = None
    end_time: str | None = None
    cover_image_url: str | None = None
    host_notes: str | None = None
    capacity: int | None = Field(default=None, ge=1)
    is_published: bool = False
    has_timeslots: bool = False
    total_slots: int | None = Field(default=None, ge=1)
    slot_duration_minutes: int | None = Field(default=15, ge=5, le=90)

    @model_validator(mode="after")
    def _validate_schedule(self):
        if not self.title.strip():
            raise ValueError("title is required")
        if not self.event_date and not self.day_of_week:
            raise ValueError("event_date or day_of_week is required")
        if self.has_timeslots and not self.total_slots:
            raise ValueError("total_slots is required when has_timeslots is set")
        return self


class EventUpdate(ScheduleFieldsMixin, SchemaBase):
    title: str | None = None
    slug: str | None = None
    description: str | None = None
    venue_id: UUID | None = None
    event_date: str | None = None
    day_of_week: str | None = None
    recurrence_rule: str | None = None
    recurrence_end_date: str | None = None
    custom_dates: list[str] | None = None
    start_time: str | None = None
    end_time: str | None = None
    cover_image_url: str | None = None
    host_notes: str | None = None
    capacity: int | None = Field(default=None, ge=1)
    has_timeslots: bool | None = None
    total_slots: int | None = Field(default=None, ge=1)
    slot_duration_minutes: int | None = Field(default=None, ge=5, le=90)


class EventOut(SchemaBase):
    id: UUID
    slug: str | None = None
    title: str
    description: str | None = None
    venue_id: UUID | None = None
    host_id: UUID | None = None
    event_date: str | None = None
    day_of_week: str | None = None
    recurrence_rule: str | None = None
    recurrence_end_date: str | None = None
    custom_dates: list[str] | None = None
    start_time: str | None = None
    end_time: str | None = None
    cover_image_url: str | None = None
    host_notes: str | None = None
    capacity: int | None = None
    is_published: bool
    status: EventStatus
    has_timeslots: bool
    total_slots: int | None = None
    slot_duration_minutes: int | None = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None


class OccurrenceOut(SchemaBase):
    date_key: str
    display_date: str
    is_cancelled: bool
    is_confident: bool


class OccurrenceListOut(SchemaBase):
    event_id: UUID
    recurrence_label: str
    items: list[OccurrenceOut]


class EventDetailOut(SchemaBase):
    event: EventOut
    date_key: str
    display_date: str
    is_rescheduled: bool
    is_cancelled: bool
    series_cancelled: bool
    occurrence: dict[str, Any]
    overridden_fields: list[str]
    recurrence_label: str
    available_dates: list[str]
    notice: str | None = None


class RSVPOut(SchemaBase):
    event_id: UUID
    date_key: str
    user_id: UUID
    status: RSVPStatus
    already: bool = False


class RSVPListOut(SchemaBase):
    items: list[RSVPOut]
    confirmed: int
    waitlist: int
