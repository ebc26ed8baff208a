from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from happenings.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_type


class EventStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class EventHostRole(str, Enum):
    HOST = "host"
    COHOST = "cohost"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Event(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint(
            "slot_duration_minutes IS NULL OR "
            "(slot_duration_minutes >= 5 AND slot_duration_minutes <= 90)",
            name="ck_events_slot_duration_range",
        ),
        CheckConstraint("total_slots IS NULL OR total_slots > 0", name="ck_events_total_slots"),
    )

    slug: Mapped[str | None] = mapped_column(String(200), unique=True, nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    venue_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("venues.id", ondelete="SET NULL"), nullable=True
    )
    host_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Scheduling anchor. event_date starts a series, it is not the only date.
    event_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    day_of_week: Mapped[str | None] = mapped_column(String(12), nullable=True)
    recurrence_rule: Mapped[str | None] = mapped_column(String(200), nullable=True)
    recurrence_end_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    custom_dates: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    start_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(8), nullable=True)

    cover_image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    host_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[EventStatus] = mapped_column(
        enum_type(EventStatus, "event_status"),
        nullable=False,
        default=EventStatus.ACTIVE,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Performer timeslots
    has_timeslots: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_slots: Mapped[int | None] = mapped_column(Integer, nullable=True)
    slot_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True, default=15)

    def recurrence_fields(self) -> dict[str, Any]:
        return {
            "event_date": self.event_date,
            "day_of_week": self.day_of_week,
            "recurrence_rule": self.recurrence_rule,
            "recurrence_end_date": self.recurrence_end_date,
            "custom_dates": self.custom_dates,
        }


class EventHost(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "event_hosts"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_hosts_event_user"),)

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[EventHostRole] = mapped_column(
        enum_type(EventHostRole, "event_host_role"),
        nullable=False,
        default=EventHostRole.COHOST,
    )
    invitation_status: Mapped[InvitationStatus] = mapped_column(
        enum_type(InvitationStatus, "invitation_status"),
        nullable=False,
        default=InvitationStatus.PENDING,
    )
