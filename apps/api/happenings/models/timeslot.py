from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from happenings.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_type


class ClaimStatus(str, Enum):
    CONFIRMED = "confirmed"
    WAITLIST = "waitlist"
    PERFORMED = "performed"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"


ACTIVE_CLAIM_STATUSES = frozenset({ClaimStatus.CONFIRMED, ClaimStatus.WAITLIST})

_ACTIVE_CLAIM_WHERE = sa.text("status IN ('confirmed', 'waitlist')")


class EventTimeslot(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "event_timeslots"
    __table_args__ = (
        UniqueConstraint(
            "event_id", "date_key", "slot_index", name="uq_event_timeslots_event_date_index"
        ),
        sa.Index("ix_event_timeslots_event_date", "event_id", "date_key"),
    )

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)
    slot_index: Mapped[int] = mapped_column(Integer, nullable=False)
    # NULL when the event has no start_time
    start_offset_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=15)


class TimeslotClaim(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "timeslot_claims"
    __table_args__ = (
        sa.CheckConstraint(
            "member_id IS NOT NULL OR guest_name IS NOT NULL",
            name="ck_timeslot_claims_member_or_guest",
        ),
        sa.Index(
            "uq_timeslot_claims_active_slot",
            "timeslot_id",
            unique=True,
            postgresql_where=_ACTIVE_CLAIM_WHERE,
            sqlite_where=_ACTIVE_CLAIM_WHERE,
        ),
    )

    timeslot_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("event_timeslots.id", ondelete="CASCADE"), nullable=False
    )
    member_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    guest_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[ClaimStatus] = mapped_column(
        enum_type(ClaimStatus, "timeslot_claim_status"),
        nullable=False,
        default=ClaimStatus.CONFIRMED,
    )
    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
