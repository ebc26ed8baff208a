from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from happenings.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_type


class RSVPStatus(str, Enum):
    CONFIRMED = "confirmed"
    WAITLIST = "waitlist"
    CANCELLED = "cancelled"


class EventRSVP(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "event_rsvps"
    __table_args__ = (
        UniqueConstraint("event_id", "date_key", "user_id", name="uq_event_rsvps_event_date_user"),
    )

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[RSVPStatus] = mapped_column(
        enum_type(RSVPStatus, "rsvp_status"),
        nullable=False,
        default=RSVPStatus.CONFIRMED,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
