from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from happenings.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class EventLineupState(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "event_lineup_state"
    __table_args__ = (
        UniqueConstraint("event_id", "date_key", name="uq_event_lineup_state_event_date"),
    )

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)
    now_playing_timeslot_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("event_timeslots.id", ondelete="SET NULL"), nullable=True
    )
    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
