from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

from sqlalchemy import JSON, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from happenings.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_type


class OccurrenceStatus(str, Enum):
    NORMAL = "normal"
    CANCELLED = "cancelled"


class OccurrenceOverride(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "occurrence_overrides"
    __table_args__ = (
        UniqueConstraint("event_id", "date_key", name="uq_occurrence_overrides_event_date"),
    )

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[OccurrenceStatus] = mapped_column(
        enum_type(OccurrenceStatus, "occurrence_status"),
        nullable=False,
        default=OccurrenceStatus.NORMAL,
    )

    # Legacy single-field overrides
    override_start_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    override_cover_image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    override_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Allowlisted field -> value map, wins over the legacy columns
    override_patch: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
