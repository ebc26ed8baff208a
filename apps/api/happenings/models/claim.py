from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from happenings.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_type


class ClaimReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class _OwnershipClaimMixin:
    requester_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[ClaimReviewStatus] = mapped_column(
        enum_type(ClaimReviewStatus, "claim_review_status"),
        nullable=False,
        default=ClaimReviewStatus.PENDING,
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class EventClaim(Base, UUIDPrimaryKeyMixin, TimestampMixin, _OwnershipClaimMixin):
    __tablename__ = "event_claims"

    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )


class VenueClaim(Base, UUIDPrimaryKeyMixin, TimestampMixin, _OwnershipClaimMixin):
    __tablename__ = "venue_claims"

    venue_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False, index=True
    )
