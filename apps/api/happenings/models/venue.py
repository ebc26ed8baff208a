from __future__ import annotations

import uuid
from enum import Enum

from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from happenings.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_type


class VenueManagerRole(str, Enum):
    OWNER = "owner"
    MANAGER = "manager"


class Venue(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "venues"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str | None] = mapped_column(String(200), unique=True, nullable=True)
    address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    state: Mapped[str | None] = mapped_column(String(60), nullable=True)


class VenueManager(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "venue_managers"
    __table_args__ = (UniqueConstraint("venue_id", "user_id", name="uq_venue_managers_venue_user"),)

    venue_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("venues.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[VenueManagerRole] = mapped_column(
        enum_type(VenueManagerRole, "venue_manager_role"),
        nullable=False,
        default=VenueManagerRole.MANAGER,
    )
