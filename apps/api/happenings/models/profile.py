from __future__ import annotations

from enum import Enum

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from happenings.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_type


class ProfileRole(str, Enum):
    MEMBER = "member"
    HOST = "host"
    ADMIN = "admin"


class Profile(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "profiles"

    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    slug: Mapped[str | None] = mapped_column(String(200), unique=True, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    role: Mapped[ProfileRole] = mapped_column(
        enum_type(ProfileRole, "profile_role"),
        nullable=False,
        default=ProfileRole.MEMBER,
    )

    # Visible to hosts/admins only
    no_show_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
