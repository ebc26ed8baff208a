from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from happenings.auth.jwt import create_access_token
from happenings.core.config import settings
from happenings.db import get_db
from happenings.models import Profile
from happenings.models.profile import ProfileRole

router = APIRouter(prefix="/dev", tags=["dev"])

DBSession = Annotated[Session, Depends(get_db)]


class DevProfileIn(BaseModel):
    email: str
    full_name: str | None = None
    role: ProfileRole = ProfileRole.MEMBER


class DevProfileOut(BaseModel):
    user_id: str
    role: str
    access_token: str
    dev_token: str


@router.post("/profiles", response_model=DevProfileOut)
def dev_upsert_profile(payload: DevProfileIn, db: DBSession):
    """Seed a profile with a role and hand back tokens for either auth mode."""
    profile = db.scalar(select(Profile).where(Profile.email == payload.email))
    if not profile:
        profile = Profile(email=payload.email)
    profile.full_name = payload.full_name or profile.full_name
    profile.role = payload.role
    db.add(profile)
    db.commit()
    db.refresh(profile)

    return DevProfileOut(
        user_id=str(profile.id),
        role=profile.role.value,
        access_token=create_access_token(profile.id, email=profile.email),
        dev_token=f"{settings.dev_auth_prefix}{profile.email}",
    )
