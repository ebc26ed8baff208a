from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from happenings.auth.jwt import verify_access_token
from happenings.core.config import settings
from happenings.db import get_db
from happenings.models import Profile
from happenings.models.profile import ProfileRole

DBSession = Annotated[Session, Depends(get_db)]


def _unauthorized(detail: str = "unauthorized") -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _bearer_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth:
        return None
    if not auth.startswith("Bearer "):
        raise _unauthorized("missing bearer token")
    return auth.removeprefix("Bearer ").strip()


def _dev_user(db: Session, token: str) -> Profile:
    prefix = settings.dev_auth_prefix
    if not token.startswith(prefix):
        raise _unauthorized(f"invalid dev token (expected prefix {prefix})")

    email = token.removeprefix(prefix).strip()
    if "@" not in email:
        raise _unauthorized("invalid email in token")

    user = db.scalar(select(Profile).where(Profile.email == email))
    if not user:
        user = Profile(email=email)
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


def _jwt_user(db: Session, token: str) -> Profile:
    try:
        claims = verify_access_token(token)
        user_id = uuid.UUID(str(claims["sub"]))
    except (ValueError, KeyError):
        raise _unauthorized("invalid access token") from None

    # Profiles mirror the auth backend's users; the first request creates the row
    user = db.get(Profile, user_id)
    if not user:
        user = Profile(id=user_id, email=claims.get("email"))
        db.add(user)
        db.commit()
        db.refresh(user)
    return user


def _resolve_user(db: Session, token: str) -> Profile:
    if settings.auth_mode == "dev" and settings.env == "local":
        return _dev_user(db, token)
    if settings.auth_mode == "jwt":
        return _jwt_user(db, token)
    raise _unauthorized("auth not configured")


def get_current_user(request: Request, db: DBSession) -> Profile:
    token = _bearer_token(request)
    if not token:
        raise _unauthorized("missing bearer token")
    return _resolve_user(db, token)


def get_optional_user(request: Request, db: DBSession) -> Profile | None:
    """Anonymous callers get None; a bad token is still a 401."""
    token = _bearer_token(request)
    if not token:
        return None
    return _resolve_user(db, token)


def require_role(*roles: ProfileRole):
    def _dep(user: Annotated[Profile, Depends(get_current_user)]) -> Profile:
        if user.role not in roles:
            raise HTTPException(
                status_code=403,
                detail={"code": "FORBIDDEN", "message": "insufficient role"},
            )
        return user

    return _dep


CurrentUser = Annotated[Profile, Depends(get_current_user)]
OptionalUser = Annotated[Profile | None, Depends(get_optional_user)]
AdminUser = Annotated[Profile, Depends(require_role(ProfileRole.ADMIN))]
