from fastapi import APIRouter
from pydantic import BaseModel

from happenings.auth.deps import CurrentUser

router = APIRouter(prefix="/me", tags=["me"])


class MeOut(BaseModel):
    user_id: str
    email: str | None
    full_name: str | None
    role: str
    no_show_count: int


@router.get("", response_model=MeOut)
def me(user: CurrentUser):
    return MeOut(
        user_id=str(user.id),
        email=user.email,
        full_name=user.full_name,
        role=user.role.value,
        no_show_count=user.no_show_count,
    )
