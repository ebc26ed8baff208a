from fastapi import APIRouter

from happenings.api.v1.claims import router as claims_router
from happenings.api.v1.events import router as events_router
from happenings.api.v1.lineup import router as lineup_router
from happenings.api.v1.me import router as me_router
from happenings.api.v1.overrides import router as overrides_router
from happenings.api.v1.timeslots import router as timeslots_router

router = APIRouter()
router.include_router(events_router)
router.include_router(overrides_router)
router.include_router(timeslots_router)
router.include_router(lineup_router)
router.include_router(claims_router)
router.include_router(me_router)
