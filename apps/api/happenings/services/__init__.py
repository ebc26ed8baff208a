from happenings.services.events_service import cancel_event, create_event, publish_event, update_event
from happenings.services.lineup_service import get_now_playing, set_now_playing, step_now_playing
from happenings.services.overrides import apply_occurrence_override, resolve_occurrence, upsert_override
from happenings.services.rsvp_service import cancel_rsvp, rsvp

__all__ = [
    "create_event",
    "update_event",
    "publish_event",
    "cancel_event",
    "apply_occurrence_override",
    "resolve_occurrence",
    "upsert_override",
    "get_now_playing",
    "set_now_playing",
    "step_now_playing",
    "rsvp",
    "cancel_rsvp",
]
