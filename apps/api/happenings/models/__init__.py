from happenings.models.base import Base
from happenings.models.claim import EventClaim, VenueClaim
from happenings.models.event import Event, EventHost
from happenings.models.lineup_state import EventLineupState
from happenings.models.occurrence_override import OccurrenceOverride
from happenings.models.profile import Profile
from happenings.models.rsvp import EventRSVP
from happenings.models.timeslot import EventTimeslot, TimeslotClaim
from happenings.models.venue import Venue, VenueManager

__all__ = [
    "Base",
    "Profile",
    "Venue",
    "VenueManager",
    "Event",
    "EventHost",
    "OccurrenceOverride",
    "EventTimeslot",
    "TimeslotClaim",
    "EventLineupState",
    "EventRSVP",
    "EventClaim",
    "VenueClaim",
]
