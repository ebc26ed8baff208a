from happenings.api.v1.schemas.claims import (
    OwnershipClaimIn,
    OwnershipClaimOut,
    OwnershipReviewIn,
    VenueCreate,
    VenueOut,
)
from happenings.api.v1.schemas.events import (
    EventCreate,
    EventDetailOut,
    EventOut,
    EventUpdate,
    OccurrenceListOut,
    OccurrenceOut,
    RSVPListOut,
    RSVPOut,
)
from happenings.api.v1.schemas.lineup import (
    LineupSnapshotOut,
    LineupStepIn,
    NowPlayingIn,
    NowPlayingOut,
)
from happenings.api.v1.schemas.overrides import (
    OverrideListOut,
    OverrideOut,
    OverrideUpsert,
    OverrideUpsertOut,
)
from happenings.api.v1.schemas.timeslots import (
    ClaimListOut,
    ClaimStatusIn,
    ClaimTimeslotIn,
    GenerateTimeslotsIn,
    TimeslotListOut,
)

__all__ = [
    "EventCreate",
    "EventUpdate",
    "EventOut",
    "EventDetailOut",
    "OccurrenceOut",
    "OccurrenceListOut",
    "RSVPOut",
    "RSVPListOut",
    "OverrideUpsert",
    "OverrideOut",
    "OverrideUpsertOut",
    "OverrideListOut",
    "NowPlayingIn",
    "NowPlayingOut",
    "LineupStepIn",
    "LineupSnapshotOut",
    "GenerateTimeslotsIn",
    "TimeslotListOut",
    "ClaimTimeslotIn",
    "ClaimStatusIn",
    "ClaimListOut",
    "OwnershipClaimIn",
    "OwnershipReviewIn",
    "OwnershipClaimOut",
    "VenueCreate",
    "VenueOut",
]
