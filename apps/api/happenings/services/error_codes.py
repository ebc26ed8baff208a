from enum import Enum


class ErrorCode(str, Enum):
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    EVENT_CANCELLED = "EVENT_CANCELLED"
    EVENT_NOT_PUBLISHED = "EVENT_NOT_PUBLISHED"
    VENUE_NOT_FOUND = "VENUE_NOT_FOUND"
    NOT_EVENT_MANAGER = "NOT_EVENT_MANAGER"
    ADMIN_REQUIRED = "ADMIN_REQUIRED"
    HOST_REQUIRED = "HOST_REQUIRED"

    INVALID_DATE_KEY = "INVALID_DATE_KEY"
    OCCURRENCE_CANCELLED = "OCCURRENCE_CANCELLED"
    OCCURRENCE_PAST = "OCCURRENCE_PAST"
    INVALID_OVERRIDE = "INVALID_OVERRIDE"
    OVERRIDE_NOT_FOUND = "OVERRIDE_NOT_FOUND"
    INVALID_EVENT = "INVALID_EVENT"

    TIMESLOTS_DISABLED = "TIMESLOTS_DISABLED"
    TIMESLOTS_EXIST = "TIMESLOTS_EXIST"
    TIMESLOTS_CLAIMED = "TIMESLOTS_CLAIMED"
    TIMESLOT_NOT_FOUND = "TIMESLOT_NOT_FOUND"
    TIMESLOT_TAKEN = "TIMESLOT_TAKEN"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    CLAIM_NOT_FOUND = "CLAIM_NOT_FOUND"
    INVALID_CLAIM_TRANSITION = "INVALID_CLAIM_TRANSITION"
    TIMESLOT_MISMATCH = "TIMESLOT_MISMATCH"
    INVALID_LINEUP_STEP = "INVALID_LINEUP_STEP"

    RSVP_NOT_FOUND = "RSVP_NOT_FOUND"

    OWNERSHIP_CLAIM_NOT_FOUND = "OWNERSHIP_CLAIM_NOT_FOUND"
    OWNERSHIP_CLAIM_PENDING = "OWNERSHIP_CLAIM_PENDING"
    OWNERSHIP_CLAIM_REVIEWED = "OWNERSHIP_CLAIM_REVIEWED"
