"""Reminder job lifecycle types."""

from enum import Enum


class ReminderState(str, Enum):
    """States of an appointment's reminder job."""

    NO_JOB = "no_job"
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    FIRED_SUCCESS = "fired_success"
    FIRED_SUPPRESSED = "fired_suppressed"
    FIRED_FAILED = "fired_failed"


class ReminderOutcome(str, Enum):
    """What happened when a reminder job fired."""

    SENT = "sent"
    SUPPRESSED_NOT_FOUND = "suppressed_not_found"
    SUPPRESSED_STATUS = "suppressed_status"
    SUPPRESSED_STALE = "suppressed_stale"
    SUPPRESSED_SUPERSEDED = "suppressed_superseded"
    FAILED = "failed"

    @property
    def is_suppressed(self) -> bool:
        """Suppression is a normal no-op, not an error."""
        return self in _SUPPRESSED


_SUPPRESSED = {
    ReminderOutcome.SUPPRESSED_NOT_FOUND,
    ReminderOutcome.SUPPRESSED_STATUS,
    ReminderOutcome.SUPPRESSED_STALE,
    ReminderOutcome.SUPPRESSED_SUPERSEDED,
}


def reminder_state_for(outcome: ReminderOutcome) -> ReminderState:
    """Map a fire-time outcome onto the reminder state machine."""
    if outcome is ReminderOutcome.SENT:
        return ReminderState.FIRED_SUCCESS
    if outcome is ReminderOutcome.FAILED:
        return ReminderState.FIRED_FAILED
    return ReminderState.FIRED_SUPPRESSED
