from enum import Enum
from typing import Union


class AbsenceStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class ScheduleStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


AnyStatus = Union[AbsenceStatus, NotificationStatus, ScheduleStatus]

ABSENCE_TRANSITIONS = {
    AbsenceStatus.PENDING: [AbsenceStatus.APPROVED, AbsenceStatus.REJECTED],
    AbsenceStatus.APPROVED: [AbsenceStatus.COMPLETED],
    AbsenceStatus.REJECTED: [],
    AbsenceStatus.COMPLETED: [],
}

# Delivery receipts may skip steps but never move backwards.
NOTIFICATION_TRANSITIONS = {
    NotificationStatus.PENDING: [
        NotificationStatus.SENT,
        NotificationStatus.DELIVERED,
        NotificationStatus.READ,
        NotificationStatus.FAILED,
    ],
    NotificationStatus.SENT: [NotificationStatus.DELIVERED, NotificationStatus.READ],
    NotificationStatus.DELIVERED: [NotificationStatus.READ],
    NotificationStatus.READ: [],
    NotificationStatus.FAILED: [],
}

SCHEDULE_TRANSITIONS = {
    ScheduleStatus.SCHEDULED: [ScheduleStatus.IN_PROGRESS, ScheduleStatus.CANCELLED],
    ScheduleStatus.IN_PROGRESS: [ScheduleStatus.COMPLETED, ScheduleStatus.CANCELLED],
    ScheduleStatus.COMPLETED: [],
    ScheduleStatus.CANCELLED: [],
}

_TABLES = {
    AbsenceStatus: ABSENCE_TRANSITIONS,
    NotificationStatus: NOTIFICATION_TRANSITIONS,
    ScheduleStatus: SCHEDULE_TRANSITIONS,
}


class InvalidTransitionError(Exception):
    def __init__(self, from_state: AnyStatus, to_state: AnyStatus):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: AnyStatus, to_state: AnyStatus) -> bool:
    """Check if transition is valid."""
    if type(from_state) is not type(to_state):
        return False
    allowed = _TABLES[type(from_state)].get(from_state, [])
    return to_state in allowed


def transition(from_state: AnyStatus, to_state: AnyStatus) -> AnyStatus:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def is_terminal(state: AnyStatus) -> bool:
    return not _TABLES[type(state)].get(state)


def approve_absence(current: AbsenceStatus) -> AbsenceStatus:
    return transition(current, AbsenceStatus.APPROVED)


def reject_absence(current: AbsenceStatus) -> AbsenceStatus:
    return transition(current, AbsenceStatus.REJECTED)


def complete_absence(current: AbsenceStatus) -> AbsenceStatus:
    return transition(current, AbsenceStatus.COMPLETED)
