from app.services.result import Result
from app.services.state_machine import (
    AbsenceStatus,
    InvalidTransitionError,
    NotificationStatus,
    ScheduleStatus,
    can_transition,
    transition,
)

__all__ = [
    "Result",
    "AbsenceStatus",
    "NotificationStatus",
    "ScheduleStatus",
    "InvalidTransitionError",
    "can_transition",
    "transition",
]
