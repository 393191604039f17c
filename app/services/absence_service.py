from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import Absence, Schedule, User
from app.services.collaborators import Collaborators
from app.services.notification_service import notify_absence_decision, solicit_replacements
from app.services.state_machine import AbsenceStatus, approve_absence, complete_absence, reject_absence
from app.timeutils import utcnow

logger = get_logger("absence_service")

REVIEW_MOVES = {
    AbsenceStatus.APPROVED: approve_absence,
    AbsenceStatus.REJECTED: reject_absence,
    AbsenceStatus.COMPLETED: complete_absence,
}


def pending_absences(db: Session, newest_first: bool = False) -> list[Absence]:
    order = Absence.created_at.desc() if newest_first else Absence.created_at.asc()
    return db.query(Absence).filter(Absence.status == AbsenceStatus.PENDING.value).order_by(order).all()


async def review_absence(
    db: Session,
    collaborators: Collaborators,
    absence: Absence,
    target: AbsenceStatus,
    reviewer: Optional[User],
    now: Optional[datetime] = None,
) -> Absence:
    """Move an absence along its lifecycle and notify the people involved.

    Raises InvalidTransitionError when the move is not allowed.
    """
    now = now or utcnow()
    absence.status = REVIEW_MOVES[target](AbsenceStatus(absence.status)).value
    absence.reviewed_by = reviewer.id if reviewer else None
    absence.updated_at = now
    db.flush()
    logger.info(
        "Absence reviewed",
        extra={"context": {"absence_id": absence.id, "status": absence.status, "reviewer": absence.reviewed_by}},
    )

    if target == AbsenceStatus.COMPLETED:
        return absence

    requester = db.get(User, absence.user_id)
    if requester is None:
        return absence
    await notify_absence_decision(db, collaborators, absence, requester, absence.reviewed_by, now=now)

    if target == AbsenceStatus.APPROVED and absence.schedule_id:
        schedule = db.get(Schedule, absence.schedule_id)
        if schedule and schedule.allow_auto_replacement and schedule.is_assigned(requester.id):
            await solicit_replacements(
                db, collaborators, absence, schedule, requester, reviewer_id=absence.reviewed_by, now=now
            )
    return absence
