from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.models import Absence, Schedule, User
from app.schemas.absence import AbsenceCreate, AbsenceOut, AbsenceReview
from app.services.absence_service import review_absence
from app.services.auth_service import get_current_user, require_admin
from app.services.collaborators import Collaborators, get_collaborators
from app.services.notification_service import notify_admins_of_absence
from app.services.state_machine import AbsenceStatus, InvalidTransitionError

router = APIRouter(prefix="/api/absences", tags=["absences"])


def _get_absence(db: Session, absence_id: str) -> Absence:
    absence = db.get(Absence, absence_id)
    if absence is None:
        raise NotFound("Absence not found")
    return absence


@router.post("", response_model=AbsenceOut)
async def create_absence(
    request: AbsenceCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    schedule = None
    if request.schedule_id:
        schedule = db.get(Schedule, request.schedule_id)
        if schedule is None:
            raise NotFound("Schedule not found")
        if not schedule.is_assigned(current_user.id):
            raise ValidationFailed("You are not assigned to this schedule")

    absence = Absence(
        user_id=current_user.id,
        schedule_id=schedule.id if schedule else None,
        start_date=request.start_date,
        end_date=request.end_date,
        reason=request.reason,
        type=request.type,
        status=AbsenceStatus.PENDING.value,
        replacement_needed=schedule is not None,
    )
    db.add(absence)
    db.flush()
    await notify_admins_of_absence(db, collaborators, absence, current_user)
    db.commit()
    db.refresh(absence)
    return absence


@router.get("", response_model=list[AbsenceOut])
def list_absences(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    query = db.query(Absence)
    if not current_user.is_admin:
        query = query.filter(Absence.user_id == current_user.id)
    return query.order_by(Absence.created_at.desc()).all()


@router.get("/{absence_id}", response_model=AbsenceOut)
def get_absence(absence_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    absence = _get_absence(db, absence_id)
    if absence.user_id != current_user.id and not current_user.is_admin:
        raise Forbidden("Not authorized to view this absence")
    return absence


async def _review(
    absence_id: str,
    target: AbsenceStatus,
    request: Optional[AbsenceReview],
    admin: User,
    db: Session,
    collaborators: Collaborators,
) -> Absence:
    absence = _get_absence(db, absence_id)
    request = request or AbsenceReview()
    if request.notes:
        absence.notes = request.notes
    if request.replacement_id:
        if db.get(User, request.replacement_id) is None:
            raise ValidationFailed("Replacement user not found")
        absence.replacement_id = request.replacement_id
    try:
        await review_absence(db, collaborators, absence, target, admin)
    except InvalidTransitionError as exc:
        db.rollback()
        raise Conflict(f"Absence is already {absence.status}") from exc
    db.commit()
    db.refresh(absence)
    return absence


@router.put("/{absence_id}/approve", response_model=AbsenceOut)
async def approve_absence(
    absence_id: str,
    request: Optional[AbsenceReview] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    return await _review(absence_id, AbsenceStatus.APPROVED, request, admin, db, collaborators)


@router.put("/{absence_id}/reject", response_model=AbsenceOut)
async def reject_absence(
    absence_id: str,
    request: Optional[AbsenceReview] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    return await _review(absence_id, AbsenceStatus.REJECTED, request, admin, db, collaborators)


@router.put("/{absence_id}/complete", response_model=AbsenceOut)
async def complete_absence(
    absence_id: str,
    request: Optional[AbsenceReview] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    return await _review(absence_id, AbsenceStatus.COMPLETED, request, admin, db, collaborators)
