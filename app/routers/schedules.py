import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.models import Location, Schedule, User
from app.schemas.schedule import ScheduleCreate, ScheduleOut, ScheduleStatusUpdate, ScheduleUpdate
from app.services.auth_service import get_current_user, require_admin
from app.services.collaborators import Collaborators, get_collaborators
from app.services.notification_service import notify_schedule_assignment
from app.services.state_machine import InvalidTransitionError, ScheduleStatus, is_terminal, transition
from app.timeutils import ensure_utc

router = APIRouter(prefix="/api/schedules", tags=["schedules"])


def _get_schedule(db: Session, schedule_id: str) -> Schedule:
    schedule = db.get(Schedule, schedule_id)
    if schedule is None:
        raise NotFound("Schedule not found")
    return schedule


def _load_employees(db: Session, employee_ids: list[str]) -> list[User]:
    unique_ids = list(dict.fromkeys(employee_ids))
    if not unique_ids:
        return []
    employees = db.query(User).filter(User.id.in_(unique_ids)).all()
    if len(employees) != len(unique_ids):
        raise ValidationFailed("One or more assigned employees do not exist")
    return employees


def _ensure_location(db: Session, location_id: str) -> None:
    location = db.get(Location, location_id)
    if location is None or not location.is_active:
        raise ValidationFailed("Location not found or inactive")


@router.get("", response_model=list[ScheduleOut])
def list_schedules(
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Admins see every schedule; employees only their own assignments."""
    query = db.query(Schedule)
    if not current_user.is_admin:
        query = query.filter(Schedule.employees.any(User.id == current_user.id))
    if start:
        query = query.filter(Schedule.date >= start)
    if end:
        query = query.filter(Schedule.date < end)
    return query.order_by(Schedule.date, Schedule.start_time).all()


@router.get("/{schedule_id}", response_model=ScheduleOut)
def get_schedule(schedule_id: str, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    schedule = _get_schedule(db, schedule_id)
    if not current_user.is_admin and not schedule.is_assigned(current_user.id):
        raise Forbidden("Not authorized to view this schedule")
    return schedule


@router.post("", response_model=ScheduleOut)
async def create_schedule(
    request: ScheduleCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    _ensure_location(db, request.location_id)
    employees = _load_employees(db, request.employee_ids)
    schedule = Schedule(
        title=request.title,
        description=request.description,
        date=request.date,
        start_time=ensure_utc(request.start_time),
        end_time=ensure_utc(request.end_time),
        location_id=request.location_id,
        allow_auto_replacement=request.allow_auto_replacement,
        created_by=admin.id,
    )
    if request.notification_preferences is not None:
        schedule.notification_preferences = request.notification_preferences
    schedule.employees = employees
    db.add(schedule)
    db.flush()
    await notify_schedule_assignment(db, collaborators, schedule, employees, created_by=admin.id)
    db.commit()
    db.refresh(schedule)
    return schedule


@router.put("/{schedule_id}", response_model=ScheduleOut)
async def update_schedule(
    schedule_id: str,
    request: ScheduleUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    schedule = _get_schedule(db, schedule_id)
    if is_terminal(ScheduleStatus(schedule.status)):
        raise Conflict(f"Cannot edit a {schedule.status} schedule")
    changes = request.model_dump(exclude_unset=True)
    if "location_id" in changes:
        _ensure_location(db, changes["location_id"])
    if "employee_ids" in changes:
        schedule.employees = _load_employees(db, changes.pop("employee_ids") or [])
    for key in ("start_time", "end_time"):
        if key in changes and changes[key] is not None:
            changes[key] = ensure_utc(changes[key])
    for key, value in changes.items():
        setattr(schedule, key, value)
    if ensure_utc(schedule.end_time) <= ensure_utc(schedule.start_time):
        raise ValidationFailed("end_time must be after start_time")
    db.flush()
    await notify_schedule_assignment(
        db, collaborators, schedule, list(schedule.employees), created_by=admin.id, changed=True
    )
    db.commit()
    db.refresh(schedule)
    return schedule


@router.put("/{schedule_id}/status", response_model=ScheduleOut)
def update_schedule_status(
    schedule_id: str,
    request: ScheduleStatusUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    schedule = _get_schedule(db, schedule_id)
    try:
        schedule.status = transition(ScheduleStatus(schedule.status), ScheduleStatus(request.status)).value
    except InvalidTransitionError as exc:
        raise Conflict(str(exc)) from exc
    db.commit()
    db.refresh(schedule)
    return schedule


@router.delete("/{schedule_id}")
def delete_schedule(schedule_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    schedule = _get_schedule(db, schedule_id)
    schedule.employees = []
    db.delete(schedule)
    db.commit()
    return {"msg": "Schedule removed"}
