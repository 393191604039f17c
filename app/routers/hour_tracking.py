import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.models import HourTracking, User
from app.schemas.hour_tracking import ClockInRequest, ClockOutRequest, HourTrackingOut
from app.services.auth_service import get_current_user, require_admin
from app.services.collaborators import Collaborators, get_collaborators
from app.services.hour_tracking_service import clock_in, clock_out, hours_report, hours_summary

router = APIRouter(prefix="/api/hour-tracking", tags=["hour-tracking"])


@router.post("/clock-in", response_model=HourTrackingOut)
async def clock_in_route(
    request: ClockInRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    record = await clock_in(db, collaborators, current_user, request.schedule_id, notes=request.notes)
    db.commit()
    db.refresh(record)
    return record


@router.post("/clock-out/{record_id}", response_model=HourTrackingOut)
def clock_out_route(
    record_id: str,
    request: Optional[ClockOutRequest] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    record = clock_out(db, current_user, record_id, notes=request.notes if request else None)
    db.commit()
    db.refresh(record)
    return record


@router.get("/user", response_model=list[HourTrackingOut])
def my_records(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return (
        db.query(HourTracking)
        .filter(HourTracking.user_id == current_user.id)
        .order_by(HourTracking.clock_in.desc())
        .all()
    )


@router.get("/user/summary")
def my_summary(
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return hours_summary(db, current_user, start, end)


@router.get("/admin/report")
def hours_report_route(
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
    user_id: Optional[str] = None,
    department: Optional[str] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Completed hours per employee; `start`/`end` are inclusive and default to the current month."""
    return hours_report(db, start, end, user_id=user_id, department=department)


@router.get("/active", response_model=Optional[HourTrackingOut])
def active_record(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return (
        db.query(HourTracking)
        .filter(HourTracking.user_id == current_user.id, HourTracking.status == "active")
        .first()
    )


@router.get("", response_model=list[HourTrackingOut])
def all_records(
    user_id: Optional[str] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(HourTracking)
    if user_id:
        query = query.filter(HourTracking.user_id == user_id)
    return query.order_by(HourTracking.clock_in.desc()).all()
