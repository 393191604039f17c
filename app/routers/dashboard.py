from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.models import Absence, HourTracking, Notification, Schedule, User
from app.services.auth_service import require_admin
from app.services.state_machine import AbsenceStatus
from app.timeutils import day_window_utc, local_today

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
def dashboard_stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    today = local_today()
    day_start, day_end = day_window_utc(today, today + timedelta(days=1))
    return {
        "users": db.query(User).count(),
        "schedulesToday": db.query(Schedule).filter(Schedule.date == today).count(),
        "pendingAbsences": db.query(Absence).filter(Absence.status == AbsenceStatus.PENDING.value).count(),
        "activeClockIns": db.query(HourTracking).filter(HourTracking.status == "active").count(),
        "notificationsSentToday": db.query(Notification)
        .filter(Notification.sent_at >= day_start, Notification.sent_at < day_end)
        .count(),
    }
