from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import AppError, Conflict, Forbidden, NotFound, ValidationFailed
from app.logging_config import get_logger
from app.models import HourTracking, Location, Schedule, User
from app.services.collaborators import Collaborators
from app.timeutils import ensure_utc, local_today, utcnow

logger = get_logger("hour_tracking_service")


async def capture_traffic(collaborators: Collaborators, location: Optional[Location]) -> Optional[dict]:
    if location is None:
        return None
    try:
        traffic = await collaborators.maps.get_traffic(location.latitude, location.longitude)
    except AppError as exc:
        logger.warning("Traffic snapshot skipped", extra={"context": {"location_id": location.id, "error": exc.message}})
        return None
    return traffic.snapshot()


async def clock_in(
    db: Session,
    collaborators: Collaborators,
    user: User,
    schedule_id: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> HourTracking:
    now = now or utcnow()
    schedule = db.get(Schedule, schedule_id)
    if schedule is None:
        raise NotFound("Schedule not found")
    if not schedule.is_assigned(user.id):
        raise Forbidden("User not assigned to this schedule")

    today = local_today(now)
    existing = (
        db.query(HourTracking)
        .filter(
            HourTracking.user_id == user.id,
            HourTracking.date == today,
            or_(HourTracking.status == "active", HourTracking.schedule_id == schedule_id),
        )
        .first()
    )
    if existing is not None:
        if existing.schedule_id == schedule_id:
            raise Conflict("Already clocked in for this schedule today")
        raise Conflict("Already clocked in for another schedule. Clock out first")

    location = db.get(Location, schedule.location_id)
    record = HourTracking(
        user_id=user.id,
        schedule_id=schedule.id,
        date=today,
        clock_in=now,
        status="active",
        location_id=schedule.location_id,
        traffic_snapshot=await capture_traffic(collaborators, location),
        notes=notes,
    )
    db.add(record)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Already clocked in for this schedule today") from exc
    return record


def clock_out(
    db: Session, user: User, record_id: str, notes: Optional[str] = None, now: Optional[datetime] = None
) -> HourTracking:
    now = now or utcnow()
    record = db.get(HourTracking, record_id)
    if record is None:
        raise NotFound("Hour tracking record not found")
    if record.user_id != user.id:
        raise Forbidden("User not authorized")
    if record.clock_out is not None:
        raise Conflict("Already clocked out for this schedule")

    record.clock_out = now
    record.status = "completed"
    elapsed = now - ensure_utc(record.clock_in)
    record.total_hours = round(elapsed.total_seconds() / 3600, 2)
    if notes:
        record.notes = f"{record.notes}\n{notes}" if record.notes else notes
    db.flush()
    return record


def month_bounds(day: date) -> tuple[date, date]:
    first = day.replace(day=1)
    last = (first + timedelta(days=32)).replace(day=1) - timedelta(days=1)
    return first, last


def _period(start: Optional[date], end: Optional[date], now: Optional[datetime]) -> tuple[date, date]:
    month_start, month_end = month_bounds(local_today(now))
    start = start or month_start
    end = end or month_end
    if start > end:
        raise ValidationFailed("start must not be after end")
    return start, end


def _completed_in(query, start: date, end: date):
    return query.filter(
        HourTracking.status == "completed",
        HourTracking.date >= start,
        HourTracking.date <= end,
    )


def hours_summary(
    db: Session,
    user: User,
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Completed hours of one user per day over an inclusive date range (default: this month)."""
    start, end = _period(start, end, now)
    records = _completed_in(db.query(HourTracking), start, end).filter(HourTracking.user_id == user.id).all()

    daily: dict[str, float] = {}
    for record in records:
        key = record.date.isoformat()
        daily[key] = round(daily.get(key, 0.0) + (record.total_hours or 0.0), 2)
    return {
        "totalHours": round(sum(record.total_hours or 0.0 for record in records), 2),
        "recordCount": len(records),
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
        "dailyHours": dict(sorted(daily.items())),
    }


def hours_report(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    user_id: Optional[str] = None,
    department: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Completed hours grouped by employee, newest records first."""
    start, end = _period(start, end, now)
    query = _completed_in(
        db.query(HourTracking, User).join(User, User.id == HourTracking.user_id), start, end
    )
    if user_id:
        query = query.filter(HourTracking.user_id == user_id)
    if department:
        query = query.filter(User.department == department)

    grouped: dict[str, dict] = {}
    for record, user in query.order_by(HourTracking.date.desc(), HourTracking.clock_in.desc()).all():
        entry = grouped.setdefault(
            user.id,
            {
                "user": {
                    "id": user.id,
                    "name": user.name,
                    "email": user.email,
                    "department": user.department,
                    "position": user.position,
                },
                "totalHours": 0.0,
                "records": [],
            },
        )
        entry["totalHours"] = round(entry["totalHours"] + (record.total_hours or 0.0), 2)
        entry["records"].append(
            {
                "id": record.id,
                "date": record.date.isoformat(),
                "scheduleId": record.schedule_id,
                "locationId": record.location_id,
                "clockIn": ensure_utc(record.clock_in).isoformat(),
                "clockOut": ensure_utc(record.clock_out).isoformat() if record.clock_out else None,
                "totalHours": record.total_hours,
            }
        )
    return {
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
        "userHours": sorted(grouped.values(), key=lambda entry: entry["user"]["name"]),
    }
