from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.errors import ValidationFailed
from app.logging_config import get_logger
from app.models import Absence, Location, Notification, User
from app.services.collaborators import Collaborators
from app.services.handlers.schedule_query import schedules_for_user
from app.services.hour_tracking_service import capture_traffic
from app.services.notification_service import DispatchSummary, NotificationRequest, dispatch
from app.services.state_machine import AbsenceStatus
from app.timeutils import day_start_utc, format_local_time, local_now, local_today, utcnow

logger = get_logger("briefing_service")


async def build_daily_briefing(
    db: Session, collaborators: Collaborators, user: User, now: Optional[datetime] = None
) -> dict:
    """Today's shifts for ``user`` with best-effort traffic, plus admin counters."""
    now = now or utcnow()
    today = local_today(now)
    schedules = schedules_for_user(db, user.id, today, today + timedelta(days=1))

    absent_today = (
        db.query(Absence)
        .filter(
            Absence.user_id == user.id,
            Absence.status == AbsenceStatus.APPROVED.value,
            Absence.start_date <= today,
            Absence.end_date >= today,
        )
        .first()
        is not None
    )

    items = []
    lines = [f"Good day, {user.name}. Here is your briefing for {today.isoformat()}."]
    for schedule in schedules:
        location = db.get(Location, schedule.location_id)
        traffic = await capture_traffic(collaborators, location)
        items.append(
            {
                "schedule_id": schedule.id,
                "title": schedule.title,
                "start": format_local_time(schedule.start_time),
                "end": format_local_time(schedule.end_time),
                "location": location.name if location else None,
                "traffic": traffic,
            }
        )
        line = f"- {schedule.title} {format_local_time(schedule.start_time)}-{format_local_time(schedule.end_time)}"
        if location:
            line += f" at {location.name}"
        if traffic:
            line += f" ({traffic['trafficDescription']})"
        lines.append(line)
    if not schedules:
        lines.append("You have no shifts today.")
    if absent_today:
        lines.append("Note: you have an approved absence today.")

    briefing = {
        "date": today.isoformat(),
        "schedules": items,
        "has_approved_absence": absent_today,
        "summary": "\n".join(lines),
    }
    if user.is_admin:
        briefing["pending_absences"] = (
            db.query(Absence).filter(Absence.status == AbsenceStatus.PENDING.value).count()
        )
    return briefing


def wants_briefing(user: User) -> bool:
    return bool((user.notification_preferences or {}).get("dailyBriefing"))


def briefing_channel(user: User, override: Optional[str] = None) -> str:
    if override:
        return override
    email = user.wants("email")
    whatsapp = user.wants("whatsapp")
    if email and whatsapp:
        return "both"
    return "whatsapp" if whatsapp else "email"


async def send_daily_briefing(
    db: Session,
    collaborators: Collaborators,
    user: User,
    channel: Optional[str] = None,
    created_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DispatchSummary:
    if not wants_briefing(user):
        raise ValidationFailed("User has not enabled daily briefing")
    briefing = await build_daily_briefing(db, collaborators, user, now=now)
    content = briefing["summary"]
    request = NotificationRequest(
        recipients=[user],
        channel=briefing_channel(user, channel),
        subject=f"Daily Briefing - {briefing['date']}",
        content=content,
        relation="daily-briefing",
        created_by=created_by,
        template_name="general_announcement_update",
        slots={"message": content},
    )
    return await dispatch(db, collaborators, request, now=now)


def _briefed_today(db: Session, user_id: str, since: datetime) -> bool:
    return (
        db.query(Notification.id)
        .filter(
            Notification.recipient_id == user_id,
            Notification.relation == "daily-briefing",
            Notification.created_at >= since,
        )
        .first()
        is not None
    )


async def run_due_briefings(
    db: Session, collaborators: Collaborators, now: Optional[datetime] = None
) -> DispatchSummary:
    """Send each opted-in user one briefing per local day once their ``briefingTime`` has passed."""
    now = now or utcnow()
    local = local_now(now)
    since = day_start_utc(local.date())
    summary = DispatchSummary()
    for user in db.query(User).order_by(User.name).all():
        if not wants_briefing(user):
            continue
        if (user.notification_preferences or {}).get("briefingTime", "07:00") > local.strftime("%H:%M"):
            continue
        if _briefed_today(db, user.id, since):
            continue
        summary.merge(await send_daily_briefing(db, collaborators, user, now=now))
    if summary.total:
        logger.info("Daily briefings sent", extra={"context": summary.as_dict()})
    return summary
