"""Fan-out of logical notifications to email and WhatsApp with per-recipient accounting."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.errors import AppError
from app.logging_config import get_logger, mask_phone
from app.models import Absence, Location, Notification, Schedule, User
from app.services.collaborators import Collaborators
from app.services.maps_service import ALERT_TRAFFIC_LEVEL
from app.services.message_policy import OutboundMessage, deliver, plan_message
from app.services.result import Result
from app.services.state_machine import NotificationStatus, transition
from app.timeutils import format_local_time, local_today, utcnow

logger = get_logger("notification_service")

CHANNELS = ("email", "whatsapp", "both")
RELATIONS = ("schedule", "absence", "announcement", "traffic", "daily-briefing", "other")


@dataclass
class NotificationRequest:
    recipients: list[User]
    channel: str
    subject: str
    content: str
    relation: str = "other"
    related_id: Optional[str] = None
    created_by: Optional[str] = None
    template_name: Optional[str] = None
    slots: dict = field(default_factory=dict)


@dataclass
class _Delivery:
    notification: Notification
    email_to: Optional[str] = None
    whatsapp: Optional[OutboundMessage] = None


@dataclass
class DispatchSummary:
    total: int = 0
    sent: int = 0
    failed: int = 0
    notification_ids: list[str] = field(default_factory=list)

    def merge(self, other: "DispatchSummary") -> None:
        self.total += other.total
        self.sent += other.sent
        self.failed += other.failed
        self.notification_ids.extend(other.notification_ids)

    def as_dict(self) -> dict:
        return {"total": self.total, "sent": self.sent, "failed": self.failed}


def _channel_allows(channel: str, target: str) -> bool:
    return channel == target or channel == "both"


def _plan_delivery(
    db: Session, collaborators: Collaborators, request: NotificationRequest, recipient: User, now: datetime
) -> _Delivery:
    notification = Notification(
        channel=request.channel,
        recipient_id=recipient.id,
        subject=request.subject,
        content=request.content,
        relation=request.relation,
        related_id=request.related_id,
        status=NotificationStatus.PENDING.value,
        delivery={},
        created_by=request.created_by,
        created_at=now,
    )
    db.add(notification)
    delivery = _Delivery(notification=notification)

    if _channel_allows(request.channel, "email") and recipient.wants("email") and recipient.email:
        delivery.email_to = recipient.email

    # Channels the recipient cannot take are skipped silently.
    if _channel_allows(request.channel, "whatsapp") and recipient.wants("whatsapp") and recipient.phone:
        slots = {"name": recipient.name, **request.slots}
        delivery.whatsapp = plan_message(
            db,
            recipient,
            request.content,
            collaborators.templates,
            template_name=request.template_name,
            slots=slots,
            now=now,
        )
    return delivery


async def _attempt(
    collaborators: Collaborators, delivery: _Delivery, subject: str, content: str, semaphore: asyncio.Semaphore
) -> dict[str, Result]:
    async with semaphore:
        jobs = {}
        if delivery.email_to:
            jobs["email"] = collaborators.email.send(delivery.email_to, subject, content)
        if delivery.whatsapp:
            jobs["whatsapp"] = deliver(collaborators.whatsapp, delivery.whatsapp)
        if not jobs:
            return {}
        outcomes = await asyncio.gather(*jobs.values(), return_exceptions=True)

    results = {}
    for channel, outcome in zip(jobs.keys(), outcomes):
        if isinstance(outcome, Exception):
            logger.error(
                "Channel delivery crashed",
                extra={"context": {"channel": channel, "error": str(outcome)}},
            )
            outcome = Result.failure(str(outcome))
        results[channel] = outcome
    return results


def _record(notification: Notification, results: dict[str, Result], now: datetime) -> bool:
    accounting = {
        channel: {"ok": result.ok, "error": result.error, "code": result.error_code}
        for channel, result in results.items()
    }
    if not results:
        accounting["skipped"] = True
    notification.delivery = accounting

    current = NotificationStatus(notification.status)
    if any(result.ok for result in results.values()):
        notification.status = transition(current, NotificationStatus.SENT).value
        notification.sent_at = now
        return True
    notification.status = transition(current, NotificationStatus.FAILED).value
    notification.sent_at = None
    return False


async def dispatch(
    db: Session,
    collaborators: Collaborators,
    request: NotificationRequest,
    now: Optional[datetime] = None,
) -> DispatchSummary:
    """Create one Notification per recipient and deliver them concurrently.

    Per-recipient failures are recorded on the row; the batch itself never fails.
    Database work happens before and after the sends so the session is never
    shared between concurrent tasks.
    """
    if request.channel not in CHANNELS:
        raise ValueError(f"Unknown channel: {request.channel}")

    now = now or utcnow()
    deliveries = [
        _plan_delivery(db, collaborators, request, recipient, now) for recipient in request.recipients
    ]
    db.flush()

    semaphore = asyncio.Semaphore(collaborators.notification_concurrency)
    outcomes = await asyncio.gather(
        *(_attempt(collaborators, item, request.subject, request.content, semaphore) for item in deliveries)
    )

    summary = DispatchSummary(total=len(deliveries))
    for delivery, results in zip(deliveries, outcomes):
        if _record(delivery.notification, results, now):
            summary.sent += 1
        else:
            summary.failed += 1
        summary.notification_ids.append(delivery.notification.id)
    db.flush()

    logger.info(
        "Notifications dispatched",
        extra={"context": {"relation": request.relation, "related_id": request.related_id, **summary.as_dict()}},
    )
    return summary


def admins_to_notify(db: Session) -> list[User]:
    admins = db.query(User).filter(User.role == "admin").all()
    return [admin for admin in admins if admin.wants("email") or admin.wants("whatsapp")]


async def notify_admins_of_absence(
    db: Session, collaborators: Collaborators, absence: Absence, requester: User, now: Optional[datetime] = None
) -> DispatchSummary:
    content = (
        f"{requester.name} requested a {absence.type} absence from {absence.start_date.isoformat()} "
        f"to {absence.end_date.isoformat()}. Reason: {absence.reason}. Absence ID: {absence.id}"
    )
    request = NotificationRequest(
        recipients=admins_to_notify(db),
        channel="both",
        subject="New absence request",
        content=content,
        relation="absence",
        related_id=absence.id,
        created_by=requester.id,
        template_name="general_announcement_update",
        slots={"message": content},
    )
    return await dispatch(db, collaborators, request, now=now)


async def notify_absence_decision(
    db: Session,
    collaborators: Collaborators,
    absence: Absence,
    requester: User,
    reviewer_id: Optional[str],
    now: Optional[datetime] = None,
) -> DispatchSummary:
    content = (
        f"Your absence request from {absence.start_date.isoformat()} to {absence.end_date.isoformat()} "
        f"has been {absence.status}."
    )
    request = NotificationRequest(
        recipients=[requester],
        channel="both",
        subject=f"Absence request {absence.status}",
        content=content,
        relation="absence",
        related_id=absence.id,
        created_by=reviewer_id,
        template_name="absence_update",
        slots={
            "status": absence.status,
            "start": absence.start_date.isoformat(),
            "end": absence.end_date.isoformat(),
        },
    )
    return await dispatch(db, collaborators, request, now=now)


def replacement_candidates(db: Session, schedule: Schedule, absent_user: User) -> list[User]:
    query = db.query(User).filter(User.id != absent_user.id, User.role == "employee")
    if absent_user.department:
        query = query.filter(User.department == absent_user.department)
    assigned = set(schedule.employee_ids)
    return [user for user in query.all() if user.id not in assigned]


async def solicit_replacements(
    db: Session,
    collaborators: Collaborators,
    absence: Absence,
    schedule: Schedule,
    absent_user: User,
    reviewer_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DispatchSummary:
    """Ask eligible colleagues to cover a shift. Nobody is assigned automatically."""
    candidates = replacement_candidates(db, schedule, absent_user)
    if not candidates:
        return DispatchSummary()
    content = (
        f"A replacement is needed for \"{schedule.title}\" on {schedule.date.isoformat()} "
        f"at {format_local_time(schedule.start_time)}. Reply if you can cover this shift."
    )
    request = NotificationRequest(
        recipients=candidates,
        channel="both",
        subject="Shift replacement needed",
        content=content,
        relation="absence",
        related_id=absence.id,
        created_by=reviewer_id,
        template_name="general_announcement_update",
        slots={"message": content},
    )
    return await dispatch(db, collaborators, request, now=now)


def schedule_slots(schedule: Schedule, location: Optional[Location]) -> dict:
    return {
        "title": schedule.title,
        "date": schedule.date.isoformat(),
        "time": f"{format_local_time(schedule.start_time)} - {format_local_time(schedule.end_time)}",
        "location": f"{location.name}, {location.address}" if location else "",
    }


async def notify_schedule_assignment(
    db: Session,
    collaborators: Collaborators,
    schedule: Schedule,
    recipients: list[User],
    created_by: Optional[str],
    changed: bool = False,
    now: Optional[datetime] = None,
) -> DispatchSummary:
    if not recipients:
        return DispatchSummary()
    location = db.get(Location, schedule.location_id)
    slots = schedule_slots(schedule, location)
    verb = "updated" if changed else "assigned"
    content = (
        f"Your shift \"{schedule.title}\" on {slots['date']} ({slots['time']}) at {slots['location']} "
        f"has been {verb}."
    )
    prefs = schedule.notification_preferences or {}
    if prefs.get("email", True) and prefs.get("whatsapp", True):
        channel = "both"
    elif prefs.get("whatsapp", True):
        channel = "whatsapp"
    else:
        channel = "email"
    request = NotificationRequest(
        recipients=recipients,
        channel=channel,
        subject="Schedule updated" if changed else "New schedule",
        content=content,
        relation="schedule",
        related_id=schedule.id,
        created_by=created_by,
        template_name="schedule_change" if changed else "schedule_reminder",
        slots=slots,
    )
    return await dispatch(db, collaborators, request, now=now)


def _already_alerted(db: Session, user_id: str, schedule_id: str) -> bool:
    return (
        db.query(Notification.id)
        .filter(
            Notification.recipient_id == user_id,
            Notification.related_id == schedule_id,
            Notification.relation == "traffic",
            Notification.status != NotificationStatus.FAILED.value,
        )
        .first()
        is not None
    )


async def run_traffic_alerts(
    db: Session, collaborators: Collaborators, now: Optional[datetime] = None
) -> DispatchSummary:
    """Alert assigned employees of schedules in [today, today+2) with traffic level >= 2."""
    now = now or utcnow()
    today = local_today(now)
    schedules = (
        db.query(Schedule)
        .filter(
            Schedule.date >= today,
            Schedule.date < today + timedelta(days=2),
            Schedule.status.in_(["scheduled", "in-progress"]),
        )
        .order_by(Schedule.date, Schedule.start_time)
        .all()
    )

    summary = DispatchSummary()
    notified: set[tuple[str, str]] = set()
    for schedule in schedules:
        location = db.get(Location, schedule.location_id)
        if location is None or not location.is_active:
            continue
        try:
            traffic = await collaborators.maps.get_traffic(location.latitude, location.longitude)
        except AppError as exc:
            logger.warning(
                "Traffic lookup failed for alert",
                extra={"context": {"schedule_id": schedule.id, "error": exc.message}},
            )
            continue
        if traffic.level < ALERT_TRAFFIC_LEVEL:
            continue

        recipients = []
        for employee in schedule.employees:
            key = (employee.id, schedule.id)
            if key in notified or _already_alerted(db, employee.id, schedule.id):
                continue
            notified.add(key)
            recipients.append(employee)
        if not recipients:
            continue

        start = format_local_time(schedule.start_time)
        content = (
            f"Traffic alert: {traffic.description} near {location.name} for \"{schedule.title}\" "
            f"on {schedule.date.isoformat()} at {start}. Please plan extra travel time."
        )
        request = NotificationRequest(
            recipients=recipients,
            channel="both",
            subject=f"Traffic alert for {schedule.title}",
            content=content,
            relation="traffic",
            related_id=schedule.id,
            template_name="traffic_alert",
            slots={"title": schedule.title, "traffic": traffic.description, "time": start},
        )
        summary.merge(await dispatch(db, collaborators, request, now=now))

    logger.info("Traffic alert job finished", extra={"context": {"schedules": len(schedules), **summary.as_dict()}})
    return summary


async def send_direct_whatsapp(
    db: Session, collaborators: Collaborators, recipient: User, text: str, now: Optional[datetime] = None
) -> Result[str]:
    """Single WhatsApp message through the outbound policy, without a Notification row."""
    if not recipient.phone:
        return Result.failure("Recipient has no phone", code="validation")
    message = plan_message(
        db,
        recipient,
        text,
        collaborators.templates,
        template_name="general_announcement_update",
        slots={"name": recipient.name, "message": text},
        now=now,
    )
    result = await deliver(collaborators.whatsapp, message)
    if not result.ok:
        logger.warning(
            "Direct WhatsApp failed",
            extra={"context": {"to": mask_phone(recipient.phone), "error": result.error}},
        )
    return result
