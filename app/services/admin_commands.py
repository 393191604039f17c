"""Natural-language admin commands: keyword table plus one regex extractor per action."""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import Absence, Conversation, Location, Schedule, User
from app.services.absence_service import pending_absences, review_absence
from app.services.conversation_service import CONVERSATION_TTL
from app.services.handlers.base import HandlerResult, Turn
from app.services.handlers.schedule_query import WEEKDAYS
from app.services.notification_service import NotificationRequest, dispatch
from app.services.state_machine import AbsenceStatus, InvalidTransitionError
from app.timeutils import format_local_time, local_now, local_today, next_monday

logger = get_logger("admin_commands")


class AdminAction(str, Enum):
    HELP = "help"
    USERS = "users"
    SCHEDULES = "schedules"
    BROADCAST = "broadcast"
    NOTIFY = "notify"
    STATUS = "status"
    ABSENCES = "absences"
    APPROVE = "approve"
    REJECT = "reject"


# First match wins; commands that carry free text are checked first.
ACTION_KEYWORDS = [
    (AdminAction.BROADCAST, ("broadcast", "announce", "send to all", "send to everyone", "message everyone", "message all")),
    (AdminAction.NOTIFY, ("notify", "message to")),
    (AdminAction.APPROVE, ("approve",)),
    (AdminAction.REJECT, ("reject", "deny", "decline")),
    (AdminAction.ABSENCES, ("absence", "leave request", "time off")),
    (AdminAction.SCHEDULES, ("schedule", "shift")),
    (AdminAction.USERS, ("users", "employees", "staff", "list user")),
    (AdminAction.STATUS, ("status", "stats", "system")),
    (AdminAction.HELP, ("help", "commands")),
]

# Bare "tell" is not a command, only "tell X that ...".
EXTRA_PATTERNS = {AdminAction.NOTIFY: (r"tell\s+\S.*?\s+that\b",)}

ACTION_PATTERNS = [
    (
        action,
        re.compile(
            r"(?<!\w)(?:"
            + "|".join([re.escape(keyword) for keyword in keywords] + list(EXTRA_PATTERNS.get(action, ())))
            + ")"
        ),
    )
    for action, keywords in ACTION_KEYWORDS
]

BROADCAST_INDICATORS = (
    "broadcast message:",
    "broadcast message",
    "broadcast:",
    "broadcast",
    "announce:",
    "announce",
    "send to everyone:",
    "send to everyone",
    "send to all:",
    "send to all",
    "message everyone:",
    "message everyone",
    "message all:",
    "message all",
)

NOTIFY_PATTERNS = [
    re.compile(r"notify\s+(?P<target>.+?)\s+about\s+(?P<message>.+)", re.IGNORECASE | re.DOTALL),
    re.compile(r"message\s+to\s+(?P<target>[^:]+?)\s*:\s*(?P<message>.+)", re.IGNORECASE | re.DOTALL),
    re.compile(r"tell\s+(?P<target>.+?)\s+that\s+(?P<message>.+)", re.IGNORECASE | re.DOTALL),
    re.compile(r"notify\s+(?P<target>\S+)\s+(?P<message>.+)", re.IGNORECASE | re.DOTALL),
]

ABSENCE_ID_RE = re.compile(r"\b[0-9a-f]{24}\b")
ADMIN_PREFIX_RE = re.compile(r"^\s*/admin\b\s*", re.IGNORECASE)

HELP_TEXT = """Admin commands:
- users: list all users
- schedules [today|tomorrow|yesterday|next <weekday>|next week]: list schedules for a day
- broadcast <message>: send a WhatsApp message to everyone
- notify <user> about <message>: message one user (name, phone or id)
- status: system overview
- absences: list pending absence requests
- approve <absence id or name>: approve an absence request
- reject <absence id or name>: reject an absence request"""

NOT_ADMIN = "Sorry, admin commands are only available to administrators."


@dataclass
class NotifyCommand:
    target: str
    message: str


def strip_admin_prefix(utterance: str) -> str:
    return ADMIN_PREFIX_RE.sub("", utterance or "", count=1).strip()


def detect_action(text: str) -> AdminAction:
    lowered = (text or "").lower()
    for action, pattern in ACTION_PATTERNS:
        if pattern.search(lowered):
            return action
    return AdminAction.HELP


def extract_broadcast_message(text: str) -> str:
    lowered = text.lower()
    for indicator in BROADCAST_INDICATORS:
        index = lowered.find(indicator)
        if index != -1:
            return text[index + len(indicator):].strip(" \t:,-")
    return text.strip()


def extract_notify(text: str) -> Optional[NotifyCommand]:
    for pattern in NOTIFY_PATTERNS:
        match = pattern.search(text)
        if match:
            target = match.group("target").strip(" \t:,\"'")
            message = match.group("message").strip()
            if target and message:
                return NotifyCommand(target=target, message=message)
    return None


def resolve_target_date(text: str, today: date) -> date:
    lowered = (text or "").lower()
    if re.search(r"\bnext\s+week\b", lowered):
        return next_monday(today)
    match = re.search(r"\bnext\s+(" + "|".join(WEEKDAYS) + r")\b", lowered)
    if match:
        return next_monday(today) + timedelta(days=WEEKDAYS.index(match.group(1)))
    if "tomorrow" in lowered:
        return today + timedelta(days=1)
    if "yesterday" in lowered:
        return today - timedelta(days=1)
    return today


def find_user(db: Session, target: str) -> Optional[User]:
    """Resolve by id, then phone fragment, then case-insensitive name."""
    candidate = target.strip()
    if ABSENCE_ID_RE.fullmatch(candidate.lower()):
        user = db.get(User, candidate.lower())
        if user:
            return user

    digits = re.sub(r"\D", "", candidate)
    if len(digits) >= 4:
        user = db.query(User).filter(User.phone.contains(digits)).first()
        if user:
            return user

    lowered = candidate.lower()
    users = db.query(User).all()
    for user in users:
        if (user.name or "").lower() == lowered:
            return user
    for user in users:
        if lowered and lowered in (user.name or "").lower():
            return user
    return None


def _users_text(db: Session) -> str:
    users = db.query(User).order_by(User.name).all()
    if not users:
        return "No users found."
    lines = [f"Users ({len(users)}):"]
    for index, user in enumerate(users, start=1):
        lines.append(
            f"{index}. {user.name} [{user.id}] - {user.role}, "
            f"{user.department or 'no department'}, {user.phone or 'no phone'}"
        )
    return "\n".join(lines)


def _schedules_text(db: Session, text: str, turn: Turn) -> str:
    target = resolve_target_date(text, local_today(turn.now))
    schedules = (
        db.query(Schedule)
        .filter(Schedule.date >= target, Schedule.date < target + timedelta(days=1))
        .order_by(Schedule.start_time)
        .all()
    )
    if not schedules:
        return f"No schedules found for {target.isoformat()}."
    lines = [f"Schedules for {target.isoformat()} ({len(schedules)}):"]
    for index, schedule in enumerate(schedules, start=1):
        location = db.get(Location, schedule.location_id)
        staff = ", ".join(employee.name for employee in schedule.employees) or "unassigned"
        lines.append(
            f"{index}. {schedule.title} {format_local_time(schedule.start_time)}-{format_local_time(schedule.end_time)} "
            f"at {location.name if location else 'unknown location'} ({schedule.status}) - {staff}"
        )
    return "\n".join(lines)


def _status_text(db: Session, now: datetime) -> str:
    active_conversations = (
        db.query(Conversation)
        .filter(Conversation.active.is_(True), Conversation.last_activity >= now - CONVERSATION_TTL)
        .count()
    )
    return (
        "System status:\n"
        f"- Users: {db.query(User).count()}\n"
        f"- Schedules: {db.query(Schedule).count()}\n"
        f"- Locations: {db.query(Location).count()}\n"
        f"- Active conversations: {active_conversations}\n"
        f"- Current time: {local_now(now).strftime('%Y-%m-%d %H:%M')}"
    )


def _absences_text(db: Session) -> str:
    absences = pending_absences(db)
    if not absences:
        return "There are no pending absence requests."
    lines = [f"Pending absence requests ({len(absences)}):"]
    for index, absence in enumerate(absences, start=1):
        requester = db.get(User, absence.user_id)
        lines.append(
            f"{index}. {requester.name if requester else 'Unknown'}: {absence.start_date.isoformat()} to "
            f"{absence.end_date.isoformat()} ({absence.type}) - {absence.reason} [ID: {absence.id}]"
        )
    return "\n".join(lines)


def find_absence_for_review(db: Session, text: str) -> tuple[Optional[Absence], Optional[str]]:
    """Return ``(absence, quoted_id)``; the id is set when one was given but not found."""
    match = ABSENCE_ID_RE.search((text or "").lower())
    if match:
        absence = db.get(Absence, match.group(0))
        return absence, None if absence else match.group(0)

    pending = pending_absences(db, newest_first=True)
    lowered = (text or "").lower()
    for absence in pending:
        requester = db.get(User, absence.user_id)
        if requester and requester.name and requester.name.lower() in lowered:
            return absence, None
    return (pending[0] if pending else None), None


async def _review(text: str, admin: User, turn: Turn, target: AbsenceStatus) -> str:
    absence, missing_id = find_absence_for_review(turn.db, text)
    if missing_id:
        return f"Absence {missing_id} not found."
    if absence is None:
        return "There are no pending absence requests."

    try:
        await review_absence(turn.db, turn.collaborators, absence, target, admin, now=turn.now)
    except InvalidTransitionError:
        return f"Absence {absence.id} is already {absence.status}."

    requester = turn.db.get(User, absence.user_id)
    return (
        f"Absence request from {requester.name if requester else 'unknown user'} "
        f"({absence.start_date.isoformat()} to {absence.end_date.isoformat()}) has been {absence.status}."
    )


async def _broadcast(text: str, admin: User, turn: Turn) -> str:
    message = extract_broadcast_message(text)
    if not message:
        return "Please include the message to broadcast, e.g. \"broadcast Office closed Friday\"."
    recipients = turn.db.query(User).filter(User.phone.isnot(None), User.phone != "").all()
    summary = await dispatch(
        turn.db,
        turn.collaborators,
        NotificationRequest(
            recipients=recipients,
            channel="whatsapp",
            subject="Announcement",
            content=message,
            relation="announcement",
            created_by=admin.id,
            template_name="general_announcement_update",
            slots={"message": message},
        ),
        now=turn.now,
    )
    return f"Broadcast message sent to {summary.sent} users."


async def _notify(text: str, admin: User, turn: Turn) -> str:
    command = extract_notify(text)
    if command is None:
        return "I couldn't understand that. Try \"notify <user> about <message>\"."
    recipient = find_user(turn.db, command.target)
    if recipient is None:
        return f"User \"{command.target}\" not found."
    summary = await dispatch(
        turn.db,
        turn.collaborators,
        NotificationRequest(
            recipients=[recipient],
            channel="whatsapp",
            subject="Message from your administrator",
            content=command.message,
            relation="announcement",
            created_by=admin.id,
            template_name="general_announcement_update",
            slots={"message": command.message},
        ),
        now=turn.now,
    )
    if summary.sent:
        return f"Message sent to {recipient.name}."
    return f"Couldn't deliver the message to {recipient.name}."


async def handle_admin_command(
    utterance: str, user: User, conversation: Conversation, turn: Turn
) -> HandlerResult:
    if not user.is_admin:
        return HandlerResult(NOT_ADMIN)

    text = strip_admin_prefix(utterance)
    action = detect_action(text)
    logger.info("Admin command", extra={"context": {"user_id": user.id, "action": action.value}})

    if action == AdminAction.USERS:
        reply = _users_text(turn.db)
    elif action == AdminAction.SCHEDULES:
        reply = _schedules_text(turn.db, text, turn)
    elif action == AdminAction.BROADCAST:
        reply = await _broadcast(text, user, turn)
    elif action == AdminAction.NOTIFY:
        reply = await _notify(text, user, turn)
    elif action == AdminAction.STATUS:
        reply = _status_text(turn.db, turn.now)
    elif action == AdminAction.ABSENCES:
        reply = _absences_text(turn.db)
    elif action == AdminAction.APPROVE:
        reply = await _review(text, user, turn, AbsenceStatus.APPROVED)
    elif action == AdminAction.REJECT:
        reply = await _review(text, user, turn, AbsenceStatus.REJECTED)
    else:
        reply = HELP_TEXT
    return HandlerResult(reply, {"lastAdminAction": action.value})
