import re
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from app.models import Absence, Conversation, Schedule, User
from app.services.handlers.base import HandlerResult, Turn
from app.services.notification_service import notify_admins_of_absence
from app.services.state_machine import AbsenceStatus
from app.timeutils import local_today

DATE_RE = re.compile(
    r"\b(?P<iso_y>\d{4})-(?P<iso_m>\d{1,2})-(?P<iso_d>\d{1,2})\b"
    r"|\b(?P<a>\d{1,2})[/-](?P<b>\d{1,2})[/-](?P<y>\d{2,4})\b"
)
REASON_RE = re.compile(r"(?<!\w)(because|due to|reason is|reason:|for|as i|since)(?!\w)", re.IGNORECASE)

ABSENCE_TYPES = (
    ("sick", ("sick", "ill", "doctor", "fever", "flu", "hospital")),
    ("vacation", ("vacation", "holiday", "trip", "annual leave")),
    ("personal", ("personal", "family", "appointment")),
)


def _year(raw: str) -> int:
    value = int(raw)
    return 2000 + value if len(raw) <= 2 else value


def extract_dates(text: str, order: str = "MDY") -> list[date]:
    """Up to two calendar dates; invalid ones are skipped."""
    found = []
    for match in DATE_RE.finditer(text or ""):
        try:
            if match.group("iso_y"):
                parsed = date(int(match.group("iso_y")), int(match.group("iso_m")), int(match.group("iso_d")))
            else:
                first, second = int(match.group("a")), int(match.group("b"))
                month, day = (second, first) if order == "DMY" else (first, second)
                parsed = date(_year(match.group("y")), month, day)
        except ValueError:
            continue
        found.append(parsed)
        if len(found) == 2:
            break
    return found


def extract_reason(text: str) -> str:
    match = REASON_RE.search(text or "")
    if match:
        reason = text[match.end():].strip(" \t:,.-")
        if reason:
            return reason
    return (text or "").strip()


def infer_absence_type(text: str) -> str:
    lowered = (text or "").lower()
    for absence_type, words in ABSENCE_TYPES:
        if any(re.search(rf"\b{re.escape(word)}\b", lowered) for word in words):
            return absence_type
    return "other"


def schedule_on(db: Session, user_id: str, day: date) -> Optional[Schedule]:
    return (
        db.query(Schedule)
        .filter(Schedule.employees.any(User.id == user_id), Schedule.date == day)
        .order_by(Schedule.start_time)
        .first()
    )


async def handle_absence_request(
    utterance: str, user: User, conversation: Conversation, turn: Turn
) -> HandlerResult:
    dates = extract_dates(utterance, turn.collaborators.absence_date_order)
    if not dates:
        start = end = local_today(turn.now)
    elif len(dates) == 1:
        start = end = dates[0]
    else:
        start, end = sorted(dates)

    schedule = schedule_on(turn.db, user.id, start)
    absence = Absence(
        user_id=user.id,
        schedule_id=schedule.id if schedule else None,
        start_date=start,
        end_date=end,
        reason=extract_reason(utterance),
        type=infer_absence_type(utterance),
        status=AbsenceStatus.PENDING.value,
        replacement_needed=schedule is not None,
        created_at=turn.now,
    )
    turn.db.add(absence)
    turn.db.flush()

    await notify_admins_of_absence(turn.db, turn.collaborators, absence, user, now=turn.now)

    period = start.isoformat() if start == end else f"{start.isoformat()} to {end.isoformat()}"
    text = (
        f"Thanks, {user.name}. Your {absence.type} absence request for {period} has been submitted "
        f"and is pending approval. Reason: {absence.reason}. Reference: {absence.id}"
    )
    return HandlerResult(text, {"lastAbsenceId": absence.id})
