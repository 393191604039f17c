import re
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy.orm import Session

from app.models import Conversation, Location, Schedule, User
from app.services.handlers.base import HandlerResult, Turn
from app.timeutils import format_local_time, local_today, next_monday

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
NEXT_WEEKDAY_RE = re.compile(r"\bnext\s+(" + "|".join(WEEKDAYS) + r")\b")


@dataclass
class Window:
    start: date
    end: date  # exclusive
    label: str


def resolve_window(utterance: str, today: date) -> Window:
    text = (utterance or "").lower()

    if re.search(r"\bnext\s+week\b", text):
        start = next_monday(today)
        return Window(start, start + timedelta(days=7), "next week")

    match = NEXT_WEEKDAY_RE.search(text)
    if match:
        weekday = WEEKDAYS.index(match.group(1))
        target = next_monday(today) + timedelta(days=weekday)
        return Window(target, target + timedelta(days=1), f"next {match.group(1).capitalize()}")

    if re.search(r"\bthis\s+week\b", text):
        start = today - timedelta(days=today.weekday())
        return Window(start, start + timedelta(days=7), "this week")

    if "tomorrow" in text:
        start = today + timedelta(days=1)
        return Window(start, start + timedelta(days=1), "tomorrow")

    if "upcoming" in text:
        return Window(today, today + timedelta(days=7), "the upcoming days")

    return Window(today, today + timedelta(days=1), "today")


def schedules_for_user(db: Session, user_id: str, start: date, end: date) -> list[Schedule]:
    return (
        db.query(Schedule)
        .filter(
            Schedule.employees.any(User.id == user_id),
            Schedule.date >= start,
            Schedule.date < end,
        )
        .order_by(Schedule.date, Schedule.start_time)
        .all()
    )


def format_schedule_line(index: int, schedule: Schedule, location: Location | None) -> str:
    where = f"{location.name}, {location.address}" if location else "location not set"
    return (
        f"{index}. {schedule.title}\n"
        f"   Date: {schedule.date.strftime('%a, %b %d')}\n"
        f"   Time: {format_local_time(schedule.start_time)} - {format_local_time(schedule.end_time)}\n"
        f"   Location: {where}"
    )


async def handle_schedule_query(
    utterance: str, user: User, conversation: Conversation, turn: Turn
) -> HandlerResult:
    window = resolve_window(utterance, local_today(turn.now))
    schedules = schedules_for_user(turn.db, user.id, window.start, window.end)
    if not schedules:
        return HandlerResult(f"You don't have any schedules for {window.label}, {user.name}.")

    lines = [f"Your schedules for {window.label}:"]
    for index, schedule in enumerate(schedules, start=1):
        lines.append(format_schedule_line(index, schedule, turn.db.get(Location, schedule.location_id)))
    return HandlerResult(
        "\n\n".join(lines),
        {"lastScheduleWindow": {"start": window.start.isoformat(), "end": window.end.isoformat()}},
    )
