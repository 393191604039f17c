from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from app.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from databases without tz support."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_zone() -> ZoneInfo:
    return ZoneInfo(settings.local_timezone)


def local_now(now: Optional[datetime] = None) -> datetime:
    return ensure_utc(now or utcnow()).astimezone(local_zone())


def local_today(now: Optional[datetime] = None) -> date:
    return local_now(now).date()


def day_start_utc(day: date) -> datetime:
    """00:00 local time on ``day`` expressed in UTC."""
    return datetime.combine(day, time.min, tzinfo=local_zone()).astimezone(timezone.utc)


def day_window_utc(start: date, end: date) -> tuple[datetime, datetime]:
    """Half-open UTC window [start 00:00 local, end 00:00 local)."""
    return day_start_utc(start), day_start_utc(end)


def format_local_time(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return ensure_utc(value).astimezone(local_zone()).strftime("%H:%M")


def next_monday(day: date) -> date:
    return day + timedelta(days=7 - day.weekday())
