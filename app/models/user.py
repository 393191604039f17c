import re
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import validates

from app.database import Base, JSONType, new_id
from app.timeutils import utcnow

E164_DIGITS = re.compile(r"^[1-9]\d{7,14}$")


def default_notification_preferences() -> dict:
    return {"email": True, "whatsapp": True, "dailyBriefing": False, "briefingTime": "07:00"}


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Reduce any formatting of a phone number to ``+<digits>``; blank means no phone."""
    if value is None:
        return None
    raw = str(value).replace("whatsapp:", "").strip()
    if not raw:
        return None
    digits = re.sub(r"\D", "", raw)
    if raw.startswith("00"):
        digits = digits[2:]
    if not E164_DIGITS.match(digits):
        raise ValueError("Phone must be an international number, e.g. +15550001111")
    return f"+{digits}"


class User(Base):
    __tablename__ = "users"

    id = Column(String(24), primary_key=True, default=new_id)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    phone = Column(Text)  # E.164
    role = Column(Text, nullable=False, default="employee")  # admin, employee
    position = Column(Text)
    department = Column(Text)
    team_id = Column(String(24), ForeignKey("teams.id"))
    default_location_id = Column(String(24), ForeignKey("locations.id"))
    preferred_language = Column(Text, nullable=False, default="en")
    voice_language = Column(Text)  # BCP-47 locale for speech recognition, e.g. fr-FR
    notification_preferences = Column(JSONType, nullable=False, default=default_notification_preferences)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @validates("phone")
    def _normalize_phone(self, key, value):
        return normalize_phone(value)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def wants(self, channel: str) -> bool:
        prefs = self.notification_preferences or {}
        return bool(prefs.get(channel, True))
