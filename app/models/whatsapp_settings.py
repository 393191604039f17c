from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from app.database import Base, JSONType
from app.timeutils import utcnow

SETTINGS_ID = "default"

DEFAULT_WELCOME_MESSAGE = "Welcome to the Employee Scheduling System. How can I help you today?"

DEFAULT_TEMPLATES = {
    "schedule_reminder": {
        "parameters": ["name", "title", "date", "time", "location"],
        "languages": {"en": "schedule_reminder", "fr": "schedule_reminder_fr"},
    },
    "schedule_change": {
        "parameters": ["name", "title", "date", "time", "location"],
        "languages": {"en": "schedule_change", "fr": "schedule_change_fr"},
    },
    "welcome_message": {
        "parameters": ["name"],
        "languages": {"en": "welcome_message", "fr": "welcome_message_fr"},
    },
    "general_announcement_update": {
        "parameters": ["name", "message"],
        "languages": {"en": "general_announcement_update", "fr": "general_announcement_update_fr"},
    },
    "absence_update": {
        "parameters": ["name", "status", "start", "end"],
        "languages": {"en": "absence_update", "fr": "absence_update_fr"},
    },
    "traffic_alert": {
        "parameters": ["name", "title", "traffic", "time"],
        "languages": {"en": "traffic_alert", "fr": "traffic_alert_fr"},
    },
}

DEFAULT_TEXT_TEMPLATES = {
    "schedule_reminder": (
        "Hello {{name}}, this is a reminder about your upcoming shift \"{{title}}\" on {{date}} "
        "at {{time}} at {{location}}."
    ),
    "schedule_change": (
        "Hello {{name}}, your shift \"{{title}}\" has been updated. It is now on {{date}} "
        "at {{time}} at {{location}}."
    ),
    "welcome_message": "Hello {{name}}, welcome to the Employee Scheduling System.",
    "general_announcement_update": "Hello {{name}}, {{message}}",
    "absence_update": "Hello {{name}}, your absence request from {{start}} to {{end}} has been {{status}}.",
    "traffic_alert": (
        "Hello {{name}}, there is {{traffic}} on the way to \"{{title}}\" starting at {{time}}. "
        "Please plan extra travel time."
    ),
}


class WhatsAppSettings(Base):
    __tablename__ = "whatsapp_settings"

    id = Column(String(24), primary_key=True, default=SETTINGS_ID)
    enabled = Column(Boolean, nullable=False, default=True)
    auto_reply = Column(Boolean, nullable=False, default=True)
    ai_processing = Column(Boolean, nullable=False, default=True)
    max_response_length = Column(Integer, nullable=False, default=300)
    welcome_message = Column(Text, nullable=False, default=DEFAULT_WELCOME_MESSAGE)
    ai_system_instructions = Column(Text, nullable=False, default="")
    templates = Column(JSONType, nullable=False, default=lambda: dict(DEFAULT_TEMPLATES))
    text_templates = Column(JSONType, nullable=False, default=lambda: dict(DEFAULT_TEXT_TEMPLATES))
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
