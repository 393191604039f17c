from sqlalchemy.orm import Session

from app.models import WhatsAppSettings
from app.models.whatsapp_settings import SETTINGS_ID

EDITABLE_FIELDS = {
    "enabled",
    "auto_reply",
    "ai_processing",
    "max_response_length",
    "welcome_message",
    "ai_system_instructions",
    "templates",
    "text_templates",
}


def get_whatsapp_settings(db: Session) -> WhatsAppSettings:
    """Load the singleton row, creating it with defaults on first use."""
    row = db.query(WhatsAppSettings).filter(WhatsAppSettings.id == SETTINGS_ID).first()
    if row is None:
        row = WhatsAppSettings(id=SETTINGS_ID)
        db.add(row)
        db.flush()
    return row


def update_whatsapp_settings(db: Session, changes: dict) -> WhatsAppSettings:
    row = get_whatsapp_settings(db)
    for key, value in changes.items():
        if key in EDITABLE_FIELDS and value is not None:
            setattr(row, key, value)
    db.flush()
    return row
