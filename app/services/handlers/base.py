from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from app.models import WhatsAppSettings
from app.services.collaborators import Collaborators


@dataclass
class HandlerResult:
    text: str
    context_updates: dict = field(default_factory=dict)


@dataclass
class Turn:
    """Per-message resources shared by every handler."""

    db: Session
    collaborators: Collaborators
    settings: WhatsAppSettings
    now: datetime
