from app.models.absence import Absence
from app.models.conversation import Conversation, ConversationMessage
from app.models.hour_tracking import HourTracking
from app.models.location import Location
from app.models.notification import Notification
from app.models.schedule import Schedule, schedule_assignments
from app.models.team import Team
from app.models.user import User
from app.models.whatsapp_settings import WhatsAppSettings

__all__ = [
    "User",
    "Team",
    "Location",
    "Schedule",
    "schedule_assignments",
    "Absence",
    "HourTracking",
    "Notification",
    "Conversation",
    "ConversationMessage",
    "WhatsAppSettings",
]
