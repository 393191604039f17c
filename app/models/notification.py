from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from app.database import Base, JSONType, new_id
from app.timeutils import utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(24), primary_key=True, default=new_id)
    channel = Column(Text, nullable=False)  # email, whatsapp, both
    recipient_id = Column(String(24), ForeignKey("users.id"), nullable=False, index=True)
    subject = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    relation = Column(Text, nullable=False, default="other")  # schedule, absence, announcement, traffic, daily-briefing, other
    related_id = Column(String(24))
    status = Column(Text, nullable=False, default="pending")  # pending, sent, failed, delivered, read
    delivery = Column(JSONType, nullable=False, default=dict)  # channel -> {"ok": bool, "error": str}
    created_by = Column(String(24))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    sent_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))
    read_at = Column(DateTime(timezone=True))
